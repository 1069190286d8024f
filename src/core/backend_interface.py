"""
Backend interface for the OCR converters.

This module owns the single active converter and hands each conversion to it.
Swapping the converter is thread-safe and only affects calls made afterwards.
"""

from __future__ import annotations

import logging
import threading

from PIL import Image

from .conversion_config import BackendConfig, BackendKind
from .converters import ClaudeConverter, Pix2TexConverter, SimpleTexConverter
from .interfaces import LatexConverter

logger = logging.getLogger(__name__)


def create_converter(config: BackendConfig) -> LatexConverter:
    """
    Build the converter for a backend selection.

    Missing credentials are not an error here; the converter reports them
    when it is asked to convert.
    """
    if config.backend is BackendKind.PIX2TEX:
        return Pix2TexConverter(python_path=config.credential or None)
    if config.backend is BackendKind.SIMPLETEX:
        return SimpleTexConverter(config.credential)
    if config.backend is BackendKind.CLAUDE:
        return ClaudeConverter(config.credential)
    raise ValueError(f"Unknown backend: {config.backend}")


class ConversionDispatcher:
    """
    Thread-safe holder of the active converter.

    convert() runs on the worker thread while set_backend() runs on the UI
    thread; the lock only guards the reference, never the conversion itself.
    """

    def __init__(self, config: BackendConfig | None = None, converter: LatexConverter | None = None) -> None:
        self._lock = threading.RLock()
        self._config: BackendConfig | None = None
        self._converter: LatexConverter | None = None

        if converter is not None:
            self.set_converter(converter)
        elif config is not None:
            self.set_backend(config)

    @property
    def backend_config(self) -> BackendConfig | None:
        """The selection the active converter was built from, if any."""
        with self._lock:
            return self._config

    @property
    def converter(self) -> LatexConverter | None:
        with self._lock:
            return self._converter

    def set_backend(self, config: BackendConfig) -> None:
        """Replace the active converter with one built from config."""
        converter = create_converter(config)
        with self._lock:
            self._converter = converter
            self._config = config
        logger.info(f"Active backend set to {config.backend.value}")

    def set_converter(self, converter: LatexConverter) -> None:
        """Replace the active converter directly."""
        with self._lock:
            self._converter = converter
            self._config = None
        logger.info(f"Active backend set to {type(converter).__name__}")

    def convert(self, image: Image.Image) -> str:
        """
        Convert an image with the converter that is active right now.

        Errors raised by the converter propagate unchanged.
        """
        with self._lock:
            converter = self._converter

        if converter is None:
            raise RuntimeError("No OCR backend configured")

        return converter.convert(image)
