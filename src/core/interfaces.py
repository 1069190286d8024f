"""
Collaborator contracts for the conversion pipeline.

The pipeline only talks to settings, the clipboard and the presentation layer
through these protocols so it can be driven by fakes in tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from PIL import Image

from .conversion_config import BackendKind
from .errors import ConverterError


class LatexConverter(Protocol):
    """An image-to-LaTeX backend."""

    def convert(self, image: Image.Image) -> str:
        """
        Convert an image containing a formula to LaTeX.

        Raises:
            ConverterError: classified failure
        """
        ...


class SettingsProvider(Protocol):
    """Read-only view of user preferences."""

    @property
    def enabled(self) -> bool: ...

    @property
    def polling_interval(self) -> float: ...

    @property
    def resume_delay(self) -> float: ...

    @property
    def selected_backend(self) -> BackendKind: ...

    def credential(self, backend: BackendKind) -> str | None: ...


class ClipboardAccess(Protocol):
    """The system clipboard."""

    def change_count(self) -> int: ...

    def read_image(self) -> Image.Image | None: ...

    def read_file_references(self) -> list[Path]: ...

    def write_text(self, text: str) -> None: ...


class Presenter(Protocol):
    """Fire-and-forget user feedback."""

    def notify_success(self, formula: str) -> None: ...

    def notify_failure(self, error: ConverterError) -> None: ...

    def prompt_setup_required(self, error: ConverterError) -> None: ...

    def prompt_runtime_missing(self) -> None: ...
