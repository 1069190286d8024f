"""
Data model for the conversion pipeline.

Defines the backend selection handed to the dispatcher and the small value
objects that travel between the clipboard watcher, the pipeline coordinator
and the worker thread.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from PIL import Image

from .config import BACKEND_CLAUDE, BACKEND_PIX2TEX, BACKEND_SIMPLETEX
from .errors import ConverterError


class BackendKind(Enum):
    """Available OCR backends."""

    PIX2TEX = BACKEND_PIX2TEX
    SIMPLETEX = BACKEND_SIMPLETEX
    CLAUDE = BACKEND_CLAUDE

    @property
    def label(self) -> str:
        """Human-readable name for menus."""
        return _BACKEND_LABELS[self]


_BACKEND_LABELS = {
    BackendKind.PIX2TEX: "pix2tex (local)",
    BackendKind.SIMPLETEX: "SimpleTex",
    BackendKind.CLAUDE: "Claude",
}


@dataclass(frozen=True)
class BackendConfig:
    """
    Immutable backend selection.

    The credential is the API key for Claude, the access token for SimpleTex,
    or an optional interpreter path for pix2tex. It is passed through opaquely.
    """

    backend: BackendKind
    credential: str | None = None

    def __repr__(self) -> str:
        # Keep credentials out of logs
        has_credential = bool(self.credential)
        return f"BackendConfig(backend={self.backend.value}, credential={'set' if has_credential else 'unset'})"


@dataclass
class ClipboardSnapshot:
    """Clipboard state observed on one poll tick where the change counter moved."""

    change_count: int
    image: Image.Image | None = None

    @property
    def has_image(self) -> bool:
        return self.image is not None


@dataclass
class ConversionRequest:
    """One image handed to the active backend."""

    request_id: int
    image: Image.Image


@dataclass
class ConversionResult:
    """
    Outcome of a conversion.

    Exactly one of formula and error is set.
    """

    request_id: int
    formula: str | None = None
    error: ConverterError | None = None
    elapsed_ms: int = 0

    @property
    def success(self) -> bool:
        return self.error is None and bool(self.formula)
