"""
Qt implementation of the clipboard collaborator.

Qt has no clipboard change counter, so one is kept here. It advances when
QClipboard reports dataChanged and also when the clipboard content moves
silently, because some platforms only emit dataChanged for changes made while
the application is active. Formats, text and URLs are compared on every poll;
image bytes are only hashed once per image_check_interval.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from time import monotonic

from PIL import Image, ImageQt
from PySide6.QtCore import QObject, Slot
from PySide6.QtGui import QClipboard, QGuiApplication

logger = logging.getLogger(__name__)

# Seconds between full hashes of an otherwise unchanged clipboard image
IMAGE_CHECK_INTERVAL = 1.0


class QtClipboard(QObject):
    """ClipboardAccess backed by QGuiApplication.clipboard()."""

    def __init__(
        self,
        clipboard: QClipboard | None = None,
        parent: QObject | None = None,
        image_check_interval: float = IMAGE_CHECK_INTERVAL,
    ) -> None:
        super().__init__(parent)
        self._clipboard = clipboard or QGuiApplication.clipboard()
        self._image_check_interval = image_check_interval
        self._change_count = 0
        self._remember_content()
        self._clipboard.dataChanged.connect(self._on_data_changed)

    @Slot()
    def _on_data_changed(self) -> None:
        self._change_count += 1
        self._remember_content()

    def change_count(self) -> int:
        descriptor = self._describe()
        if descriptor != self._descriptor:
            self._change_count += 1
            self._remember_content()
        elif self._image_due():
            digest = self._image_digest()
            self._image_checked_at = monotonic()
            if digest != self._digest:
                self._digest = digest
                self._change_count += 1
        return self._change_count

    def read_image(self) -> Image.Image | None:
        qimage = self._clipboard.image()
        if qimage.isNull():
            return None

        try:
            return ImageQt.fromqimage(qimage)
        except (OSError, ValueError) as e:
            logger.warning(f"Clipboard image could not be decoded: {e}")
            return None

    def read_file_references(self) -> list[Path]:
        mime = self._clipboard.mimeData()
        if mime is None or not mime.hasUrls():
            return []
        return [Path(url.toLocalFile()) for url in mime.urls() if url.isLocalFile()]

    def write_text(self, text: str) -> None:
        self._clipboard.setText(text)
        logger.debug(f"Wrote {len(text)} characters to clipboard")

    def _remember_content(self) -> None:
        self._descriptor = self._describe()
        self._digest = self._image_digest()
        self._image_checked_at = monotonic()

    def _image_due(self) -> bool:
        has_image = bool(self._descriptor) and self._descriptor[-1]
        return has_image and monotonic() - self._image_checked_at >= self._image_check_interval

    def _describe(self) -> tuple[object, ...]:
        mime = self._clipboard.mimeData()
        if mime is None:
            return ()

        formats = tuple(mime.formats())
        text = mime.text() if mime.hasText() else ""
        urls = tuple(url.toString() for url in mime.urls()) if mime.hasUrls() else ()
        has_image = mime.hasImage() or any(fmt.startswith("image/") for fmt in formats)
        return (formats, text, urls, has_image)

    def _image_digest(self) -> str:
        mime = self._clipboard.mimeData()
        if mime is None:
            return ""

        image_format = next((fmt for fmt in mime.formats() if fmt.startswith("image/")), None)
        if image_format is not None:
            return hashlib.blake2b(mime.data(image_format).data(), digest_size=16).hexdigest()
        return "image" if mime.hasImage() else ""
