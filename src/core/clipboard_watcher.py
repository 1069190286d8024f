"""
Clipboard polling loop.

A QTimer on the UI thread checks the clipboard change counter and emits one
ClipboardSnapshot per observed change. A tick never blocks: it only compares
counters and reads local clipboard data.
"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image
from PySide6.QtCore import QObject, QTimer, Signal, Slot

from .config import MIN_POLLING_INTERVAL
from .conversion_config import ClipboardSnapshot
from .interfaces import ClipboardAccess

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 0.5


def load_image_file(path: Path) -> Image.Image | None:
    """Decode an image file, or return None if it is not a readable image."""
    try:
        with Image.open(path) as image:
            image.load()
            return image.copy()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.debug(f"Clipboard file {path} is not an image: {e}")
        return None


def is_usable(image: Image.Image | None) -> bool:
    return image is not None and image.width > 0 and image.height > 0


class ClipboardWatcher(QObject):
    """
    Polls the clipboard and reports changes.

    Signals:
        clipboardChanged(ClipboardSnapshot): one per detected change; the
            snapshot's image is None for a change without an image
    """

    clipboardChanged = Signal(object)

    def __init__(
        self,
        clipboard: ClipboardAccess,
        interval: float = DEFAULT_INTERVAL,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._clipboard = clipboard
        self._last_change_count = clipboard.change_count()

        self._timer = QTimer(self)
        self._timer.setObjectName("ClipboardPollTimer")
        self._timer.timeout.connect(self.poll)
        self.set_interval(interval)

    @property
    def interval(self) -> float:
        return self._timer.interval() / 1000

    def is_running(self) -> bool:
        return self._timer.isActive()

    def set_interval(self, seconds: float) -> None:
        """Change the polling interval; applies immediately while running."""
        seconds = max(MIN_POLLING_INTERVAL, float(seconds))
        self._timer.setInterval(int(round(seconds * 1000)))

    def start(self) -> None:
        """Start polling. Changes made while stopped are not reported."""
        if self._timer.isActive():
            return
        self._last_change_count = self._clipboard.change_count()
        self._timer.start()
        logger.info(f"Started monitoring clipboard every {self.interval:.2f}s")

    def stop(self) -> None:
        if not self._timer.isActive():
            return
        self._timer.stop()
        logger.info("Stopped monitoring clipboard")

    @Slot()
    def poll(self) -> None:
        """Run one tick: compare the change counter and emit on change."""
        current = self._clipboard.change_count()
        if current == self._last_change_count:
            return
        self._last_change_count = current

        image = self._extract_image()
        if image is not None:
            logger.info(f"Image detected in clipboard ({image.width}x{image.height})")
        else:
            logger.debug("Clipboard changed but no image found")

        self.clipboardChanged.emit(ClipboardSnapshot(change_count=current, image=image))

    def _extract_image(self) -> Image.Image | None:
        image = self._clipboard.read_image()
        if is_usable(image):
            return image

        for path in self._clipboard.read_file_references():
            image = load_image_file(path)
            if is_usable(image):
                return image

        return None
