"""
Threading system for non-blocking OCR conversions.

This module provides a QThread-based worker that runs one conversion off the
UI thread and reports its outcome back through queued signals.
"""

from __future__ import annotations

import logging
from time import monotonic

from PySide6.QtCore import QObject, Qt, QThread, Signal, Slot

from .backend_interface import ConversionDispatcher
from .conversion_config import ConversionRequest, ConversionResult
from .converters.base import clean_formula
from .errors import ConverterError, map_exception

logger = logging.getLogger(__name__)


class ConversionWorker(QThread):
    """
    QThread-based worker for running one OCR conversion without blocking the UI.

    A conversion is never cancelled mid-flight; the worker always runs the
    backend call to completion and emits exactly one terminal signal.

    Signals:
        conversionSucceeded(ConversionResult): formula recognized
        conversionFailed(ConversionResult): classified error in result.error
    """

    conversionSucceeded = Signal(object)
    conversionFailed = Signal(object)

    def __init__(
        self,
        dispatcher: ConversionDispatcher,
        request: ConversionRequest,
        *,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)

        self.dispatcher = dispatcher
        self.request = request
        self.setObjectName(f"ConversionWorker-{request.request_id}")

    def run(self) -> None:
        """
        Main worker thread execution.

        Handles all exceptions so that exactly one terminal signal is emitted.
        """
        request = self.request
        start = monotonic()
        logger.info(f"Starting conversion #{request.request_id} ({request.image.width}x{request.image.height})")

        try:
            formula = clean_formula(self.dispatcher.convert(request.image))
        except ConverterError as e:
            result = ConversionResult(request.request_id, error=e, elapsed_ms=_elapsed_ms(start))
            logger.warning(f"Conversion #{request.request_id} failed: [{e.kind.value}] {e.user_message}")
            self.conversionFailed.emit(result)
            return
        except Exception as e:
            # A converter bug must not take the pipeline down
            error = map_exception(e, {"request_id": request.request_id})
            logger.error(f"Unexpected error during conversion #{request.request_id}")
            self.conversionFailed.emit(ConversionResult(request.request_id, error=error, elapsed_ms=_elapsed_ms(start)))
            return

        result = ConversionResult(request.request_id, formula=formula, elapsed_ms=_elapsed_ms(start))
        logger.info(f"Conversion #{request.request_id} completed in {result.elapsed_ms} ms")
        self.conversionSucceeded.emit(result)


def _elapsed_ms(start: float) -> int:
    return int((monotonic() - start) * 1000)


class ConversionController(QObject):
    """
    Manages the lifecycle of ConversionWorker threads.

    At most one worker exists at a time; start requests while it runs are
    refused.
    """

    conversionSucceeded = Signal(object)
    conversionFailed = Signal(object)

    def __init__(self, dispatcher: ConversionDispatcher, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self.dispatcher = dispatcher
        self.current_worker: ConversionWorker | None = None
        self._cleanup_in_progress = False
        self.setObjectName("ConversionController")
        logger.debug("ConversionController initialized.")

    def is_running(self) -> bool:
        """Check if a conversion is currently running."""
        return self.current_worker is not None and self.current_worker.isRunning()

    def start_conversion(self, request: ConversionRequest) -> bool:
        """
        Start a conversion in a worker thread.

        Returns:
            False if another conversion is still running
        """
        if self.is_running():
            logger.warning("Cannot start conversion: another conversion is already running")
            return False

        worker = ConversionWorker(self.dispatcher, request, parent=self)
        self.current_worker = worker

        worker.conversionSucceeded.connect(self.conversionSucceeded, Qt.ConnectionType.QueuedConnection)
        worker.conversionFailed.connect(self.conversionFailed, Qt.ConnectionType.QueuedConnection)
        worker.finished.connect(self._cleanup_worker, Qt.ConnectionType.QueuedConnection)

        worker.start()
        return True

    @Slot()
    def _cleanup_worker(self) -> None:
        """Release the worker once its thread has finished."""
        if self._cleanup_in_progress:
            logger.debug("Cleanup already in progress, skipping redundant call.")
            return

        self._cleanup_in_progress = True
        worker_to_clean = self.current_worker
        if worker_to_clean is not None and worker_to_clean.isRunning():
            # A newer worker replaced the one that just finished; leave it alone
            worker_to_clean = None
        else:
            self.current_worker = None

        try:
            if worker_to_clean:
                try:
                    worker_to_clean.conversionSucceeded.disconnect(self.conversionSucceeded)
                    worker_to_clean.conversionFailed.disconnect(self.conversionFailed)
                    worker_to_clean.finished.disconnect(self._cleanup_worker)
                except (TypeError, RuntimeError):
                    logger.debug("Signals already disconnected or worker deleted.")

                worker_to_clean.deleteLater()
                logger.debug(f"Worker {worker_to_clean.objectName()} scheduled for deletion.")
        finally:
            self._cleanup_in_progress = False

    def wait_for_completion(self, timeout_ms: int = 0) -> bool:
        """
        Wait for the current worker to finish.

        This should generally only be called during application shutdown.
        """
        if self.current_worker:
            return self.current_worker.wait(timeout_ms) if timeout_ms else self.current_worker.wait()
        return True

    @Slot()
    def shutdown(self, timeout_ms: int = 3000) -> None:
        """Wait for an active conversion when the application quits."""
        if self.is_running():
            logger.info("Application shutting down, waiting for active conversion.")
            if not self.wait_for_completion(timeout_ms):
                logger.warning(f"Worker did not finish within {timeout_ms}ms during shutdown.")
        else:
            logger.debug("No active conversion during shutdown.")
