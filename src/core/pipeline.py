"""
Pipeline coordinator: clipboard watcher -> single-flight conversion -> write-back.

All state changes happen on the UI thread. The conversion itself runs on a
ConversionWorker thread and its outcome comes back through a queued signal,
so write-back and re-arming are always sequenced after the conversion settles.
"""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from .backend_interface import ConversionDispatcher
from .clipboard_watcher import ClipboardWatcher
from .conversion_config import BackendConfig, ClipboardSnapshot, ConversionRequest, ConversionResult
from .conversion_state import PipelineState
from .errors import ConverterError, ErrorKind
from .interfaces import ClipboardAccess, Presenter, SettingsProvider
from .threading import ConversionController

logger = logging.getLogger(__name__)


def backend_config_for(settings: SettingsProvider) -> BackendConfig:
    """Build the immutable backend selection from current settings."""
    backend = settings.selected_backend
    return BackendConfig(backend=backend, credential=settings.credential(backend))


class PipelineCoordinator(QObject):
    """
    State machine gluing the clipboard watcher to the conversion dispatcher.

    IDLE: watching; an image starts a conversion.
    CONVERTING: one conversion in flight; further images are dropped.
    SUSPENDED: watcher stopped while the result is written back, until the
        resume delay has passed.

    Signals:
        stateChanged(PipelineState): after every transition
        conversionSettled(ConversionResult): after write-back and notification
        imageDropped(int): change count of an image ignored while busy
    """

    stateChanged = Signal(object)
    conversionSettled = Signal(object)
    imageDropped = Signal(int)

    def __init__(
        self,
        settings: SettingsProvider,
        clipboard: ClipboardAccess,
        presenter: Presenter,
        dispatcher: ConversionDispatcher | None = None,
        watcher: ClipboardWatcher | None = None,
        *,
        resume_delay: float | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._settings = settings
        self._clipboard = clipboard
        self._presenter = presenter
        self._dispatcher = dispatcher or ConversionDispatcher(backend_config_for(settings))

        self._watcher = watcher or ClipboardWatcher(clipboard, settings.polling_interval, parent=self)
        self._watcher.clipboardChanged.connect(self._on_clipboard_changed)

        self._controller = ConversionController(self._dispatcher, parent=self)
        self._controller.conversionSucceeded.connect(self._on_conversion_settled)
        self._controller.conversionFailed.connect(self._on_conversion_settled)

        self._resume_timer = QTimer(self)
        self._resume_timer.setSingleShot(True)
        self._resume_timer.timeout.connect(self._resume)
        self.set_resume_delay(settings.resume_delay if resume_delay is None else resume_delay)

        self._state = PipelineState.IDLE
        self._next_request_id = 1
        self._active_request_id: int | None = None

        self.setObjectName("PipelineCoordinator")

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def watcher(self) -> ClipboardWatcher:
        return self._watcher

    @property
    def dispatcher(self) -> ConversionDispatcher:
        return self._dispatcher

    @property
    def resume_delay(self) -> float:
        return self._resume_timer.interval() / 1000

    def set_resume_delay(self, seconds: float) -> None:
        self._resume_timer.setInterval(int(round(max(0.0, float(seconds)) * 1000)))

    def start(self) -> None:
        """Begin watching if the feature is enabled."""
        if self._settings.enabled:
            self._watcher.start()

    def set_enabled(self, enabled: bool) -> None:
        """
        React to the feature being switched on or off.

        While a conversion is in flight only the resume decision changes;
        it re-reads the setting when the suspension ends.
        """
        if self._state is not PipelineState.IDLE:
            logger.debug(f"Enabled set to {enabled} while {self._state.name}; applied on resume")
            return
        if enabled:
            self._watcher.start()
        else:
            self._watcher.stop()

    def apply_settings(self) -> None:
        """Re-read polling interval, resume delay and backend selection."""
        self._watcher.set_interval(self._settings.polling_interval)
        self.set_resume_delay(self._settings.resume_delay)

        config = backend_config_for(self._settings)
        if config != self._dispatcher.backend_config:
            # Takes effect for the next conversion; an in-flight one keeps its backend
            self._dispatcher.set_backend(config)

    def shutdown(self) -> None:
        """Stop watching and wait for any running conversion."""
        self._resume_timer.stop()
        self._watcher.stop()
        self._controller.shutdown()

    def _set_state(self, state: PipelineState) -> None:
        if state is self._state:
            return
        logger.debug(f"Pipeline state {self._state.name} -> {state.name}")
        self._state = state
        self.stateChanged.emit(state)

    @Slot(object)
    def _on_clipboard_changed(self, snapshot: ClipboardSnapshot) -> None:
        if not snapshot.has_image:
            logger.debug("Clipboard changed without an image; ignoring")
            return

        if self._state is not PipelineState.IDLE:
            logger.info("Already processing, dropping clipboard image")
            self.imageDropped.emit(snapshot.change_count)
            return

        request = ConversionRequest(request_id=self._next_request_id, image=snapshot.image)
        self._next_request_id += 1

        self._active_request_id = request.request_id
        self._set_state(PipelineState.CONVERTING)

        if not self._controller.start_conversion(request):
            self._active_request_id = None
            self._set_state(PipelineState.IDLE)

    @Slot(object)
    def _on_conversion_settled(self, result: ConversionResult) -> None:
        if self._state is not PipelineState.CONVERTING or result.request_id != self._active_request_id:
            logger.warning(f"Ignoring stale result for conversion #{result.request_id}")
            return

        self._active_request_id = None

        # Hold off the watcher so our own write-back is not seen as new input
        self._watcher.stop()
        self._set_state(PipelineState.SUSPENDED)

        if result.success:
            self._write_back(result.formula or "")
        else:
            self._present_failure(result.error or ConverterError(ErrorKind.NO_FORMULA_DETECTED))

        self.conversionSettled.emit(result)
        self._resume_timer.start()

    def _write_back(self, formula: str) -> None:
        try:
            self._clipboard.write_text(formula)
        except Exception as e:
            logger.exception("Failed to write formula to clipboard")
            self._present_failure(
                ConverterError(ErrorKind.CLIPBOARD_WRITE_FAILED, technical_message=f"{type(e).__name__}: {e}")
            )
            return

        logger.info("Wrote LaTeX to clipboard")
        try:
            self._presenter.notify_success(formula)
        except Exception:
            logger.exception("Presenter failed to show success notification")

    def _present_failure(self, error: ConverterError) -> None:
        logger.info(f"Conversion failed: [{error.kind.value}] {error.user_message}")
        try:
            if error.kind is ErrorKind.RUNTIME_MISSING:
                self._presenter.prompt_runtime_missing()
            elif error.requires_setup:
                self._presenter.prompt_setup_required(error)
            else:
                self._presenter.notify_failure(error)
        except Exception:
            logger.exception("Presenter failed to show failure notification")

    @Slot()
    def _resume(self) -> None:
        if self._settings.enabled:
            self._watcher.start()
        else:
            logger.info("Monitoring disabled; not resuming clipboard watcher")
        self._set_state(PipelineState.IDLE)
