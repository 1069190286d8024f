"""
System tray menu for the LaTeX Clipboard Converter.

The tray is a thin view over the pipeline: it toggles monitoring, switches
the OCR engine and shows whether a conversion is running. Its processing
indicator is derived from PipelineState and never drives the pipeline.
"""

import logging

from PySide6.QtCore import QObject, QPoint, QRect, Qt, QUrl, Signal, Slot
from PySide6.QtGui import QAction, QActionGroup, QColor, QDesktopServices, QFont, QIcon, QPainter, QPixmap
from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon

from core.config_manager import ConfigManager
from core.conversion_config import BackendKind
from core.conversion_state import PipelineState
from core.error_handler import ErrorHandler
from core.pipeline import PipelineCoordinator

logger = logging.getLogger(__name__)

ICON_SIZE = 64


def status_text(state: PipelineState, enabled: bool) -> str:
    """Menu status line for a pipeline state."""
    if state is PipelineState.CONVERTING:
        return "Converting..."
    if not enabled:
        return "Paused"
    return "Watching clipboard"


def make_icon(busy: bool) -> QIcon:
    """Draw the tray glyph; busy uses the accent color."""
    pixmap = QPixmap(ICON_SIZE, ICON_SIZE)
    pixmap.fill(Qt.GlobalColor.transparent)

    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    painter.setPen(QColor("#e67e22") if busy else QColor("#2c3e50"))
    font = QFont()
    font.setPixelSize(int(ICON_SIZE * 0.8))
    font.setBold(True)
    painter.setFont(font)
    painter.drawText(QRect(QPoint(0, 0), pixmap.size()), Qt.AlignmentFlag.AlignCenter, "∑")
    painter.end()

    return QIcon(pixmap)


class TrayController(QObject):
    """
    Owns the tray icon and its menu.

    Signals:
        settingsRequested(): the user chose "Settings..."
    """

    settingsRequested = Signal()

    def __init__(
        self,
        config: ConfigManager,
        coordinator: PipelineCoordinator,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._config = config
        self._coordinator = coordinator

        self._idle_icon = make_icon(busy=False)
        self._busy_icon = make_icon(busy=True)

        self.tray_icon = QSystemTrayIcon(self._idle_icon, self)
        self._menu = QMenu()
        self._build_menu()
        self.tray_icon.setContextMenu(self._menu)

        coordinator.stateChanged.connect(self._on_state_changed)
        self._menu.aboutToShow.connect(self.refresh)
        self.refresh()

    def _build_menu(self) -> None:
        self._status_action = QAction("", self._menu)
        self._status_action.setEnabled(False)
        self._menu.addAction(self._status_action)
        self._menu.addSeparator()

        self._enabled_action = QAction("Enabled", self._menu)
        self._enabled_action.setCheckable(True)
        self._enabled_action.toggled.connect(self._on_enabled_toggled)
        self._menu.addAction(self._enabled_action)

        engine_menu = self._menu.addMenu("Engine")
        self._engine_group = QActionGroup(self._menu)
        self._engine_group.setExclusive(True)
        self._engine_actions: dict[BackendKind, QAction] = {}
        for kind in BackendKind:
            action = QAction(kind.label, engine_menu)
            action.setCheckable(True)
            action.setData(kind.value)
            self._engine_group.addAction(action)
            engine_menu.addAction(action)
            self._engine_actions[kind] = action
        self._engine_group.triggered.connect(self._on_engine_selected)

        self._menu.addSeparator()
        settings_action = self._menu.addAction("Settings...")
        settings_action.triggered.connect(self.settingsRequested)
        logs_action = self._menu.addAction("Open Log Folder")
        logs_action.triggered.connect(self._open_log_folder)

        self._menu.addSeparator()
        quit_action = self._menu.addAction("Quit")
        quit_action.triggered.connect(QApplication.quit)

    def show(self) -> None:
        self.tray_icon.show()

    @Slot()
    def refresh(self) -> None:
        """Sync menu state with settings and the pipeline (menus tolerate stale state)."""
        enabled = self._config.enabled
        self._enabled_action.blockSignals(True)
        self._enabled_action.setChecked(enabled)
        self._enabled_action.blockSignals(False)

        selected = self._config.selected_backend
        for kind, action in self._engine_actions.items():
            action.setChecked(kind is selected)

        self._apply_state(self._coordinator.state)

    @Slot(object)
    def _on_state_changed(self, state: PipelineState) -> None:
        self._apply_state(state)

    def _apply_state(self, state: PipelineState) -> None:
        text = status_text(state, self._config.enabled)
        self._status_action.setText(text)
        self.tray_icon.setIcon(self._busy_icon if state is PipelineState.CONVERTING else self._idle_icon)
        self.tray_icon.setToolTip(f"LaTeX Clipboard Converter: {text}")

    @Slot(bool)
    def _on_enabled_toggled(self, checked: bool) -> None:
        self._config.set("enabled", checked)
        self._coordinator.set_enabled(checked)
        logger.info(f"Monitoring {'enabled' if checked else 'disabled'}")
        self._apply_state(self._coordinator.state)

    @Slot(QAction)
    def _on_engine_selected(self, action: QAction) -> None:
        kind = BackendKind(action.data())
        self._config.set("backend", kind.value)
        self._coordinator.apply_settings()
        logger.info(f"Engine switched to {kind.value}")

    @Slot()
    def _open_log_folder(self) -> None:
        QDesktopServices.openUrl(QUrl.fromLocalFile(str(ErrorHandler.log_directory())))
