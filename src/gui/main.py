"""
Main entry point for the LaTeX Clipboard Converter.

The application has no main window: it lives in the system tray and watches
the clipboard until the user quits.
"""

import logging
import sys

from PySide6.QtWidgets import QApplication, QMessageBox, QSystemTrayIcon

from core.clipboard import QtClipboard
from core.config_manager import ConfigManager
from core.error_handler import init_logging, set_log_level, setup_error_handling
from core.pipeline import PipelineCoordinator
from gui.dialogs.settings import SettingsDialog
from gui.tray import TrayController
from gui.widgets.notification_manager import NotificationManager

logger = logging.getLogger(__name__)


def main() -> int:
    """Main application entry point."""
    app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(False)

    config = ConfigManager()
    init_logging(str(config.get("log_level")))
    error_handler = setup_error_handling()

    if not QSystemTrayIcon.isSystemTrayAvailable():
        QMessageBox.critical(None, "LaTeX Clipboard Converter", "No system tray is available on this desktop.")
        return 1

    clipboard = QtClipboard(parent=app)
    notifications = NotificationManager(parent=app)
    coordinator = PipelineCoordinator(config, clipboard, notifications, parent=app)
    error_handler.errorReported.connect(notifications.notify_unexpected_error)

    tray = TrayController(config, coordinator, parent=app)
    notifications.set_tray_icon(tray.tray_icon)

    def open_settings() -> None:
        dialog = SettingsDialog(config)
        dialog.settingsApplied.connect(coordinator.apply_settings)
        dialog.settingsApplied.connect(lambda: set_log_level(str(config.get("log_level"))))
        dialog.settingsApplied.connect(lambda: coordinator.set_enabled(config.enabled))
        dialog.settingsApplied.connect(tray.refresh)
        dialog.exec()

    tray.settingsRequested.connect(open_settings)
    app.aboutToQuit.connect(coordinator.shutdown)
    app.aboutToQuit.connect(notifications.cleanup)

    tray.show()
    coordinator.start()
    logger.info(f"Started with engine {config.selected_backend.value}, monitoring {'on' if config.enabled else 'off'}")

    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
