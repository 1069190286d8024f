"""
Notification management for the LaTeX Clipboard Converter.

Implements the presenter used by the pipeline: tray balloon messages for
outcomes and non-blocking message boxes for setup prompts.
"""

import logging
from collections.abc import Callable
from time import monotonic
from typing import Any

from PySide6.QtCore import QObject, Qt, Slot
from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import QMessageBox, QSystemTrayIcon

from core.error_translation import UserFriendlyError, translate_error
from core.errors import BaseAppError, ConverterError, ErrorKind

PREVIEW_LENGTH = 50


def preview(formula: str, limit: int = PREVIEW_LENGTH) -> str:
    """Shorten a formula for a notification body."""
    return formula if len(formula) <= limit else formula[:limit] + "..."


def _copy_to_system_clipboard(text: str) -> None:
    QGuiApplication.clipboard().setText(text)


class NotificationManager(QObject):
    """
    Shows conversion outcomes to the user.

    Outcomes go to the system tray when one is available; setup problems open
    a message box with a "Copy Command" button. Nothing here blocks the caller.
    """

    def __init__(
        self,
        tray_icon: QSystemTrayIcon | None = None,
        parent: QObject | None = None,
        copy_text: Callable[[str], None] = _copy_to_system_clipboard,
    ) -> None:
        super().__init__(parent)
        self._logger = logging.getLogger(__name__)
        self._system_tray = tray_icon
        self._copy_text = copy_text

        # Notification debouncing
        self._notification_cache: dict[tuple[Any, ...], float] = {}
        self._debounce_ttl = 3.0

        # Message boxes stay referenced until closed
        self._open_dialogs: list[QMessageBox] = []

        self._test_mode = self._detect_test_mode()

    def set_tray_icon(self, tray_icon: QSystemTrayIcon | None) -> None:
        self._system_tray = tray_icon

    def _detect_test_mode(self) -> bool:
        """Detect if we're running under a test runner."""
        import sys

        return "pytest" in sys.modules or hasattr(sys, "_called_from_test")

    # Presenter contract

    def notify_success(self, formula: str) -> None:
        self.notify("success", "LaTeX Converted", preview(formula))

    def notify_failure(self, error: ConverterError) -> None:
        friendly = translate_error(error)
        message = friendly.message
        if friendly.remediation:
            message += f"\n{friendly.remediation}"
        self.notify("error", "Conversion Failed", message)

    def prompt_setup_required(self, error: ConverterError) -> None:
        self._show_setup_dialog(translate_error(error))

    def prompt_runtime_missing(self) -> None:
        self._show_setup_dialog(translate_error(ConverterError(ErrorKind.RUNTIME_MISSING)))

    @Slot(object)
    def notify_unexpected_error(self, error: BaseAppError) -> None:
        """Tell the user about an unhandled error the log has already captured."""
        friendly = translate_error(error)
        message = friendly.message
        if friendly.remediation:
            message += f"\n{friendly.remediation}"
        self.notify("error", friendly.title, message)

    # Display

    def notify(self, status: str, title: str, message: str) -> None:
        """
        Show a notification to the user.

        Args:
            status: Notification status ('success', 'error', 'warning', 'info')
            title: Notification title
            message: Notification message
        """
        if self._test_mode:
            self._logger.info(f"TEST NOTIFICATION [{status}] {title}: {message}")
            return

        # Every conversion gets its own success message, even for a repeated formula
        if status != "success":
            debounce_key = (status, title, message)
            if self._should_debounce(debounce_key):
                self._logger.debug(f"Debouncing notification: {title}")
                return
            self._notification_cache[debounce_key] = monotonic()

        if self._system_tray is not None and QSystemTrayIcon.supportsMessages():
            icon_map = {
                "success": QSystemTrayIcon.MessageIcon.Information,
                "error": QSystemTrayIcon.MessageIcon.Critical,
                "warning": QSystemTrayIcon.MessageIcon.Warning,
                "info": QSystemTrayIcon.MessageIcon.Information,
            }
            self._system_tray.showMessage(
                title, message, icon_map.get(status, QSystemTrayIcon.MessageIcon.Information), 5000
            )
        else:
            self._show_message_box(status, title, message)

    def _should_debounce(self, key: tuple[Any, ...]) -> bool:
        """Check if notification should be debounced."""
        if key not in self._notification_cache:
            return False

        age = monotonic() - self._notification_cache[key]
        if age > self._debounce_ttl:
            del self._notification_cache[key]
            return False

        return True

    def _show_message_box(self, status: str, title: str, message: str) -> QMessageBox:
        icon_map = {
            "success": QMessageBox.Icon.Information,
            "error": QMessageBox.Icon.Critical,
            "warning": QMessageBox.Icon.Warning,
            "info": QMessageBox.Icon.Information,
        }

        msg_box = QMessageBox()
        msg_box.setWindowTitle(title)
        msg_box.setText(message)
        msg_box.setIcon(icon_map.get(status, QMessageBox.Icon.Information))
        msg_box.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose)
        msg_box.addButton(QMessageBox.StandardButton.Ok)
        self._open(msg_box)
        return msg_box

    def _show_setup_dialog(self, friendly: UserFriendlyError) -> None:
        if self._test_mode:
            self._logger.info(f"TEST SETUP PROMPT [{friendly.code}] {friendly.title}: {friendly.message}")
            return

        msg_box = QMessageBox()
        msg_box.setWindowTitle(friendly.title)
        msg_box.setText(friendly.message)
        if friendly.remediation:
            msg_box.setInformativeText(friendly.remediation)
        msg_box.setIcon(QMessageBox.Icon.Warning)
        msg_box.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose)

        copy_button = None
        if friendly.copy_command:
            copy_button = msg_box.addButton(self.tr("Copy Command"), QMessageBox.ButtonRole.ActionRole)
        ok_button = msg_box.addButton(QMessageBox.StandardButton.Ok)
        msg_box.setDefaultButton(ok_button)

        command = friendly.copy_command

        def on_clicked(button: object) -> None:
            if copy_button is not None and button is copy_button and command:
                self._copy_text(command)
                self._logger.info("Copied setup command to clipboard")

        msg_box.buttonClicked.connect(on_clicked)
        self._open(msg_box)

    def _open(self, msg_box: QMessageBox) -> None:
        self._open_dialogs.append(msg_box)
        msg_box.finished.connect(lambda _result: self._forget(msg_box))
        msg_box.open()

    def _forget(self, msg_box: QMessageBox) -> None:
        if msg_box in self._open_dialogs:
            self._open_dialogs.remove(msg_box)

    def cleanup(self) -> None:
        """Close open dialogs and clear caches."""
        for msg_box in list(self._open_dialogs):
            msg_box.close()
        self._open_dialogs.clear()
        self._notification_cache.clear()
