"""
Error translation and user-friendly message generation.

This module turns classified conversion errors into the title, message and
remediation text the presentation layer shows, including the shell commands
offered for copying by the setup prompts.
"""

from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

from .converters.pix2tex import INSTALL_COMMAND
from .errors import BaseAppError, ErrorKind

logger = logging.getLogger(__name__)


@dataclass
class UserFriendlyError:
    """
    User-friendly error representation for UI display.

    Contains all information needed to present a helpful error message
    to the user with actionable remediation steps.
    """

    code: str
    title: str
    message: str
    details: str | None = None
    remediation: str | None = None
    copy_command: str | None = None  # Shell command offered by a "Copy Command" button

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "title": self.title,
            "message": self.message,
            "details": self.details,
            "remediation": self.remediation,
            "copy_command": self.copy_command,
        }


def python_install_commands(platform: str | None = None) -> list[str]:
    """Commands that install Python 3 and pix2tex on the given platform."""
    platform = platform or sys.platform
    if platform == "darwin":
        return [
            '/bin/bash -c "$(curl -fsSL https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh)"',
            "brew install python3",
            INSTALL_COMMAND,
        ]
    if platform.startswith("win"):
        return ["winget install Python.Python.3.12", INSTALL_COMMAND]
    return ["sudo apt install python3 python3-pip", INSTALL_COMMAND]


class ErrorTranslator:
    """Translates BaseAppError instances into user-friendly messages."""

    TITLES: ClassVar[dict[ErrorKind, str]] = {
        ErrorKind.CREDENTIALS_MISSING: "API Key Required",
        ErrorKind.INVALID_CREDENTIALS: "Invalid API Key",
        ErrorKind.RUNTIME_MISSING: "Python Required",
        ErrorKind.DEPENDENCY_MISSING: "Setup Required",
        ErrorKind.RATE_LIMITED: "Rate Limit Exceeded",
        ErrorKind.TIMEOUT: "Request Timed Out",
        ErrorKind.TRANSPORT_ERROR: "Network Error",
        ErrorKind.NO_FORMULA_DETECTED: "No Formula Found",
        ErrorKind.CLIPBOARD_WRITE_FAILED: "Clipboard Error",
        ErrorKind.CONFIG_INVALID: "Configuration Error",
        ErrorKind.INTERNAL_ERROR: "Unexpected Error",
    }

    REMEDIATION: ClassVar[dict[ErrorKind, str]] = {
        ErrorKind.CREDENTIALS_MISSING: "Open Settings and enter the key for the selected engine.",
        ErrorKind.INVALID_CREDENTIALS: "Open Settings and check the key for the selected engine.",
        ErrorKind.DEPENDENCY_MISSING: f"Open a terminal and run:\n{INSTALL_COMMAND}\n\nThen try again!",
        ErrorKind.RATE_LIMITED: "Wait a moment before copying the next formula.",
        ErrorKind.TIMEOUT: "Check your connection and copy the image again.",
        ErrorKind.TRANSPORT_ERROR: "Check your connection and copy the image again.",
        ErrorKind.NO_FORMULA_DETECTED: "Copy an image that contains a formula.",
        ErrorKind.CLIPBOARD_WRITE_FAILED: "Copy the image again to retry.",
        ErrorKind.INTERNAL_ERROR: "Choose Open Log Folder in the tray menu to see the details.",
    }

    def from_app_error(self, app_error: BaseAppError) -> UserFriendlyError:
        """
        Convert a BaseAppError to a UserFriendlyError.

        Args:
            app_error: The error to convert

        Returns:
            UserFriendlyError with appropriate UI display information
        """
        kind = app_error.kind
        message = app_error.user_message or app_error.technical_message or "An error occurred"

        return UserFriendlyError(
            code=kind.value,
            title=self.TITLES.get(kind, "Conversion Failed"),
            message=self._sanitize_paths(message),
            details=self._sanitize_paths(app_error.technical_message) if app_error.technical_message else None,
            remediation=self._remediation_for(kind),
            copy_command=self._copy_command_for(kind),
        )

    def _remediation_for(self, kind: ErrorKind) -> str | None:
        if kind is ErrorKind.RUNTIME_MISSING:
            steps = python_install_commands()
            return "\n".join(f"Step {number}: {command}" for number, command in enumerate(steps, 1))
        return self.REMEDIATION.get(kind)

    def _copy_command_for(self, kind: ErrorKind) -> str | None:
        if kind is ErrorKind.RUNTIME_MISSING:
            return "\n".join(python_install_commands())
        if kind is ErrorKind.DEPENDENCY_MISSING:
            return INSTALL_COMMAND
        return None

    def _sanitize_paths(self, text: str) -> str:
        """Replace the user's home directory with ~ in messages."""
        home = str(Path.home())
        if home and home != "/":
            text = text.replace(home, "~")
        # Collapse temp file names produced by the local backend
        return re.sub(r"latex_ocr_\w+\.png", "latex_ocr.png", text)


# Global translator instance
_translator = ErrorTranslator()


def translate_error(app_error: BaseAppError) -> UserFriendlyError:
    """Translate an application error with the shared translator."""
    return _translator.from_app_error(app_error)
