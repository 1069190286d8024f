"""
Process-wide error reporting and log setup.

ErrorHandler owns the rotating app.log and the exception hooks. Anything that
escapes a Qt slot or a Python thread ends up in report(), is written to the
log with credentials redacted, and is re-emitted as errorReported so the tray
can tell the user something went wrong instead of failing silently.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import threading
from pathlib import Path
from typing import Any, ClassVar

from PySide6.QtCore import QObject, QStandardPaths, Signal

from .config import APP_NAME, APP_ORGANIZATION
from .errors import BaseAppError, InternalError

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_NAME = "app.log"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# Context keys whose values must never reach the log file
SENSITIVE_MARKERS = ("password", "token", "key", "secret", "credential")
MAX_CONTEXT_ITEMS = 20
MAX_CONTEXT_VALUE = 200


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """Copy of context safe for the log: secrets masked, long values cut."""
    safe: dict[str, Any] = {}
    for index, (key, value) in enumerate(context.items()):
        if index >= MAX_CONTEXT_ITEMS:
            safe["..."] = f"({len(context) - MAX_CONTEXT_ITEMS} more items truncated)"
            break
        if any(marker in key.lower() for marker in SENSITIVE_MARKERS):
            safe[key] = "[REDACTED]"
        elif isinstance(value, bool | int | float):
            safe[key] = value
        else:
            text = value if isinstance(value, str) else repr(value)
            safe[key] = text[:MAX_CONTEXT_VALUE] + "..." if len(text) > MAX_CONTEXT_VALUE else text
    return safe


def classify(exception: Exception, context: dict[str, Any] | None = None) -> BaseAppError:
    """
    Application errors keep their classification; anything else is an
    InternalError carrying the exception type and message.
    """
    if isinstance(exception, BaseAppError):
        if context:
            exception.context.update(context)
        return exception
    return InternalError(f"{type(exception).__name__}: {exception}", context)


class ErrorHandler(QObject):
    """
    Singleton owner of the error log and the exception hooks.

    Signals:
        errorReported(BaseAppError): an unhandled error was logged
    """

    errorReported = Signal(object)

    _instance: ClassVar[ErrorHandler | None] = None

    def __new__(cls) -> ErrorHandler:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return

        super().__init__()
        self._initialized = True
        self._previous_excepthook = sys.excepthook
        self._previous_threading_excepthook = threading.excepthook
        self._error_log = self._open_error_log()

    @staticmethod
    def log_directory() -> Path:
        """Directory that holds app.log and its rotations."""
        app_data = QStandardPaths.writableLocation(QStandardPaths.StandardLocation.AppDataLocation)
        if app_data:
            return Path(app_data) / "logs"
        config_location = QStandardPaths.writableLocation(QStandardPaths.StandardLocation.ConfigLocation)
        return Path(config_location) / APP_ORGANIZATION / APP_NAME / "logs"

    def _open_error_log(self) -> logging.Logger:
        error_log = logging.getLogger("latex_clipboard.errors")
        error_log.setLevel(logging.DEBUG)

        if error_log.handlers:
            return error_log

        try:
            logs_dir = self.log_directory()
            logs_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                logs_dir / LOG_FILE_NAME,
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except OSError as e:
            # Still propagates to the root logger's console output
            logging.getLogger(__name__).error(f"Error log file unavailable: {e}")
            return error_log

        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        error_log.addHandler(file_handler)
        return error_log

    def report(self, exception: Exception, source: str, **context: Any) -> BaseAppError:
        """Log an unhandled exception and emit errorReported."""
        error = classify(exception, redact_context({"source": source, **context}))
        self._error_log.error(
            f"[{error.kind.value}] {error.technical_message or error.user_message} {error.context}",
            exc_info=(type(exception), exception, exception.__traceback__),
        )
        self.errorReported.emit(error)
        return error

    def install_hooks(self) -> None:
        """Route unhandled exceptions from the UI thread and Python threads to report()."""

        def excepthook(exc_type: type[BaseException], exc_value: BaseException, exc_traceback: Any) -> None:
            if not isinstance(exc_value, Exception):
                self._previous_excepthook(exc_type, exc_value, exc_traceback)
                return
            self.report(exc_value, "sys.excepthook")

        def threading_excepthook(args: threading.ExceptHookArgs) -> None:
            if not isinstance(args.exc_value, Exception):
                self._previous_threading_excepthook(args)
                return
            thread_name = args.thread.name if args.thread else "unknown"
            self.report(args.exc_value, "threading.excepthook", thread=thread_name)

        sys.excepthook = excepthook
        threading.excepthook = threading_excepthook

    def restore_hooks(self) -> None:
        sys.excepthook = self._previous_excepthook
        threading.excepthook = self._previous_threading_excepthook


def get_error_handler() -> ErrorHandler:
    """Get the singleton ErrorHandler instance."""
    return ErrorHandler()


def setup_error_handling() -> ErrorHandler:
    """Install the exception hooks; call once during startup."""
    handler = get_error_handler()
    handler.install_hooks()
    return handler


def init_logging(level: str = "INFO") -> None:
    """
    Configure the root logger and open the error log file.

    Should be called early in application startup.
    """
    get_error_handler()

    logging.basicConfig(format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    set_log_level(level)


def set_log_level(level: str) -> None:
    """Apply a level name (case-insensitive) to the root logger; unknown names mean INFO."""
    resolved = logging.getLevelName(str(level).upper())
    logging.getLogger().setLevel(resolved if isinstance(resolved, int) else logging.INFO)
