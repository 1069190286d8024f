"""
Error taxonomy for the LaTeX Clipboard Converter.

Every backend failure is classified into an ErrorKind at the client boundary
and raised as a ConverterError. Nothing above the clients re-classifies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    """Classification of conversion failures."""

    CREDENTIALS_MISSING = "CREDENTIALS_MISSING"
    RUNTIME_MISSING = "RUNTIME_MISSING"
    DEPENDENCY_MISSING = "DEPENDENCY_MISSING"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    RATE_LIMITED = "RATE_LIMITED"
    TIMEOUT = "TIMEOUT"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    BACKEND_ERROR = "BACKEND_ERROR"
    RESPONSE_UNPARSEABLE = "RESPONSE_UNPARSEABLE"
    NO_FORMULA_DETECTED = "NO_FORMULA_DETECTED"
    IMAGE_ENCODING_FAILED = "IMAGE_ENCODING_FAILED"

    # Raised by the pipeline after a successful conversion
    CLIPBOARD_WRITE_FAILED = "CLIPBOARD_WRITE_FAILED"

    # Not produced by converters
    CONFIG_INVALID = "CONFIG_INVALID"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Kinds the user fixes through setup rather than by trying again
SETUP_KINDS = frozenset(
    {
        ErrorKind.CREDENTIALS_MISSING,
        ErrorKind.INVALID_CREDENTIALS,
        ErrorKind.RUNTIME_MISSING,
        ErrorKind.DEPENDENCY_MISSING,
    }
)


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_DEFAULT_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.CREDENTIALS_MISSING: "No API key configured. Please set your API key in Settings.",
    ErrorKind.RUNTIME_MISSING: "Python 3 was not found on this computer.",
    ErrorKind.DEPENDENCY_MISSING: "pix2tex is not installed.",
    ErrorKind.INVALID_CREDENTIALS: "Invalid API key. Please check your API key in Settings.",
    ErrorKind.RATE_LIMITED: "API rate limit exceeded. Please try again later.",
    ErrorKind.TIMEOUT: "The request timed out. Please try again.",
    ErrorKind.TRANSPORT_ERROR: "Network error while contacting the OCR service.",
    ErrorKind.BACKEND_ERROR: "The OCR backend reported an error.",
    ErrorKind.RESPONSE_UNPARSEABLE: "Failed to parse the OCR response.",
    ErrorKind.NO_FORMULA_DETECTED: "No LaTeX formula detected in the image.",
    ErrorKind.IMAGE_ENCODING_FAILED: "Failed to encode the image.",
    ErrorKind.CLIPBOARD_WRITE_FAILED: "The formula could not be written to the clipboard.",
    ErrorKind.CONFIG_INVALID: "The settings file is not valid.",
    ErrorKind.INTERNAL_ERROR: "An unexpected error occurred. Details were written to the log file.",
}


@dataclass
class BaseAppError(Exception):
    """
    Base application error with structured metadata.

    Carries a user-facing message alongside technical details so the
    presentation layer and the log file each get what they need.
    """

    kind: ErrorKind
    user_message: str
    technical_message: str | None = None
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Return user-friendly error message."""
        return self.user_message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value}, message='{self.user_message}')"

    @property
    def requires_setup(self) -> bool:
        """Whether the user has to change setup (credentials, installs) to recover."""
        return self.kind in SETUP_KINDS

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "user_message": self.user_message,
            "technical_message": self.technical_message,
            "severity": self.severity.value,
            "context": self.context,
        }


class ConverterError(BaseAppError):
    """A classified failure raised by a backend client."""

    def __init__(
        self,
        kind: ErrorKind,
        user_message: str | None = None,
        technical_message: str | None = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(
            kind=kind,
            user_message=user_message or _DEFAULT_MESSAGES[kind],
            technical_message=technical_message,
            severity=severity,
            context=context or {},
        )


class BackendError(ConverterError):
    """Non-success status or exit code not otherwise classified."""

    def __init__(self, code: int, message: str, technical_message: str | None = None):
        super().__init__(
            ErrorKind.BACKEND_ERROR,
            user_message=f"Backend error ({code}): {message}",
            technical_message=technical_message,
            severity=ErrorSeverity.HIGH,
            context={"code": code},
        )
        self.code = code
        self.message = message


class ConfigError(BaseAppError):
    """Configuration related errors."""

    def __init__(self, user_message: str, technical_message: str | None = None):
        super().__init__(
            kind=ErrorKind.CONFIG_INVALID,
            user_message=user_message,
            technical_message=technical_message,
        )


class InternalError(BaseAppError):
    """An unhandled exception outside the conversion boundary."""

    def __init__(self, technical_message: str, context: dict[str, Any] | None = None):
        super().__init__(
            kind=ErrorKind.INTERNAL_ERROR,
            user_message=_DEFAULT_MESSAGES[ErrorKind.INTERNAL_ERROR],
            technical_message=technical_message,
            severity=ErrorSeverity.HIGH,
            context=context or {},
        )


def map_exception(exc: Exception, context: dict[str, Any] | None = None) -> BaseAppError:
    """
    Map an arbitrary exception to an application error.

    Classified errors pass through untouched. Anything else is an
    unexpected failure inside a backend and becomes a BackendError.
    """
    if isinstance(exc, BaseAppError):
        return exc

    exc_type = type(exc).__name__
    logger.warning(f"Unclassified exception from backend: {exc_type}: {exc}")
    error = BackendError(-1, str(exc) or exc_type, technical_message=f"{exc_type}: {exc}")
    error.context.update(context or {})
    return error
