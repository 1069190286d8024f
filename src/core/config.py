"""
Configuration defaults for the LaTeX Clipboard Converter.

This module provides the configuration schema, defaults, and QSettings
identifiers shared by the configuration manager and the application entry point.
"""

from typing import Any

from PySide6.QtCore import QCoreApplication

# Application identifiers for QSettings
APP_ORGANIZATION = "LaTeXClipboard"
APP_NAME = "Converter"

# Version of the exported settings document
SCHEMA_VERSION = "1.0.0"

# Backend identifiers as stored in settings
BACKEND_PIX2TEX = "pix2tex"
BACKEND_SIMPLETEX = "simpletex"
BACKEND_CLAUDE = "claude"

# Settings key holding the credential for each backend
CREDENTIAL_KEYS: dict[str, str] = {
    BACKEND_PIX2TEX: "python_path",
    BACKEND_SIMPLETEX: "simpletex_token",
    BACKEND_CLAUDE: "claude_api_key",
}

MIN_POLLING_INTERVAL = 0.05

# Default configuration with all supported keys and JSON-serializable types
DEFAULT_CONFIG: dict[str, Any] = {
    # Pipeline settings
    "enabled": True,
    "polling_interval": 0.5,  # seconds between clipboard checks
    "resume_delay": 0.5,  # seconds the watcher stays suspended after a write-back
    "backend": BACKEND_CLAUDE,  # Options: "pix2tex", "simpletex", "claude"
    # Credentials (never exported)
    "claude_api_key": "",
    "simpletex_token": "",
    "python_path": "",  # Optional interpreter override for pix2tex
    # Debug settings
    "log_level": "INFO",  # Options: "DEBUG", "INFO", "WARNING", "ERROR"
}

# JSON Schema for exported settings (draft-07)
SETTINGS_JSON_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "LaTeX Clipboard Converter settings",
    "type": "object",
    "required": ["schema_version", "config"],
    "additionalProperties": False,
    "properties": {
        "schema_version": {"type": "string", "const": SCHEMA_VERSION},
        "config": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "enabled": {"type": "boolean"},
                "polling_interval": {"type": "number", "minimum": MIN_POLLING_INTERVAL, "maximum": 60},
                "resume_delay": {"type": "number", "minimum": 0, "maximum": 60},
                "backend": {"type": "string", "enum": [BACKEND_PIX2TEX, BACKEND_SIMPLETEX, BACKEND_CLAUDE]},
                "log_level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]},
            },
        },
    },
}


def setup_qsettings() -> None:
    """
    Configure QSettings with application identifiers.

    This should be called early in application startup to ensure
    QSettings uses the correct organization and application names.
    """
    QCoreApplication.setOrganizationName(APP_ORGANIZATION)
    QCoreApplication.setApplicationName(APP_NAME)
