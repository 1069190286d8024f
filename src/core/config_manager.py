"""
Configuration manager for the LaTeX Clipboard Converter.

Provides QSettings-backed configuration management with default fallbacks
and type safety. Implements the settings contract read by the pipeline.
"""

import json
import logging
from pathlib import Path
from typing import Any

import jsonschema
from PySide6.QtCore import QSettings

from .config import (
    CREDENTIAL_KEYS,
    DEFAULT_CONFIG,
    MIN_POLLING_INTERVAL,
    SCHEMA_VERSION,
    SETTINGS_JSON_SCHEMA,
    setup_qsettings,
)
from .conversion_config import BackendKind
from .errors import ConfigError

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    QSettings-backed configuration manager with robust defaults.

    Provides type-safe access to configuration values with automatic
    fallback to defaults when keys are missing or have invalid types.
    """

    def __init__(self) -> None:
        """Initialize the ConfigManager with QSettings."""
        # Ensure QSettings is configured with app identifiers
        setup_qsettings()

        self._settings = QSettings()
        self._runtime_defaults = DEFAULT_CONFIG.copy()

    def get(self, key: str, default: Any | None = None) -> Any:
        """
        Get a configuration value with fallback to defaults.

        Args:
            key: Configuration key
            default: Override default value (if None, uses DEFAULT_CONFIG)

        Returns:
            Configuration value with type coercion and default fallback
        """
        fallback = default if default is not None else self._runtime_defaults.get(key)

        value = self._settings.value(key, fallback)

        # Coerce to the type of the default
        if fallback is not None:
            try:
                expected_type = type(fallback)
                if expected_type is bool:
                    # QSettings returns strings for booleans on some backends
                    value = value.lower() in ("true", "1", "yes", "on") if isinstance(value, str) else bool(value)
                elif expected_type in (int, float, str):
                    value = expected_type(value)
                elif not isinstance(value, expected_type):
                    logger.warning(f"Config key '{key}' has unexpected type, using default")
                    value = fallback
            except (ValueError, TypeError) as e:
                logger.warning(f"Failed to coerce config key '{key}': {e}, using default")
                value = fallback

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key
            value: Value to store (must be JSON-serializable)
        """
        self._settings.setValue(key, value)
        self._settings.sync()  # Ensure immediate persistence

    # Settings contract read by the pipeline

    @property
    def enabled(self) -> bool:
        return bool(self.get("enabled"))

    @property
    def polling_interval(self) -> float:
        interval = float(self.get("polling_interval"))
        if interval <= 0:
            return float(DEFAULT_CONFIG["polling_interval"])
        return max(MIN_POLLING_INTERVAL, interval)

    @property
    def resume_delay(self) -> float:
        return max(0.0, float(self.get("resume_delay")))

    @property
    def selected_backend(self) -> BackendKind:
        value = self.get("backend")
        try:
            return BackendKind(value)
        except ValueError:
            logger.warning(f"Unknown backend '{value}' in settings, using default")
            return BackendKind(DEFAULT_CONFIG["backend"])

    def credential(self, backend: BackendKind) -> str | None:
        """Return the stored credential for a backend, or None when unset."""
        value = self.get(CREDENTIAL_KEYS[backend.value])
        if not isinstance(value, str):
            return None
        return value.strip() or None

    def set_credential(self, backend: BackendKind, value: str | None) -> None:
        key = CREDENTIAL_KEYS[backend.value]
        if value and value.strip():
            self.set(key, value.strip())
        else:
            self.remove_key(key)

    # Bulk operations

    def load_all(self) -> dict[str, Any]:
        """
        Load all configuration values merged with defaults.

        Returns:
            Dictionary with all configuration keys, using stored values
            where available and defaults for missing keys
        """
        config = self._runtime_defaults.copy()

        for key in config:
            stored_value = self.get(key)
            if stored_value is not None:
                config[key] = stored_value

        return config

    def export_config(self) -> dict[str, Any]:
        """
        Export current configuration without credentials.

        Returns:
            Dictionary containing all non-secret configuration values
        """
        return {key: value for key, value in self.load_all().items() if key not in CREDENTIAL_KEYS.values()}

    def import_config(self, config: dict[str, Any]) -> None:
        """
        Import configuration from a dictionary with type coercion.

        Args:
            config: Dictionary containing configuration values
        """
        for key, value in config.items():
            if key in self._runtime_defaults:
                expected_type = type(self._runtime_defaults[key])
                try:
                    if expected_type is bool and not isinstance(value, bool):
                        value = value.lower() in ("true", "1", "yes", "on") if isinstance(value, str) else bool(value)
                    elif expected_type in (int, float, str) and not isinstance(value, expected_type):
                        value = expected_type(value)

                    self.set(key, value)
                except (ValueError, TypeError) as e:
                    logger.warning(f"Failed to import config key '{key}': {e}, skipping")
            else:
                logger.warning(f"Unknown config key '{key}', skipping")

    def export_to_file(self, path: Path) -> None:
        """Write the non-secret settings to a JSON file."""
        document = {"schema_version": SCHEMA_VERSION, "config": self.export_config()}
        try:
            jsonschema.validate(document, SETTINGS_JSON_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ConfigError(f"Current settings are not valid: {e.message}", technical_message=str(e)) from e

        try:
            path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Could not write settings file: {path.name}", technical_message=str(e)) from e
        logger.info(f"Exported settings to {path}")

    def import_from_file(self, path: Path) -> None:
        """
        Load settings from a JSON file written by export_to_file.

        Raises:
            ConfigError: If the file cannot be read or does not match the schema
        """
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigError(f"Could not read settings file: {path.name}", technical_message=str(e)) from e

        try:
            jsonschema.validate(document, SETTINGS_JSON_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ConfigError(f"Settings file is not valid: {e.message}", technical_message=str(e)) from e

        self.import_config(document["config"])
        logger.info(f"Imported settings from {path}")

    def remove_key(self, key: str) -> None:
        """Remove a configuration key from storage."""
        self._settings.remove(key)
        self._settings.sync()
