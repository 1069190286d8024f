"""
Settings dialog for the LaTeX Clipboard Converter.
"""

import logging
import os
from pathlib import Path

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QDoubleSpinBox,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from core.config import DEFAULT_CONFIG, MIN_POLLING_INTERVAL
from core.config_manager import ConfigManager
from core.conversion_config import BackendKind
from core.errors import ConfigError

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


class SettingsDialog(QDialog):
    """
    Settings dialog with General and Engines tabs.

    Edits the values read by the pipeline and writes them back through
    ConfigManager. settingsApplied is emitted after every successful save so
    the owner can re-apply backend and interval changes.
    """

    settingsApplied = Signal()

    def __init__(self, config_manager: ConfigManager | None = None, parent: QWidget | None = None) -> None:
        super().__init__(parent)

        self._config_manager = config_manager or ConfigManager()

        # State tracking
        self._dirty = False
        self._initializing = True  # Flag to prevent marking dirty during initialization

        self._setup_dialog()
        self._setup_ui()
        self._connect_signals()
        self.loadSettings()

        self._initializing = False

    def _setup_dialog(self) -> None:
        """Configure the dialog properties."""
        self.setWindowTitle("LaTeX Clipboard Converter Settings")
        self.setModal(True)
        self.resize(520, 360)

    def _setup_ui(self) -> None:
        """Create and arrange the user interface elements."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(12)

        self.tab_widget = QTabWidget()
        self.tab_widget.setAccessibleName("Settings tabs")
        self.tab_widget.addTab(self._create_general_tab(), "General")
        self.tab_widget.addTab(self._create_engines_tab(), "Engines")
        layout.addWidget(self.tab_widget)

        # Import/export row
        transfer_row = QHBoxLayout()
        self.import_button = QPushButton("Import...")
        self.import_button.setToolTip("Load settings from a JSON file")
        self.export_button = QPushButton("Export...")
        self.export_button.setToolTip("Save settings (without keys) to a JSON file")
        transfer_row.addWidget(self.import_button)
        transfer_row.addWidget(self.export_button)
        transfer_row.addStretch()
        layout.addLayout(transfer_row)

        self.button_box = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok
            | QDialogButtonBox.StandardButton.Cancel
            | QDialogButtonBox.StandardButton.Apply
            | QDialogButtonBox.StandardButton.RestoreDefaults
        )
        self.button_box.setAccessibleName("Dialog buttons")
        self.button_box.button(QDialogButtonBox.StandardButton.Apply).setEnabled(False)
        layout.addWidget(self.button_box)

    def _create_form(self, tab: QWidget) -> QFormLayout:
        form_layout = QFormLayout(tab)
        form_layout.setFieldGrowthPolicy(QFormLayout.FieldGrowthPolicy.ExpandingFieldsGrow)
        form_layout.setLabelAlignment(Qt.AlignmentFlag.AlignRight)
        return form_layout

    def _create_general_tab(self) -> QWidget:
        """Create the General tab with monitoring options."""
        tab = QWidget()
        tab.setAccessibleName("General settings")
        form_layout = self._create_form(tab)

        self.enabled_checkbox = QCheckBox("Convert formula images copied to the clipboard")
        form_layout.addRow("", self.enabled_checkbox)

        self.interval_spin = QDoubleSpinBox()
        self.interval_spin.setRange(MIN_POLLING_INTERVAL, 10.0)
        self.interval_spin.setSingleStep(0.1)
        self.interval_spin.setDecimals(2)
        self.interval_spin.setSuffix(" s")
        self.interval_spin.setToolTip("How often the clipboard is checked for new images.")
        form_layout.addRow("&Polling Interval:", self.interval_spin)

        self.log_level_combo = QComboBox()
        self.log_level_combo.addItems(LOG_LEVELS)
        self.log_level_combo.setToolTip("Detail written to the console and the log file.")
        form_layout.addRow("&Log Level:", self.log_level_combo)

        return tab

    def _create_engines_tab(self) -> QWidget:
        """Create the Engines tab with backend selection and credentials."""
        tab = QWidget()
        tab.setAccessibleName("Engine settings")
        form_layout = self._create_form(tab)

        self.backend_combo = QComboBox()
        for kind in BackendKind:
            self.backend_combo.addItem(kind.label, kind.value)
        form_layout.addRow("&Engine:", self.backend_combo)

        self.claude_key_edit = QLineEdit()
        self.claude_key_edit.setEchoMode(QLineEdit.EchoMode.Password)
        self.claude_key_edit.setPlaceholderText("sk-ant-...")
        form_layout.addRow("&Claude API Key:", self.claude_key_edit)

        self.simpletex_token_edit = QLineEdit()
        self.simpletex_token_edit.setEchoMode(QLineEdit.EchoMode.Password)
        self.simpletex_token_edit.setPlaceholderText("SimpleTex user token")
        form_layout.addRow("&SimpleTex Token:", self.simpletex_token_edit)

        python_row = QWidget()
        python_layout = QHBoxLayout(python_row)
        python_layout.setContentsMargins(0, 0, 0, 0)
        self.python_path_edit = QLineEdit()
        self.python_path_edit.setPlaceholderText("Detect automatically")
        self.python_path_edit.setToolTip("Python 3 interpreter with pix2tex installed.")
        self.python_browse_button = QPushButton("Browse...")
        python_layout.addWidget(self.python_path_edit)
        python_layout.addWidget(self.python_browse_button)
        form_layout.addRow("&Python (pix2tex):", python_row)

        return tab

    def _connect_signals(self) -> None:
        """Connect widget signals to their handlers."""
        self.button_box.accepted.connect(self.onAccept)
        self.button_box.rejected.connect(self.reject)
        self.button_box.button(QDialogButtonBox.StandardButton.Apply).clicked.connect(self.onApply)
        self.button_box.button(QDialogButtonBox.StandardButton.RestoreDefaults).clicked.connect(self.onRestoreDefaults)

        self.enabled_checkbox.toggled.connect(self._mark_dirty)
        self.interval_spin.valueChanged.connect(self._mark_dirty)
        self.log_level_combo.currentTextChanged.connect(self._mark_dirty)
        self.backend_combo.currentIndexChanged.connect(self._mark_dirty)
        self.claude_key_edit.textChanged.connect(self._mark_dirty)
        self.simpletex_token_edit.textChanged.connect(self._mark_dirty)
        self.python_path_edit.textChanged.connect(self._mark_dirty)
        self.python_path_edit.textChanged.connect(self._validate_python_path)

        self.python_browse_button.clicked.connect(self._on_browse_python)
        self.import_button.clicked.connect(self._on_import_clicked)
        self.export_button.clicked.connect(self._on_export_clicked)

    # Validation

    def _validate_python_path(self) -> bool:
        path = self.python_path_edit.text().strip()
        valid = not path or (Path(path).is_file() and os.access(path, os.X_OK))
        self.python_path_edit.setProperty("hasError", not valid)
        self.python_path_edit.setToolTip(
            "Python 3 interpreter with pix2tex installed."
            if valid
            else "Error: path must point to an executable Python interpreter"
        )
        self.python_path_edit.style().polish(self.python_path_edit)
        self._update_dialog_buttons_enabled()
        return valid

    def validateAll(self) -> bool:
        """Validate all input fields."""
        return self._validate_python_path()

    def _update_dialog_buttons_enabled(self) -> None:
        """Update OK/Apply button states based on validation and dirty state."""
        python_path = self.python_path_edit.text().strip()
        valid = not python_path or (Path(python_path).is_file() and os.access(python_path, os.X_OK))
        self.button_box.button(QDialogButtonBox.StandardButton.Ok).setEnabled(valid)
        self.button_box.button(QDialogButtonBox.StandardButton.Apply).setEnabled(self._dirty)

    def _mark_dirty(self) -> None:
        if self._initializing:
            return
        self._dirty = True
        self._update_dialog_buttons_enabled()

    # Buttons

    def onAccept(self) -> None:
        """Handle OK button click."""
        if self.validateAll():
            self.saveSettings()
            self.accept()

    def onApply(self) -> None:
        """Handle Apply button click."""
        if self.validateAll():
            self.saveSettings()
            self._dirty = False
            self.button_box.button(QDialogButtonBox.StandardButton.Apply).setEnabled(False)

    def onRestoreDefaults(self) -> None:
        """Reset controls to defaults; credentials are left untouched."""
        self.enabled_checkbox.setChecked(bool(DEFAULT_CONFIG["enabled"]))
        self.interval_spin.setValue(float(DEFAULT_CONFIG["polling_interval"]))
        self.log_level_combo.setCurrentText(str(DEFAULT_CONFIG["log_level"]))
        self._select_backend(BackendKind(DEFAULT_CONFIG["backend"]))
        self._mark_dirty()

    # Persistence

    def _select_backend(self, kind: BackendKind) -> None:
        index = self.backend_combo.findData(kind.value)
        if index >= 0:
            self.backend_combo.setCurrentIndex(index)

    def loadSettings(self) -> None:
        """Load settings from persistent storage."""
        config = self._config_manager

        self.enabled_checkbox.setChecked(config.enabled)
        self.interval_spin.setValue(config.polling_interval)
        log_level = str(config.get("log_level")).upper()
        if log_level in LOG_LEVELS:
            self.log_level_combo.setCurrentText(log_level)
        self._select_backend(config.selected_backend)

        self.claude_key_edit.setText(config.credential(BackendKind.CLAUDE) or "")
        self.simpletex_token_edit.setText(config.credential(BackendKind.SIMPLETEX) or "")
        self.python_path_edit.setText(config.credential(BackendKind.PIX2TEX) or "")

        if not self._initializing:
            self._dirty = False
        self._update_dialog_buttons_enabled()

    def saveSettings(self) -> None:
        """Save settings to persistent storage."""
        if not self.validateAll():
            return

        self._config_manager.import_config(
            {
                "enabled": self.enabled_checkbox.isChecked(),
                "polling_interval": self.interval_spin.value(),
                "log_level": self.log_level_combo.currentText(),
                "backend": self.backend_combo.currentData(),
            }
        )
        self._config_manager.set_credential(BackendKind.CLAUDE, self.claude_key_edit.text())
        self._config_manager.set_credential(BackendKind.SIMPLETEX, self.simpletex_token_edit.text())
        self._config_manager.set_credential(BackendKind.PIX2TEX, self.python_path_edit.text())

        logger.info("Settings saved")
        self.settingsApplied.emit()

    def _on_browse_python(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Select Python Interpreter", self.python_path_edit.text())
        if path:
            self.python_path_edit.setText(path)

    def _on_import_clicked(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Import Settings", "", "JSON files (*.json)")
        if not path:
            return
        try:
            self._config_manager.import_from_file(Path(path))
        except ConfigError as e:
            logger.warning(f"Settings import failed: {e.technical_message}")
            QMessageBox.warning(self, "Import Failed", e.user_message)
            return

        self.loadSettings()
        self.settingsApplied.emit()

    def _on_export_clicked(self) -> None:
        path, _ = QFileDialog.getSaveFileName(self, "Export Settings", "latex-clipboard-settings.json", "JSON files (*.json)")
        if not path:
            return
        try:
            self._config_manager.export_to_file(Path(path))
        except ConfigError as e:
            logger.warning(f"Settings export failed: {e.technical_message}")
            QMessageBox.warning(self, "Export Failed", e.user_message)
