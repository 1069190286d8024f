"""
Smoke tests for the LaTeX Clipboard Converter.
These tests verify basic functionality and environment setup.
"""

import os

# Set offscreen platform to prevent display errors on headless systems
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


def test_pyside6_imports():
    """Test that PySide6 can be imported successfully."""
    import PySide6  # noqa: F401
    from PySide6.QtWidgets import QApplication  # noqa: F401


def test_main_module_components():
    """Test that the entry point and its collaborators import."""
    from gui import main
    from gui.dialogs import SettingsDialog  # noqa: F401
    from gui.tray import TrayController  # noqa: F401
    from gui.widgets import NotificationManager  # noqa: F401

    assert callable(main.main)


def test_pipeline_wires_with_qt_clipboard(qapp):
    """Test that the coordinator can be assembled on the real clipboard."""
    from core.backend_interface import ConversionDispatcher
    from core.clipboard import QtClipboard
    from core.conversion_state import PipelineState
    from core.pipeline import PipelineCoordinator
    from gui.widgets.notification_manager import NotificationManager

    class Settings:
        enabled = False
        polling_interval = 0.5
        resume_delay = 0.5
        selected_backend = None

        def credential(self, backend):
            return None

    coordinator = PipelineCoordinator(
        Settings(), QtClipboard(), NotificationManager(), ConversionDispatcher()
    )
    coordinator.start()

    assert coordinator.state is PipelineState.IDLE
    assert not coordinator.watcher.is_running()
    coordinator.shutdown()
