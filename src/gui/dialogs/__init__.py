"""
Dialog windows for the LaTeX Clipboard Converter.
"""

from .settings import SettingsDialog

__all__ = ["SettingsDialog"]
