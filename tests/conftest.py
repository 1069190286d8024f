"""
Shared pytest configuration.

Runs Qt headless and keeps QStandardPaths (and so the error log) out of the
user's real data directories.
"""

import os

# Set offscreen platform to prevent display errors on headless systems
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtCore import QStandardPaths  # noqa: E402

QStandardPaths.setTestModeEnabled(True)
