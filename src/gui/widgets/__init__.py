"""
Reusable GUI components for the LaTeX Clipboard Converter.
"""

from .notification_manager import NotificationManager

__all__ = ["NotificationManager"]
