"""
Pipeline state for the clipboard conversion loop.

The coordinator owns the single instance of this state; the tray menu only
reads it to derive its processing indicator.
"""

from enum import Enum, auto


class PipelineState(Enum):
    """
    Enumeration of pipeline states.

    IDLE -> CONVERTING -> SUSPENDED -> IDLE. SUSPENDED covers the window in
    which the result is written back and the watcher is held off.
    """

    IDLE = auto()  # Watching the clipboard (when enabled), ready to convert
    CONVERTING = auto()  # One conversion in flight; further images are dropped
    SUSPENDED = auto()  # Watcher stopped around our own clipboard write-back
