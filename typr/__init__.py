"""
Typr - dictation into any window

Double-tap and hold Shift (or use a shortcut) to record, release to
transcribe and type the result where the cursor is.
"""

__version__ = "1.0.0"

from typr.app import DictationApp
from typr.config import Config, Settings

__all__ = ["DictationApp", "Config", "Settings", "__version__"]
