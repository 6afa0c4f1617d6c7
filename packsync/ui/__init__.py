"""
User interface module.

Terminal colors and progress rendering for the command line front-end.
"""

from .colors import Colors
from .progress_display import TerminalProgress

__all__ = [
    "Colors",
    "TerminalProgress",
]
