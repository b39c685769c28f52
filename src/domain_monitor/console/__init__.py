"""
Rich console output for the domain expiry monitor.

Provides the startup banner and the fatal-error panel.
"""

from .output import ConsoleManager
from .themes import get_theme, ICONS

__all__ = [
    'ConsoleManager',
    'get_theme',
    'ICONS',
]
