"""Theme configuration for Rich console output."""

from rich.theme import Theme

# Unicode icons used in the banner and error panels
ICONS = {
    'error': '✗',
    'warning': '⚠',
    'info': 'ℹ',
    'time': '⏱',
    'domain': '🌐',
    'check': '🔍',
    'config': '⚙',
    'metric': '📈',
}


def get_theme() -> Theme:
    """Get the Rich theme with custom styles.

    Returns:
        Theme: Rich Theme object with custom style definitions
    """
    return Theme({
        "info": "cyan",
        "error": "bold red",
        "metric": "blue"
    })
