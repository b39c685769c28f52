"""Rich console output for the startup banner and fatal errors.

This module provides the ConsoleManager class. Runtime activity goes to the
log; the console only shows what an operator needs when the process starts
or cannot start.
"""

from typing import Optional, Dict, Any
import traceback
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text
from .themes import get_theme, ICONS
from ..config import MonitorConfig


class ConsoleManager:
    """Central console output manager.

    Attributes:
        console: Rich Console instance
        debug_mode: Whether tracebacks are shown with errors
        theme: Rich Theme for consistent styling
    """

    def __init__(self, debug_mode: bool = False, console: Optional[Console] = None):
        """Initialize the ConsoleManager.

        Args:
            debug_mode: If True, show stack traces with error panels
            console: Console to print to (a themed one is created if None)
        """
        self.debug_mode = debug_mode
        self.theme = get_theme()
        self.console = console or Console(theme=self.theme)

    def print_banner(self, version: str, source: str, config: MonitorConfig) -> None:
        """Display application startup banner.

        Shows application name, version, configuration source and the main
        settings of the startup snapshot in a formatted panel.

        Args:
            version: Application version string
            source: Nacos address or local configuration path
            config: Startup configuration snapshot
        """
        banner_text = Text()
        banner_text.append("Domain Expiry Monitor\n", style="bold cyan")
        banner_text.append(f"Version: {version}\n\n", style="dim")

        banner_text.append(f"{ICONS['config']} Config: ", style="info")
        banner_text.append(f"{source}\n", style="white")

        banner_text.append(f"{ICONS['domain']} Domains: ", style="info")
        banner_text.append(f"{len(config.domains)}\n", style="white")

        banner_text.append(f"{ICONS['time']} Check Interval: ", style="info")
        banner_text.append(f"{config.check_interval}s\n", style="white")

        banner_text.append(f"{ICONS['warning']} Expire Threshold: ", style="info")
        banner_text.append(f"{config.expire_threshold_days} days\n", style="white")

        banner_text.append(f"{ICONS['check']} Concurrency: ", style="info")
        banner_text.append(f"{config.max_concurrent_checks}\n", style="white")

        banner_text.append(f"{ICONS['metric']} Metrics: ", style="info")
        banner_text.append(f"http://0.0.0.0:{config.metrics_port}/metrics", style="metric")

        panel = Panel(
            banner_text,
            title="[bold]Application Startup[/bold]",
            border_style="cyan",
            padding=(1, 2)
        )

        self.console.print(panel)
        self.console.print()

    def print_error(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None
    ) -> None:
        """Display error message in Rich Panel format.

        Args:
            message: Error message to display
            details: Optional dictionary with additional context
            exception: Optional exception object for extracting traceback
        """
        error_text = Text()
        error_text.append(f"{ICONS['error']} ", style="error")
        error_text.append(message, style="error")

        if details:
            error_text.append("\n\n", style="white")
            error_text.append("Context:\n", style="bold dim")
            for key, value in details.items():
                error_text.append(f"  {key.replace('_', ' ').title()}: ", style="dim")
                error_text.append(f"{value}\n", style="white")

        suggestion = self._get_error_suggestion(message)
        if suggestion:
            error_text.append("\n", style="white")
            error_text.append(f"{ICONS['info']} Suggestion: ", style="info")
            error_text.append(suggestion, style="cyan")

        panel = Panel(
            error_text,
            title="[bold red]Error[/bold red]",
            border_style="red",
            padding=(1, 2)
        )

        self.console.print(panel)

        if self.debug_mode and exception:
            self._print_traceback(exception)

    def _get_error_suggestion(self, message: str) -> Optional[str]:
        """Get actionable suggestion for common startup errors.

        Args:
            message: Error message

        Returns:
            Suggestion string or None if no suggestion available
        """
        message_lower = message.lower()

        if 'nacos login' in message_lower or 'accesstoken' in message_lower:
            return "Check NACOS_USERNAME and NACOS_PASSWORD, or unset both to disable authentication."

        if 'yaml' in message_lower or 'expected mapping' in message_lower:
            return "The configuration must be a YAML mapping with 'domains' and 'settings' keys."

        if 'must be' in message_lower or 'invalid log level' in message_lower:
            return "Fix the value in the 'settings' block of the configuration."

        if 'address already in use' in message_lower:
            return "Another process listens on the metrics port. Change 'metrics_port' in the settings."

        if 'required' in message_lower:
            return "Set the missing environment variable or pass the matching command-line option."

        return None

    def _print_traceback(self, exception: Exception) -> None:
        """Print exception traceback with syntax highlighting."""
        tb_text = ''.join(traceback.format_exception(
            type(exception),
            exception,
            exception.__traceback__
        ))

        syntax = Syntax(
            tb_text,
            "python",
            theme="monokai",
            line_numbers=True,
            word_wrap=True
        )

        self.console.print()
        self.console.print(Panel(
            syntax,
            title="[bold red]Stack Trace[/bold red]",
            border_style="red",
            padding=(1, 2)
        ))
