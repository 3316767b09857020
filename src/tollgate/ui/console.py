"""Rich console wrapper for Tollgate with consistent styling and theming.

This module provides the TollgateConsole class which wraps Rich Console with
the styles used for tool results, risk classifications, and approval panels.
"""

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from tollgate.tools.base import RiskClassification, ToolResult, ToolStatus


# Tollgate color scheme
TOLLGATE_THEME = Theme({
    # Primary colors
    "tollgate.primary": "cyan",
    "tollgate.accent": "magenta",

    # Status colors
    "tollgate.success": "green",
    "tollgate.error": "red bold",
    "tollgate.warning": "yellow",
    "tollgate.info": "blue",
    "tollgate.denied": "yellow bold",

    # Special elements
    "tollgate.tool": "magenta",
    "tollgate.header": "cyan bold",
    "tollgate.footer": "dim",
})

STATUS_STYLES = {
    ToolStatus.SUCCESS: ("✓", "tollgate.success"),
    ToolStatus.ERROR: ("✗", "tollgate.error"),
    ToolStatus.DENIED: ("⊘", "tollgate.denied"),
    ToolStatus.CANCELLED: ("⊘", "tollgate.warning"),
}


class TollgateConsole:
    """Rich console with Tollgate-specific styling.

    Attributes:
        console: The underlying Rich Console instance
    """

    def __init__(self, no_color: bool = False, verbose: bool = False, stderr: bool = False):
        """Initialize the console.

        Args:
            no_color: Disable colored output
            verbose: Show payloads and tracebacks
            stderr: Write to stderr instead of stdout
        """
        self.console = Console(
            theme=TOLLGATE_THEME,
            highlight=False,
            no_color=no_color,
            stderr=stderr,
        )
        self.verbose = verbose
        self.no_color = no_color

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Print to console (passthrough to Rich Console)."""
        self.console.print(*args, **kwargs)

    def tool_result(self, name: str, result: ToolResult) -> None:
        """Display a tool result.

        Args:
            name: Name of the tool that was called
            result: Result of the call
        """
        icon, style = STATUS_STYLES[result.status]
        header = f"{icon} {name}: {result.status}"
        if result.error_kind:
            header += f" ({result.error_kind})"
        self.console.print(header, style=style)

        if result.content:
            self.console.print(Panel(result.content, border_style=style, padding=(0, 1)))

        if result.payload and self.verbose:
            import json

            self.console.print(
                Syntax(json.dumps(result.payload, indent=2, default=str), "json", theme="monokai")
            )

    def classification(self, command: str, risk: RiskClassification) -> None:
        """Display the risk classification of a shell command.

        Args:
            command: The classified command
            risk: Classifier output
        """
        content = Text()
        content.append("Command: ", style="bold")
        content.append(f"{command}\n", style="tollgate.primary")
        content.append("Risk: ", style="bold")
        content.append(f"{risk.category.label.upper()}\n", style=risk.category.color)
        content.append("Reason: ", style="bold")
        content.append(risk.reason)
        if risk.has_substitution:
            content.append("\nContains command substitution", style="red")
        if len(risk.segments) > 1:
            content.append("\n\nSegments:\n", style="bold")
            for segment in risk.segments:
                content.append(f"  • {segment}\n", style="dim")

        self.console.print(
            Panel(content, title="[bold]Classification[/bold]", border_style=risk.category.color)
        )

    def warning(self, message: str) -> None:
        """Display a warning message."""
        self.console.print(f"⚠ Warning: {message}", style="tollgate.warning")

    def show_config(self, config_dict: dict[str, Any]) -> None:
        """Display configuration settings.

        Args:
            config_dict: Dictionary of configuration settings
        """
        table = Table(title="Tollgate Configuration", show_header=True)
        table.add_column("Setting", style="tollgate.primary")
        table.add_column("Value", style="tollgate.info")

        for key, value in config_dict.items():
            table.add_row(key, str(value))

        self.console.print(table)


# Global console instance
_console: TollgateConsole | None = None


def get_console(no_color: bool = False, verbose: bool = False) -> TollgateConsole:
    """Get the global console instance.

    Args:
        no_color: Disable colored output
        verbose: Enable verbose output

    Returns:
        TollgateConsole: The global console instance
    """
    global _console
    if _console is None:
        _console = TollgateConsole(no_color=no_color, verbose=verbose)
    return _console
