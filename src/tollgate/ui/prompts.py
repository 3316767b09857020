"""Yes/no prompts for approval decisions."""

import logging

from rich.console import Console
from rich.prompt import Confirm

logger = logging.getLogger(__name__)


def confirm(
    message: str,
    default: bool = False,
    console: Console | None = None,
) -> bool:
    """Ask a yes/no question on the terminal.

    Blocks until the user answers, so callers on the event loop run it in a
    worker thread. If stdin is closed (piped input, CI), the default answer
    is returned instead of raising.

    Args:
        message: The question to ask
        default: Answer used on Enter or when stdin is closed
        console: Console to prompt on (a stderr console if None)

    Returns:
        bool: True if the user answered yes
    """
    console = console or Console(stderr=True)
    try:
        return Confirm.ask(f"[yellow]?[/yellow] {message}", default=default, console=console)
    except EOFError:
        logger.warning(f"No input available for prompt {message!r}; answering {default}")
        console.print()
        return default
