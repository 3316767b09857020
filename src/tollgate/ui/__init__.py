"""Terminal output and prompts for Tollgate."""

from tollgate.ui.console import TOLLGATE_THEME, TollgateConsole, get_console
from tollgate.ui.prompts import confirm

__all__ = [
    # Console
    "TollgateConsole",
    "get_console",
    "TOLLGATE_THEME",
    # Prompts
    "confirm",
]
