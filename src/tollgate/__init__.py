"""Tollgate - tool execution core for AI coding assistants.

Classifies model-proposed tool calls, gates risky ones behind human
approval, and applies fuzzy-matched file edits.
"""

__version__ = "0.1.0"

from tollgate.config import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings", "__version__"]
