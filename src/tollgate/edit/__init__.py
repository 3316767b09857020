"""Edit resolution for model-proposed text replacements.

This module locates old_string in file content through an ordered cascade
of matching strategies and produces the updated content, or fails with a
no-match or ambiguous-match error.
"""

from tollgate.edit.diff import diff_stats, unified_diff
from tollgate.edit.resolver import (
    EditOperation,
    EditOutcome,
    EditResolver,
    MatchResult,
    get_resolver,
)

__all__ = [
    "EditOperation",
    "EditOutcome",
    "EditResolver",
    "MatchResult",
    "get_resolver",
    "unified_diff",
    "diff_stats",
]
