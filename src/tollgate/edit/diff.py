"""Unified diff previews for pending file changes."""

import difflib


def unified_diff(before: str, after: str, path: str, context_lines: int = 3) -> str:
    """Render a unified diff between two versions of a file.

    Args:
        before: Current content ("" for a new file)
        after: Proposed content
        path: Path shown in the diff header
        context_lines: Unchanged lines shown around each hunk

    Returns:
        str: Diff text, empty when the versions are identical
    """
    lines = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        n=context_lines,
    )
    rendered = []
    for line in lines:
        rendered.append(line if line.endswith("\n") else line + "\n\\ No newline at end of file\n")
    return "".join(rendered)


def diff_stats(diff: str) -> tuple[int, int]:
    """Count added and removed lines in a unified diff.

    Returns:
        tuple[int, int]: (additions, deletions)
    """
    added = removed = 0
    for line in diff.splitlines():
        if line.startswith("+++") or line.startswith("---"):
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
    return added, removed
