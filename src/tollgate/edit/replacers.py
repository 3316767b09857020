"""Matching strategies for locating old_string in file content.

Each strategy takes the file content and the text the model wants to
replace and returns every non-overlapping candidate span it finds, in
file order. Strategies never decide between candidates; uniqueness is the
resolver's job.
"""

import os
import re
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class Span:
    """A candidate match in the original content.

    ``reindent`` holds ``(from_indent, to_indent)`` when the replacement
    text has to be moved from old_string's indentation to the file's.
    """

    start: int
    end: int
    reindent: tuple[str, str] | None = None


Strategy = Callable[[str, str], list[Span]]


# =============================================================================
# Line helpers
# =============================================================================


def _split_old(old: str) -> list[str]:
    """Split old_string into lines, dropping the empty tail after a final newline."""
    lines = old.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return lines


def _line_starts(lines: list[str]) -> list[int]:
    starts = []
    offset = 0
    for line in lines:
        starts.append(offset)
        offset += len(line) + 1
    return starts


def _window_span(lines: list[str], starts: list[int], first: int, last: int, old: str) -> tuple[int, int]:
    """Character span covering lines ``first..last`` inclusive.

    The newline after the last line is included when old_string ends with one.
    """
    start = starts[first]
    end = starts[last] + len(lines[last])
    if old.endswith("\n") and last < len(lines) - 1:
        end += 1
    return start, end


def _leading_ws(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def common_indent(lines: list[str]) -> str:
    """Longest leading whitespace shared by every non-blank line."""
    indents = [_leading_ws(line) for line in lines if line.strip()]
    if not indents:
        return ""
    return os.path.commonprefix(indents)


def _dedent(lines: list[str]) -> list[str]:
    indent = common_indent(lines)
    return [line[len(indent):] if line.strip() else "" for line in lines]


def indentation_equal(old_lines: list[str], window: list[str]) -> bool:
    """Whether two blocks are identical once their uniform indentation is removed."""
    if len(old_lines) != len(window):
        return False
    return _dedent(old_lines) == _dedent(window)


def is_indentation_shift(old_lines: list[str], window: list[str]) -> bool:
    """Whether ``window`` is old_lines moved to a different uniform indentation.

    Such candidates belong to the indentation-flexible strategy, which can
    carry the file's indentation over to the replacement text.
    """
    return (
        indentation_equal(old_lines, window)
        and common_indent(old_lines) != common_indent(window)
    )


def reindent(text: str, from_indent: str, to_indent: str) -> str:
    """Move every line of ``text`` from one base indentation to another.

    Lines indented less than ``from_indent`` keep their relative offset,
    clamped at zero.
    """
    result = []
    for line in text.split("\n"):
        if not line.strip():
            result.append(line)
        elif line.startswith(from_indent):
            result.append(to_indent + line[len(from_indent):])
        else:
            lead = _leading_ws(line)
            shortfall = len(from_indent) - len(lead)
            prefix = to_indent[: max(0, len(to_indent) - shortfall)]
            result.append(prefix + line[len(lead):])
    return "\n".join(result)


def _enclosing_lines(content: str, start: int, end: int) -> list[str]:
    line_start = content.rfind("\n", 0, start) + 1
    line_end = content.find("\n", end)
    if line_end == -1:
        line_end = len(content)
    return content[line_start:line_end].split("\n")


# =============================================================================
# Strategies
# =============================================================================


def exact_match(content: str, old: str) -> list[Span]:
    """Exact substring occurrences."""
    spans = []
    index = content.find(old)
    while index != -1 and old:
        spans.append(Span(index, index + len(old)))
        index = content.find(old, index + len(old))
    return spans


def line_trimmed_match(content: str, old: str) -> list[Span]:
    """Line blocks equal to old_string when each line is stripped."""
    old_lines = _split_old(old)
    trimmed_old = [line.strip() for line in old_lines]
    if not any(trimmed_old):
        return []

    lines = content.split("\n")
    starts = _line_starts(lines)
    count = len(old_lines)
    spans = []
    i = 0
    while i + count <= len(lines):
        window = lines[i : i + count]
        if [line.strip() for line in window] == trimmed_old and not is_indentation_shift(old_lines, window):
            spans.append(Span(*_window_span(lines, starts, i, i + count - 1, old)))
            i += count
        else:
            i += 1
    return spans


def block_anchor_match(content: str, old: str) -> list[Span]:
    """Blocks whose first and last lines match old_string's; interior may drift."""
    old_lines = _split_old(old)
    if len(old_lines) < 3:
        return []

    first = old_lines[0].strip()
    last = old_lines[-1].strip()
    if not first or not last:
        return []

    lines = content.split("\n")
    starts = _line_starts(lines)
    spans = []
    i = 0
    while i < len(lines):
        if lines[i].strip() != first:
            i += 1
            continue
        end_line = next(
            (j for j in range(i + 1, len(lines)) if lines[j].strip() == last),
            None,
        )
        if end_line is None:
            break
        window = lines[i : end_line + 1]
        if not is_indentation_shift(old_lines, window):
            spans.append(Span(*_window_span(lines, starts, i, end_line, old)))
        i = end_line + 1
    return spans


def whitespace_normalized_match(content: str, old: str) -> list[Span]:
    """Matches after collapsing every whitespace run to a single space."""
    target = " ".join(old.split())
    if not target:
        return []

    chars: list[str] = []
    starts: list[int] = []
    ends: list[int] = []
    i = 0
    while i < len(content):
        if content[i].isspace():
            j = i
            while j < len(content) and content[j].isspace():
                j += 1
            chars.append(" ")
            starts.append(i)
            ends.append(j)
            i = j
        else:
            chars.append(content[i])
            starts.append(i)
            ends.append(i + 1)
            i += 1
    normalized = "".join(chars)

    old_lines = _split_old(old)
    spans = []
    index = normalized.find(target)
    while index != -1:
        start = starts[index]
        end = ends[index + len(target) - 1]
        if not is_indentation_shift(old_lines, _enclosing_lines(content, start, end)):
            spans.append(Span(start, end))
        index = normalized.find(target, index + len(target))
    return spans


_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "'": "'",
    '"': '"',
    "`": "`",
    "$": "$",
    "\\": "\\",
}
_ESCAPE_RE = re.compile(r"\\([ntr'\"`$\\])")


def unescape(text: str) -> str:
    """Replace common escape sequences with the characters they stand for."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], text)


def escape_normalized_match(content: str, old: str) -> list[Span]:
    """Exact occurrences of old_string once its escape sequences are unescaped."""
    unescaped = unescape(old)
    if unescaped == old:
        return []
    return exact_match(content, unescaped)


def indentation_flexible_match(content: str, old: str) -> list[Span]:
    """Line blocks equal to old_string once both lose their uniform indentation."""
    old_lines = _split_old(old)
    if not any(line.strip() for line in old_lines):
        return []
    old_indent = common_indent(old_lines)

    lines = content.split("\n")
    starts = _line_starts(lines)
    count = len(old_lines)
    spans = []
    i = 0
    while i + count <= len(lines):
        window = lines[i : i + count]
        if indentation_equal(old_lines, window):
            start, end = _window_span(lines, starts, i, i + count - 1, old)
            spans.append(Span(start, end, reindent=(old_indent, common_indent(window))))
            i += count
        else:
            i += 1
    return spans


# Fixed priority order; the resolver stops at the first strategy with candidates
STRATEGIES: list[tuple[str, Strategy]] = [
    ("exact", exact_match),
    ("line_trimmed", line_trimmed_match),
    ("block_anchor", block_anchor_match),
    ("whitespace_normalized", whitespace_normalized_match),
    ("escape_normalized", escape_normalized_match),
    ("indentation_flexible", indentation_flexible_match),
]
