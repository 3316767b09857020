"""Risk classification for shell commands.

This module provides the CommandClassifier, which splits a shell command
into pipeline segments, scans it for command substitution with a
quote-aware state machine, and checks each segment against a denylist of
dangerous commands.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from tollgate.tools.base import RiskCategory, RiskClassification

logger = logging.getLogger(__name__)


class QuoteState(str, Enum):
    """Quoting state of the scanner."""

    NORMAL = "normal"
    SINGLE = "in_single_quote"
    DOUBLE = "in_double_quote"


@dataclass(frozen=True)
class QuoteScan:
    """Result of scanning a command for substitution."""

    has_substitution: bool
    terminated: bool


def scan_quotes(command: str) -> QuoteScan:
    """Scan a command for command substitution outside single quotes.

    ``$(`` and backticks are substitution in the normal and double-quoted
    states unless escaped; inside single quotes everything is literal.
    A backslash outside single quotes escapes exactly the next character.

    Args:
        command: Shell command text

    Returns:
        QuoteScan: Whether substitution was found and whether all quotes closed
    """
    state = QuoteState.NORMAL
    escaped = False
    has_substitution = False

    for i, char in enumerate(command):
        if escaped:
            escaped = False
            continue

        if state == QuoteState.SINGLE:
            if char == "'":
                state = QuoteState.NORMAL
            continue

        if char == "\\":
            escaped = True
            continue

        if char == "'" and state == QuoteState.NORMAL:
            state = QuoteState.SINGLE
        elif char == '"':
            state = QuoteState.NORMAL if state == QuoteState.DOUBLE else QuoteState.DOUBLE
        elif char == "`":
            has_substitution = True
        elif char == "$" and command[i + 1 : i + 2] == "(":
            has_substitution = True

    return QuoteScan(has_substitution=has_substitution, terminated=state == QuoteState.NORMAL)


def has_command_substitution(command: str) -> bool:
    """Shortcut for ``scan_quotes(command).has_substitution``."""
    return scan_quotes(command).has_substitution


@dataclass(frozen=True)
class Segment:
    """One pipeline segment and the operator that follows it."""

    text: str
    operator: str | None = None


def split_segments(command: str) -> list[Segment]:
    """Split a command on ``|``, ``;``, ``&&``, ``||`` and newlines.

    Operators inside quotes or escaped with a backslash do not split.

    Args:
        command: Shell command text

    Returns:
        list[Segment]: Non-empty segments in order
    """
    segments: list[Segment] = []
    current: list[str] = []
    state = QuoteState.NORMAL
    escaped = False
    i = 0

    def flush(operator: str | None) -> None:
        text = "".join(current).strip()
        if text:
            segments.append(Segment(text=text, operator=operator))
        current.clear()

    while i < len(command):
        char = command[i]

        if escaped:
            escaped = False
            current.append(char)
            i += 1
            continue

        if state == QuoteState.SINGLE:
            if char == "'":
                state = QuoteState.NORMAL
            current.append(char)
            i += 1
            continue

        if char == "\\":
            escaped = True
            current.append(char)
            i += 1
            continue

        if char == "'" and state == QuoteState.NORMAL:
            state = QuoteState.SINGLE
        elif char == '"':
            state = QuoteState.NORMAL if state == QuoteState.DOUBLE else QuoteState.DOUBLE
        elif state == QuoteState.NORMAL:
            pair = command[i : i + 2]
            if pair in ("&&", "||"):
                flush(pair)
                i += 2
                continue
            if char in "|;\n":
                flush(";" if char == "\n" else char)
                i += 1
                continue

        current.append(char)
        i += 1

    flush(None)
    return segments


# (pattern, reason) pairs checked against every segment
DENYLIST: list[tuple[str, str]] = [
    (r"\brm\s+(-[a-zA-Z]*[rR][a-zA-Z]*|--recursive)\b", "Recursive delete"),
    (r"\brm\s+(-[a-zA-Z]*f[a-zA-Z]*\s+)*(/|~|\*)(\s|$)", "Delete at filesystem or home root"),
    (r"^\s*(sudo|su|doas|pkexec)\b", "Privilege escalation"),
    (r"\bmkfs(\.\w+)?\b", "Filesystem format"),
    (r"\bdd\b.*\bof=/dev/", "Raw write to a device"),
    (r">\s*/dev/(sd|nvme|hd|disk)", "Redirect into a block device"),
    (r"\bchmod\s+(-[a-zA-Z]*R[a-zA-Z]*\s+)?0?777\b", "World-writable permissions"),
    (r"\bchown\s+-[a-zA-Z]*R", "Recursive ownership change"),
    (r"^\s*(shutdown|reboot|halt|poweroff)\b", "Power control"),
    (r":\s*\(\s*\)\s*\{", "Fork bomb"),
    (r"\bgit\s+push\b.*(--force\b|-f\b)", "Force push"),
    (r"\bgit\s+reset\s+--hard\b", "Discards local changes"),
    (r"\bgit\s+clean\s+-[a-zA-Z]*f", "Deletes untracked files"),
]

NETWORK_FETCH = re.compile(r"^\s*(curl|wget)\b")
INTERPRETER = re.compile(r"^\s*(sh|bash|zsh|dash|ksh|python[0-9.]*|perl|ruby|node)\b")


@dataclass
class CommandContext:
    """Per-call inputs to classification."""

    cwd: Path | None = None
    extra_deny_patterns: list[str] = field(default_factory=list)


class CommandClassifier:
    """Classifier for assessing the risk of shell commands.

    Any command substitution makes a command forbidden. Denylisted
    segments, network fetches piped into an interpreter, and unterminated
    quotes require approval. Everything else is safe.
    """

    def __init__(self, extra_patterns: list[str] | None = None):
        """Initialize the command classifier.

        Args:
            extra_patterns: Additional regular expressions that require approval
        """
        self._denylist = [(re.compile(p), reason) for p, reason in DENYLIST]
        for pattern in extra_patterns or []:
            self._denylist.append((re.compile(pattern), f"Matches configured pattern {pattern!r}"))

    def classify(self, command: str, context: CommandContext | None = None) -> RiskClassification:
        """Classify a shell command.

        Args:
            command: Shell command text
            context: Optional per-call context with extra deny patterns

        Returns:
            RiskClassification: Category, reason and the parsed segments
        """
        context = context or CommandContext()
        segments = split_segments(command)
        segment_texts = [s.text for s in segments]

        whole = scan_quotes(command)
        substitution = whole.has_substitution or any(
            scan_quotes(text).has_substitution for text in segment_texts
        )
        if substitution:
            logger.debug(f"Command substitution found in: {command!r}")
            return RiskClassification(
                category=RiskCategory.FORBIDDEN,
                reason="Command substitution ($(...) or backticks) is not allowed",
                segments=segment_texts,
                has_substitution=True,
            )

        if not whole.terminated:
            return RiskClassification(
                category=RiskCategory.REQUIRES_APPROVAL,
                reason="Unterminated quote; command cannot be parsed reliably",
                segments=segment_texts,
            )

        extra = [(re.compile(p), f"Matches configured pattern {p!r}") for p in context.extra_deny_patterns]
        reasons = []
        for segment in segments:
            reason = self._match_denylist(segment.text, extra)
            if reason:
                reasons.append(f"{reason}: {segment.text}")

        for current, following in zip(segments, segments[1:]):
            if (
                current.operator == "|"
                and NETWORK_FETCH.search(current.text)
                and INTERPRETER.search(following.text)
            ):
                reasons.append(f"Network download piped into an interpreter: {current.text} | {following.text}")

        if reasons:
            logger.debug(f"Command requires approval: {reasons}")
            return RiskClassification(
                category=RiskCategory.REQUIRES_APPROVAL,
                reason="; ".join(reasons),
                segments=segment_texts,
            )

        return RiskClassification(
            category=RiskCategory.SAFE,
            reason="No risky patterns found",
            segments=segment_texts,
        )

    def _match_denylist(
        self,
        segment: str,
        extra: list[tuple[re.Pattern[str], str]],
    ) -> str | None:
        for pattern, reason in [*self._denylist, *extra]:
            if pattern.search(segment):
                return reason
        return None
