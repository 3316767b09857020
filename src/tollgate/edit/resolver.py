"""Edit resolution through an ordered matching cascade.

The EditResolver applies model-proposed (old_string, new_string) edits to
file content even when old_string does not match byte-for-byte. Both the
approval preview and the actual write go through ``EditResolver.resolve``
so they can never disagree.
"""

import logging

from pydantic import BaseModel, Field

from tollgate.edit.replacers import STRATEGIES, Span, Strategy, reindent
from tollgate.errors import AmbiguousMatchError, NoMatchError, ToolValidationError

logger = logging.getLogger(__name__)


class EditOperation(BaseModel):
    """A single replacement requested by the model."""

    old_string: str = Field(..., description="Text to replace")
    new_string: str = Field(..., description="Replacement text")
    replace_all: bool = Field(
        default=False,
        description="Replace every occurrence instead of requiring a unique match",
    )


class MatchResult(BaseModel):
    """Where the winning strategy located an operation's old_string."""

    spans: list[tuple[int, int]] = Field(default_factory=list)
    strategy: int | None = Field(default=None, description="1-based index of the winning strategy")
    strategy_name: str | None = None

    @property
    def matched(self) -> bool:
        return bool(self.spans)


class EditOutcome(BaseModel):
    """Result of applying every operation of an edit call."""

    content: str
    matches: list[MatchResult] = Field(default_factory=list)

    @property
    def replacements(self) -> int:
        return sum(len(m.spans) for m in self.matches)


class EditResolver:
    """Applies edit operations using a fixed-priority matching cascade.

    Strategies, tried in order until one finds a candidate:
    1. exact
    2. line_trimmed
    3. block_anchor
    4. whitespace_normalized
    5. escape_normalized
    6. indentation_flexible

    Without ``replace_all`` the winning strategy must find exactly one
    candidate; more than one is an AmbiguousMatchError and the cascade does
    not fall through to a later strategy to pick one.

    Example:
        >>> resolver = EditResolver()
        >>> resolver.resolve("a = 1\\n", [EditOperation(old_string="a = 1", new_string="a = 2")]).content
        'a = 2\\n'
    """

    def __init__(self, strategies: list[tuple[str, Strategy]] | None = None):
        """Initialize the resolver.

        Args:
            strategies: Override the cascade (defaults to the six standard strategies)
        """
        self.strategies = strategies or STRATEGIES

    def find(self, content: str, operation: EditOperation, index: int = 0) -> tuple[MatchResult, list[Span]]:
        """Locate an operation's old_string in content.

        Args:
            content: Current file content
            operation: Operation to locate
            index: Position of the operation in its call (for error messages)

        Returns:
            tuple[MatchResult, list[Span]]: Match summary and the raw spans

        Raises:
            ToolValidationError: If the operation is malformed
            NoMatchError: If no strategy finds old_string
            AmbiguousMatchError: If the winning strategy finds several
                candidates and replace_all is False
        """
        self._validate(operation, index)

        for position, (name, strategy) in enumerate(self.strategies, start=1):
            spans = strategy(content, operation.old_string)
            if not spans:
                continue

            if len(spans) > 1 and not operation.replace_all:
                logger.debug(f"Edit {index + 1}: {len(spans)} candidates via {name}")
                raise AmbiguousMatchError(len(spans), name, index)

            logger.debug(f"Edit {index + 1}: matched {len(spans)} span(s) via {name}")
            match = MatchResult(
                spans=[(s.start, s.end) for s in spans],
                strategy=position,
                strategy_name=name,
            )
            return match, spans

        raise NoMatchError(operation.old_string, index)

    def apply(self, content: str, operation: EditOperation, index: int = 0) -> tuple[str, MatchResult]:
        """Apply one operation to content.

        Args:
            content: Current file content
            operation: Operation to apply
            index: Position of the operation in its call

        Returns:
            tuple[str, MatchResult]: Updated content and where it matched
        """
        match, spans = self.find(content, operation, index)

        # Replace back to front so earlier offsets stay valid
        updated = content
        for span in reversed(spans):
            replacement = operation.new_string
            if span.reindent is not None:
                replacement = reindent(replacement, *span.reindent)
            updated = updated[: span.start] + replacement + updated[span.end :]
        return updated, match

    def resolve(self, content: str, operations: list[EditOperation]) -> EditOutcome:
        """Apply operations in order against progressively updated content.

        Either every operation applies or an error is raised and nothing is
        returned; callers write the outcome at most once.

        Args:
            content: Original file content
            operations: Operations to apply

        Returns:
            EditOutcome: Final content and per-operation matches
        """
        if not operations:
            raise ToolValidationError("No edit operations were provided")

        matches = []
        for index, operation in enumerate(operations):
            content, match = self.apply(content, operation, index)
            matches.append(match)
        return EditOutcome(content=content, matches=matches)

    def _validate(self, operation: EditOperation, index: int) -> None:
        if operation.old_string == "":
            raise ToolValidationError(
                f"Edit {index + 1}: old_string is empty. Use the write tool to create or overwrite a file."
            )
        if operation.old_string == operation.new_string:
            raise ToolValidationError(
                f"Edit {index + 1}: old_string and new_string are identical; there is nothing to change."
            )


# Shared instance: previews and executions must use the same cascade
_default_resolver: EditResolver | None = None


def get_resolver() -> EditResolver:
    """Get the shared edit resolver.

    Returns:
        EditResolver: The process-wide resolver instance
    """
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = EditResolver()
    return _default_resolver
