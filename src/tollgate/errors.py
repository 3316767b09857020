"""Exception taxonomy for tool execution.

Every error raised while handling a tool call is converted into a
ToolResult at the gate boundary via ``ToolError.to_result``. Only internal
invariant violations (see ``InvalidTransitionError``) are logged and
swallowed instead.
"""

from typing import Any

from tollgate.tools.base import ToolResult, ToolStatus

DENIAL_MESSAGE = "The user denied this tool call."
CANCELLATION_MESSAGE = "The tool call was cancelled before it completed."


class ToolError(Exception):
    """Base exception for errors reported back to the model as tool results."""

    kind: str = "error"
    status: ToolStatus = ToolStatus.ERROR

    def __init__(self, message: str, payload: dict[str, Any] | None = None):
        """Initialize with a human-readable message.

        Args:
            message: Message shown to the model in the transcript
            payload: Optional structured details
        """
        self.message = message
        self.payload = payload
        super().__init__(message)

    def to_result(self, call_id: str) -> ToolResult:
        """Convert this error into a terminal ToolResult.

        Args:
            call_id: Identifier of the failed call

        Returns:
            ToolResult: Result carrying this error's status and message
        """
        return ToolResult(
            call_id=call_id,
            status=self.status,
            content=self.message,
            payload=self.payload,
            is_error=True,
            error_kind=self.kind,
        )


class ToolValidationError(ToolError):
    """Bad parameters, a path outside the permitted scope, or a missing file."""

    kind = "validation"


class RiskRejection(ToolError):
    """A shell command classified as forbidden. Never executed."""

    kind = "risk_rejection"
    status = ToolStatus.DENIED


class ApprovalDenied(ToolError):
    """The human declined the call. A soft, expected outcome."""

    kind = "approval_denied"
    status = ToolStatus.DENIED

    def __init__(self, message: str = DENIAL_MESSAGE):
        super().__init__(message)


class EditError(ToolError):
    """Base exception for edits the resolver could not place."""

    pass


class NoMatchError(EditError):
    """No strategy in the matching cascade located old_string."""

    kind = "no_match"

    def __init__(self, old_string: str, operation_index: int = 0):
        """Initialize with the string that could not be found.

        Args:
            old_string: The text the model asked to replace
            operation_index: Position of the failing operation in the call
        """
        self.old_string = old_string
        self.operation_index = operation_index
        preview = old_string if len(old_string) <= 200 else old_string[:200] + "..."
        super().__init__(
            f"Edit {operation_index + 1}: old_string was not found in the file. "
            "Read the file again and copy the exact text to replace, including "
            f"whitespace and indentation.\nold_string: {preview!r}"
        )


class AmbiguousMatchError(EditError):
    """old_string matched more than once and replace_all was not requested."""

    kind = "ambiguous_match"

    def __init__(self, count: int, strategy: str, operation_index: int = 0):
        """Initialize with the number of competing candidates.

        Args:
            count: Number of positions the winning strategy found
            strategy: Name of the strategy that found them
            operation_index: Position of the failing operation in the call
        """
        self.count = count
        self.strategy = strategy
        self.operation_index = operation_index
        super().__init__(
            f"Edit {operation_index + 1}: old_string matches {count} locations "
            f"(strategy: {strategy}). Include more surrounding lines to make it "
            "unique, or set replace_all to replace every occurrence.",
            payload={"matches": count, "strategy": strategy},
        )


class ExecutionError(ToolError):
    """The operation ran and failed: non-zero exit, timeout, or I/O failure."""

    kind = "execution"


class CancellationError(ToolError):
    """The call was cancelled externally. Treated like a denial in the transcript."""

    kind = "cancellation"
    status = ToolStatus.CANCELLED

    def __init__(self, message: str = CANCELLATION_MESSAGE):
        super().__init__(message)


class InvalidTransitionError(Exception):
    """Raised when a call lifecycle transition is not allowed."""

    def __init__(self, call_id: str, current: str, target: str):
        """Initialize with the rejected transition.

        Args:
            call_id: Identifier of the call
            current: State the call is in
            target: State that was requested
        """
        self.call_id = call_id
        self.current = current
        self.target = target
        super().__init__(f"Call {call_id}: cannot transition from {current} to {target}")
