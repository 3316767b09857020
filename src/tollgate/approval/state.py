"""Lifecycle tracking for tool calls awaiting a human decision.

Every call gets a record in a table keyed by its call id. A call that needs
approval is suspended on a PendingApprovalHandle (an asyncio.Future) until
a decision or a cancellation resolves it; the event loop keeps running
meanwhile so several calls can be tracked at once.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from tollgate.errors import InvalidTransitionError
from tollgate.tools.base import RiskCategory, ToolName

logger = logging.getLogger(__name__)


class CallState(str, Enum):
    """Lifecycle state of a tool call."""

    CREATED = "created"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    DENIED = "denied"
    CANCELLED = "cancelled"
    EXECUTED = "executed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    def __str__(self) -> str:
        return self.value


TERMINAL_STATES = frozenset(
    {CallState.DENIED, CallState.CANCELLED, CallState.EXECUTED, CallState.FAILED}
)

TRANSITIONS: dict[CallState, frozenset[CallState]] = {
    CallState.CREATED: frozenset(
        {
            CallState.PENDING_APPROVAL,
            CallState.APPROVED,
            CallState.DENIED,
            CallState.CANCELLED,
            CallState.FAILED,
        }
    ),
    CallState.PENDING_APPROVAL: frozenset(
        {CallState.APPROVED, CallState.DENIED, CallState.CANCELLED}
    ),
    CallState.APPROVED: frozenset(
        {CallState.EXECUTED, CallState.FAILED, CallState.CANCELLED}
    ),
    CallState.DENIED: frozenset(),
    CallState.CANCELLED: frozenset(),
    CallState.EXECUTED: frozenset(),
    CallState.FAILED: frozenset(),
}


class Verdict(str, Enum):
    """A human's answer to an approval request."""

    APPROVED = "approved"
    DENIED = "denied"

    def __str__(self) -> str:
        return self.value


class ApprovalDecision(BaseModel):
    """A verdict for one pending call."""

    call_id: str = Field(..., min_length=1)
    verdict: Verdict
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def approve(cls, call_id: str) -> "ApprovalDecision":
        return cls(call_id=call_id, verdict=Verdict.APPROVED)

    @classmethod
    def deny(cls, call_id: str) -> "ApprovalDecision":
        return cls(call_id=call_id, verdict=Verdict.DENIED)


class PendingApproval(BaseModel):
    """A call suspended until a human decides. Exists only while pending."""

    call_id: str
    tool_name: ToolName
    preview: str = Field(..., description="Diff for file tools, command text for shell")
    risk: RiskCategory = RiskCategory.REQUIRES_APPROVAL
    reason: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class ApprovalRequest(BaseModel):
    """What the approval channel is shown."""

    call_id: str
    tool_name: ToolName
    preview: str
    risk_level: RiskCategory
    reason: str = ""

    @classmethod
    def from_pending(cls, pending: PendingApproval) -> "ApprovalRequest":
        return cls(
            call_id=pending.call_id,
            tool_name=pending.tool_name,
            preview=pending.preview,
            risk_level=pending.risk,
            reason=pending.reason,
        )

    def to_wire(self) -> dict[str, Any]:
        """Render ``{callId, toolName, preview, riskLevel}``."""
        return {
            "callId": self.call_id,
            "toolName": self.tool_name.value,
            "preview": self.preview,
            "riskLevel": self.risk_level.value,
        }


class CallRecord(BaseModel):
    """Row of the state table for a single call."""

    call_id: str
    tool_name: ToolName
    state: CallState = CallState.CREATED
    pending: PendingApproval | None = None
    history: list[CallState] = Field(default_factory=lambda: [CallState.CREATED])
    updated_at: datetime = Field(default_factory=datetime.now)


class PendingApprovalHandle:
    """Awaitable side of a pending approval.

    Resolves to the state the call was moved to (APPROVED, DENIED, or
    CANCELLED).
    """

    def __init__(self, call_id: str, future: asyncio.Future):
        self.call_id = call_id
        self._future = future

    @property
    def done(self) -> bool:
        return self._future.done()

    async def wait(self) -> CallState:
        """Wait for the decision.

        Cancelling the waiting task does not cancel the pending approval
        itself; use ``ApprovalStateMachine.cancel`` for that.
        """
        return await asyncio.shield(self._future)

    def __repr__(self) -> str:
        return f"<PendingApprovalHandle call_id='{self.call_id}' done={self.done}>"


class ApprovalStateMachine:
    """Table of call records plus the futures of pending approvals.

    Transitions that the table does not allow are logged and ignored, so a
    call never reaches two terminal states. ``strict=True`` raises
    InvalidTransitionError instead.

    Example:
        >>> machine = ApprovalStateMachine()
        >>> machine.create("call-1", ToolName.SHELL).state
        <CallState.CREATED: 'created'>
    """

    def __init__(self, strict: bool = False):
        """Initialize an empty table.

        Args:
            strict: Raise on illegal transitions instead of logging them
        """
        self.strict = strict
        self._records: dict[str, CallRecord] = {}
        self._futures: dict[str, asyncio.Future] = {}

    def create(self, call_id: str, tool_name: ToolName) -> CallRecord:
        """Register a new call in the CREATED state.

        Args:
            call_id: Identifier of the call
            tool_name: Tool the call targets

        Returns:
            CallRecord: The new record

        Raises:
            ValueError: If a record with this id already exists
        """
        if call_id in self._records:
            raise ValueError(f"Duplicate call id: {call_id}")
        record = CallRecord(call_id=call_id, tool_name=tool_name)
        self._records[call_id] = record
        logger.debug(f"Registered call {call_id} ({tool_name})")
        return record

    def get(self, call_id: str) -> CallRecord | None:
        return self._records.get(call_id)

    def state(self, call_id: str) -> CallState | None:
        """Current state of a call, or None if unknown."""
        record = self._records.get(call_id)
        return record.state if record else None

    def pending(self) -> list[PendingApproval]:
        """All approvals currently waiting for a decision."""
        return [
            record.pending
            for record in self._records.values()
            if record.state == CallState.PENDING_APPROVAL and record.pending is not None
        ]

    def request_approval(self, pending: PendingApproval) -> PendingApprovalHandle:
        """Suspend a CREATED call until it is decided or cancelled.

        Args:
            pending: Details shown to the approver

        Returns:
            PendingApprovalHandle: Awaitable resolving to the decided state

        Raises:
            KeyError: If the call was never created
            InvalidTransitionError: If the call is not in CREATED state
        """
        record = self._records[pending.call_id]
        if CallState.PENDING_APPROVAL not in TRANSITIONS[record.state]:
            raise InvalidTransitionError(
                pending.call_id, record.state.value, CallState.PENDING_APPROVAL.value
            )
        self._transition(record, CallState.PENDING_APPROVAL)
        record.pending = pending
        future = asyncio.get_running_loop().create_future()
        self._futures[pending.call_id] = future
        return PendingApprovalHandle(pending.call_id, future)

    def auto_approve(self, call_id: str) -> bool:
        """Move a call straight from CREATED to APPROVED."""
        return self._move(call_id, CallState.APPROVED)

    def decide(self, decision: ApprovalDecision) -> bool:
        """Apply a human decision to a pending call.

        Only the first decision for a pending call has an effect. Decisions
        for unknown calls, already decided calls, or calls that were never
        pending are logged and ignored.

        Args:
            decision: The verdict

        Returns:
            bool: True if the decision changed the call's state
        """
        record = self._records.get(decision.call_id)
        if record is None:
            logger.warning(f"Decision for unknown call {decision.call_id} ignored")
            return False
        if record.state != CallState.PENDING_APPROVAL:
            logger.warning(
                f"Decision '{decision.verdict}' for call {decision.call_id} ignored: "
                f"call is {record.state}"
            )
            return False

        target = CallState.APPROVED if decision.verdict == Verdict.APPROVED else CallState.DENIED
        self._transition(record, target)
        record.pending = None
        self._resolve_future(decision.call_id, target)
        logger.info(f"Call {decision.call_id} {decision.verdict}")
        return True

    def cancel(self, call_id: str) -> bool:
        """Cancel a call that has not reached a terminal state.

        A pending approval is resolved as CANCELLED. An approved call that is
        still running is marked CANCELLED; stopping the execution itself is
        the caller's job.

        Returns:
            bool: True if the call was moved to CANCELLED
        """
        record = self._records.get(call_id)
        if record is None:
            logger.warning(f"Cancel for unknown call {call_id} ignored")
            return False
        if not self._transition(record, CallState.CANCELLED):
            return False
        record.pending = None
        self._resolve_future(call_id, CallState.CANCELLED)
        logger.info(f"Call {call_id} cancelled")
        return True

    def finish(self, call_id: str, state: CallState) -> bool:
        """Move a call to a terminal state (EXECUTED, FAILED, DENIED).

        Returns:
            bool: True if the transition was applied
        """
        return self._move(call_id, state)

    def archive(self, call_id: str) -> CallRecord | None:
        """Drop a terminal record from the table.

        Returns:
            CallRecord | None: The removed record, or None if the call is
            unknown or not terminal yet
        """
        record = self._records.get(call_id)
        if record is None or not record.state.is_terminal:
            return None
        self._futures.pop(call_id, None)
        return self._records.pop(call_id)

    def _move(self, call_id: str, target: CallState) -> bool:
        record = self._records.get(call_id)
        if record is None:
            logger.warning(f"Transition to {target} for unknown call {call_id} ignored")
            return False
        return self._transition(record, target)

    def _transition(self, record: CallRecord, target: CallState) -> bool:
        if target not in TRANSITIONS[record.state]:
            if self.strict:
                raise InvalidTransitionError(record.call_id, record.state.value, target.value)
            logger.warning(
                f"Illegal transition for call {record.call_id}: "
                f"{record.state} -> {target} ignored"
            )
            return False
        record.state = target
        record.history.append(target)
        record.updated_at = datetime.now()
        return True

    def _resolve_future(self, call_id: str, state: CallState) -> None:
        future = self._futures.pop(call_id, None)
        if future is not None and not future.done():
            future.set_result(state)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._records
