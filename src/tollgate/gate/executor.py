"""Tool execution gate.

This module provides the ToolExecutionGate, the single entry point through
which every model-emitted tool call passes. It validates the call, checks
the filesystem scope, computes the preview, classifies risk, waits for a
human decision when one is needed, executes, and converts every outcome
into exactly one ToolResult.
"""

import asyncio
from contextlib import nullcontext
from typing import Any

from pydantic import ValidationError

from tollgate.approval.handler import ApprovalChannel, ConsoleApprovalHandler
from tollgate.approval.state import (
    ApprovalDecision,
    ApprovalRequest,
    ApprovalStateMachine,
    CallState,
    PendingApproval,
    Verdict,
)
from tollgate.config import Settings, get_settings
from tollgate.errors import (
    ApprovalDenied,
    CancellationError,
    RiskRejection,
    ToolError,
    ToolValidationError,
)
from tollgate.gate.turn import Turn
from tollgate.logging import Timer, get_logger
from tollgate.tools.base import (
    BaseTool,
    RiskCategory,
    ToolCallRequest,
    ToolContext,
    ToolResult,
    ToolStatus,
)
from tollgate.tools.registry import ToolRegistry, create_default_registry
from tollgate.tools.scope import PathScope

logger = get_logger("tollgate.gate.executor")

SHUTDOWN_MESSAGE = "The tool gate is shutting down."

TERMINAL_BY_STATUS = {
    ToolStatus.SUCCESS: CallState.EXECUTED,
    ToolStatus.ERROR: CallState.FAILED,
    ToolStatus.DENIED: CallState.DENIED,
}


class ToolExecutionGate:
    """Runs tool calls behind scope checks, risk classification and approval.

    The lifecycle of one call:
    1. Register the call (duplicate ids are rejected)
    2. Tool lookup and parameter validation
    3. Filesystem scope check
    4. Per-path ordering within the turn (shared reads, exclusive writes)
    5. Preview and risk assessment
    6. Approval, if required (one outstanding approval per turn)
    7. Execution in a tracked, cancellable task
    8. Conversion of the outcome into a ToolResult
    """

    def __init__(
        self,
        registry: ToolRegistry,
        channel: ApprovalChannel,
        settings: Settings,
        scope: PathScope,
        state_machine: ApprovalStateMachine | None = None,
    ):
        """Initialize the gate.

        Args:
            registry: Closed set of tools the model may call
            channel: Where approval requests are presented
            settings: Application settings
            scope: Directories file tools may touch
            state_machine: Call lifecycle table (creates one if None)
        """
        self.registry = registry
        self.channel = channel
        self.settings = settings
        self.scope = scope
        self.state_machine = state_machine or ApprovalStateMachine()
        self.context = ToolContext(settings=settings, scope=scope)
        self._calls: dict[str, asyncio.Task] = {}
        self._closed = False

    async def execute(self, request: ToolCallRequest, turn: Turn | None = None) -> ToolResult:
        """Run one tool call to its terminal result.

        Never raises for tool failures; every outcome is reported as a
        ToolResult. Cancelling the awaiting task cancels the call as well.

        Args:
            request: The call emitted by the model
            turn: Turn the call belongs to (a fresh one if None)

        Returns:
            ToolResult: The call's single terminal result
        """
        turn = turn or Turn()
        call_id = request.call_id
        log = logger.bind(call_id=call_id, tool=request.tool_name.value, turn=turn.id)

        if self._closed:
            return turn.record(CancellationError(SHUTDOWN_MESSAGE).to_result(call_id))

        try:
            self.state_machine.create(call_id, request.tool_name)
        except ValueError as e:
            log.warning("Rejected duplicate call id")
            return turn.record(ToolValidationError(str(e)).to_result(call_id))

        turn.track(call_id)
        task = asyncio.create_task(self._run(request, turn, log), name=f"tool-call-{call_id}")
        self._calls[call_id] = task

        try:
            async with Timer(f"ToolExecutionGate.execute({call_id})", log):
                await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            self._mark_cancelled(call_id)
            turn.record(CancellationError().to_result(call_id))
            raise
        finally:
            self._calls.pop(call_id, None)

        result = self._outcome(call_id, task, log)
        self._settle(call_id, result)
        log.info(
            "Tool call finished",
            status=result.status.value,
            error_kind=result.error_kind,
        )
        return turn.record(result)

    async def _run(self, request: ToolCallRequest, turn: Turn, log: Any) -> ToolResult:
        call_id = request.call_id

        tool = self.registry.get(request.tool_name)
        if tool is None:
            raise ToolValidationError(
                f"Unknown tool: {request.tool_name}",
                payload={"available_tools": self.registry.get_tool_names()},
            )

        try:
            params = tool.validate_params(request.parameters)
        except ValidationError as e:
            raise ToolValidationError(f"Invalid parameters for tool '{tool.name}': {e}") from e

        path = tool.target_path(params, self.context)
        if path is not None and not self.scope.is_path_allowed(path):
            log.info("Path outside permitted directories", path=str(path))
            raise ToolValidationError(
                f"Path is outside the permitted directories: {path}",
                payload={
                    "path": str(path),
                    "permitted": [str(d) for d in self.scope.directories],
                },
            )

        if path is None:
            lock = nullcontext()
        elif tool.mutating:
            lock = turn.path_lock(path).exclusive()
        else:
            lock = turn.path_lock(path).shared()
        async with lock:
            self._ensure_live(call_id)
            prepared = await tool.prepare(call_id, params, self.context)
            risk = tool.assess(params, self.context)
            log.debug("Risk assessed", risk=risk.category.value, reason=risk.reason)

            if risk.category == RiskCategory.FORBIDDEN:
                raise RiskRejection(
                    f"Command rejected: {risk.reason}",
                    payload={"reason": risk.reason, "segments": risk.segments},
                )

            if risk.category.requires_approval:
                await self._await_approval(
                    call_id, tool, prepared.preview, risk.category, risk.reason, turn, log
                )
            elif not self.state_machine.auto_approve(call_id):
                raise CancellationError()

            log.info("Executing tool call")
            return await tool.execute(prepared, self.context)

    async def _await_approval(
        self,
        call_id: str,
        tool: BaseTool,
        preview: str,
        risk: RiskCategory,
        reason: str,
        turn: Turn,
        log: Any,
    ) -> None:
        """Hold the turn's approval lock until the call is decided.

        Raises:
            ApprovalDenied: If the human denied the call
            CancellationError: If the call was cancelled while pending
        """
        async with turn.approval_lock:
            self._ensure_live(call_id)
            pending = PendingApproval(
                call_id=call_id,
                tool_name=tool.name,
                preview=preview,
                risk=risk,
                reason=reason,
            )
            handle = self.state_machine.request_approval(pending)
            log.info("Awaiting approval", risk=risk.value)

            presenter = asyncio.create_task(
                self._present(ApprovalRequest.from_pending(pending), log),
                name=f"approval-{call_id}",
            )
            try:
                decided = await handle.wait()
            finally:
                if not presenter.done():
                    presenter.cancel()

        if decided == CallState.DENIED:
            raise ApprovalDenied()
        if decided != CallState.APPROVED:
            raise CancellationError()

    async def _present(self, request: ApprovalRequest, log: Any) -> None:
        try:
            verdict = await self.channel.present(request)
        except Exception:
            log.exception("Approval channel failed; denying call")
            verdict = Verdict.DENIED
        if verdict is not None:
            self.state_machine.decide(ApprovalDecision(call_id=request.call_id, verdict=verdict))

    def _ensure_live(self, call_id: str) -> None:
        if self.state_machine.state(call_id) == CallState.CANCELLED:
            raise CancellationError()

    def _outcome(self, call_id: str, task: asyncio.Task, log: Any) -> ToolResult:
        if task.cancelled():
            return CancellationError().to_result(call_id)

        exc = task.exception()
        if exc is None:
            return task.result()
        if isinstance(exc, ToolError):
            log.info("Tool call ended with error", error_kind=exc.kind, message=exc.message)
            return exc.to_result(call_id)

        log.error("Unexpected error executing tool call", exc_info=exc)
        return ToolResult.error_result(
            call_id,
            f"Unexpected error executing tool call: {exc}",
            error_kind="execution",
        )

    def _settle(self, call_id: str, result: ToolResult) -> None:
        state = self.state_machine.state(call_id)
        if state is None or state.is_terminal:
            return
        if result.status == ToolStatus.CANCELLED:
            self.state_machine.cancel(call_id)
        else:
            self.state_machine.finish(call_id, TERMINAL_BY_STATUS[result.status])

    def _mark_cancelled(self, call_id: str) -> None:
        state = self.state_machine.state(call_id)
        if state is not None and not state.is_terminal:
            self.state_machine.cancel(call_id)

    def decide(self, decision: ApprovalDecision) -> bool:
        """Deliver a decision for a pending call.

        Returns:
            bool: True if it was the first decision for a pending call
        """
        return self.state_machine.decide(decision)

    def cancel(self, call_id: str) -> bool:
        """Cancel a call that is pending approval or still running.

        A pending approval resolves as cancelled; a running execution is
        cancelled (the shell tool kills its process).

        Returns:
            bool: True if the call was live and is now cancelled
        """
        state = self.state_machine.state(call_id)
        if state is None or state.is_terminal:
            logger.debug("Cancel ignored", call_id=call_id, state=str(state))
            return False

        self.state_machine.cancel(call_id)
        task = self._calls.get(call_id)
        if task is not None and not task.done():
            task.cancel()
        logger.info("Tool call cancelled", call_id=call_id)
        return True

    def cancel_turn(self, turn: Turn) -> int:
        """Cancel every live call of a turn.

        Returns:
            int: Number of calls cancelled
        """
        return sum(1 for call_id in list(turn.call_ids) if self.cancel(call_id))

    async def shutdown(self) -> None:
        """Cancel all live calls and wait for them to settle."""
        self._closed = True
        tasks = list(self._calls.values())
        for call_id in list(self._calls):
            self.cancel(call_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Tool gate shut down", cancelled=len(tasks))

    def tool_schemas(self) -> list[dict[str, Any]]:
        """Model-facing JSON schemas of every registered tool."""
        return [definition.model_dump() for definition in self.registry.get_tool_schemas()]


def create_gate(
    settings: Settings | None = None,
    channel: ApprovalChannel | None = None,
    scope: PathScope | None = None,
) -> ToolExecutionGate:
    """Build a gate with the default tools.

    Args:
        settings: Application settings (global settings if None)
        channel: Approval channel (console prompt if None)
        scope: Filesystem scope (from settings if None)

    Returns:
        ToolExecutionGate: Ready-to-use gate
    """
    settings = settings or get_settings()
    if scope is None:
        scope = PathScope(settings.working_dir, settings.additional_directories)
    if channel is None:
        from tollgate.ui.console import get_console

        channel = ConsoleApprovalHandler(get_console())

    return ToolExecutionGate(
        registry=create_default_registry(),
        channel=channel,
        settings=settings,
        scope=scope,
    )
