"""Tests for the tool execution gate."""

import asyncio

import pytest

from tollgate.approval import (
    ApprovalChannel,
    ApprovalDecision,
    CallState,
    DeferredApprovalChannel,
    StaticApprovalChannel,
    Verdict,
)
from tollgate.errors import DENIAL_MESSAGE
from tollgate.gate import Turn, create_gate
from tollgate.gate.executor import SHUTDOWN_MESSAGE
from tollgate.tools.base import RiskCategory, ToolCallRequest, ToolName, ToolStatus


def _call(call_id: str, tool: ToolName, **parameters) -> ToolCallRequest:
    return ToolCallRequest(call_id=call_id, tool_name=tool, parameters=parameters)


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


class FailingChannel(ApprovalChannel):
    """Channel whose presentation always raises."""

    async def present(self, request):
        raise RuntimeError("approver unreachable")


@pytest.fixture
def static_channel():
    return StaticApprovalChannel()


@pytest.fixture
def deferred_channel():
    return DeferredApprovalChannel()


@pytest.fixture
def gate(test_settings, scope, static_channel):
    return create_gate(test_settings, channel=static_channel, scope=scope)


@pytest.fixture
def deferred_gate(test_settings, scope, deferred_channel):
    return create_gate(test_settings, channel=deferred_channel, scope=scope)


class TestSafeCalls:
    """Calls that run without approval."""

    @pytest.mark.asyncio
    async def test_read_runs_without_approval(self, gate, static_channel, sample_file):
        turn = Turn()

        result = await gate.execute(_call("c1", ToolName.READ, path="app.py"), turn)

        assert result.status == ToolStatus.SUCCESS
        assert result.call_id == "c1"
        assert result.content == sample_file.read_text()
        assert static_channel.requests == []
        assert gate.state_machine.state("c1") == CallState.EXECUTED
        assert gate.state_machine.get("c1").history == [
            CallState.CREATED,
            CallState.APPROVED,
            CallState.EXECUTED,
        ]
        assert turn.results == [result]

    @pytest.mark.asyncio
    async def test_safe_shell_command(self, gate, static_channel):
        result = await gate.execute(_call("c1", ToolName.SHELL, command="echo hi"))

        assert result.success is True
        assert result.payload["stdout"] == "hi\n"
        assert static_channel.requests == []

    @pytest.mark.asyncio
    async def test_nonzero_exit_fails_turn(self, gate):
        turn = Turn()

        result = await gate.execute(_call("c1", ToolName.SHELL, command="exit 3"), turn)

        assert result.status == ToolStatus.ERROR
        assert result.error_kind == "execution"
        assert turn.failed is True
        assert gate.state_machine.state("c1") == CallState.FAILED


class TestRejections:
    """Calls rejected before anything runs."""

    @pytest.mark.asyncio
    async def test_forbidden_command_never_runs(self, gate, static_channel, workspace):
        turn = Turn()

        result = await gate.execute(
            _call("c1", ToolName.SHELL, command="echo $(touch pwned)"), turn
        )

        assert result.status == ToolStatus.DENIED
        assert result.error_kind == "risk_rejection"
        assert "pwned" in result.payload["segments"][0]
        assert not (workspace / "pwned").exists()
        assert static_channel.requests == []
        assert turn.failed is False
        assert gate.state_machine.state("c1") == CallState.DENIED

    @pytest.mark.asyncio
    async def test_path_outside_scope(self, gate, static_channel, tmp_path):
        target = tmp_path / "outside.txt"

        result = await gate.execute(
            _call("c1", ToolName.WRITE, path=str(target), content="x")
        )

        assert result.error_kind == "validation"
        assert result.payload["path"] == str(target.resolve())
        assert not target.exists()
        assert static_channel.requests == []
        assert gate.state_machine.state("c1") == CallState.FAILED

    @pytest.mark.asyncio
    async def test_invalid_parameters(self, gate):
        turn = Turn()

        result = await gate.execute(_call("c1", ToolName.READ), turn)

        assert result.error_kind == "validation"
        assert "Invalid parameters" in result.content
        assert turn.failed is True

    @pytest.mark.asyncio
    async def test_unregistered_tool(self, gate):
        gate.registry.unregister(ToolName.SHELL)

        result = await gate.execute(_call("c1", ToolName.SHELL, command="ls"))

        assert result.error_kind == "validation"
        assert "shell" not in result.payload["available_tools"]

    @pytest.mark.asyncio
    async def test_duplicate_call_id(self, gate, sample_file):
        await gate.execute(_call("c1", ToolName.READ, path="app.py"))

        result = await gate.execute(_call("c1", ToolName.READ, path="app.py"))

        assert result.error_kind == "validation"
        assert "Duplicate call id" in result.content


class TestApproval:
    """Calls that need a human decision."""

    @pytest.mark.asyncio
    async def test_approved_edit(self, gate, static_channel, sample_file):
        result = await gate.execute(
            _call("c1", ToolName.EDIT, path="app.py", old_string="'Hello, '", new_string="'Hi, '")
        )

        assert result.success is True
        assert "'Hi, '" in sample_file.read_text()
        request = static_channel.requests[0]
        assert request.tool_name == ToolName.EDIT
        assert request.risk_level == RiskCategory.REQUIRES_APPROVAL
        assert "+    message = 'Hi, ' + name\n" in request.preview

    @pytest.mark.asyncio
    async def test_approved_shell_command(self, gate, static_channel, workspace):
        (workspace / "build").mkdir()

        result = await gate.execute(_call("c1", ToolName.SHELL, command="rm -r build"))

        assert result.success is True
        assert not (workspace / "build").exists()
        assert static_channel.requests[0].preview == "rm -r build"

    @pytest.mark.asyncio
    async def test_denied_call(self, test_settings, scope, sample_file):
        """A denial is a soft outcome: nothing runs and the turn is not failed."""
        gate = create_gate(test_settings, channel=StaticApprovalChannel(Verdict.DENIED), scope=scope)
        before = sample_file.read_text()
        turn = Turn()

        result = await gate.execute(_call("c1", ToolName.WRITE, path="app.py", content="x"), turn)

        assert result.status == ToolStatus.DENIED
        assert result.content == DENIAL_MESSAGE
        assert result.error_kind == "approval_denied"
        assert sample_file.read_text() == before
        assert turn.failed is False
        assert gate.state_machine.state("c1") == CallState.DENIED

    @pytest.mark.asyncio
    async def test_failing_channel_denies(self, test_settings, scope, workspace):
        gate = create_gate(test_settings, channel=FailingChannel(), scope=scope)

        result = await gate.execute(_call("c1", ToolName.WRITE, path="new.txt", content="x"))

        assert result.status == ToolStatus.DENIED
        assert not (workspace / "new.txt").exists()

    @pytest.mark.asyncio
    async def test_deferred_decision(self, deferred_gate, deferred_channel, workspace):
        task = asyncio.create_task(
            deferred_gate.execute(_call("c1", ToolName.WRITE, path="new.txt", content="data"))
        )
        await asyncio.wait_for(deferred_channel.presented.wait(), 5)

        assert deferred_gate.state_machine.state("c1") == CallState.PENDING_APPROVAL
        assert [p.call_id for p in deferred_gate.state_machine.pending()] == ["c1"]
        assert not (workspace / "new.txt").exists()

        assert deferred_gate.decide(ApprovalDecision.approve("c1")) is True
        result = await task

        assert result.success is True
        assert (workspace / "new.txt").read_text() == "data"
        assert deferred_gate.decide(ApprovalDecision.deny("c1")) is False

    @pytest.mark.asyncio
    async def test_auto_approved_writes(self, gate, static_channel, workspace):
        gate.settings.auto_approve_writes = True

        result = await gate.execute(_call("c1", ToolName.WRITE, path="new.txt", content="x"))

        assert result.success is True
        assert static_channel.requests == []


class TestCancellation:
    """Cancelling pending and running calls."""

    @pytest.mark.asyncio
    async def test_cancel_pending(self, deferred_gate, deferred_channel, sample_file):
        before = sample_file.read_text()
        turn = Turn()
        task = asyncio.create_task(
            deferred_gate.execute(_call("c1", ToolName.WRITE, path="app.py", content="x"), turn)
        )
        await asyncio.wait_for(deferred_channel.presented.wait(), 5)

        assert deferred_gate.cancel("c1") is True
        result = await task

        assert result.status == ToolStatus.CANCELLED
        assert result.error_kind == "cancellation"
        assert sample_file.read_text() == before
        assert turn.failed is False
        assert deferred_gate.state_machine.state("c1") == CallState.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_running_shell(self, gate, workspace):
        marker = workspace / "marker"
        task = asyncio.create_task(
            gate.execute(_call("c1", ToolName.SHELL, command=f"sleep 1 && touch {marker}"))
        )
        await _wait_for(lambda: gate.state_machine.state("c1") == CallState.APPROVED)
        await asyncio.sleep(0.2)

        assert gate.cancel("c1") is True
        result = await task

        assert result.status == ToolStatus.CANCELLED
        await asyncio.sleep(1.2)
        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_cancel_finished_call(self, gate, sample_file):
        await gate.execute(_call("c1", ToolName.READ, path="app.py"))

        assert gate.cancel("c1") is False
        assert gate.cancel("unknown") is False

    @pytest.mark.asyncio
    async def test_cancel_turn(self, deferred_gate, deferred_channel, workspace):
        turn = Turn()
        first = asyncio.create_task(
            deferred_gate.execute(_call("c1", ToolName.WRITE, path="a.txt", content="a"), turn)
        )
        second = asyncio.create_task(
            deferred_gate.execute(_call("c2", ToolName.WRITE, path="b.txt", content="b"), turn)
        )
        await asyncio.wait_for(deferred_channel.presented.wait(), 5)

        assert deferred_gate.cancel_turn(turn) == 2
        results = await asyncio.gather(first, second)

        assert [r.status for r in results] == [ToolStatus.CANCELLED, ToolStatus.CANCELLED]
        assert list(workspace.iterdir()) == []

    @pytest.mark.asyncio
    async def test_caller_cancellation(self, deferred_gate, deferred_channel):
        """Cancelling the awaiting task cancels the call."""
        turn = Turn()
        task = asyncio.create_task(
            deferred_gate.execute(_call("c1", ToolName.WRITE, path="a.txt", content="a"), turn)
        )
        await asyncio.wait_for(deferred_channel.presented.wait(), 5)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert deferred_gate.state_machine.state("c1") == CallState.CANCELLED
        assert turn.results[0].status == ToolStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_shutdown(self, deferred_gate, deferred_channel, sample_file):
        task = asyncio.create_task(
            deferred_gate.execute(_call("c1", ToolName.WRITE, path="app.py", content="x"))
        )
        await asyncio.wait_for(deferred_channel.presented.wait(), 5)

        await deferred_gate.shutdown()
        result = await task
        after = await deferred_gate.execute(_call("c2", ToolName.READ, path="app.py"))

        assert result.status == ToolStatus.CANCELLED
        assert after.status == ToolStatus.CANCELLED
        assert after.content == SHUTDOWN_MESSAGE


class TestTurnCoordination:
    """Approval and path serialization within a turn."""

    @pytest.mark.asyncio
    async def test_one_outstanding_approval_per_turn(self, deferred_gate, deferred_channel, workspace):
        turn = Turn()
        first = asyncio.create_task(
            deferred_gate.execute(_call("c1", ToolName.WRITE, path="a.txt", content="a"), turn)
        )
        second = asyncio.create_task(
            deferred_gate.execute(_call("c2", ToolName.WRITE, path="b.txt", content="b"), turn)
        )
        await asyncio.wait_for(deferred_channel.presented.wait(), 5)
        await asyncio.sleep(0.05)

        assert len(deferred_channel.requests) == 1
        first_id = deferred_channel.requests[0].call_id
        deferred_gate.decide(ApprovalDecision.approve(first_id))

        await _wait_for(lambda: len(deferred_channel.requests) == 2)
        second_id = deferred_channel.requests[1].call_id
        assert {first_id, second_id} == {"c1", "c2"}
        deferred_gate.decide(ApprovalDecision.approve(second_id))

        results = await asyncio.gather(first, second)
        assert all(r.success for r in results)
        assert (workspace / "a.txt").read_text() == "a"
        assert (workspace / "b.txt").read_text() == "b"

    @pytest.mark.asyncio
    async def test_separate_turns_do_not_block(self, deferred_gate, deferred_channel):
        first = asyncio.create_task(
            deferred_gate.execute(_call("c1", ToolName.WRITE, path="a.txt", content="a"), Turn())
        )
        second = asyncio.create_task(
            deferred_gate.execute(_call("c2", ToolName.WRITE, path="b.txt", content="b"), Turn())
        )

        await _wait_for(lambda: len(deferred_channel.requests) == 2)

        deferred_gate.decide(ApprovalDecision.approve("c1"))
        deferred_gate.decide(ApprovalDecision.approve("c2"))
        results = await asyncio.gather(first, second)
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    async def test_same_path_edits_serialize(self, gate, sample_file):
        """The second edit is prepared against the first edit's output."""
        turn = Turn()

        results = await asyncio.gather(
            gate.execute(
                _call("c1", ToolName.EDIT, path="app.py", old_string="'Hello, '", new_string="'Hi, '"),
                turn,
            ),
            gate.execute(
                _call(
                    "c2",
                    ToolName.EDIT,
                    path="app.py",
                    old_string="return message",
                    new_string="return message + '!'",
                ),
                turn,
            ),
        )

        assert all(r.success for r in results)
        assert sample_file.read_text() == (
            "def greet(name):\n"
            "    message = 'Hi, ' + name\n"
            "    return message + '!'\n"
        )

    @pytest.mark.asyncio
    async def test_read_waits_for_pending_write(self, deferred_gate, deferred_channel, workspace):
        """A read issued after a write on the same path sees the written content."""
        (workspace / "f.txt").write_text("old\n")
        turn = Turn()

        write = asyncio.create_task(
            deferred_gate.execute(_call("c1", ToolName.WRITE, path="f.txt", content="new\n"), turn)
        )
        await asyncio.wait_for(deferred_channel.presented.wait(), 5)

        read = asyncio.create_task(deferred_gate.execute(_call("c2", ToolName.READ, path="f.txt"), turn))
        await asyncio.sleep(0.05)
        assert not read.done()

        deferred_gate.decide(ApprovalDecision.approve("c1"))
        write_result, read_result = await asyncio.gather(write, read)

        assert write_result.success is True
        assert read_result.success is True
        assert read_result.content == "new\n"

    @pytest.mark.asyncio
    async def test_reads_of_one_path_run_together(self, gate, sample_file):
        turn = Turn()
        lock = turn.path_lock(sample_file.resolve())

        async with lock.shared():
            result = await gate.execute(_call("c1", ToolName.READ, path="app.py"), turn)

        assert result.success is True
        assert result.content == sample_file.read_text()


class TestToolSchemas:
    """Test the model-facing schemas."""

    def test_all_tools_described(self, gate):
        schemas = gate.tool_schemas()

        assert {s["function"]["name"] for s in schemas} == {"shell", "edit", "write", "read"}
        assert all(s["type"] == "function" for s in schemas)
