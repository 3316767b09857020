"""Tests for the shell tool."""

import asyncio

import pytest

from tollgate.tools.base import RiskCategory, ToolStatus
from tollgate.tools.shell import ShellParams, ShellTool


class TestShellParams:
    """Test ShellParams."""

    def test_blank_command_rejected(self):
        with pytest.raises(ValueError):
            ShellParams(command="   ")


class TestShellAssessment:
    """Test risk assessment through the classifier."""

    def test_safe(self, context):
        risk = ShellTool().assess(ShellParams(command="ls -la"), context)

        assert risk.category == RiskCategory.SAFE

    def test_forbidden(self, context):
        risk = ShellTool().assess(ShellParams(command="echo $(whoami)"), context)

        assert risk.category == RiskCategory.FORBIDDEN

    def test_settings_deny_patterns(self, context):
        """Deny patterns from the settings apply to shell calls."""
        context.settings.deny_patterns = [r"\bnpm\s+publish\b"]

        risk = ShellTool().assess(ShellParams(command="npm publish"), context)

        assert risk.category == RiskCategory.REQUIRES_APPROVAL

    @pytest.mark.asyncio
    async def test_preview_is_command(self, context):
        prepared = await ShellTool().prepare("c1", ShellParams(command="make test"), context)

        assert prepared.preview == "make test"


class TestShellExecution:
    """Test running commands."""

    @pytest.mark.asyncio
    async def test_captures_stdout(self, context):
        result = await ShellTool().run({"command": "echo hello"}, context)

        assert result.status == ToolStatus.SUCCESS
        assert result.payload["exit_code"] == 0
        assert result.payload["stdout"] == "hello\n"
        assert result.content == "hello"

    @pytest.mark.asyncio
    async def test_runs_in_working_dir(self, context, workspace):
        result = await ShellTool().run({"command": "pwd"}, context)

        assert result.payload["stdout"].strip() == str(workspace.resolve())

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_error(self, context):
        result = await ShellTool().run({"command": "echo oops >&2; exit 3"}, context)

        assert result.status == ToolStatus.ERROR
        assert result.error_kind == "execution"
        assert result.payload["exit_code"] == 3
        assert "oops" in result.payload["stderr"]
        assert "[exit code 3]" in result.content

    @pytest.mark.asyncio
    async def test_output_truncated(self, context):
        context.settings.shell_max_output_chars = 100

        result = await ShellTool().run({"command": "yes x | head -n 500"}, context)

        assert "truncated" in result.payload["stdout"]

    @pytest.mark.asyncio
    async def test_timeout(self, context):
        context.settings.shell_timeout = 0.2

        result = await ShellTool().run({"command": "sleep 30"}, context)

        assert result.error_kind == "execution"
        assert "timed out" in result.content

    @pytest.mark.asyncio
    async def test_cancellation_kills_process(self, context, workspace):
        """Cancelling execution stops the command before it finishes."""
        marker = workspace / "marker"
        tool = ShellTool()
        prepared = await tool.prepare(
            "c1", ShellParams(command=f"sleep 2 && touch {marker}"), context
        )

        task = asyncio.create_task(tool.execute(prepared, context))
        await asyncio.sleep(0.3)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.sleep(2.5)
        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_cancellation_kills_spawned_processes(self, context, workspace):
        """Processes started by the command die with it."""
        marker = workspace / "marker"
        tool = ShellTool()
        prepared = await tool.prepare(
            "c1", ShellParams(command=f"(sleep 1; touch {marker}) & wait"), context
        )

        task = asyncio.create_task(tool.execute(prepared, context))
        await asyncio.sleep(0.3)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.sleep(1.5)
        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_timeout_kills_pipeline(self, context, workspace):
        marker = workspace / "marker"
        context.settings.shell_timeout = 0.3

        result = await ShellTool().run({"command": f"(sleep 1; touch {marker}) | cat"}, context)
        await asyncio.sleep(1.2)

        assert "timed out" in result.content
        assert not marker.exists()
