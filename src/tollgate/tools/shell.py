"""Shell command tool."""

import asyncio
import logging
import os
import signal

from pydantic import BaseModel, Field, field_validator

from tollgate.approval.classifier import CommandClassifier, CommandContext
from tollgate.errors import ExecutionError
from tollgate.tools.base import (
    BaseTool,
    PreparedCall,
    RiskClassification,
    ToolContext,
    ToolName,
    ToolResult,
)

logger = logging.getLogger(__name__)


class ShellParams(BaseModel):
    """Parameters for running a shell command."""

    command: str = Field(description="Shell command to run in the working directory")

    @field_validator("command")
    @classmethod
    def command_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("command must not be empty")
        return v


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... [truncated {len(text) - limit} characters]"


class ShellTool(BaseTool[ShellParams]):
    """Run a shell command and capture its output.

    Risk comes from the CommandClassifier: commands with substitution are
    refused, denylisted commands need approval, the rest run directly.
    """

    name = ToolName.SHELL
    description = (
        "Run a shell command in the working directory and return its exit code, "
        "stdout and stderr. Command substitution ($(...) and backticks) is not allowed."
    )
    parameters_schema = ShellParams
    mutating = True

    def __init__(self, classifier: CommandClassifier | None = None):
        super().__init__()
        self.classifier = classifier or CommandClassifier()

    def assess(self, params: ShellParams, context: ToolContext) -> RiskClassification:
        """Classify the command with the configured deny patterns."""
        command_context = CommandContext(
            cwd=context.scope.working_dir,
            extra_deny_patterns=context.settings.deny_patterns,
        )
        return self.classifier.classify(params.command, command_context)

    async def execute(self, prepared: PreparedCall, context: ToolContext) -> ToolResult:
        """Spawn the command and wait for it, killing it on timeout or cancellation."""
        params: ShellParams = prepared.params  # type: ignore[assignment]
        settings = context.settings

        try:
            process = await asyncio.create_subprocess_shell(
                params.command,
                cwd=str(context.scope.working_dir),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise ExecutionError(f"Failed to start command: {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(),
                timeout=settings.shell_timeout,
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            raise ExecutionError(
                f"Command timed out after {settings.shell_timeout}s: {params.command}",
                payload={"timeout_s": settings.shell_timeout},
            )
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        limit = settings.shell_max_output_chars
        stdout = _truncate(stdout_bytes.decode("utf-8", errors="replace"), limit)
        stderr = _truncate(stderr_bytes.decode("utf-8", errors="replace"), limit)
        exit_code = process.returncode
        payload = {"exit_code": exit_code, "stdout": stdout, "stderr": stderr}

        content = self._format_output(exit_code, stdout, stderr)
        if exit_code != 0:
            return ToolResult.error_result(prepared.call_id, content, payload=payload)
        return ToolResult.success_result(prepared.call_id, content, payload=payload)

    def get_confirmation_message(self, params: ShellParams) -> str:
        """The preview for a shell call is the command itself."""
        return params.command

    @staticmethod
    def _format_output(exit_code: int | None, stdout: str, stderr: str) -> str:
        parts = []
        if stdout:
            parts.append(stdout.rstrip("\n"))
        if stderr:
            parts.append("[stderr]\n" + stderr.rstrip("\n"))
        if exit_code != 0:
            parts.append(f"[exit code {exit_code}]")
        return "\n".join(parts) if parts else "(no output)"

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process) -> None:
        """Best-effort kill of the command and everything it spawned.

        The command leads its own session, so its process group id is its pid.
        """
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=5)
        except asyncio.TimeoutError:
            logger.warning(f"Process {process.pid} did not exit after kill")
