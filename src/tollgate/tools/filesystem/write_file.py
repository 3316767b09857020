"""Write file tool for filesystem operations."""

from pathlib import Path

from pydantic import BaseModel, Field

from tollgate.edit.diff import diff_stats, unified_diff
from tollgate.errors import ToolValidationError
from tollgate.tools.base import (
    BaseTool,
    PreparedCall,
    RiskClassification,
    ToolContext,
    ToolName,
    ToolResult,
)
from tollgate.tools.filesystem.fileio import atomic_write, read_text


class WriteFileParams(BaseModel):
    """Parameters for writing a file."""

    path: str = Field(description="File path to write (relative to the working directory or absolute)")
    content: str = Field(description="Complete new content of the file")


class WriteFileTool(BaseTool[WriteFileParams]):
    """Create a file or replace its content.

    Requires approval unless writes are auto-approved in the settings. The
    preview is a diff against the current content.
    """

    name = ToolName.WRITE
    description = "Create a new file or overwrite an existing file with the given content"
    parameters_schema = WriteFileParams
    mutating = True

    def target_path(self, params: WriteFileParams, context: ToolContext) -> Path:
        return context.scope.resolve(params.path)

    def assess(self, params: WriteFileParams, context: ToolContext) -> RiskClassification:
        if context.settings.auto_approve_writes:
            return RiskClassification.safe("Writes are auto-approved")
        return RiskClassification.requires_approval("Writes a file")

    async def prepare(self, call_id: str, params: WriteFileParams, context: ToolContext) -> PreparedCall:
        """Read the current content once and diff it against the new content."""
        path = self.target_path(params, context)
        if path.is_dir():
            raise ToolValidationError(f"Path is a directory: {path}")

        existing = read_text(path) if path.exists() else None
        display = context.scope.display_path(path)
        diff = unified_diff(existing or "", params.content, display)

        if existing is None:
            preview = f"Create {display} ({len(params.content.splitlines())} lines)\n{diff}"
        elif not diff:
            preview = f"No changes to {display}"
        else:
            preview = diff

        return PreparedCall(
            call_id=call_id,
            params=params,
            preview=preview,
            target=path,
            payload={"created": existing is None, "diff": diff},
        )

    async def execute(self, prepared: PreparedCall, context: ToolContext) -> ToolResult:
        """Write the content in one atomic step."""
        params: WriteFileParams = prepared.params  # type: ignore[assignment]
        path = prepared.target or self.target_path(params, context)

        atomic_write(path, params.content)

        created = prepared.payload.get("created", False)
        added, removed = diff_stats(prepared.payload.get("diff", ""))
        action = "Created" if created else "Wrote"
        return ToolResult.success_result(
            prepared.call_id,
            f"{action} {path} (+{added} -{removed})",
            payload={
                "path": str(path),
                "created": created,
                "bytes": len(params.content.encode("utf-8")),
                "additions": added,
                "deletions": removed,
            },
        )

    def get_confirmation_message(self, params: WriteFileParams) -> str:
        """Get confirmation message for user approval."""
        return f"Write file: {params.path} ({len(params.content)} characters)"
