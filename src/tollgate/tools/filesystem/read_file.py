"""Read file tool for filesystem operations."""

from pathlib import Path

from pydantic import BaseModel, Field

from tollgate.tools.base import BaseTool, PreparedCall, ToolContext, ToolName, ToolResult
from tollgate.tools.filesystem.fileio import read_text


class ReadFileParams(BaseModel):
    """Parameters for reading a file."""

    path: str = Field(description="File path to read (relative to the working directory or absolute)")
    offset: int = Field(
        default=0,
        ge=0,
        description="Zero-based line to start reading from",
    )
    limit: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of lines to return",
    )
    encoding: str = Field(
        default="utf-8",
        description="File encoding (default: utf-8)",
    )


class ReadFileTool(BaseTool[ReadFileParams]):
    """Read text file contents.

    Read-only, so it never requires approval and may run concurrently with
    other reads.
    """

    name = ToolName.READ
    description = "Read the contents of a text file, optionally a range of lines"
    parameters_schema = ReadFileParams
    mutating = False

    def target_path(self, params: ReadFileParams, context: ToolContext) -> Path:
        return context.scope.resolve(params.path)

    async def execute(self, prepared: PreparedCall, context: ToolContext) -> ToolResult:
        """Read file contents."""
        params: ReadFileParams = prepared.params  # type: ignore[assignment]
        path = prepared.target or self.target_path(params, context)

        content = read_text(path, params.encoding)
        lines = content.splitlines(keepends=True)
        limit = params.limit or context.settings.read_max_lines
        selected = lines[params.offset : params.offset + limit]
        truncated = params.offset + limit < len(lines)

        text = "".join(selected)
        if truncated:
            text += (
                f"\n... [showing lines {params.offset + 1}-{params.offset + len(selected)} "
                f"of {len(lines)}; use offset to read more]"
            )

        return ToolResult.success_result(
            prepared.call_id,
            text,
            payload={
                "path": str(path),
                "size_bytes": len(content.encode(params.encoding)),
                "lines": len(lines),
                "offset": params.offset,
                "returned_lines": len(selected),
                "truncated": truncated,
            },
        )

    def get_confirmation_message(self, params: ReadFileParams) -> str:
        """Get confirmation message (not needed for a read)."""
        return f"Read file: {params.path}"
