"""Edit file tool for filesystem operations."""

from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from tollgate.edit.diff import diff_stats, unified_diff
from tollgate.edit.resolver import EditOperation, EditOutcome, EditResolver, get_resolver
from tollgate.errors import NoMatchError, ToolValidationError
from tollgate.logging import Timer, get_logger
from tollgate.tools.base import (
    BaseTool,
    PreparedCall,
    RiskClassification,
    ToolContext,
    ToolName,
    ToolResult,
)
from tollgate.tools.filesystem.fileio import atomic_write, read_text, uses_crlf

logger = get_logger(__name__)


def _convert_endings(text: str, ending: str) -> str:
    return text.replace("\r\n", "\n").replace("\n", ending)


def _with_endings(operation: EditOperation, ending: str) -> EditOperation:
    return operation.model_copy(
        update={
            "old_string": _convert_endings(operation.old_string, ending),
            "new_string": _convert_endings(operation.new_string, ending),
        }
    )


class EditFileParams(BaseModel):
    """Parameters for editing a file.

    Either a single replacement (old_string/new_string) or a list of
    ``edits`` applied in order. All replacements of one call are written
    together or not at all.
    """

    path: str = Field(description="File path to edit (relative to the working directory or absolute)")
    old_string: str | None = Field(default=None, description="Exact text to replace")
    new_string: str | None = Field(default=None, description="Replacement text")
    replace_all: bool = Field(
        default=False,
        description="Replace every occurrence of old_string instead of requiring a unique match",
    )
    edits: list[EditOperation] | None = Field(
        default=None,
        description="Several replacements applied in order, as one atomic change",
    )

    @model_validator(mode="after")
    def check_operations(self) -> "EditFileParams":
        single = self.old_string is not None or self.new_string is not None
        if single and (self.old_string is None or self.new_string is None):
            raise ValueError("old_string and new_string must be given together")
        if not single and not self.edits:
            raise ValueError("provide old_string/new_string or a non-empty edits list")
        return self

    def operations(self) -> list[EditOperation]:
        """All replacements of this call in application order."""
        operations = []
        if self.old_string is not None and self.new_string is not None:
            operations.append(
                EditOperation(
                    old_string=self.old_string,
                    new_string=self.new_string,
                    replace_all=self.replace_all,
                )
            )
        operations.extend(self.edits or [])
        return operations


class EditFileTool(BaseTool[EditFileParams]):
    """Replace text in an existing file.

    The file is read once and resolved once during preparation; the
    approval preview is a diff of that resolved content and the same
    content is what gets written.
    """

    name = ToolName.EDIT
    description = (
        "Replace old_string with new_string in a file. old_string must identify a "
        "unique location unless replace_all is set. Use edits for several "
        "replacements in one atomic change."
    )
    parameters_schema = EditFileParams
    mutating = True

    def __init__(self, resolver: EditResolver | None = None):
        super().__init__()
        self.resolver = resolver or get_resolver()

    def target_path(self, params: EditFileParams, context: ToolContext) -> Path:
        return context.scope.resolve(params.path)

    def assess(self, params: EditFileParams, context: ToolContext) -> RiskClassification:
        if context.settings.auto_approve_edits:
            return RiskClassification.safe("Edits are auto-approved")
        return RiskClassification.requires_approval("Modifies an existing file")

    async def prepare(self, call_id: str, params: EditFileParams, context: ToolContext) -> PreparedCall:
        """Read the file, run the matching cascade, and diff the result."""
        path = self.target_path(params, context)
        original = read_text(path)

        # Uniform CRLF files are matched as LF and converted back; files with
        # mixed endings are matched as they are
        crlf = uses_crlf(original)
        content = original.replace("\r\n", "\n") if crlf else original

        with Timer(f"resolve_edit({path.name})", logger):
            if crlf:
                operations = [_with_endings(op, "\n") for op in params.operations()]
                outcome = self.resolver.resolve(content, operations)
            else:
                outcome = self._resolve_raw(content, params.operations())

        updated = outcome.content.replace("\n", "\r\n") if crlf else outcome.content
        display = context.scope.display_path(path)
        diff = unified_diff(content, outcome.content, display)

        return PreparedCall(
            call_id=call_id,
            params=params,
            preview=diff or f"No changes to {display}",
            target=path,
            payload={
                "content": updated,
                "diff": diff,
                "replacements": outcome.replacements,
                "strategies": [m.strategy_name for m in outcome.matches],
            },
        )

    def _resolve_raw(self, content: str, operations: list[EditOperation]) -> EditOutcome:
        """Apply operations to content that keeps its own line endings.

        An operation written with LF breaks that only matches the file's
        CRLF lines is retried with CRLF breaks. The replacement takes CRLF
        breaks when the span it replaces does.
        """
        if not operations:
            raise ToolValidationError("No edit operations were provided")

        matches = []
        for index, operation in enumerate(operations):
            if "\r\n" not in content:
                operation = _with_endings(operation, "\n")
            elif "\n" in operation.old_string:
                crlf_operation = _with_endings(operation, "\r\n")
                if crlf_operation.old_string in content:
                    operation = crlf_operation

            try:
                match, _ = self.resolver.find(content, operation, index)
            except NoMatchError:
                crlf_operation = _with_endings(operation, "\r\n")
                if "\r\n" not in content or crlf_operation == operation:
                    raise
                operation = crlf_operation
                match, _ = self.resolver.find(content, operation, index)

            start, end = match.spans[0]
            if "\r\n" in content[start:end]:
                operation = operation.model_copy(
                    update={"new_string": _convert_endings(operation.new_string, "\r\n")}
                )

            content, match = self.resolver.apply(content, operation, index)
            matches.append(match)
        return EditOutcome(content=content, matches=matches)

    async def execute(self, prepared: PreparedCall, context: ToolContext) -> ToolResult:
        """Write the content resolved during preparation."""
        path = prepared.target or self.target_path(prepared.params, context)  # type: ignore[arg-type]
        diff = prepared.payload["diff"]

        atomic_write(path, prepared.payload["content"])

        added, removed = diff_stats(diff)
        replacements = prepared.payload["replacements"]
        noun = "replacement" if replacements == 1 else "replacements"
        return ToolResult.success_result(
            prepared.call_id,
            f"Edited {path}: {replacements} {noun} (+{added} -{removed})",
            payload={
                "path": str(path),
                "replacements": replacements,
                "strategies": prepared.payload["strategies"],
                "additions": added,
                "deletions": removed,
                "diff": diff,
            },
        )

    def get_confirmation_message(self, params: EditFileParams) -> str:
        """Get confirmation message for user approval."""
        count = len(params.operations())
        noun = "replacement" if count == 1 else "replacements"
        return f"Edit file: {params.path} ({count} {noun})"
