"""Base infrastructure for Tollgate tools.

This module provides the foundational classes for the closed set of tools
the model can call (shell, edit, write, read): the request and result
models, risk categories, and the BaseTool contract the execution gate
drives.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from tollgate.config import Settings
from tollgate.tools.scope import PathScope
from tollgate.tools.schema import ToolDefinition, create_tool_definition


# Type variable for tool parameters
TParams = TypeVar("TParams", bound=BaseModel)


class ToolName(str, Enum):
    """The closed set of tools the model may call."""

    SHELL = "shell"
    EDIT = "edit"
    WRITE = "write"
    READ = "read"

    def __str__(self) -> str:
        return self.value


class RiskCategory(str, Enum):
    """Risk category of a single tool call.

    Determines whether the call runs immediately, waits for a human
    decision, or is refused outright.
    """

    SAFE = "safe"  # Runs without approval
    REQUIRES_APPROVAL = "requires_approval"  # Waits for a human decision
    FORBIDDEN = "forbidden"  # Never executed

    @property
    def requires_approval(self) -> bool:
        """Check if this category needs a human decision.

        Returns:
            bool: True if the call must be approved before it runs
        """
        return self == RiskCategory.REQUIRES_APPROVAL

    @property
    def color(self) -> str:
        """Rich color used when displaying this category."""
        return {
            RiskCategory.SAFE: "green",
            RiskCategory.REQUIRES_APPROVAL: "yellow",
            RiskCategory.FORBIDDEN: "red bold",
        }[self]

    @property
    def label(self) -> str:
        """Short human-readable label."""
        return self.value.replace("_", " ")

    def __str__(self) -> str:
        return self.value


class RiskClassification(BaseModel):
    """Derived risk assessment for a tool call. Never stored."""

    category: RiskCategory
    reason: str
    segments: list[str] = Field(default_factory=list)
    has_substitution: bool = False

    @classmethod
    def safe(cls, reason: str = "Read-only operation") -> "RiskClassification":
        return cls(category=RiskCategory.SAFE, reason=reason)

    @classmethod
    def requires_approval(cls, reason: str) -> "RiskClassification":
        return cls(category=RiskCategory.REQUIRES_APPROVAL, reason=reason)


class ToolCallRequest(BaseModel):
    """A tool invocation emitted by the model. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    call_id: str = Field(..., min_length=1, description="Identifier assigned by the model stream")
    tool_name: ToolName = Field(..., description="Which tool to run")
    parameters: dict[str, Any] = Field(default_factory=dict, description="Raw tool arguments")
    message_id: str | None = Field(
        default=None,
        description="Reference to the assistant message that carried the call",
    )


class ToolStatus(str, Enum):
    """Terminal status of a tool call."""

    SUCCESS = "success"
    ERROR = "error"
    DENIED = "denied"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class ToolResult(BaseModel):
    """Result of a tool call, as appended to the transcript.

    Contains the outcome status, the human-readable content shown to the
    model, and an optional structured payload.
    """

    call_id: str = Field(..., description="Identifier of the call this result terminates")
    status: ToolStatus = Field(..., description="Terminal status of the call")
    content: str = Field(default="", description="Human-readable result text")
    payload: dict[str, Any] | None = Field(
        default=None,
        description="Optional structured result data",
    )
    is_error: bool = Field(default=False, description="Whether the model should treat this as an error")
    error_kind: str | None = Field(
        default=None,
        description="Diagnostic tag for the error class (validation, no_match, ...)",
    )

    @classmethod
    def success_result(
        cls,
        call_id: str,
        content: str,
        payload: dict[str, Any] | None = None,
    ) -> "ToolResult":
        """Create a successful result.

        Args:
            call_id: Identifier of the call
            content: Result text
            payload: Optional structured data

        Returns:
            ToolResult: Successful tool result
        """
        return cls(call_id=call_id, status=ToolStatus.SUCCESS, content=content, payload=payload)

    @classmethod
    def error_result(
        cls,
        call_id: str,
        content: str,
        payload: dict[str, Any] | None = None,
        error_kind: str = "execution",
    ) -> "ToolResult":
        """Create an error result.

        Args:
            call_id: Identifier of the call
            content: Error message
            payload: Optional structured data (e.g. exit code and output)
            error_kind: Diagnostic tag for the error class

        Returns:
            ToolResult: Error tool result
        """
        return cls(
            call_id=call_id,
            status=ToolStatus.ERROR,
            content=content,
            payload=payload,
            is_error=True,
            error_kind=error_kind,
        )

    @property
    def success(self) -> bool:
        """Whether the call completed successfully."""
        return self.status == ToolStatus.SUCCESS

    @property
    def counts_as_failure(self) -> bool:
        """Whether this result should mark the turn as failed.

        Denials and cancellations are expected outcomes, not failures.
        """
        return self.status == ToolStatus.ERROR

    def to_transcript(self) -> dict[str, Any]:
        """Render the wire shape appended to the conversation transcript.

        Returns:
            dict: ``{callId, isError, content, structuredPayload?}``
        """
        entry: dict[str, Any] = {
            "callId": self.call_id,
            "isError": self.is_error,
            "content": self.content,
        }
        if self.payload is not None:
            entry["structuredPayload"] = self.payload
        return entry

    def __str__(self) -> str:
        """String representation of the result."""
        return f"{self.status.value}: {self.content}"


@dataclass
class ToolContext:
    """Collaborators a tool needs while preparing and executing a call."""

    settings: Settings
    scope: PathScope


@dataclass
class PreparedCall:
    """A validated call with its preview computed, ready for approval.

    ``payload`` carries whatever the tool computed during preparation
    (for edits, the resolved file content) so execution never recomputes it.
    """

    call_id: str
    params: BaseModel
    preview: str
    target: Path | None = None
    payload: dict[str, Any] = field(default_factory=dict)


class BaseTool(ABC, Generic[TParams]):
    """Abstract base class for all Tollgate tools.

    A call goes through ``validate_params`` -> ``prepare`` -> ``assess`` ->
    (approval) -> ``execute``. The gate drives that sequence; ``run``
    drives it directly without approval for trusted callers.

    Subclasses must implement:
    - execute() - Perform the prepared operation
    - get_confirmation_message() - Human-readable description for approval

    Type Parameters:
        TParams: Pydantic model defining the tool's parameters
    """

    # Class attributes (must be set in subclasses)
    name: ToolName
    description: str
    parameters_schema: type[BaseModel]
    mutating: bool = False

    def __init__(self):
        """Initialize the tool.

        Validates that required class attributes are set.
        """
        required_attrs = ["name", "description", "parameters_schema"]
        for attr in required_attrs:
            if not hasattr(self, attr):
                raise ValueError(
                    f"Tool must define '{attr}' class attribute. "
                    f"Subclass {self.__class__.__name__} is missing it."
                )

        if not isinstance(self.name, ToolName):
            raise ValueError(
                f"Tool name must be a ToolName member, got {self.name!r}"
            )

        if not issubclass(self.parameters_schema, BaseModel):
            raise ValueError(
                f"parameters_schema must be a Pydantic BaseModel subclass, "
                f"got {type(self.parameters_schema)}"
            )

    def validate_params(self, raw_params: dict[str, Any]) -> BaseModel:
        """Parse and validate raw parameters.

        Args:
            raw_params: Raw parameter dictionary

        Returns:
            BaseModel: Validated parameters

        Raises:
            pydantic.ValidationError: If parameters are invalid
        """
        return self.parameters_schema(**raw_params)

    def target_path(self, params: TParams, context: ToolContext) -> Path | None:
        """Resolve the filesystem path this call touches, if any.

        Args:
            params: Validated parameters
            context: Execution context

        Returns:
            Path | None: Absolute target path, or None for non-file tools
        """
        return None

    def assess(self, params: TParams, context: ToolContext) -> RiskClassification:
        """Classify the risk of this call.

        Mutating tools require approval by default; read-only tools are safe.

        Args:
            params: Validated parameters
            context: Execution context

        Returns:
            RiskClassification: Risk category and reason
        """
        if self.mutating:
            return RiskClassification.requires_approval(f"{self.name} modifies the workspace")
        return RiskClassification.safe()

    async def prepare(
        self,
        call_id: str,
        params: TParams,
        context: ToolContext,
    ) -> PreparedCall:
        """Compute the preview shown to the approver.

        Args:
            call_id: Identifier of the call
            params: Validated parameters
            context: Execution context

        Returns:
            PreparedCall: Call ready for approval and execution
        """
        return PreparedCall(
            call_id=call_id,
            params=params,
            preview=self.get_confirmation_message(params),
            target=self.target_path(params, context),
        )

    @abstractmethod
    async def execute(self, prepared: PreparedCall, context: ToolContext) -> ToolResult:
        """Execute a prepared call.

        Args:
            prepared: Output of ``prepare``
            context: Execution context

        Returns:
            ToolResult: Result of the execution

        Raises:
            ToolError: For failures that should be reported to the model
        """
        pass

    @abstractmethod
    def get_confirmation_message(self, params: TParams) -> str:
        """Get a human-readable description of what will happen.

        Args:
            params: Validated parameters

        Returns:
            str: Human-readable description of the operation
        """
        pass

    def to_tool_definition(self) -> ToolDefinition:
        """Convert this tool to a model-facing function definition.

        Returns:
            ToolDefinition: Tool definition for the model provider
        """
        return create_tool_definition(
            name=self.name.value,
            description=self.description,
            parameters_model=self.parameters_schema,
        )

    async def run(
        self,
        raw_params: dict[str, Any],
        context: ToolContext,
        call_id: str = "direct",
    ) -> ToolResult:
        """Validate, prepare, and execute without an approval step.

        Intended for trusted callers (read-only CLI commands, tests). Errors
        are converted into results the same way the gate does.

        Args:
            raw_params: Raw parameter dictionary
            context: Execution context
            call_id: Identifier stamped on the result

        Returns:
            ToolResult: Execution result
        """
        # Imported here: errors depends on this module's result types
        from pydantic import ValidationError

        from tollgate.errors import ToolError, ToolValidationError

        try:
            params = self.validate_params(raw_params)
            path = self.target_path(params, context)
            if path is not None and not context.scope.is_path_allowed(path):
                raise ToolValidationError(f"Path is outside the permitted directories: {path}")
            prepared = await self.prepare(call_id, params, context)
            return await self.execute(prepared, context)
        except ValidationError as e:
            return ToolValidationError(f"Parameter validation failed: {e}").to_result(call_id)
        except ToolError as e:
            return e.to_result(call_id)

    def __repr__(self) -> str:
        """String representation of the tool."""
        return (
            f"<{self.__class__.__name__} "
            f"name='{self.name.value}' "
            f"mutating={self.mutating}>"
        )
