"""Model-facing tool schemas.

Converts Pydantic parameter models into the JSON Schema function
definitions sent to the model alongside the conversation.
"""

import logging
from typing import Any, Literal, Type

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ToolDefinition(BaseModel):
    """Definition of a tool that can be called by the model."""

    type: Literal["function"] = Field(default="function", description="Type of tool")
    function: dict[str, Any] = Field(..., description="Function schema (JSON Schema format)")

    @classmethod
    def from_schema(cls, name: str, description: str, parameters: dict[str, Any]) -> "ToolDefinition":
        """Create a ToolDefinition from schema components.

        Args:
            name: Name of the function
            description: Human-readable description
            parameters: JSON Schema for the parameters

        Returns:
            ToolDefinition: The constructed tool definition
        """
        return cls(
            function={
                "name": name,
                "description": description,
                "parameters": parameters,
            }
        )

    @property
    def name(self) -> str:
        """Name of the described function."""
        return self.function["name"]


def pydantic_to_json_schema(model: Type[BaseModel]) -> dict[str, Any]:
    """Convert a Pydantic model to JSON Schema format.

    Args:
        model: Pydantic model class

    Returns:
        dict: JSON Schema representation of the model
    """
    schema = model.model_json_schema()

    # Providers don't need the model title
    schema.pop("title", None)

    return schema


def create_tool_definition(
    name: str,
    description: str,
    parameters_model: Type[BaseModel] | None = None,
) -> ToolDefinition:
    """Create a tool definition from a parameters model.

    Args:
        name: Name of the tool
        description: Human-readable description of what the tool does
        parameters_model: Pydantic model defining the parameters

    Returns:
        ToolDefinition: Tool definition ready to send to the model
    """
    if parameters_model is not None:
        parameters = pydantic_to_json_schema(parameters_model)
    else:
        parameters = {"type": "object", "properties": {}}

    logger.debug(f"Built schema for tool: {name}")
    return ToolDefinition.from_schema(
        name=name,
        description=description,
        parameters=parameters,
    )
