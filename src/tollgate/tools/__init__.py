"""Tool system for Tollgate.

This module provides the foundation for the closed set of tools the model
can call and the registry that maps tool names to implementations.
"""

from tollgate.tools.base import (
    BaseTool,
    PreparedCall,
    RiskCategory,
    RiskClassification,
    ToolCallRequest,
    ToolContext,
    ToolName,
    ToolResult,
    ToolStatus,
)
from tollgate.tools.registry import ToolRegistry, create_default_registry
from tollgate.tools.schema import ToolDefinition
from tollgate.tools.scope import PathScope

__all__ = [
    # Base classes
    "BaseTool",
    "PreparedCall",
    "RiskCategory",
    "RiskClassification",
    "ToolCallRequest",
    "ToolContext",
    "ToolName",
    "ToolResult",
    "ToolStatus",
    "ToolDefinition",
    "PathScope",
    # Registry
    "ToolRegistry",
    "create_default_registry",
]
