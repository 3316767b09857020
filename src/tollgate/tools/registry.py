"""Tool registry for the closed set of tools.

This module provides the ToolRegistry class, which maps each ToolName to
its single implementation and exports the model-facing schemas. Only
ToolName members can be registered; tools added by plugins are expected to
go through a capability-checked registry outside this core.
"""

import logging

from tollgate.tools.base import BaseTool, ToolName
from tollgate.tools.schema import ToolDefinition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for managing Tollgate tools.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(ShellTool())
        >>> registry.get(ToolName.SHELL)
        <ShellTool name='shell' mutating=True>
    """

    def __init__(self):
        """Initialize an empty tool registry."""
        self._tools: dict[ToolName, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool instance.

        Args:
            tool: Tool instance to register

        Raises:
            ValueError: If the tool's name is not a ToolName or is already registered
        """
        if not isinstance(tool.name, ToolName):
            raise ValueError(f"Tool name {tool.name!r} is not part of the supported tool set")

        if tool.name in self._tools:
            raise ValueError(
                f"Tool '{tool.name}' is already registered. "
                f"Use unregister() first."
            )

        self._tools[tool.name] = tool
        logger.info(f"Registered tool: {tool.name} (mutating: {tool.mutating})")

    def unregister(self, name: ToolName) -> None:
        """Unregister a tool by name.

        Args:
            name: Name of the tool to unregister

        Raises:
            KeyError: If the tool is not registered
        """
        if name not in self._tools:
            raise KeyError(f"Tool '{name}' is not registered")

        del self._tools[name]
        logger.info(f"Unregistered tool: {name}")

    def get(self, name: ToolName | str) -> BaseTool | None:
        """Get a tool by name.

        Args:
            name: ToolName member or its string value

        Returns:
            BaseTool | None: The tool instance, or None if not found
        """
        try:
            key = ToolName(name)
        except ValueError:
            return None
        return self._tools.get(key)

    def get_tool_names(self) -> list[str]:
        """Get names of all registered tools."""
        return [name.value for name in self._tools]

    def get_tool_schemas(self) -> list[ToolDefinition]:
        """Get all tools as model-facing function definitions.

        Returns:
            list[ToolDefinition]: One definition per registered tool
        """
        return [tool.to_tool_definition() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        try:
            return ToolName(name) in self._tools
        except ValueError:
            return False

    def __iter__(self):
        return iter(self._tools.values())

    def __repr__(self) -> str:
        return f"<ToolRegistry: {len(self._tools)} tools ({', '.join(self.get_tool_names())})>"


def create_default_registry() -> ToolRegistry:
    """Create a registry holding the four standard tools.

    Returns:
        ToolRegistry: Registry with shell, edit, write and read registered
    """
    # Concrete tools import the edit resolver, which imports this package
    from tollgate.tools.filesystem import EditFileTool, ReadFileTool, WriteFileTool
    from tollgate.tools.shell import ShellTool

    registry = ToolRegistry()
    for tool in (ShellTool(), EditFileTool(), WriteFileTool(), ReadFileTool()):
        registry.register(tool)
    return registry
