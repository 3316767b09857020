"""Tool execution gate: the path every model-emitted tool call takes."""

from tollgate.gate.executor import ToolExecutionGate, create_gate
from tollgate.gate.turn import Turn

__all__ = [
    "ToolExecutionGate",
    "Turn",
    "create_gate",
]
