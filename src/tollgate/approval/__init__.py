"""Approval system for tool calls.

This module provides shell command risk classification, the call lifecycle
state machine, and the channels that present approval requests to a human.
"""

from tollgate.approval.classifier import CommandClassifier, CommandContext
from tollgate.approval.handler import (
    ApprovalChannel,
    ConsoleApprovalHandler,
    DeferredApprovalChannel,
    StaticApprovalChannel,
)
from tollgate.approval.state import (
    ApprovalDecision,
    ApprovalRequest,
    ApprovalStateMachine,
    CallRecord,
    CallState,
    PendingApproval,
    PendingApprovalHandle,
    Verdict,
)

__all__ = [
    # Classification
    "CommandClassifier",
    "CommandContext",
    # State
    "ApprovalStateMachine",
    "ApprovalDecision",
    "ApprovalRequest",
    "CallRecord",
    "CallState",
    "PendingApproval",
    "PendingApprovalHandle",
    "Verdict",
    # Channels
    "ApprovalChannel",
    "ConsoleApprovalHandler",
    "DeferredApprovalChannel",
    "StaticApprovalChannel",
]
