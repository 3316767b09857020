"""Approval channels that put pending tool calls in front of a human.

A channel receives an ApprovalRequest and either answers immediately with a
Verdict (the console prompt) or returns None, in which case the decision
arrives later through ``ToolExecutionGate.decide``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from rich.console import Group
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from tollgate.approval.state import ApprovalRequest, Verdict
from tollgate.tools.base import ToolName
from tollgate.ui.console import TollgateConsole
from tollgate.ui.prompts import confirm

logger = logging.getLogger(__name__)


class ApprovalChannel(ABC):
    """Where approval requests are presented."""

    @abstractmethod
    async def present(self, request: ApprovalRequest) -> Verdict | None:
        """Show a request to the approver.

        Args:
            request: The pending call

        Returns:
            Verdict | None: The decision, or None if it will be delivered
            asynchronously through the gate
        """
        pass


class StaticApprovalChannel(ApprovalChannel):
    """Answers every request with the same verdict.

    Used for ``--yes`` on the command line and in tests.
    """

    def __init__(self, verdict: Verdict = Verdict.APPROVED):
        self.verdict = verdict
        self.requests: list[ApprovalRequest] = []

    async def present(self, request: ApprovalRequest) -> Verdict:
        self.requests.append(request)
        logger.info(f"Auto-{self.verdict} call {request.call_id} ({request.tool_name})")
        return self.verdict


class DeferredApprovalChannel(ApprovalChannel):
    """Records requests and leaves the decision to an outside caller."""

    def __init__(self):
        self.requests: list[ApprovalRequest] = []
        self.presented = asyncio.Event()

    async def present(self, request: ApprovalRequest) -> None:
        self.requests.append(request)
        self.presented.set()
        return None


class ConsoleApprovalHandler(ApprovalChannel):
    """Presents approval requests as a Rich panel and asks for a yes/no.

    The blocking prompt runs in a worker thread so the event loop keeps
    serving other calls while the user decides.
    """

    def __init__(self, console: TollgateConsole):
        """Initialize the handler.

        Args:
            console: Console for user interaction
        """
        self.console = console

    async def present(self, request: ApprovalRequest) -> Verdict:
        """Display the request and collect the user's decision."""
        self.console.print(self.format_approval_prompt(request))

        approved = await asyncio.to_thread(
            confirm,
            "Approve this action?",
            False,
            self.console.console,
        )

        if approved:
            logger.info(f"User approved tool call: {request.call_id} ({request.tool_name})")
            return Verdict.APPROVED
        logger.info(f"User denied tool call: {request.call_id} ({request.tool_name})")
        return Verdict.DENIED

    def format_approval_prompt(self, request: ApprovalRequest) -> Panel:
        """Format an approval request as a Rich Panel.

        Args:
            request: The pending call

        Returns:
            Panel: Formatted approval prompt
        """
        risk_color = request.risk_level.color

        header = Text()
        header.append("Tool: ", style="bold")
        header.append(f"{request.tool_name}\n", style="cyan bold")
        header.append("Risk: ", style="bold")
        header.append(f"{request.risk_level.label.upper()}\n", style=risk_color)
        if request.reason:
            header.append("Reason: ", style="bold")
            header.append(f"{request.reason}\n", style="dim")

        if request.tool_name == ToolName.SHELL:
            preview = Syntax(request.preview, "bash", theme="monokai", word_wrap=True)
        elif request.preview.startswith(("---", "Create")) or "\n@@" in request.preview:
            preview = Syntax(request.preview, "diff", theme="monokai")
        else:
            preview = Text(request.preview)

        return Panel(
            Group(header, preview),
            title="[bold]Approval Required[/bold]",
            border_style=risk_color,
            padding=(1, 2),
        )
