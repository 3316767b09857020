"""Tests for the Tollgate console."""

from tollgate.approval.classifier import CommandClassifier
from tollgate.tools.base import ToolResult, ToolStatus
from tollgate.ui.console import STATUS_STYLES, TollgateConsole


def _render(console: TollgateConsole, method: str, *args) -> str:
    with console.console.capture() as capture:
        getattr(console, method)(*args)
    return capture.get()


class TestToolResult:
    """Test result rendering."""

    def test_success(self):
        console = TollgateConsole(no_color=True)

        output = _render(console, "tool_result", "read", ToolResult.success_result("c1", "file body"))

        assert "read: success" in output
        assert "file body" in output

    def test_error_kind_shown(self):
        console = TollgateConsole(no_color=True)
        result = ToolResult.error_result("c1", "not found", error_kind="no_match")

        output = _render(console, "tool_result", "edit", result)

        assert "edit: error (no_match)" in output

    def test_payload_only_when_verbose(self):
        result = ToolResult.success_result("c1", "ok", payload={"exit_code": 0})

        quiet = _render(TollgateConsole(no_color=True), "tool_result", "shell", result)
        verbose = _render(TollgateConsole(no_color=True, verbose=True), "tool_result", "shell", result)

        assert "exit_code" not in quiet
        assert "exit_code" in verbose

    def test_every_status_styled(self):
        assert set(STATUS_STYLES) == set(ToolStatus)


class TestClassification:
    """Test classification rendering."""

    def test_forbidden(self):
        console = TollgateConsole(no_color=True)
        risk = CommandClassifier().classify("echo `id`")

        output = _render(console, "classification", "echo `id`", risk)

        assert "echo `id`" in output
        assert "Contains command substitution" in output

    def test_segments_listed(self):
        console = TollgateConsole(no_color=True)
        risk = CommandClassifier().classify("ls && rm -rf build")

        output = _render(console, "classification", "ls && rm -rf build", risk)

        assert "Segments:" in output
        assert "Recursive delete" in output


class TestMessages:
    """Test plain messages."""

    def test_show_config(self):
        console = TollgateConsole(no_color=True)

        output = _render(console, "show_config", {"shell_timeout": 120})

        assert "shell_timeout" in output
        assert "120" in output

    def test_warning(self):
        output = _render(TollgateConsole(no_color=True), "warning", "careful")

        assert "Warning: careful" in output
