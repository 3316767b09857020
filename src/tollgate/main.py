"""Main entry point for the Tollgate CLI.

This module provides the command-line interface for Tollgate using Click.
Every command that touches the workspace goes through the execution gate,
so the same classification, scope checks and approval prompts apply as for
model-emitted calls.
"""

import asyncio
import sys
from typing import Any
from uuid import uuid4

import click

from tollgate import __version__
from tollgate.approval.classifier import CommandClassifier, CommandContext
from tollgate.approval.handler import ConsoleApprovalHandler, StaticApprovalChannel
from tollgate.config import get_settings
from tollgate.gate import create_gate
from tollgate.logging import setup_logging
from tollgate.tools.base import ToolCallRequest, ToolName
from tollgate.tools.scope import PathScope
from tollgate.ui.console import TollgateConsole, get_console


@click.group()
@click.option("--debug", "-d", is_flag=True, help="Enable debug mode (very detailed logging)")
@click.option("--verbose", "-v", is_flag=True, help="Show structured payloads and info logs")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--yes", "-y", "auto_yes", is_flag=True, help="Approve every call without prompting")
@click.option(
    "--add-dir",
    "add_dirs",
    multiple=True,
    type=click.Path(),
    help="Grant file tools access to an additional directory (repeatable)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    debug: bool,
    verbose: bool,
    no_color: bool,
    auto_yes: bool,
    add_dirs: tuple[str, ...],
):
    """Tollgate - gated tool execution for AI coding assistants.

    Classifies shell commands, applies fuzzy-matched edits, and asks before
    anything risky runs.
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["verbose"] = verbose
    ctx.obj["no_color"] = no_color
    ctx.obj["auto_yes"] = auto_yes
    ctx.obj["add_dirs"] = add_dirs

    settings = get_settings()
    if debug or settings.tollgate_debug_mode:
        setup_logging(level="DEBUG", log_file=settings.log_file_path)
    elif verbose:
        setup_logging(level="INFO", log_file=settings.log_file_path)
    else:
        setup_logging(level="WARNING", log_file=settings.log_file_path, show_timestamps=False)


@cli.command()
@click.argument("command")
@click.pass_context
def classify(ctx: click.Context, command: str):
    """Show how a shell command would be classified, without running it."""
    console = _console(ctx)
    settings = get_settings()

    classifier = CommandClassifier()
    risk = classifier.classify(
        command,
        CommandContext(cwd=settings.working_dir, extra_deny_patterns=settings.deny_patterns),
    )
    console.classification(command, risk)


@cli.command()
@click.argument("command")
@click.pass_context
def run(ctx: click.Context, command: str):
    """Run a shell command through the gate."""
    _invoke(ctx, ToolName.SHELL, {"command": command})


@cli.command()
@click.argument("path")
@click.option("--offset", type=int, default=0, help="Zero-based line to start from")
@click.option("--limit", type=int, default=None, help="Maximum number of lines")
@click.pass_context
def read(ctx: click.Context, path: str, offset: int, limit: int | None):
    """Read a file inside the permitted directories."""
    params: dict[str, Any] = {"path": path, "offset": offset}
    if limit is not None:
        params["limit"] = limit
    _invoke(ctx, ToolName.READ, params)


@cli.command()
@click.argument("path")
@click.option("--content", "-c", default=None, help="New content (reads stdin if omitted)")
@click.pass_context
def write(ctx: click.Context, path: str, content: str | None):
    """Create or overwrite a file after showing a diff."""
    if content is None:
        content = click.get_text_stream("stdin").read()
    _invoke(ctx, ToolName.WRITE, {"path": path, "content": content})


@cli.command()
@click.argument("path")
@click.option("--old", "old_string", required=True, help="Text to replace")
@click.option("--new", "new_string", required=True, help="Replacement text")
@click.option("--replace-all", is_flag=True, help="Replace every occurrence")
@click.pass_context
def edit(ctx: click.Context, path: str, old_string: str, new_string: str, replace_all: bool):
    """Replace text in a file using the matching cascade."""
    _invoke(
        ctx,
        ToolName.EDIT,
        {
            "path": path,
            "old_string": old_string,
            "new_string": new_string,
            "replace_all": replace_all,
        },
    )


@cli.command()
@click.pass_context
def config(ctx: click.Context):
    """Show current configuration."""
    console = _console(ctx)
    settings = get_settings()

    config_dict = settings.model_dump_safe()
    if ctx.obj["add_dirs"]:
        config_dict["cli_directories"] = ", ".join(ctx.obj["add_dirs"])
    console.show_config(config_dict)


@cli.command()
def version():
    """Show version information."""
    click.echo(f"Tollgate version {__version__}")


def _console(ctx: click.Context) -> TollgateConsole:
    return get_console(
        no_color=ctx.obj["no_color"],
        verbose=ctx.obj["verbose"] or ctx.obj["debug"],
    )


def _invoke(ctx: click.Context, tool_name: ToolName, parameters: dict[str, Any]) -> None:
    exit_code = asyncio.run(
        run_tool_call(
            tool_name,
            parameters,
            console=_console(ctx),
            auto_yes=ctx.obj["auto_yes"],
            add_dirs=ctx.obj["add_dirs"],
        )
    )
    ctx.exit(exit_code)


async def run_tool_call(
    tool_name: ToolName,
    parameters: dict[str, Any],
    console: TollgateConsole,
    auto_yes: bool = False,
    add_dirs: tuple[str, ...] = (),
) -> int:
    """Send one tool call through a fresh gate and display the result.

    Args:
        tool_name: Tool to call
        parameters: Raw tool arguments
        console: Console for output and approval prompts
        auto_yes: Approve without prompting
        add_dirs: Extra directories to grant for this invocation

    Returns:
        int: Process exit code (0 on success)
    """
    settings = get_settings()
    scope = PathScope(settings.working_dir, settings.additional_directories)
    for directory in add_dirs:
        validation = scope.add_directory(directory)
        if not validation.ok:
            console.warning(validation.format_message())

    channel = StaticApprovalChannel() if auto_yes else ConsoleApprovalHandler(console)
    gate = create_gate(settings, channel=channel, scope=scope)

    request = ToolCallRequest(
        call_id=f"cli-{uuid4().hex[:8]}",
        tool_name=tool_name,
        parameters=parameters,
    )
    try:
        result = await gate.execute(request)
    finally:
        await gate.shutdown()

    console.tool_result(tool_name.value, result)
    return 0 if result.success else 1


def main() -> None:
    """Console script entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
