"""Click command group for back-agent-mcp.

Commands stay thin: they build settings and delegate to the server or to a
local TaskManager.
"""

import asyncio
import shutil
import sys
from importlib.metadata import PackageNotFoundError, version

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from back_agent_mcp.config import Settings, get_settings
from back_agent_mcp.errors import BackAgentError, format_error_message
from back_agent_mcp.tasks.manager import TaskManager
from back_agent_mcp.tasks.models import TaskResult, TaskStatus

console = Console()


def _get_cli_version() -> str:
    """Get installed package version.

    Falls back to "unknown" when package metadata isn't available
    (e.g. running from a source checkout without installation).
    """
    try:
        return version("back-agent-mcp")
    except PackageNotFoundError:
        return "unknown"


def _settings_with(**overrides) -> Settings:
    """Environment settings with non-None CLI overrides applied."""
    values = {key: value for key, value in overrides.items() if value is not None}
    if not values:
        return get_settings()
    return Settings(**values)


@click.group()
@click.version_option(version=_get_cli_version())
def main():
    """back-agent-mcp - MCP server that delegates tasks to the Claude Code CLI."""
    pass


@main.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "http"]),
    default=None,
    help="MCP transport (default: MCP_TRANSPORT or stdio)",
)
@click.option("--host", default=None, help="Host to bind (http transport)")
@click.option("--port", type=int, default=None, help="Port to listen on (http transport)")
@click.option("--max-concurrent", type=click.IntRange(min=1), default=None, help="Max running tasks")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default=None,
    help="Log verbosity",
)
def start(
    transport: str | None,
    host: str | None,
    port: int | None,
    max_concurrent: int | None,
    log_level: str | None,
):
    """Start the MCP server (stdio mode by default)."""
    from back_agent_mcp.server import main as run_server

    settings = _settings_with(
        mcp_transport=transport,
        mcp_host=host,
        mcp_port=port,
        max_concurrent_tasks=max_concurrent,
        log_level=log_level,
    )
    run_server(settings)


async def _run_once(
    settings: Settings,
    task: str,
    working_directory: str | None,
    timeout: float | None,
    extra_args: list[str],
) -> TaskResult | None:
    manager = TaskManager.from_settings(settings)
    task_id = await manager.create_task(
        task, working_directory=working_directory, timeout=timeout, extra_args=extra_args
    )
    try:
        await manager.wait(task_id)
    finally:
        await manager.shutdown()
    return manager.get_task_result(task_id)


def _print_result(result: TaskResult) -> None:
    info = result.info
    table = Table(title=f"Task {info.id}", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Status", info.status.value)
    if info.duration_seconds is not None:
        table.add_row("Duration", f"{info.duration_seconds:.1f}s")
    if info.exit_code is not None:
        table.add_row("Exit Code", str(info.exit_code))
    if info.error:
        table.add_row("Error", Text(info.error, style="red"))
    console.print(table)

    # Agent output is plain text, never rich markup
    if result.stdout:
        console.print(Panel(Text(result.stdout.strip()), title="stdout", border_style="green"))
    if result.stderr:
        console.print(Panel(Text(result.stderr.strip()), title="stderr", border_style="red"))


@main.command(context_settings={"ignore_unknown_options": True})
@click.argument("task")
@click.option("-d", "--working-directory", default=None, help="Directory to run the agent in")
@click.option(
    "-t", "--timeout", type=float, default=None, help="Timeout in seconds (max MAX_TIMEOUT_SECONDS)"
)
@click.argument("agent_args", nargs=-1, type=click.UNPROCESSED)
def run(task: str, working_directory: str | None, timeout: float | None, agent_args: tuple):
    """Run a single TASK with the agent CLI and print its output.

    Extra arguments after the task are passed through to the agent.

    Examples:
        back-agent-mcp run "Summarize README.md"
        back-agent-mcp run "Fix the failing test" -d ./myproject -t 600
        back-agent-mcp run "Review the diff" -- --model sonnet
    """
    from back_agent_mcp.server import _configure_logging

    settings = get_settings()
    _configure_logging(settings)

    try:
        result = asyncio.run(
            _run_once(settings, task, working_directory, timeout, list(agent_args))
        )
    except BackAgentError as e:
        console.print(format_error_message(e), style="red", markup=False)
        sys.exit(2)

    if result is None:
        console.print("[red]Task disappeared before completion.[/red]")
        sys.exit(1)

    _print_result(result)
    sys.exit(0 if result.info.status == TaskStatus.COMPLETED else 1)


@main.command()
def check():
    """Check that the agent CLI is installed and show effective settings."""
    settings = get_settings()
    agent_path = shutil.which(settings.agent_command)

    table = Table(title="back-agent-mcp", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Agent command", Text(settings.agent_command))
    table.add_row("Agent path", Text(agent_path) if agent_path else Text("not found", style="red"))
    table.add_row("Max concurrent tasks", str(settings.max_concurrent_tasks))
    table.add_row("Default timeout", f"{settings.default_timeout_seconds:g}s")
    table.add_row("Max timeout", f"{settings.max_timeout_seconds:g}s")
    table.add_row("Log level", settings.log_level)
    table.add_row("Transport", settings.mcp_transport)
    console.print(table)

    if agent_path is None:
        console.print(f"Agent CLI not found: {settings.agent_command}", style="red", markup=False)
        console.print("Install Claude Code or set AGENT_COMMAND.")
        sys.exit(1)
