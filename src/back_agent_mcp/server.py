"""FastMCP server for back-agent-mcp."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from back_agent_mcp.config import Settings, get_settings
from back_agent_mcp.tasks.manager import TaskManager
from back_agent_mcp.tools.tasks import register_task_tools

SERVER_NAME = "back-agent-mcp"

INSTRUCTIONS = """
Runs development tasks with the Claude Code CLI (an AI coding agent).

Tasks are natural-language instructions, not shell commands.

## Workflow

1. create_task(task="...") returns a task ID immediately
2. get_task_status(task_id="...") until status is completed, failed or cancelled
3. get_task_result(task_id="...") for the agent's output

Use execute_task(task="...") only for short tasks; it blocks until the agent exits.

## Housekeeping

- cancel_task stops a queued or running task
- delete_task / list_tasks / get_task_stats manage the task list
"""


def _configure_logging(settings: Settings | None = None) -> None:
    """Configure logging before anything else.

    Logs go to stderr; stdout carries the stdio MCP transport.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.python_log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _create_server(
    manager: TaskManager | None = None, settings: Settings | None = None
) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        manager: Task manager to expose (built from settings if omitted)
        settings: Settings override (cached settings if omitted)
    """
    settings = settings or get_settings()
    manager = manager or TaskManager.from_settings(settings)

    @asynccontextmanager
    async def server_lifespan(server: FastMCP) -> AsyncIterator[None]:
        """Server lifespan for startup/shutdown tasks."""
        logger = logging.getLogger(__name__)

        if settings.cleanup_interval_seconds > 0:
            await manager.start_cleanup_loop(
                interval_seconds=settings.cleanup_interval_seconds,
                max_age_seconds=settings.task_max_age_seconds,
            )

        try:
            yield
        finally:
            await manager.shutdown()
            logger.info("Task manager stopped")

    server = FastMCP(
        name=SERVER_NAME,
        lifespan=server_lifespan,
        instructions=INSTRUCTIONS,
    )

    # Health check endpoint for the http transport
    @server.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        """Health check endpoint for load balancers and k8s probes."""
        return JSONResponse(
            {
                "status": "healthy",
                "service": SERVER_NAME,
                "tasks": manager.get_stats(),
            }
        )

    async def _ping() -> dict:
        """Health check - verify server is running."""
        return {
            "status": "ok",
            "service": SERVER_NAME,
            **manager.describe(),
        }

    server.tool(name="ping")(_ping)
    register_task_tools(server, manager)

    return server


def main(settings: Settings | None = None) -> None:
    """Run the MCP server."""
    settings = settings or get_settings()
    _configure_logging(settings)
    logger = logging.getLogger(__name__)

    mcp = _create_server(settings=settings)
    logger.info(
        f"Starting {SERVER_NAME} ({settings.mcp_transport} transport, "
        f"max {settings.max_concurrent_tasks} concurrent tasks)"
    )

    if settings.mcp_transport == "http":
        mcp.run(
            transport="http",
            host=settings.mcp_host,
            port=settings.mcp_port,
            path=settings.mcp_path,
        )
    else:
        # Default: stdio for local MCP clients
        mcp.run()


if __name__ == "__main__":
    main()
