"""MCP tools for creating, running and tracking agent tasks.

Every tool wraps one ``TaskManager`` operation and renders markdown for the
client, with the same data in ``structuredContent``.
"""

import logging
from typing import Annotated, Literal

from fastmcp import FastMCP
from mcp.types import CallToolResult
from pydantic import Field

from back_agent_mcp.errors import BackAgentError
from back_agent_mcp.formatting import (
    format_execution_failure,
    format_execution_success,
    format_not_found,
    format_stats,
    format_task_created,
    format_task_info,
    format_task_list,
    format_task_result,
)
from back_agent_mcp.tasks.manager import TaskManager
from back_agent_mcp.tasks.models import TaskStatus
from back_agent_mcp.tools.utils import error_response, tool_response

logger = logging.getLogger(__name__)

TaskText = Annotated[
    str,
    Field(
        min_length=1,
        description=(
            "Natural language task description for the Claude Code AI agent. "
            "This is NOT a direct shell command executor: the agent interprets the "
            "request and uses its own tools (Read, Edit, Bash, etc.) to complete it. "
            'Example: "Create a README file" or "Fix the bug in login.js"'
        ),
    ),
]
WorkingDirectory = Annotated[
    str | None,
    Field(
        description=(
            "The working directory for execution. "
            "Defaults to the server's current directory if not specified."
        )
    ),
]
TimeoutSeconds = Annotated[
    float | None,
    Field(
        ge=1,
        allow_inf_nan=False,
        description="Timeout in seconds (at most MAX_TIMEOUT_SECONDS, 3600 by default)",
    ),
]
AdditionalArgs = Annotated[
    list[str] | None, Field(description="Additional CLI arguments for Claude Code")
]
TaskId = Annotated[str, Field(description="The task ID")]
StatusFilter = Literal["pending", "running", "completed", "failed", "cancelled"]

CREATE_TASK_DESCRIPTION = """**IMPORTANT: This creates a background task for an AI programming assistant, NOT a direct shell command executor.**

Spawns Claude Code (an AI coding agent) as a subprocess to complete development tasks in the background.
Claude Code will interpret your natural language request and autonomously decide which actions to take.

**What it does:**
- Creates a non-blocking background task
- Returns task ID immediately for tracking
- Up to {max_concurrent} tasks run concurrently

**What it does NOT do:**
- NOT a direct shell/bash command executor
- Does NOT return raw stdout/stderr from commands

Timeouts are capped at {max_timeout:g} seconds.

Returns a task ID. Use get_task_status to check progress and get_task_result to retrieve the output.
"""

EXECUTE_TASK_DESCRIPTION = """**IMPORTANT: This is an AI programming assistant tool, NOT a direct shell command executor.**

Spawns Claude Code (an AI coding agent) as a subprocess and waits for it to finish.
Claude Code interprets your natural language request and decides which actions to take
(reading files, editing code, running commands, etc.) to accomplish the goal.

**Example usage:**
- "Create a REST API endpoint for user authentication"
- "Debug why the tests are failing"
- "Refactor the user module to use TypeScript"

The returned output is Claude Code's conversational response, not raw command output.
Timeouts are capped at {max_timeout:g} seconds. For long-running work prefer create_task.
"""


class TaskTools:
    """Tool implementations bound to one TaskManager."""

    def __init__(self, manager: TaskManager):
        self._manager = manager

    async def create_task(
        self,
        task: TaskText,
        working_directory: WorkingDirectory = None,
        timeout: TimeoutSeconds = None,
        additional_args: AdditionalArgs = None,
    ) -> CallToolResult:
        try:
            task_id = await self._manager.create_task(
                task,
                working_directory=working_directory,
                timeout=timeout,
                extra_args=additional_args,
            )
        except BackAgentError as e:
            logger.error(f"Error creating task: {e}")
            return error_response(e)

        return tool_response(
            format_task_created(task_id, task),
            {"status": "pending", "task_id": task_id},
        )

    async def execute_task(
        self,
        task: TaskText,
        working_directory: WorkingDirectory = None,
        timeout: TimeoutSeconds = None,
        additional_args: AdditionalArgs = None,
    ) -> CallToolResult:
        try:
            task_id = await self._manager.create_task(
                task,
                working_directory=working_directory,
                timeout=timeout,
                extra_args=additional_args,
            )
        except BackAgentError as e:
            logger.error(f"Invalid execute_task request: {e}")
            return error_response(e)

        await self._manager.wait(task_id)
        result = self._manager.get_task_result(task_id)
        if result is None:
            return tool_response(
                format_not_found(task_id), {"status": "not_found", "task_id": task_id}, True
            )

        payload = {
            **result.info.model_dump(mode="json"),
            "stdout": result.stdout,
            "stderr": result.stderr,
        }
        if result.info.status == TaskStatus.COMPLETED:
            return tool_response(format_execution_success(result), payload)
        return tool_response(format_execution_failure(result), payload, is_error=True)

    async def get_task_status(self, task_id: TaskId) -> CallToolResult:
        """Get the current status of a task. Returns status, timestamps, and basic info."""
        info = self._manager.get_task(task_id)
        if info is None:
            return tool_response(
                format_not_found(task_id), {"status": "not_found", "task_id": task_id}, True
            )
        return tool_response(format_task_info(info), info.model_dump(mode="json"))

    async def get_task_result(self, task_id: TaskId) -> CallToolResult:
        """Get the full result of a task including stdout/stderr output.

        Output is only available once the task has finished.
        """
        result = self._manager.get_task_result(task_id)
        if result is None:
            return tool_response(
                format_not_found(task_id), {"status": "not_found", "task_id": task_id}, True
            )

        payload = {
            **result.info.model_dump(mode="json"),
            "stdout": result.stdout,
            "stderr": result.stderr,
        }
        return tool_response(
            format_task_result(result.info, result.stdout, result.stderr), payload
        )

    async def cancel_task(self, task_id: TaskId) -> CallToolResult:
        """Cancel a pending or running task. A running agent process is terminated."""
        if self._manager.cancel_task(task_id):
            return tool_response(
                f"## Task Cancelled\n\nTask `{task_id}` has been cancelled.",
                {"status": "cancelled", "task_id": task_id},
            )

        info = self._manager.get_task(task_id)
        if info is None:
            return tool_response(
                format_not_found(task_id), {"status": "not_found", "task_id": task_id}, True
            )
        return tool_response(
            f"## Cannot Cancel Task\n\nTask with ID `{task_id}` is {info.status.value} "
            "and cannot be cancelled.",
            {"status": info.status.value, "task_id": task_id, "cancelled": False},
            is_error=True,
        )

    async def delete_task(self, task_id: TaskId) -> CallToolResult:
        """Delete a task from the task list. Use this to clean up old completed tasks.

        Deleting a running task does not stop its process.
        """
        if not self._manager.delete_task(task_id):
            return tool_response(
                format_not_found(task_id), {"status": "not_found", "task_id": task_id}, True
            )
        return tool_response(
            f"## Task Deleted\n\nTask `{task_id}` has been deleted from the task list.",
            {"status": "deleted", "task_id": task_id},
        )

    async def list_tasks(
        self,
        status: Annotated[
            StatusFilter | None, Field(description="Filter by status (optional)")
        ] = None,
        limit: Annotated[
            int, Field(ge=1, description="Maximum number of tasks to return (default: 50)")
        ] = 50,
    ) -> CallToolResult:
        """List all tasks, optionally filtered by status."""
        tasks = self._manager.list_tasks(status=status, limit=limit)
        stats = self._manager.get_stats()
        return tool_response(
            format_task_list(tasks, stats, status),
            {
                "tasks": [info.model_dump(mode="json") for info in tasks],
                "stats": stats,
            },
        )

    async def get_task_stats(self) -> CallToolResult:
        """Get statistics about all tasks."""
        stats = self._manager.get_stats()
        return tool_response(format_stats(stats), stats)


def register_task_tools(server: FastMCP, manager: TaskManager) -> TaskTools:
    """Register all task tools with the MCP server."""
    tools = TaskTools(manager)
    create_description = CREATE_TASK_DESCRIPTION.format(
        max_concurrent=manager.max_concurrent, max_timeout=manager.max_timeout
    )
    execute_description = EXECUTE_TASK_DESCRIPTION.format(max_timeout=manager.max_timeout)

    server.tool(name="execute_task", description=execute_description)(tools.execute_task)
    server.tool(name="create_task", description=create_description)(tools.create_task)
    server.tool(name="get_task_status")(tools.get_task_status)
    server.tool(name="get_task_result")(tools.get_task_result)
    server.tool(name="cancel_task")(tools.cancel_task)
    server.tool(name="delete_task")(tools.delete_task)
    server.tool(name="list_tasks")(tools.list_tasks)
    server.tool(name="get_task_stats")(tools.get_task_stats)

    logger.info("Registered task management tools")
    return tools
