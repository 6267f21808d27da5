"""Task records, registry and the concurrent task manager."""

from back_agent_mcp.tasks.manager import TaskManager
from back_agent_mcp.tasks.models import (
    TERMINAL_STATUSES,
    Task,
    TaskInfo,
    TaskResult,
    TaskStatus,
)
from back_agent_mcp.tasks.store import InvalidTransitionError, TaskStore

__all__ = [
    "TERMINAL_STATUSES",
    "InvalidTransitionError",
    "Task",
    "TaskInfo",
    "TaskManager",
    "TaskResult",
    "TaskStatus",
    "TaskStore",
]
