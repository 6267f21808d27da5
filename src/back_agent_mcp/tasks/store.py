"""In-memory task registry.

The store owns no policy: it holds records in creation order and applies
status transitions that the state machine allows. ``TaskManager`` is its only
writer. All access happens on the event loop thread, so reads never observe a
half-applied transition.
"""

import logging
from collections.abc import Iterator
from datetime import UTC, datetime

from back_agent_mcp.tasks.models import ALLOWED_TRANSITIONS, Task, TaskStatus

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """A status change the task state machine does not allow."""

    pass


class TaskStore:
    """Registry of task records keyed by task id."""

    def __init__(self):
        self._tasks: dict[str, Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def add(self, task: Task) -> None:
        """Register a new record. Ids are never reused."""
        if task.task_id in self._tasks:
            raise ValueError(f"Task {task.task_id} already exists")
        self._tasks[task.task_id] = task

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def remove(self, task_id: str) -> Task | None:
        return self._tasks.pop(task_id, None)

    def values(self) -> Iterator[Task]:
        """Iterate over a copy so callers may remove while iterating."""
        return iter(list(self._tasks.values()))

    def running_count(self) -> int:
        """Count tasks currently in RUNNING status."""
        return sum(1 for task in self._tasks.values() if task.status == TaskStatus.RUNNING)

    def count_by_status(self) -> dict[TaskStatus, int]:
        counts = {status: 0 for status in TaskStatus}
        for task in self._tasks.values():
            counts[task.status] += 1
        return counts

    def transition(self, task: Task, status: TaskStatus) -> None:
        """Move a task to a new status, stamping timestamps.

        Args:
            task: The record to update
            status: Target status

        Raises:
            InvalidTransitionError: If the move is not allowed from the current status
        """
        if status not in ALLOWED_TRANSITIONS[task.status]:
            raise InvalidTransitionError(
                f"Task {task.task_id} cannot move from {task.status.value} to {status.value}"
            )

        now = datetime.now(UTC)
        task.status = status
        if status == TaskStatus.RUNNING:
            task.started_at = now
        elif status.is_terminal:
            task.completed_at = now

        logger.debug(f"Task {task.task_id} status: {status.value}")
