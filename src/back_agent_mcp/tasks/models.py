"""Task records and the read-only snapshots handed to callers.

Tasks go through a lifecycle:
1. PENDING - Created, waiting for a concurrency slot
2. RUNNING - Agent process is executing
3. COMPLETED - Process exited with code 0
4. FAILED - Non-zero exit, timeout, spawn error or unexpected exception
5. CANCELLED - Cancelled while pending or running

PENDING may jump straight to CANCELLED. Terminal states never change.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from back_agent_mcp.executor import ExecutionResult


class TaskStatus(str, Enum):
    """Status of a task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING, TaskStatus.CANCELLED}),
    TaskStatus.RUNNING: TERMINAL_STATUSES,
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class Task:
    """A task with full lifecycle tracking."""

    task_id: str
    description: str
    timeout: float
    working_directory: str | None = None
    extra_args: list[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)

    # Execution info
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: ExecutionResult | None = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Seconds from start (or creation, if never started) to completion."""
        if self.completed_at is None:
            return None
        start = self.started_at or self.created_at
        return (self.completed_at - start).total_seconds()

    def to_info(self) -> "TaskInfo":
        """Snapshot the record for callers."""
        return TaskInfo(
            id=self.task_id,
            task=self.description,
            working_directory=self.working_directory,
            timeout=self.timeout,
            status=self.status,
            created_at=self.created_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
            duration_seconds=self.duration_seconds,
            error=self.error,
            success=self.result.success if self.result else None,
            exit_code=self.result.exit_code if self.result else None,
        )


class TaskInfo(BaseModel):
    """Read-only view of a task."""

    id: str = Field(..., description="Unique task identifier")
    task: str = Field(..., description="Task description given to the agent")
    working_directory: str | None = Field(default=None)
    timeout: float = Field(..., description="Timeout in seconds")
    status: TaskStatus

    # Timing
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: float | None = None

    # Outcome
    error: str | None = None
    success: bool | None = None
    exit_code: int | None = None


class TaskResult(BaseModel):
    """Task snapshot plus captured output, once there is any."""

    info: TaskInfo
    stdout: str | None = None
    stderr: str | None = None
