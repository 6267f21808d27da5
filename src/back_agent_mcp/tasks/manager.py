"""Concurrent task manager.

Accepts task requests, runs each one in its own asyncio task behind a
bounded-concurrency gate and exposes the results for polling.

Admission control polls: a queued task sleeps ``poll_interval`` seconds at a
time until fewer than ``max_concurrent`` records are RUNNING, then claims the
slot by switching itself to RUNNING. There is no FIFO guarantee between
queued tasks. A task cancelled (or deleted) while queued never spawns a
process.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from back_agent_mcp.config import Settings
from back_agent_mcp.errors import BackAgentError, ErrorCode
from back_agent_mcp.executor import (
    DEFAULT_AGENT_COMMAND,
    ExecutionResult,
    execute_agent_task,
    resolve_working_directory,
)
from back_agent_mcp.tasks.models import Task, TaskInfo, TaskResult, TaskStatus
from back_agent_mcp.tasks.store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 3
DEFAULT_TIMEOUT_SECONDS = 300
MAX_TIMEOUT_SECONDS = 3600
DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_MAX_AGE_SECONDS = 3600

Executor = Callable[..., Awaitable[ExecutionResult]]


class TaskManager:
    """Owns task records, admission control and the query/cancel/delete API."""

    def __init__(
        self,
        store: TaskStore | None = None,
        *,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        executor: Executor = execute_agent_task,
        agent_command: str = DEFAULT_AGENT_COMMAND,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        default_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_timeout: float = MAX_TIMEOUT_SECONDS,
    ):
        """Initialize the manager.

        Args:
            store: Record registry (a fresh one if omitted)
            max_concurrent: Maximum tasks in RUNNING state at once
            executor: Coroutine function that runs one task
            agent_command: Agent executable handed to the executor
            poll_interval: Seconds between slot checks for queued tasks
            default_timeout: Timeout for tasks that do not set one
            max_timeout: Upper bound for any task timeout
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if not 0 < default_timeout <= max_timeout:
            raise ValueError(
                f"default_timeout must be greater than 0 and at most max_timeout ({max_timeout:g})"
            )

        self._store = store if store is not None else TaskStore()
        self._max_concurrent = max_concurrent
        self._executor = executor
        self._agent_command = agent_command
        self._poll_interval = poll_interval
        self._default_timeout = default_timeout
        self._max_timeout = max_timeout

        self._workers: dict[str, asyncio.Task] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._cleanup_task: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, settings: Settings, store: TaskStore | None = None) -> "TaskManager":
        return cls(
            store,
            max_concurrent=settings.max_concurrent_tasks,
            agent_command=settings.agent_command,
            poll_interval=settings.poll_interval_seconds,
            default_timeout=settings.default_timeout_seconds,
            max_timeout=settings.max_timeout_seconds,
        )

    @property
    def store(self) -> TaskStore:
        return self._store

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def max_timeout(self) -> float:
        return self._max_timeout

    # =========================================================================
    # Creation and background execution
    # =========================================================================

    def _validate_timeout(self, timeout: float | None) -> float:
        if timeout is None:
            return self._default_timeout
        # NaN fails the range check
        if not 0 < timeout <= self._max_timeout:
            raise BackAgentError(
                ErrorCode.INVALID_TIMEOUT,
                f"Timeout must be greater than 0 and at most {self._max_timeout:g} seconds",
                {"timeout": timeout},
            )
        return timeout

    async def create_task(
        self,
        task: str,
        working_directory: str | None = None,
        timeout: float | None = None,
        extra_args: list[str] | None = None,
    ) -> str:
        """Create a task and start executing it in the background.

        Args:
            task: Natural-language task description
            working_directory: Directory for the agent (validated now)
            timeout: Timeout in seconds (defaults to ``default_timeout``,
                at most ``max_timeout``)
            extra_args: Additional CLI arguments for the agent

        Returns:
            The new task id; execution has not necessarily started

        Raises:
            BackAgentError: For an out-of-range timeout or missing directory
        """
        timeout = self._validate_timeout(timeout)
        if working_directory:
            working_directory = str(resolve_working_directory(working_directory))

        task_id = str(uuid.uuid4())
        record = Task(
            task_id=task_id,
            description=task,
            timeout=timeout,
            working_directory=working_directory,
            extra_args=list(extra_args or []),
        )
        self._store.add(record)
        logger.info(f"Task {task_id} created: {task[:50]!r}")

        worker = asyncio.create_task(self._execute(task_id), name=f"back-agent-task-{task_id}")
        self._workers[task_id] = worker
        worker.add_done_callback(lambda _: self._workers.pop(task_id, None))

        return task_id

    def _still_queued(self, task_id: str, task: Task) -> bool:
        """True while the record is registered and untouched by cancel/delete."""
        return self._store.get(task_id) is task and task.status == TaskStatus.PENDING

    async def _execute(self, task_id: str) -> None:
        """Wait for a slot, run the task and record the outcome."""
        task = self._store.get(task_id)
        if task is None:
            logger.error(f"Task {task_id} not found")
            return

        try:
            while self._store.running_count() >= self._max_concurrent:
                await asyncio.sleep(self._poll_interval)
                if not self._still_queued(task_id, task):
                    break
        except asyncio.CancelledError:
            if self._still_queued(task_id, task):
                task.error = "Task manager shut down"
                self._store.transition(task, TaskStatus.CANCELLED)
            raise

        if not self._still_queued(task_id, task):
            logger.info(f"Task {task_id} dropped before start (status: {task.status.value})")
            return

        self._store.transition(task, TaskStatus.RUNNING)
        cancel_event = asyncio.Event()
        self._cancel_events[task_id] = cancel_event
        logger.info(f"Task {task_id} started")

        try:
            result = await self._executor(
                task.description,
                task.working_directory,
                task.timeout,
                task.extra_args,
                command=self._agent_command,
                cancel_event=cancel_event,
            )
        except asyncio.CancelledError:
            self._finish(task, TaskStatus.CANCELLED, error="Task manager shut down")
            raise
        except Exception as e:
            logger.exception(f"Task {task_id} error: {e}")
            self._finish(task, TaskStatus.FAILED, error=str(e) or type(e).__name__)
        else:
            if result.success:
                self._finish(task, TaskStatus.COMPLETED, result=result)
            else:
                self._finish(
                    task,
                    TaskStatus.FAILED,
                    result=result,
                    error=result.error or "Task execution failed",
                )
        finally:
            self._cancel_events.pop(task_id, None)

    def _finish(
        self,
        task: Task,
        status: TaskStatus,
        result: ExecutionResult | None = None,
        error: str | None = None,
    ) -> None:
        if task.status.is_terminal:
            # Cancelled while the process was running; keep the cancellation
            logger.info(f"Task {task.task_id} finished after {task.status.value}, outcome ignored")
            return

        task.result = result
        task.error = error
        self._store.transition(task, status)

        if status == TaskStatus.COMPLETED:
            logger.info(f"Task {task.task_id} completed successfully")
        else:
            logger.error(f"Task {task.task_id} {status.value}: {error}")

    # =========================================================================
    # Queries
    # =========================================================================

    def get_task(self, task_id: str) -> TaskInfo | None:
        """Get a snapshot of a task, or None if unknown."""
        task = self._store.get(task_id)
        return task.to_info() if task else None

    def get_task_result(self, task_id: str) -> TaskResult | None:
        """Get a snapshot plus stdout/stderr (present once a result was captured)."""
        task = self._store.get(task_id)
        if task is None:
            return None

        return TaskResult(
            info=task.to_info(),
            stdout=task.result.stdout if task.result else None,
            stderr=task.result.stderr if task.result else None,
        )

    def list_tasks(
        self, status: TaskStatus | str | None = None, limit: int | None = None
    ) -> list[TaskInfo]:
        """List task snapshots in creation order.

        Args:
            status: Only include tasks with this status
            limit: Maximum number of tasks to return
        """
        wanted = TaskStatus(status) if status is not None else None
        tasks = [
            task.to_info()
            for task in self._store.values()
            if wanted is None or task.status == wanted
        ]
        return tasks[:limit] if limit is not None else tasks

    def get_stats(self) -> dict[str, int]:
        """Count tasks by status, plus the total."""
        stats = {"total": len(self._store)}
        stats.update({status.value: count for status, count in self._store.count_by_status().items()})
        return stats

    # =========================================================================
    # Cancellation and removal
    # =========================================================================

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a pending or running task.

        A running task's process is terminated by the executor. Returns False
        for unknown ids and tasks already in a terminal state.
        """
        task = self._store.get(task_id)
        if task is None or task.status.is_terminal:
            return False

        self._store.transition(task, TaskStatus.CANCELLED)
        cancel_event = self._cancel_events.get(task_id)
        if cancel_event is not None:
            cancel_event.set()

        logger.info(f"Task {task_id} cancelled")
        return True

    def delete_task(self, task_id: str) -> bool:
        """Remove a task record regardless of status.

        Deleting a running task does not stop its process.
        """
        removed = self._store.remove(task_id) is not None
        if removed:
            logger.info(f"Task {task_id} deleted")
        return removed

    def cleanup(self, max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS) -> int:
        """Remove finished tasks completed more than ``max_age_seconds`` ago.

        Returns:
            Number of tasks removed
        """
        now = datetime.now(UTC)
        cleaned = 0

        for task in self._store.values():
            if (
                task.status.is_terminal
                and task.completed_at is not None
                and (now - task.completed_at).total_seconds() > max_age_seconds
            ):
                self._store.remove(task.task_id)
                cleaned += 1

        if cleaned:
            logger.info(f"Cleaned up {cleaned} old tasks")

        return cleaned

    # =========================================================================
    # Waiting and lifecycle
    # =========================================================================

    async def wait(self, task_id: str, timeout: float | None = None) -> TaskInfo | None:
        """Wait until a task's background routine has finished.

        Args:
            task_id: The task to wait for
            timeout: Seconds to wait; ``asyncio.TimeoutError`` when exceeded.
                The task itself keeps running.

        Returns:
            Final snapshot, or None if the task is unknown or was deleted
        """
        worker = self._workers.get(task_id)
        if worker is not None:
            await asyncio.wait_for(asyncio.shield(worker), timeout=timeout)
        return self.get_task(task_id)

    async def wait_all(self) -> None:
        """Wait for every in-flight background routine."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    async def start_cleanup_loop(
        self,
        interval_seconds: float = 300,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
    ) -> None:
        """Start background cleanup loop.

        Args:
            interval_seconds: How often to run cleanup (default 5 minutes)
            max_age_seconds: Age threshold handed to ``cleanup``
        """
        if self._cleanup_task is not None:
            return

        async def cleanup_loop():
            while True:
                try:
                    await asyncio.sleep(interval_seconds)
                    self.cleanup(max_age_seconds)
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.exception(f"Cleanup loop error: {e}")

        self._cleanup_task = asyncio.create_task(cleanup_loop())
        logger.info(f"Started cleanup loop (interval: {interval_seconds}s)")

    async def stop_cleanup_loop(self) -> None:
        """Stop the background cleanup loop."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Stopped cleanup loop")

    async def shutdown(self) -> None:
        """Stop the cleanup loop and cancel all background routines.

        Running agent processes are terminated by the executor.
        """
        await self.stop_cleanup_loop()

        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
            logger.info(f"Stopped {len(workers)} in-flight tasks")

    def describe(self) -> dict[str, Any]:
        """Non-sensitive manager configuration."""
        return {
            "max_concurrent": self._max_concurrent,
            "agent_command": self._agent_command,
            "default_timeout": self._default_timeout,
            "max_timeout": self._max_timeout,
        }
