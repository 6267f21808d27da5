"""Test doubles for the task executor."""

import asyncio

from back_agent_mcp.executor import ExecutionResult


class FakeExecutor:
    """Executor stub that records calls.

    Without a gate it returns immediately. With a gate it blocks until the
    gate opens or the task's cancel event fires.
    """

    def __init__(
        self,
        result: ExecutionResult | None = None,
        gate: asyncio.Event | None = None,
        error: Exception | None = None,
    ):
        self.result = result or ExecutionResult(success=True, stdout="hello\n", exit_code=0)
        self.gate = gate
        self.error = error
        self.calls: list[dict] = []
        self.running = 0
        self.max_running = 0

    async def __call__(self, task, working_directory, timeout, extra_args, *, command, cancel_event):
        self.calls.append(
            {
                "task": task,
                "working_directory": working_directory,
                "timeout": timeout,
                "extra_args": extra_args,
                "command": command,
            }
        )
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            if self.gate is not None:
                waiters = {
                    asyncio.create_task(self.gate.wait()),
                    asyncio.create_task(cancel_event.wait()),
                }
                try:
                    await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    for waiter in waiters:
                        waiter.cancel()
                if cancel_event.is_set():
                    return ExecutionResult(
                        success=False, error="Execution cancelled", cancelled=True
                    )
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            self.running -= 1

    @property
    def tasks(self) -> list[str]:
        return [call["task"] for call in self.calls]
