"""Coding-agent CLI executor.

Runs a single task by spawning the agent CLI as a child process in
non-interactive (print) mode. The executor keeps no state between calls:

- Working directory problems raise ``BackAgentError`` before anything runs
- Every other outcome (non-zero exit, timeout, cancellation, missing binary,
  spawn error) is returned as a failed ``ExecutionResult``
"""

import asyncio
import logging
import os
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from back_agent_mcp.errors import BackAgentError, ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_AGENT_COMMAND = "claude"
DEFAULT_TIMEOUT_SECONDS = 300.0

AGENT_NOT_FOUND_MESSAGE = (
    "Claude Code CLI not found. Please ensure Claude Code is installed and in your PATH."
)

# Flags that clash with the forced one-shot invocation (or are npx/npm leftovers)
BLOCKED_ARGS = frozenset(
    {
        "-p",
        "--print",
        "-y",
        "--yes",
        "-n",
        "--no",
        "--no-yes",
        "--cache",
        "--ignore-existing",
    }
)

# Seconds to wait after SIGTERM before escalating to SIGKILL
TERMINATE_GRACE_SECONDS = 5.0

_READ_CHUNK_SIZE = 4096


@dataclass
class ExecutionResult:
    """Outcome of one agent process run."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    error: str | None = None
    timed_out: bool = False
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def resolve_working_directory(working_directory: str | None = None) -> Path:
    """Resolve the directory the agent runs in.

    Args:
        working_directory: Requested directory, or None for the current one

    Returns:
        Absolute path of an existing directory

    Raises:
        BackAgentError: If the directory does not exist
    """
    if working_directory:
        cwd = Path(working_directory).expanduser().resolve()
    else:
        cwd = Path.cwd()

    if not cwd.is_dir():
        raise BackAgentError(
            ErrorCode.INVALID_WORKING_DIRECTORY,
            f"Working directory does not exist: {cwd}",
            {"path": str(cwd)},
        )
    return cwd


def build_cli_args(
    task: str, working_directory: str, extra_args: list[str] | None = None
) -> list[str]:
    """Build the agent argument vector.

    The working directory is always granted with ``--add-dir``. ``-p`` and the
    task text are always the final two tokens.
    """
    args = ["--add-dir", working_directory]
    args.extend(arg for arg in extra_args or [] if arg not in BLOCKED_ARGS)
    args.extend(["-p", task])
    return args


def _preview(text: str, limit: int = 100) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


async def _pump(stream: asyncio.StreamReader, chunks: list[bytes], name: str) -> None:
    """Drain a pipe chunk by chunk so partial output survives a kill."""
    while True:
        chunk = await stream.read(_READ_CHUNK_SIZE)
        if not chunk:
            return
        chunks.append(chunk)
        logger.debug(f"{name}: {chunk[:200].decode('utf-8', errors='replace')}")


async def _collect(
    process: asyncio.subprocess.Process,
    stdout_chunks: list[bytes],
    stderr_chunks: list[bytes],
) -> int:
    await asyncio.gather(
        _pump(process.stdout, stdout_chunks, "stdout"),
        _pump(process.stderr, stderr_chunks, "stderr"),
    )
    return await process.wait()


async def _terminate_process(process: asyncio.subprocess.Process) -> None:
    """SIGTERM the process, escalating to SIGKILL after the grace period."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(f"Process {process.pid} ignored SIGTERM, killing")
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()


async def execute_agent_task(
    task: str,
    working_directory: str | None = None,
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    extra_args: list[str] | None = None,
    *,
    command: str = DEFAULT_AGENT_COMMAND,
    cancel_event: asyncio.Event | None = None,
) -> ExecutionResult:
    """Execute a task with the agent CLI.

    Args:
        task: Natural-language task text, passed verbatim after ``-p``
        working_directory: Directory to run in (defaults to the current one)
        timeout: Wall-clock limit in seconds, measured from spawn
        extra_args: Additional CLI arguments (conflicting flags are dropped)
        command: Agent executable name or path, looked up on PATH
        cancel_event: When set, the running process is terminated

    Returns:
        ExecutionResult; never raises for execution failures

    Raises:
        BackAgentError: If the working directory does not exist
    """
    logger.info(f"Executing task: {_preview(task)!r}")

    cwd = resolve_working_directory(working_directory)
    logger.info(f"Using working directory: {cwd}")

    args = build_cli_args(task, str(cwd), extra_args)
    logger.debug(f"Agent CLI args: {args}")

    executable = shutil.which(command)
    if executable is None:
        logger.error(f"Agent CLI '{command}' not found on PATH")
        return ExecutionResult(success=False, error=AGENT_NOT_FOUND_MESSAGE)

    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            *args,
            cwd=str(cwd),
            env=os.environ.copy(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        logger.error(f"Agent CLI '{command}' not found")
        return ExecutionResult(success=False, error=AGENT_NOT_FOUND_MESSAGE)
    except OSError as e:
        logger.error(f"Process error: {e}")
        return ExecutionResult(success=False, error=str(e))

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []
    collector = asyncio.create_task(_collect(process, stdout_chunks, stderr_chunks))
    canceller = asyncio.create_task(cancel_event.wait()) if cancel_event else None
    timed_out = False
    cancelled = False

    try:
        waiters = {collector} if canceller is None else {collector, canceller}
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )

        if collector not in done:
            if canceller is not None and canceller in done:
                cancelled = True
                logger.warning("Task cancelled, terminating process...")
            else:
                timed_out = True
                logger.warning(f"Task timeout after {timeout}s, terminating process...")
            await _terminate_process(process)

        try:
            exit_code = await asyncio.wait_for(collector, timeout=TERMINATE_GRACE_SECONDS)
        except asyncio.TimeoutError:
            # A grandchild can keep the pipes open after the agent exits
            logger.warning("Output pipes still open after process exit, dropping the rest")
            exit_code = process.returncode
    finally:
        if canceller is not None:
            canceller.cancel()
        if process.returncode is None:
            await _terminate_process(process)
        if not collector.done():
            collector.cancel()

    stdout = _decode(stdout_chunks)
    stderr = _decode(stderr_chunks)

    if timed_out:
        logger.error("Task execution timed out")
        return ExecutionResult(
            success=False,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            error=f"Execution timed out after {timeout:g}s",
            timed_out=True,
        )

    if cancelled:
        return ExecutionResult(
            success=False,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            error="Execution cancelled",
            cancelled=True,
        )

    logger.info(f"Task completed with exit code: {exit_code}")
    return ExecutionResult(
        success=exit_code == 0,
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
    )
