"""Tests for markdown rendering."""

from datetime import UTC, datetime, timedelta

from back_agent_mcp.formatting import (
    format_execution_success,
    format_task_created,
    format_task_info,
    format_task_info_short,
    format_task_list,
    truncate,
)
from back_agent_mcp.tasks import TaskInfo, TaskResult, TaskStatus

CREATED = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


def _info(**overrides) -> TaskInfo:
    values = {
        "id": "abc",
        "task": "Write tests",
        "timeout": 300,
        "status": TaskStatus.PENDING,
        "created_at": CREATED,
    }
    values.update(overrides)
    return TaskInfo(**values)


def test_truncate():
    assert truncate("short") == "short"
    assert truncate("x" * 120) == "x" * 100 + "..."
    assert truncate("x" * 90, 80) == "x" * 80 + "..."


def test_info_table_for_pending_task():
    text = format_task_info(_info())

    assert text.startswith("## Task abc")
    assert "| Status | **pending** |" in text
    assert "| Task | Write tests |" in text
    assert "Started" not in text
    assert "Success" not in text


def test_info_table_for_failed_task():
    info = _info(
        status=TaskStatus.FAILED,
        working_directory="/work",
        started_at=CREATED,
        completed_at=CREATED + timedelta(seconds=12.5),
        duration_seconds=12.5,
        success=False,
        exit_code=2,
        error="Task execution failed",
    )

    text = format_task_info(info)

    assert "| Working Directory | `/work` |" in text
    assert "| Duration | 12.5s |" in text
    assert "| Success | No |" in text
    assert "| Exit Code | 2 |" in text
    assert "| Error | Task execution failed |" in text


def test_short_entry_shows_elapsed_for_running_task():
    info = _info(status=TaskStatus.RUNNING, started_at=CREATED)

    text = format_task_info_short(info, now=CREATED + timedelta(seconds=42))

    assert text.startswith("### 🔄 abc")
    assert "- **Elapsed:** 42s" in text


def test_short_entry_truncates_task_text():
    text = format_task_info_short(_info(task="y" * 100))

    assert "y" * 80 + "..." in text


def test_task_list_stats_line():
    stats = {"total": 1, "pending": 1, "running": 0, "completed": 0, "failed": 0, "cancelled": 0}

    text = format_task_list([_info()], stats, None)

    assert text.startswith("## Tasks (1 shown)")
    assert "**Stats:** 1 pending, 0 running, 0 completed, 0 failed, 0 cancelled" in text


def test_task_created_mentions_follow_up_tools():
    text = format_task_created("abc", "Write tests")

    assert "get_task_status" in text
    assert "get_task_result" in text


def test_success_without_output():
    info = _info(status=TaskStatus.COMPLETED, success=True, exit_code=0)

    text = format_execution_success(TaskResult(info=info, stdout="", stderr=""))

    assert "Task completed successfully with no output." in text
