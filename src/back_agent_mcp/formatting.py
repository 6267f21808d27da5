"""Markdown rendering for tool responses."""

from datetime import datetime

from back_agent_mcp.tasks.models import TaskInfo, TaskResult, TaskStatus

STATUS_EMOJI = {
    TaskStatus.PENDING: "⏳",
    TaskStatus.RUNNING: "🔄",
    TaskStatus.COMPLETED: "✅",
    TaskStatus.FAILED: "❌",
    TaskStatus.CANCELLED: "🛑",
}


def truncate(text: str, limit: int = 100) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _local(ts: datetime) -> str:
    return ts.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def format_task_info(info: TaskInfo) -> str:
    """Full property table for a single task."""
    lines = [
        f"## Task {info.id}",
        "",
        "| Property | Value |",
        "|----------|-------|",
        f"| Status | **{info.status.value}** |",
        f"| Task | {truncate(info.task)} |",
    ]
    if info.working_directory:
        lines.append(f"| Working Directory | `{info.working_directory}` |")
    lines.append(f"| Created | {_local(info.created_at)} |")
    if info.started_at:
        lines.append(f"| Started | {_local(info.started_at)} |")
    if info.completed_at:
        lines.append(f"| Completed | {_local(info.completed_at)} |")
        lines.append(f"| Duration | {info.duration_seconds:.1f}s |")
    if info.success is not None:
        lines.append(f"| Success | {'Yes' if info.success else 'No'} |")
    if info.exit_code is not None:
        lines.append(f"| Exit Code | {info.exit_code} |")
    if info.error:
        lines.append(f"| Error | {info.error} |")
    return "\n".join(lines) + "\n"


def format_task_info_short(info: TaskInfo, now: datetime | None = None) -> str:
    """Compact entry for task lists."""
    lines = [
        f"### {STATUS_EMOJI[info.status]} {info.id}",
        "",
        f"- **Status:** {info.status.value}",
        f"- **Task:** {truncate(info.task, 80)}",
        f"- **Created:** {_local(info.created_at)}",
    ]
    if info.status == TaskStatus.RUNNING and info.started_at:
        now = now or datetime.now(info.started_at.tzinfo)
        lines.append(f"- **Elapsed:** {(now - info.started_at).total_seconds():.0f}s")
    elif info.completed_at and info.started_at:
        lines.append(f"- **Duration:** {info.duration_seconds:.1f}s")
    return "\n".join(lines) + "\n\n"


def format_stats(stats: dict[str, int]) -> str:
    lines = [
        "## Task Statistics",
        "",
        "| Status | Count |",
        "|--------|-------|",
        f"| Total | {stats['total']} |",
    ]
    lines.extend(f"| {status.value.capitalize()} | {stats[status.value]} |" for status in TaskStatus)
    return "\n".join(lines) + "\n"


def format_stats_line(stats: dict[str, int]) -> str:
    return ", ".join(f"{stats[status.value]} {status.value}" for status in TaskStatus)


def format_task_list(tasks: list[TaskInfo], stats: dict[str, int], status: str | None) -> str:
    if not tasks:
        detail = f'No tasks with status "{status}".' if status else "No tasks found."
        return f"## No Tasks Found\n\n{detail}"

    output = f"## Tasks ({len(tasks)} shown)\n\n"
    output += f"**Stats:** {format_stats_line(stats)}\n\n"
    output += "".join(format_task_info_short(task) for task in tasks)
    return output


def format_task_created(task_id: str, task: str) -> str:
    return (
        "## Task Created\n\n"
        f"**Task ID:** {task_id}\n"
        f"**Task:** {truncate(task)}\n"
        "**Status:** pending\n\n"
        f"Use `get_task_status` with ID `{task_id}` to check progress.\n"
        f"Use `get_task_result` with ID `{task_id}` to get the result when complete."
    )


def format_task_result(info: TaskInfo, stdout: str | None, stderr: str | None) -> str:
    output = format_task_info(info)
    if not info.status.is_terminal:
        output += f"\n\n**Note:** Task is still {info.status.value}. Result not available yet."
        return output
    if stdout:
        output += f"\n\n### Standard Output:\n```\n{stdout.strip()}\n```"
    if stderr:
        output += f"\n\n### Standard Error:\n```\n{stderr.strip()}\n```"
    return output


def format_not_found(task_id: str) -> str:
    return f"## Task Not Found\n\nTask with ID `{task_id}` does not exist."


def format_execution_success(result: TaskResult) -> str:
    stdout = (result.stdout or "").strip() or "Task completed successfully with no output."
    lines = ["## Task Completed Successfully", "", "### Output:", f"```\n{stdout}\n```"]
    if result.info.exit_code is not None:
        lines.extend(["", f"Exit Code: {result.info.exit_code}"])
    return "\n".join(lines)


def format_execution_failure(result: TaskResult) -> str:
    info = result.info
    lines = ["## Task Execution Failed", "", f"**Task:** {truncate(info.task)}", ""]
    if info.error:
        lines.extend([f"**Error:** {info.error}", ""])
    if result.stderr:
        lines.extend(["### Error Output:", f"```\n{result.stderr.strip()}\n```", ""])
    if result.stdout:
        lines.extend(["### Standard Output:", f"```\n{result.stdout.strip()}\n```", ""])
    if info.exit_code is not None:
        lines.append(f"Exit Code: {info.exit_code}")
    return "\n".join(lines).rstrip() + "\n"
