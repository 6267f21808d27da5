"""MCP tool implementations."""

from back_agent_mcp.tools.tasks import TaskTools, register_task_tools

__all__ = ["TaskTools", "register_task_tools"]
