"""Shared helpers for MCP tool responses."""

from typing import Any

from mcp.types import CallToolResult, TextContent

from back_agent_mcp.errors import BackAgentError, format_error_message


def tool_response(text: str, payload: dict[str, Any], is_error: bool = False) -> CallToolResult:
    """Build a tool result with markdown text and the structured payload.

    Args:
        text: Markdown shown to the client
        payload: JSON-serializable data (structuredContent)
        is_error: Mark the result as a tool error

    Returns:
        CallToolResult with text content and structured data
    """
    return CallToolResult(
        content=[TextContent(type="text", text=text)],
        structuredContent=payload,
        isError=is_error,
    )


def error_response(error: BaseException) -> CallToolResult:
    """Standard error result for a raised exception."""
    message = format_error_message(error)
    payload: dict[str, Any] = {"status": "error", "error": message}
    if isinstance(error, BackAgentError):
        payload["code"] = error.code.value
    return tool_response(message, payload, is_error=True)
