"""Error types and error formatting for back-agent-mcp."""

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error categories."""

    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    INVALID_WORKING_DIRECTORY = "INVALID_WORKING_DIRECTORY"
    INVALID_TIMEOUT = "INVALID_TIMEOUT"
    EXECUTION_TIMEOUT = "EXECUTION_TIMEOUT"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    INVALID_INPUT = "INVALID_INPUT"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class BackAgentError(Exception):
    """Configuration or precondition error.

    Raised synchronously so that invalid input never produces a task record
    or a spawned process. Ordinary execution failures are reported through
    ``ExecutionResult`` instead.
    """

    def __init__(self, code: ErrorCode, message: str, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


def format_error_message(error: BaseException) -> str:
    """Render an error for display to an MCP client."""
    if isinstance(error, BackAgentError):
        message = f"[{error.code.value}] {error.message}"
        if error.details:
            message += f"\nDetails: {json.dumps(error.details, default=str)}"
        return message
    return str(error)
