"""Tests for error formatting."""

from back_agent_mcp.errors import BackAgentError, ErrorCode, format_error_message
from back_agent_mcp.tools.utils import error_response


def test_format_with_details():
    error = BackAgentError(ErrorCode.INVALID_TIMEOUT, "Timeout too large", {"timeout": 9000})

    assert format_error_message(error) == '[INVALID_TIMEOUT] Timeout too large\nDetails: {"timeout": 9000}'


def test_format_without_details():
    error = BackAgentError(ErrorCode.TASK_NOT_FOUND, "No such task")

    assert format_error_message(error) == "[TASK_NOT_FOUND] No such task"


def test_format_plain_exception():
    assert format_error_message(RuntimeError("plain")) == "plain"


def test_error_is_exception_with_message():
    error = BackAgentError(ErrorCode.INTERNAL_ERROR, "broken")

    assert str(error) == "broken"
    assert error.code == ErrorCode.INTERNAL_ERROR
    assert error.details is None


def test_error_response_payload():
    result = error_response(BackAgentError(ErrorCode.INVALID_INPUT, "bad"))

    assert result.isError is True
    assert result.structuredContent == {
        "status": "error",
        "error": "[INVALID_INPUT] bad",
        "code": "INVALID_INPUT",
    }
    assert result.content[0].text == "[INVALID_INPUT] bad"


def test_error_response_for_other_exceptions_has_no_code():
    result = error_response(ValueError("nope"))

    assert "code" not in result.structuredContent
    assert result.structuredContent["error"] == "nope"
