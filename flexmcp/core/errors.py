"""
Error types and helpers shared by tools, the REST client and the HTTP layer.

Configuration resolution and tool filtering never raise; these types cover
the surrounding code: settings loading, tool execution and outbound calls.
Tool handlers report failures as a dict with an "error" key, built by
tool_error_response().
"""

from datetime import datetime, timezone
from typing import Any


class FlexMCPError(Exception):
    """Base error carrying a machine-readable code and optional details."""

    default_code = "MCP_ERROR"

    def __init__(self, message: str, code: str | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigurationError(FlexMCPError):
    default_code = "CONFIG_ERROR"


class ToolError(FlexMCPError):
    default_code = "TOOL_ERROR"

    def __init__(self, message: str, tool_name: str | None = None, details: Any = None) -> None:
        super().__init__(message, details=details)
        self.tool_name = tool_name


class UpstreamConnectionError(FlexMCPError):
    """Raised by the REST client once every attempt has failed."""

    default_code = "CONNECTION_ERROR"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, details=details)
        self.url = url
        self.status_code = status_code


class ToolInputError(FlexMCPError):
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, value: Any = None, details: Any = None) -> None:
        super().__init__(message, details=details)
        self.field = field
        self.value = value


def extract_message(error: object) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    message = getattr(error, "message", None)
    if message is not None:
        return str(message)
    return "Unknown error occurred"


def normalize_error(error: object) -> FlexMCPError:
    """Wrap anything that is not already a FlexMCPError."""
    if isinstance(error, FlexMCPError):
        return error
    if isinstance(error, BaseException):
        return FlexMCPError(
            extract_message(error),
            code="UNKNOWN_ERROR",
            details={"original_type": type(error).__name__},
        )
    return FlexMCPError(
        extract_message(error),
        code="UNKNOWN_ERROR",
        details={"original_error": repr(error)},
    )


def tool_error_response(error: object, tool_name: str | None = None) -> dict:
    """Build the failure payload a tool handler returns instead of raising."""
    normalized = normalize_error(error)
    return {
        "error": f"Error in {tool_name or 'tool'}: {normalized.message}",
        "details": normalized.to_dict(),
    }
