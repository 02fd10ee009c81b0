"""
Custom exception classes for unified error handling.
"""

from typing import Any

from fastapi import HTTPException


class AppBaseError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message: str, detail: Any = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ToolNotFoundError(AppBaseError):
    """Raised when the model asks for a tool name that is not registered."""
    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(
            message=f"Tool '{tool_name}' not found in the registry",
            detail="Pick one of the declared tools and try again.",
        )


class InvalidArgumentsError(AppBaseError):
    """Raised when tool arguments fail schema validation."""
    def __init__(self, tool_name: str, errors: list[dict]):
        self.tool_name = tool_name
        self.errors = errors
        super().__init__(
            message=f"Invalid arguments for tool '{tool_name}'",
            detail=errors,
        )


class ToolExecutionFailedError(AppBaseError):
    """Raised when an agent tool fails during execution."""
    def __init__(self, tool_name: str, cause: BaseException):
        self.tool_name = tool_name
        self.cause = cause
        super().__init__(
            message=f"Tool '{tool_name}' failed during execution",
            detail=str(cause) or type(cause).__name__,
        )


class SchemaTranslationError(AppBaseError):
    """Raised when a tool's parameter schema cannot become a function declaration."""
    def __init__(self, tool_name: str, reason: str):
        self.tool_name = tool_name
        super().__init__(
            message=f"Cannot translate parameter schema of tool '{tool_name}'",
            detail=reason,
        )


# ── Utility: convert to HTTPException ────────────────────

def app_error_to_http(error: AppBaseError, status_code: int = 400) -> HTTPException:
    """Convert an AppBaseError to an HTTPException with consistent JSON body."""
    return HTTPException(
        status_code=status_code,
        detail={
            "error": error.message,
            "detail": error.detail,
            "type": type(error).__name__,
        },
    )
