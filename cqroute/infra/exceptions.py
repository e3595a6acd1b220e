"""
Exceptions - Error kinds and exception classes raised by the router.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorKind(Enum):
    """Closed set of failure kinds surfaced by the engine."""

    STRUCTURAL_CONFLICT = "wrong subcommand"
    CONTEXT_VIOLATION = "wrong context"
    COMMAND_NOT_FOUND = "command not found"
    DISPATCH_FAILURE = "dispatch failure"


class CQRouteError(Exception):
    """
    Base exception for all router errors.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "UNKNOWN_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class StructuralConflictError(CQRouteError):
    """
    Raised when a command is redeclared under a different parent.
    """

    kind = ErrorKind.STRUCTURAL_CONFLICT

    def __init__(
        self,
        command: str,
        expected_parent: Optional[str] = None,
        actual_parent: Optional[str] = None
    ):
        super().__init__(
            message=ErrorKind.STRUCTURAL_CONFLICT.value,
            code="WRONG_SUBCOMMAND",
            details={
                "command": command,
                "expected_parent": expected_parent,
                "actual_parent": actual_parent
            }
        )
        self.command = command


class ContextViolationError(CQRouteError):
    """
    Raised when a command or sub-context is used outside the path it is scoped to.
    """

    kind = ErrorKind.CONTEXT_VIOLATION

    def __init__(
        self,
        path: str,
        context_path: str,
        command: Optional[str] = None
    ):
        super().__init__(
            message=ErrorKind.CONTEXT_VIOLATION.value,
            code="WRONG_CONTEXT",
            details={
                "command": command,
                "context_path": context_path,
                "path": path
            }
        )
        self.path = path
        self.context_path = context_path
        self.command = command


class DispatchError(CQRouteError):
    """
    Wraps a failure raised while enriching or emitting one inbound event.
    """

    kind = ErrorKind.DISPATCH_FAILURE

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(
            message=message,
            code="DISPATCH_FAILURE",
            details={
                "path": path,
                "cause": type(cause).__name__ if cause else None
            }
        )
        self.path = path
        self.cause = cause


class ConfigurationError(CQRouteError):
    """
    Raised when there is a configuration problem.
    """

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None
    ):
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details={"missing_keys": missing_keys or []}
        )


class StartupError(CQRouteError):
    """
    Raised when the application fails to start.
    """

    def __init__(self, message: str, component: Optional[str] = None):
        super().__init__(
            message=message,
            code="STARTUP_ERROR",
            details={"component": component}
        )


class SenderError(CQRouteError):
    """
    Raised when an outbound API call fails.
    """

    def __init__(
        self,
        message: str,
        action: Optional[str] = None,
        retcode: Optional[int] = None
    ):
        super().__init__(
            message=message,
            code="SENDER_ERROR",
            details={
                "action": action,
                "retcode": retcode
            }
        )
        self.action = action
        self.retcode = retcode


def handle_exception(error: Exception) -> Dict[str, Any]:
    """
    Convert any exception to a standardized error response.

    Args:
        error: The exception to handle

    Returns:
        Error dictionary
    """
    if isinstance(error, CQRouteError):
        return error.to_dict()

    return {
        "error": "INTERNAL_ERROR",
        "message": str(error),
        "details": {
            "type": type(error).__name__
        }
    }
