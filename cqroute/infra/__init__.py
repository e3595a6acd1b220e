"""
Infra module - Logging and exceptions.
"""

from cqroute.infra.logger import setup_logger, get_logger, current_route, LogContext
from cqroute.infra.exceptions import (
    ErrorKind,
    CQRouteError,
    StructuralConflictError,
    ContextViolationError,
    DispatchError,
    ConfigurationError,
    StartupError,
    SenderError,
    handle_exception
)

__all__ = [
    "setup_logger",
    "get_logger",
    "current_route",
    "LogContext",
    "ErrorKind",
    "CQRouteError",
    "StructuralConflictError",
    "ContextViolationError",
    "DispatchError",
    "ConfigurationError",
    "StartupError",
    "SenderError",
    "handle_exception"
]
