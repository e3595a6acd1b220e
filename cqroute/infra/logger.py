"""
Logger - Logging configuration and utilities.

Every record carries a ``route`` attribute: the path of the event being
dispatched when the record was emitted, or ``-`` outside of dispatch.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Optional
from pathlib import Path
from datetime import datetime


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(route)s] %(message)s"

_initialized = False
_log_level = logging.INFO
_current_route: ContextVar[str] = ContextVar("cqroute_route", default="-")


class RouteFilter(logging.Filter):
    """Attach the route of the event in progress to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "route"):
            record.route = _current_route.get()
        return True


class ColorFormatter(logging.Formatter):
    """
    Custom formatter with color support for console output.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m"
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        # other handlers share the record
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{reset}"

        return super().format(record)


def setup_logger(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    force: bool = False
) -> None:
    """
    Setup the application logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for file logging
        format_string: Optional custom format string, may use ``%(route)s``
        force: Reconfigure even if a previous call already did
    """
    global _initialized, _log_level

    if _initialized and not force:
        return

    _log_level = getattr(logging, level.upper(), logging.INFO)
    format_string = format_string or DEFAULT_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(_log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    if sys.stdout.isatty():
        console_handler.setFormatter(ColorFormatter(format_string))
    else:
        console_handler.setFormatter(logging.Formatter(format_string))
    handlers = [console_handler]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(format_string))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(_log_level)
        handler.addFilter(RouteFilter())
        root_logger.addHandler(handler)

    # one line per webhook post is noise at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.client").setLevel(logging.WARNING)

    _initialized = True

    root_logger.info(f"Logger initialized with level: {level}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    if not _initialized:
        setup_logger()

    return logging.getLogger(name)


def current_route() -> str:
    return _current_route.get()


class LogContext:
    """
    Context manager that times an operation and logs its outcome.

    When ``route`` is given it becomes the ``route`` of every record logged
    inside the block, including records from listener tasks scheduled there.

    Usage:
        with LogContext(logger, "dispatch", route=meta.path):
            ...
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        route: Optional[str] = None,
        **context
    ):
        self.logger = logger
        self.operation = operation
        self.route = route
        self.context = context
        self.start_time: Optional[datetime] = None
        self._token = None

    def __enter__(self):
        if self.route is not None:
            self._token = _current_route.set(self.route)
        self.start_time = datetime.now()
        self.logger.debug(f"Starting {self.operation}", extra={"context": self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()

        if exc_type:
            self.logger.error(
                f"Failed {self.operation} after {duration:.3f}s: {exc_val}",
                extra={"context": self.context}
            )
        else:
            self.logger.debug(
                f"Completed {self.operation} in {duration:.3f}s",
                extra={"context": self.context}
            )

        if self._token is not None:
            _current_route.reset(self._token)
            self._token = None
        return False
