"""
Logging middleware for tracking message handling.
"""

import time
from datetime import datetime
from typing import Optional, Dict, Any

from cqroute.core.context import Context, NextFunction
from cqroute.core.meta import Meta
from cqroute.infra.logger import get_logger


logger = get_logger(__name__)


class LoggingMiddleware:
    """
    Middleware that logs every message event and keeps simple counters.

    Install it as a plugin so it wraps the whole chain of the context:

        app.plugin(LoggingMiddleware())
    """

    name = "logging"

    def __init__(self):
        self._context: Optional[Context] = None
        self._request_count: int = 0
        self._error_count: int = 0
        self._start_time: datetime = datetime.now()
        self._metrics: Dict[str, Any] = {
            "commands": {},
            "messages": 0
        }

    def apply(self, ctx: Context, options: Optional[Dict[str, Any]] = None) -> None:
        self._context = ctx
        ctx.premiddleware(self)

    async def __call__(self, meta: Meta, next_: NextFunction) -> Any:
        start_time = time.time()
        self._request_count += 1

        try:
            result = await next_()
        except Exception as e:
            self.log_error(meta, e)
            raise

        self.log_message(meta, (time.time() - start_time) * 1000)
        return result

    def log_message(self, meta: Meta, duration_ms: float) -> None:
        """
        Log a message that went through the chain.

        Args:
            meta: The inbound event
            duration_ms: Time spent in the rest of the chain
        """
        log_data = {
            "path": meta.path,
            "user_id": meta.user_id,
            "duration_ms": round(duration_ms, 2)
        }

        command = None
        if self._context is not None:
            text = self._context.app.strip_prefix(meta)
            name = text.split(" ", 1)[0] if text else ""
            command = self._context.get_command(name, meta) if name else None
        if command:
            log_data["command"] = command.name
            self._metrics["commands"][command.name] = (
                self._metrics["commands"].get(command.name, 0) + 1
            )
        else:
            self._metrics["messages"] += 1
            log_data["message_length"] = len(meta.message or "")

        logger.info(f"Message processed: {log_data}")

    def log_error(self, meta: Meta, error: Exception) -> None:
        self._error_count += 1

        error_data = {
            "path": meta.path,
            "user_id": meta.user_id,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }

        logger.error(f"Error in middleware chain: {error_data}")

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get current metrics.
        """
        uptime = datetime.now() - self._start_time

        return {
            "total_requests": self._request_count,
            "total_errors": self._error_count,
            "error_rate": (
                self._error_count / self._request_count
                if self._request_count > 0 else 0
            ),
            "uptime_seconds": uptime.total_seconds(),
            "commands": self._metrics["commands"],
            "total_messages": self._metrics["messages"]
        }

    def reset_metrics(self) -> None:
        """Reset all metrics."""
        self._request_count = 0
        self._error_count = 0
        self._start_time = datetime.now()
        self._metrics = {
            "commands": {},
            "messages": 0
        }
