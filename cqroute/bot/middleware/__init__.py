"""
Bot middleware module - Built-in middleware.
"""

from cqroute.bot.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
