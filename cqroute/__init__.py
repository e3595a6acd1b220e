"""
cqroute - hierarchical event routing and command dispatch for CQHTTP bots.
"""

__version__ = "0.1.0"

from cqroute.core.app import App
from cqroute.core.context import Context
from cqroute.core.command import Command, Invocation
from cqroute.core.meta import Meta
from cqroute.config.settings import Settings
from cqroute.infra.logger import setup_logger

__all__ = [
    "App",
    "Context",
    "Command",
    "Invocation",
    "Meta",
    "Settings",
    "setup_logger",
    "__version__"
]
