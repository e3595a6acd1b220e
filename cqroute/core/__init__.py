"""
Core module - Paths, contexts, commands and the app root.
"""

from cqroute.core.paths import is_ancestor, derive_event_types, wildcard_path
from cqroute.core.events import EventEmitter
from cqroute.core.meta import Meta
from cqroute.core.command import Command, Invocation
from cqroute.core.context import Context
from cqroute.core.app import App

__all__ = [
    "is_ancestor",
    "derive_event_types",
    "wildcard_path",
    "EventEmitter",
    "Meta",
    "Command",
    "Invocation",
    "Context",
    "App"
]
