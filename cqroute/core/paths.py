"""
Path matching - ancestry tests and event type derivation for routing paths.
"""

import re
from typing import List

from cqroute.config.constants import PREFIX_TYPES


_DIGITS = re.compile(r"\d+")
_NUMERIC = re.compile(r"\d*")


def wildcard_path(path: str) -> str:
    """Replace the first run of digits in ``path`` with ``*``."""
    return _DIGITS.sub("*", path, count=1)


def is_ancestor(ancestor: str, path: str) -> bool:
    """
    Check whether ``ancestor`` addresses ``path`` or one of its parents.

    Only the first numeric segment of ``path`` is generalized, so
    ``/group/*/`` matches ``/group/123/message`` but ``/group/*/x/*/``
    never matches anything beyond the first id.
    """
    return path.startswith(ancestor) or wildcard_path(path).startswith(ancestor)


def derive_event_types(context_path: str, event_path: str) -> List[str]:
    """
    Derive the cascading event names a context emits for an event path.

    Entity segments (ids, ``user``, ``discuss``, ``group``) collapse to
    ``*`` once an event name has started and are dropped before that::

        >>> derive_event_types("/", "/group/123/message/normal")
        ['message', 'message/normal']
        >>> derive_event_types("/", "/meta_event/lifecycle/enable")
        ['meta_event', 'meta_event/lifecycle', 'meta_event/lifecycle/enable']

    Args:
        context_path: Path of the listening context
        event_path: Canonical path of the inbound event

    Returns:
        Event names from least to most specific, empty when the context
        is not a literal prefix of the event path
    """
    if not event_path.startswith(context_path):
        return []

    last_event = ""
    events: List[str] = []
    for segment in event_path[len(context_path):].split("/"):
        if _NUMERIC.fullmatch(segment) or segment in PREFIX_TYPES:
            segment = "*" if last_event else ""
        if segment:
            last_event = f"{last_event}/{segment}" if last_event else segment
            events.append(last_event)
    return events
