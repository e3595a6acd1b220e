"""
Meta - the per-event record handed to listeners and commands.
"""

from dataclasses import dataclass, field, fields
from typing import Dict, Any, Optional, Callable


@dataclass
class Meta:
    """An inbound CQHTTP event plus the routing fields assigned on arrival."""

    post_type: str = ""
    message_type: Optional[str] = None
    notice_type: Optional[str] = None
    request_type: Optional[str] = None
    meta_event_type: Optional[str] = None
    sub_type: Optional[str] = None

    self_id: Optional[int] = None
    user_id: Optional[int] = None
    group_id: Optional[int] = None
    discuss_id: Optional[int] = None

    message: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    # assigned by the server
    path: str = "/"
    send: Optional[Callable[[str], Any]] = field(default=None, repr=False)
    group: Optional[Any] = field(default=None, repr=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Meta":
        """Build a Meta from a webhook payload, keeping the full body in ``raw``."""
        known = {f.name for f in fields(cls)} - {"raw", "path", "send", "group"}
        values = {key: value for key, value in payload.items() if key in known}
        if isinstance(values.get("message"), list):
            values["message"] = "".join(
                segment.get("data", {}).get("text", "")
                for segment in values["message"]
                if segment.get("type") == "text"
            )
        return cls(raw=dict(payload), **values)

    def get(self, key: str, default: Any = None) -> Any:
        """Read any payload field, including ones without a typed attribute."""
        return self.raw.get(key, default)
