"""Records exchanged with the remote rank-sync service.

Field names on the wire follow the remote API (camelCase); the Python
attributes are snake_case. Every record is frozen once built.
"""
from __future__ import annotations
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from .exceptions import PayloadError

UNKNOWN_PLAYER = "Unknown"

_clock_lock = threading.Lock()
_last_timestamp = 0


def _next_timestamp() -> int:
    """Milliseconds since epoch, always above the previous value handed out."""
    global _last_timestamp
    now = int(time.time() * 1000)
    with _clock_lock:
        if now <= _last_timestamp:
            now = _last_timestamp + 1
        _last_timestamp = now
    return now


class EventKind(str, Enum):
    """Kinds of sync events understood by the remote service."""
    PLAYER_JOIN = "PLAYER_JOIN"
    GROUP_ADD = "GROUP_ADD"
    GROUP_REMOVE = "GROUP_REMOVE"


@dataclass(frozen=True)
class Payload:
    """One sync event: who the player is and which groups they hold right now.

    Usage:
        payload = Payload(
            uuid=str(user.uuid),
            player_name=user.username,
            primary_group=user.primary_group,
            groups=user.groups,
            event_type=EventKind.GROUP_ADD,
        )
        client.notify_rank_change(payload)
    """
    uuid: str
    player_name: Optional[str]
    primary_group: Optional[str]
    groups: Iterable[str]
    event_type: EventKind
    timestamp: int = field(default_factory=_next_timestamp)

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "player_name", self.player_name or UNKNOWN_PLAYER)
        object.__setattr__(self, "groups", tuple(self.groups or ()))
        object.__setattr__(self, "event_type", EventKind(self.event_type))

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation; unset fields are left out."""
        data = {
            "uuid": self.uuid,
            "playerName": self.player_name,
            "primaryGroup": self.primary_group,
            "groups": list(self.groups),
            "eventType": self.event_type.value,
            "timestamp": self.timestamp,
        }
        return {key: value for key, value in data.items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Payload":
        """Rebuild a Payload from its wire representation.

        Raises:
            PayloadError: If a required field is missing or the event type is unknown
        """
        if not isinstance(data, dict):
            raise PayloadError("payload must be a JSON object")
        missing = [key for key in ("uuid", "eventType", "timestamp") if key not in data]
        if missing:
            raise PayloadError(f"missing required fields: {', '.join(missing)}")
        try:
            event_type = EventKind(data["eventType"])
        except ValueError:
            raise PayloadError(f"unknown eventType: {data['eventType']!r}") from None
        return cls(
            uuid=str(data["uuid"]),
            player_name=data.get("playerName"),
            primary_group=data.get("primaryGroup"),
            groups=data.get("groups") or (),
            event_type=event_type,
            timestamp=int(data["timestamp"]),
        )


@dataclass(frozen=True)
class Outcome:
    """Result of one call to the remote service.

    Attributes:
        succeeded: True iff the remote answered with a 2xx status
        body: Response text, or a diagnostic when the call itself failed
    """
    succeeded: bool
    body: str = ""

    @classmethod
    def failure(cls, exc: BaseException) -> "Outcome":
        return cls(False, f"Error: {exc}")


@dataclass(frozen=True)
class LinkRequest:
    uuid: str
    player_name: str
    link_code: str

    def to_dict(self) -> Dict[str, Any]:
        return {"uuid": self.uuid, "playerName": self.player_name, "linkCode": self.link_code}


@dataclass(frozen=True)
class UnlinkRequest:
    uuid: str

    def to_dict(self) -> Dict[str, Any]:
        return {"uuid": self.uuid}
