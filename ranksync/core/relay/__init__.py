"""Client library for the remote rank-sync REST API.

Architecture:
- client.py: Thread-pooled HTTP client, every call resolves to an Outcome
- models.py: Payload, Outcome and link/unlink request records
- exceptions.py: Typed exceptions for error handling

Usage:
    from ranksync.core.relay import RelayClient, Payload, EventKind

    client = RelayClient(store)
    client.notify_rank_change(Payload(uuid, name, "vip", ["vip"], EventKind.GROUP_ADD))
"""
from .client import RelayClient
from .exceptions import (
    RankSyncError,
    ConfigError,
    DirectoryError,
    PayloadError,
)
from .models import (
    EventKind,
    Payload,
    Outcome,
    LinkRequest,
    UnlinkRequest,
    UNKNOWN_PLAYER,
)

__all__ = [
    "RelayClient",

    # Exceptions
    "RankSyncError",
    "ConfigError",
    "DirectoryError",
    "PayloadError",

    # Records
    "EventKind",
    "Payload",
    "Outcome",
    "LinkRequest",
    "UnlinkRequest",
    "UNKNOWN_PLAYER",
]
