"""Listeners that turn directory and session events into relay calls.

Handlers return as soon as the request is scheduled; the relay's future is
only watched by a logging callback.
"""
from __future__ import annotations
import logging
from concurrent.futures import Future
from typing import TYPE_CHECKING, Optional

from .directory import Directory, DirectoryUser, NodeType
from .events import EventSource, NodeAddEvent, NodeRemoveEvent, SessionStartEvent
from .relay import EventKind, Outcome, Payload, RelayClient

if TYPE_CHECKING:
    from ranksync.config.settings import ConfigStore

logger = logging.getLogger(__name__)


def build_payload(user: DirectoryUser, event_type: EventKind, player_name: Optional[str] = None) -> Payload:
    """Payload from the user's full current group snapshot."""
    return Payload(
        uuid=str(user.uuid),
        player_name=player_name or user.username,
        primary_group=user.primary_group,
        groups=user.groups,
        event_type=event_type,
    )


def log_outcome(future: "Future[Outcome]", description: str) -> None:
    """Attach a callback that records how the notification ended."""

    def _done(f: "Future[Outcome]") -> None:
        outcome = f.result()
        if outcome.succeeded:
            logger.debug(f"{description} sent successfully")
        else:
            logger.warning(f"Failed to send {description}: {outcome.body}")

    future.add_done_callback(_done)


class JoinListener:
    """Sends the player's groups to the remote service when a session starts."""

    def __init__(self, config: "ConfigStore", client: RelayClient, directory: Directory):
        self.config = config
        self.client = client
        self.directory = directory

    def register(self, source: EventSource) -> None:
        source.subscribe(SessionStartEvent, self.on_session_start)
        logger.info("Session listener registered.")

    def on_session_start(self, event: SessionStartEvent) -> None:
        if not self.config.get_bool("sync.on-join", True):
            return

        lookup = self.directory.load_user(event.uuid)
        lookup.add_done_callback(lambda f: self._on_user_loaded(f, event))

    def _on_user_loaded(self, lookup: "Future[Optional[DirectoryUser]]", event: SessionStartEvent) -> None:
        try:
            user = lookup.result()
        except Exception as e:
            logger.debug(f"Directory lookup failed for {event.player_name}: {e}")
            return
        if user is None:
            logger.debug(f"Could not load directory user for {event.player_name}")
            return

        payload = build_payload(user, EventKind.PLAYER_JOIN, player_name=event.player_name)
        logger.debug(f"Sending player join event for {payload.player_name} with groups: {list(payload.groups)}")
        log_outcome(self.client.notify_join(payload), f"player join event for {payload.player_name}")


class RoleChangeListener:
    """Sends the user's full group snapshot whenever a group node is added or removed."""

    def __init__(self, config: "ConfigStore", client: RelayClient):
        self.config = config
        self.client = client

    def register(self, source: EventSource) -> None:
        source.subscribe(NodeAddEvent, self.on_node_add)
        source.subscribe(NodeRemoveEvent, self.on_node_remove)
        logger.info("Directory listeners registered.")

    def on_node_add(self, event: NodeAddEvent) -> Optional["Future[Outcome]"]:
        return self._handle(event, EventKind.GROUP_ADD, "added")

    def on_node_remove(self, event: NodeRemoveEvent) -> Optional["Future[Outcome]"]:
        return self._handle(event, EventKind.GROUP_REMOVE, "removed")

    def _handle(self, event, event_type: EventKind, verb: str) -> Optional["Future[Outcome]"]:
        if not self.config.get_bool("sync.on-rank-change", True):
            return None
        if not isinstance(event.target, DirectoryUser):
            return None
        if event.node.type is not NodeType.INHERITANCE:
            return None

        user = event.target
        logger.debug(f"Group {verb} for {user.username}: {event.node.group_name}")

        payload = build_payload(user, event_type)
        future = self.client.notify_rank_change(payload)
        log_outcome(future, f"rank update for {payload.player_name}")
        return future
