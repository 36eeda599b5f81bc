"""Composition root: builds the relay client once and hands it to every component."""
from __future__ import annotations
import logging
from typing import Optional

from ranksync.config.settings import ConfigStore, load_settings
from ranksync.core.directory import Directory, InMemoryDirectory
from ranksync.core.events import EventSource, LocalEventBus, SessionStartEvent
from ranksync.core.linking import RankSyncCommand
from ranksync.core.listeners import JoinListener, RoleChangeListener
from ranksync.core.relay import RelayClient

logger = logging.getLogger(__name__)


class RankSyncBridge:
    """Wires config, directory, relay client, listeners and commands together.

    Usage:
        bridge = RankSyncBridge(load_settings())
        bridge.session_started(uuid, "alice")
        bridge.command.execute(sender, ["link", "ABC123"])
        bridge.close()
    """

    def __init__(
        self,
        config: Optional[ConfigStore] = None,
        *,
        directory: Optional[Directory] = None,
        client: Optional[RelayClient] = None,
        source: Optional[EventSource] = None,
    ):
        """Initialize the bridge.

        Args:
            config: Configuration store (defaults to ``load_settings()``)
            directory: Directory used for join lookups (defaults to an in-memory mirror)
            client: Relay client (defaults to one built from ``config``)
            source: Where node events come from (defaults to the bridge's bus)
        """
        self.config = config or load_settings()
        self.bus = LocalEventBus()
        self.directory = directory or InMemoryDirectory(self.bus)
        self.client = client or RelayClient(self.config)

        self.join_listener = JoinListener(self.config, self.client, self.directory)
        self.join_listener.register(self.bus)
        self.role_listener = RoleChangeListener(self.config, self.client)
        self.role_listener.register(source or self.bus)

        self.command = RankSyncCommand(self.config, self.client)
        logger.info("RankSync bridge started.")
        logger.debug("Debug logging is enabled.")

    def session_started(self, uuid: str, player_name: str) -> None:
        """Entry point for the host's session-start hook."""
        self.bus.publish(SessionStartEvent(uuid, player_name))

    def close(self) -> None:
        """Drain pending lookups first; their callbacks still submit to the client."""
        if isinstance(self.directory, InMemoryDirectory):
            self.directory.close()
        self.client.close()
        logger.info("RankSync bridge stopped.")
