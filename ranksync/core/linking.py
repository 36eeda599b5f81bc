"""Player commands: link, unlink, status and the admin reload passthrough.

Link state lives in the remote service; each invocation here only walks
INVOKED -> AWAITING_RESPONSE -> SUCCEEDED | FAILED and tells the player how it
ended.
"""
from __future__ import annotations
import logging
from concurrent.futures import Future
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, Protocol, Sequence

from .relay import Outcome, RelayClient
from .relay.exceptions import ConfigError

if TYPE_CHECKING:
    from ranksync.config.settings import ConfigStore

logger = logging.getLogger(__name__)

COMMAND_NAME = "ranksync"
SUB_COMMANDS = ["reload", "link", "unlink", "status"]

PERMISSION_LINK = "ranksync.link"
PERMISSION_STATUS = "ranksync.status"
PERMISSION_ADMIN = "ranksync.admin"

LINKED_MARKER = '"linked":true'
PLAYERS_ONLY = "This command can only be used by players."
LINK_USAGE = f"Usage: /{COMMAND_NAME} link <code>"


class LinkState(str, Enum):
    INVOKED = "INVOKED"
    AWAITING_RESPONSE = "AWAITING_RESPONSE"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class CommandSender(Protocol):
    """Whoever ran the command. Console senders have no UUID."""
    name: str
    uuid: Optional[str]

    def has_permission(self, permission: str) -> bool:
        ...

    def send_message(self, message: str) -> None:
        ...


def is_linked(outcome: Outcome) -> bool:
    """A status check counts as linked only when it succeeded and says so."""
    return outcome.succeeded and LINKED_MARKER in outcome.body


class RankSyncCommand:
    """Dispatcher for ``/ranksync <sub-command>``.

    ``execute`` returns a Future resolving to the final LinkState once the
    player has been messaged, or None when no remote call was made.
    """

    def __init__(self, config: "ConfigStore", client: RelayClient):
        self.config = config
        self.client = client

    def execute(self, sender: CommandSender, args: Sequence[str]) -> Optional["Future[LinkState]"]:
        if not args:
            self.send_help(sender)
            return None

        sub_command = args[0].lower()
        if sub_command == "reload":
            self.reload(sender)
            return None
        if sub_command == "link":
            return self.link(sender, args[1] if len(args) > 1 else None)
        if sub_command == "unlink":
            return self.unlink(sender)
        if sub_command == "status":
            return self.status(sender)

        self.send_help(sender)
        return None

    def reload(self, sender: CommandSender) -> bool:
        if not sender.has_permission(PERMISSION_ADMIN):
            sender.send_message(self.config.format_message("no-permission"))
            return False

        try:
            self.config.reload()
        except ConfigError as e:
            logger.error(f"Configuration reload requested by {sender.name} failed: {e}")
            sender.send_message(self.config.format_message("reload-fail"))
            return False
        sender.send_message(self.config.format_message("reload-success"))
        logger.info(f"Configuration reloaded by {sender.name}")
        return True

    def link(self, sender: CommandSender, code: Optional[str]) -> Optional["Future[LinkState]"]:
        if not self._check_player(sender, PERMISSION_LINK):
            return None
        if not code or not code.strip():
            sender.send_message(LINK_USAGE)
            return None

        future = self.client.link(sender.uuid, sender.name, code.strip())
        return self._reply(future, sender, lambda o: o.succeeded, "link-success", "link-fail")

    def unlink(self, sender: CommandSender) -> Optional["Future[LinkState]"]:
        if not self._check_player(sender, PERMISSION_LINK):
            return None

        future = self.client.unlink(sender.uuid)
        return self._reply(future, sender, lambda o: o.succeeded, "unlink-success", "unlink-fail")

    def status(self, sender: CommandSender) -> Optional["Future[LinkState]"]:
        if not self._check_player(sender, PERMISSION_STATUS):
            return None

        future = self.client.check_linked(sender.uuid)
        return self._reply(future, sender, is_linked, "status-linked", "status-not-linked")

    def send_help(self, sender: CommandSender) -> None:
        sender.send_message("---------- RankSync ----------")
        sender.send_message(f"/{COMMAND_NAME} link <code> - Link your Discord account")
        sender.send_message(f"/{COMMAND_NAME} unlink - Unlink your Discord account")
        sender.send_message(f"/{COMMAND_NAME} status - Check your link status")
        if sender.has_permission(PERMISSION_ADMIN):
            sender.send_message(f"/{COMMAND_NAME} reload - Reload configuration")

    def tab_complete(self, sender: CommandSender, args: Sequence[str]) -> list[str]:
        if len(args) != 1:
            return []
        prefix = args[0].lower()
        return [
            name for name in SUB_COMMANDS
            if name.startswith(prefix) and (name != "reload" or sender.has_permission(PERMISSION_ADMIN))
        ]

    def _check_player(self, sender: CommandSender, permission: str) -> bool:
        if sender.uuid is None:
            sender.send_message(PLAYERS_ONLY)
            return False
        if not sender.has_permission(permission):
            sender.send_message(self.config.format_message("no-permission"))
            return False
        return True

    def _reply(
        self,
        future: "Future[Outcome]",
        sender: CommandSender,
        accept: Callable[[Outcome], bool],
        success_key: str,
        failure_key: str,
    ) -> "Future[LinkState]":
        """Message the player when ``future`` resolves; yields the final state."""
        state: "Future[LinkState]" = Future()
        state.set_running_or_notify_cancel()

        def _done(f: "Future[Outcome]") -> None:
            try:
                ok = accept(f.result())
                sender.send_message(self.config.format_message(success_key if ok else failure_key))
                state.set_result(LinkState.SUCCEEDED if ok else LinkState.FAILED)
            except Exception as e:
                logger.error(f"Failed to deliver command result to {sender.name}: {e}", exc_info=True)
                state.set_exception(e)

        future.add_done_callback(_done)
        return state
