"""Role-membership directory: snapshots, lookups and an in-memory mirror.

The real directory lives in the host. The relay only needs to load a user
snapshot by UUID and to hear about node changes; ``InMemoryDirectory`` does
both and backs the HTTP ingress and the tests.
"""
from __future__ import annotations
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, Optional, Protocol, Tuple

from .events import LocalEventBus, NodeAddEvent, NodeRemoveEvent
from .relay.exceptions import DirectoryError

logger = logging.getLogger(__name__)

GROUP_NODE_PREFIX = "group."


class NodeType(str, Enum):
    INHERITANCE = "inheritance"
    PERMISSION = "permission"


@dataclass(frozen=True)
class Node:
    """A permission node. Keys of the form ``group.<name>`` are group memberships."""
    key: str

    @property
    def type(self) -> NodeType:
        if self.key.startswith(GROUP_NODE_PREFIX) and len(self.key) > len(GROUP_NODE_PREFIX):
            return NodeType.INHERITANCE
        return NodeType.PERMISSION

    @property
    def group_name(self) -> Optional[str]:
        if self.type is NodeType.INHERITANCE:
            return self.key[len(GROUP_NODE_PREFIX):]
        return None

    @classmethod
    def group(cls, name: str) -> "Node":
        return cls(f"{GROUP_NODE_PREFIX}{name}")


@dataclass(frozen=True)
class DirectoryUser:
    """Point-in-time snapshot of a user and the nodes they hold."""
    uuid: str
    username: Optional[str] = None
    primary_group: Optional[str] = None
    nodes: Tuple[Node, ...] = field(default_factory=tuple)

    @property
    def groups(self) -> list[str]:
        """Group names of the inheritance nodes, in node order."""
        return [node.group_name for node in self.nodes if node.type is NodeType.INHERITANCE]


@dataclass(frozen=True)
class DirectoryGroup:
    """A group holder; node changes on groups are not synced."""
    name: str
    nodes: Tuple[Node, ...] = field(default_factory=tuple)


class Directory(Protocol):
    def load_user(self, uuid: str) -> "Future[Optional[DirectoryUser]]":
        """Load a user snapshot; the future yields None when the user is unknown."""
        ...


class InMemoryDirectory:
    """Thread-safe in-memory directory that publishes node changes on a bus.

    Usage:
        bus = LocalEventBus()
        directory = InMemoryDirectory(bus)
        directory.upsert_user(DirectoryUser(uuid, "alice", "default", (Node.group("default"),)))
        directory.add_node(uuid, Node.group("vip"))   # publishes NodeAddEvent
    """

    def __init__(self, bus: Optional[LocalEventBus] = None, executor: Optional[ThreadPoolExecutor] = None):
        self.bus = bus or LocalEventBus()
        self._lock = threading.Lock()
        self._users: Dict[str, DirectoryUser] = {}
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="ranksync-directory")

    def subscribe(self, event_type, handler) -> None:
        self.bus.subscribe(event_type, handler)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def get_user(self, uuid: str) -> Optional[DirectoryUser]:
        with self._lock:
            return self._users.get(uuid)

    def load_user(self, uuid: str) -> "Future[Optional[DirectoryUser]]":
        return self._executor.submit(self.get_user, uuid)

    def upsert_user(self, user: DirectoryUser) -> None:
        """Store a snapshot as-is; no events are published."""
        with self._lock:
            self._users[user.uuid] = user

    def add_node(self, uuid: str, node: Node) -> DirectoryUser:
        """Give ``node`` to a user and publish a NodeAddEvent.

        A node the user already holds is a no-op and publishes nothing.

        Raises:
            DirectoryError: If the user is unknown
        """
        with self._lock:
            user = self._require(uuid)
            if node in user.nodes:
                return user
            user = replace(user, nodes=user.nodes + (node,))
            if user.primary_group is None and node.group_name:
                user = replace(user, primary_group=node.group_name)
            self._users[uuid] = user
        self.bus.publish(NodeAddEvent(user, node))
        return user

    def remove_node(self, uuid: str, node: Node) -> DirectoryUser:
        """Take ``node`` from a user and publish a NodeRemoveEvent.

        A node the user does not hold is a no-op and publishes nothing.

        Raises:
            DirectoryError: If the user is unknown
        """
        with self._lock:
            user = self._require(uuid)
            if node not in user.nodes:
                return user
            remaining = tuple(n for n in user.nodes if n != node)
            primary = user.primary_group
            if node.group_name and node.group_name == primary:
                groups = [n.group_name for n in remaining if n.type is NodeType.INHERITANCE]
                primary = groups[0] if groups else None
            user = replace(user, nodes=remaining, primary_group=primary)
            self._users[uuid] = user
        self.bus.publish(NodeRemoveEvent(user, node))
        return user

    def _require(self, uuid: str) -> DirectoryUser:
        user = self._users.get(uuid)
        if user is None:
            raise DirectoryError(f"Unknown user: {uuid}")
        return user


def nodes_from_keys(keys: Iterable[str]) -> Tuple[Node, ...]:
    return tuple(Node(str(key)) for key in keys)
