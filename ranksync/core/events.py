"""Host events and the subscription seam the listeners attach to."""
from __future__ import annotations
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Protocol, Type, TypeVar, Union

if TYPE_CHECKING:
    from .directory import DirectoryGroup, DirectoryUser, Node

logger = logging.getLogger(__name__)

E = TypeVar("E")
Handler = Callable[[Any], None]


@dataclass(frozen=True)
class SessionStartEvent:
    """A player session began on the host."""
    uuid: str
    player_name: str


@dataclass(frozen=True)
class NodeAddEvent:
    """A node was added to a holder; ``target`` is the holder after the change."""
    target: Union["DirectoryUser", "DirectoryGroup"]
    node: "Node"


@dataclass(frozen=True)
class NodeRemoveEvent:
    """A node was removed from a holder; ``target`` is the holder after the change."""
    target: Union["DirectoryUser", "DirectoryGroup"]
    node: "Node"


class EventSource(Protocol):
    """Anything listeners can subscribe to."""

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        ...


class LocalEventBus:
    """In-process event bus.

    Handlers run synchronously on the publishing thread, in subscription
    order. A handler that raises is logged and skipped; the publisher and the
    remaining handlers are not affected.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: Dict[type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        with self._lock:
            if handler in self._handlers.get(event_type, []):
                self._handlers[event_type].remove(handler)

    def publish(self, event: Any) -> int:
        """Deliver ``event`` to its subscribers.

        Returns:
            Number of handlers that ran without raising
        """
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Handler {handler!r} failed for {type(event).__name__}: {e}", exc_info=True)
        return delivered
