"""Asynchronous HTTP client for the remote rank-sync REST API.

Every public method schedules the request on a worker pool and returns a
Future that always resolves to an Outcome: connection errors, timeouts and
non-2xx answers all end up as ``Outcome(succeeded=False)``.
"""
from __future__ import annotations
import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import requests

from .models import LinkRequest, Outcome, Payload, UnlinkRequest

if TYPE_CHECKING:
    from ranksync.config.settings import ConfigStore, RelaySettings

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4

PLAYER_JOIN_PATH = "/api/player-join"
RANK_UPDATE_PATH = "/api/rank-update"
LINK_PATH = "/api/link"
UNLINK_PATH = "/api/unlink"
LINKED_PATH = "/api/linked/{uuid}"


class RelayClient:
    """HTTP client for the remote rank-sync service.

    Features:
    - Settings (endpoint, token, timeout) read from the store on every call
    - Requests run on a private thread pool, callers never wait on I/O
    - Failures collapse into a failed Outcome instead of an exception

    Usage:
        client = RelayClient(store)
        future = client.notify_join(payload)
        future.add_done_callback(lambda f: print(f.result().succeeded))
    """

    def __init__(self, config: "ConfigStore", executor: Optional[ThreadPoolExecutor] = None):
        """Initialize relay client.

        Args:
            config: Configuration store consulted at call time
            executor: Worker pool (defaults to a pool sized by ``api.workers``)
        """
        self.config = config
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, config.get_int("api.workers", DEFAULT_WORKERS)),
            thread_name_prefix="ranksync-relay",
        )

    def __enter__(self) -> "RelayClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self, wait: bool = True) -> None:
        """Stop accepting work; in-flight calls finish when ``wait`` is True."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    # ─────────────────────────────────────────────────────────────────────
    # Public operations
    # ─────────────────────────────────────────────────────────────────────
    def notify_join(self, payload: Payload) -> "Future[Outcome]":
        """Send a player join event."""
        return self._submit("Failed to send player join event", self._post, PLAYER_JOIN_PATH, payload.to_dict)

    def notify_rank_change(self, payload: Payload) -> "Future[Outcome]":
        """Send a group add/remove event."""
        return self._submit("Failed to send rank update", self._post, RANK_UPDATE_PATH, payload.to_dict)

    def link(self, uuid: str, player_name: str, link_code: str) -> "Future[Outcome]":
        """Link a player's account using a one-time code."""
        request = LinkRequest(uuid, player_name, link_code)
        return self._submit("Failed to link account", self._post, LINK_PATH, request.to_dict)

    def unlink(self, uuid: str) -> "Future[Outcome]":
        """Unlink a player's account."""
        request = UnlinkRequest(uuid)
        return self._submit("Failed to unlink account", self._post, UNLINK_PATH, request.to_dict)

    def check_linked(self, uuid: str) -> "Future[Outcome]":
        """Ask whether a player is linked."""
        return self._submit("Failed to check link status", self._get, LINKED_PATH.format(uuid=uuid))

    # ─────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────
    def _submit(self, error_message: str, fn: Callable[..., Outcome], *args: Any) -> "Future[Outcome]":
        def task() -> Outcome:
            try:
                return fn(*args)
            except Exception as e:
                logger.error(f"{error_message}: {e}", exc_info=True)
                return Outcome.failure(e)

        try:
            return self._executor.submit(task)
        except RuntimeError as e:
            # pool already shut down
            logger.error(f"{error_message}: {e}")
            future: "Future[Outcome]" = Future()
            future.set_result(Outcome.failure(e))
            return future

    def _post(self, path: str, body_factory: Callable[[], Dict[str, Any]]) -> Outcome:
        settings = self.config.relay_settings()
        body = json.dumps(body_factory(), separators=(",", ":"))

        if settings.log_api_calls:
            logger.info(f"POST {path} -> {body}")

        resp = requests.post(
            f"{settings.endpoint}{path}",
            data=body.encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {settings.token}",
            },
            timeout=(settings.timeout_seconds, settings.timeout_seconds),
        )
        return self._to_outcome(resp, settings)

    def _get(self, path: str) -> Outcome:
        settings = self.config.relay_settings()

        if settings.log_api_calls:
            logger.info(f"GET {path}")

        resp = requests.get(
            f"{settings.endpoint}{path}",
            headers={"Authorization": f"Bearer {settings.token}"},
            timeout=(settings.timeout_seconds, settings.timeout_seconds),
        )
        return self._to_outcome(resp, settings)

    def _to_outcome(self, resp: requests.Response, settings: "RelaySettings") -> Outcome:
        """Classify a response; 2xx is success, the body is kept either way."""
        body = _read_body(resp)
        if settings.log_api_calls:
            logger.info(f"Response: {resp.status_code} -> {body}")
        return Outcome(200 <= resp.status_code < 300, body)


def _read_body(resp: requests.Response) -> str:
    """Decode the body as UTF-8 and join its lines with surrounding whitespace removed."""
    try:
        text = (resp.content or b"").decode("utf-8", errors="replace")
    except (requests.RequestException, OSError) as e:
        return f"Error reading response: {e}"
    return "".join(line.strip() for line in text.splitlines())
