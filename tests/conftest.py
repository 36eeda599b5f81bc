"""Pytest shared fixtures for relay tests."""
import json
import pathlib
import sys
import threading
from typing import Callable, Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from ranksync.config.settings import ConfigStore
from ranksync.core.relay import RelayClient

ALICE_UUID = "8667ba71-b85a-4004-af54-457a9734eed7"


# ─────────────────────────────────────────────────────────────────────────────
# Stub HTTP layer
# ─────────────────────────────────────────────────────────────────────────────
class _StubResponse:
    def __init__(self, status_code: int = 200, text: str = ""):
        self.status_code = status_code
        self.text = text
        self.content = text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


class RemoteStub:
    """Records outbound requests and answers with a configurable responder."""

    def __init__(self):
        self.calls: list[dict] = []
        self._cond = threading.Condition()
        self.responder: Callable[[str, str, Optional[dict]], _StubResponse] = (
            lambda method, url, body: _StubResponse(200, '{"success":true}')
        )

    response = staticmethod(_StubResponse)

    def respond_with(self, status_code: int = 200, text: str = "") -> None:
        self.responder = lambda method, url, body: _StubResponse(status_code, text)

    def raise_error(self, exc: Exception) -> None:
        def _raise(method, url, body):
            raise exc
        self.responder = _raise

    def _record(self, method: str, url: str, kwargs: dict):
        data = kwargs.get("data")
        body = json.loads(data) if data else None
        call = {
            "method": method,
            "url": url,
            "body": body,
            "raw": data,
            "headers": dict(kwargs.get("headers") or {}),
            "timeout": kwargs.get("timeout"),
        }
        with self._cond:
            self.calls.append(call)
            self._cond.notify_all()
        return self.responder(method, url, body)

    def post(self, url, *args, **kwargs):
        return self._record("POST", url, kwargs)

    def get(self, url, *args, **kwargs):
        return self._record("GET", url, kwargs)

    def wait_for(self, count: int, timeout: float = 5.0) -> list[dict]:
        with self._cond:
            self._cond.wait_for(lambda: len(self.calls) >= count, timeout=timeout)
            return list(self.calls)


@pytest.fixture(autouse=True)
def _no_network(monkeypatch):
    """Unit tests never reach a real server."""

    def _blocked(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP call in unit test: {url}")

    monkeypatch.setattr(requests, "post", _blocked)
    monkeypatch.setattr(requests, "get", _blocked)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("RANKSYNC_CONFIG", "RANKSYNC_API_ENDPOINT", "RANKSYNC_API_TOKEN", "RANKSYNC_INGRESS_TOKEN"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def remote(monkeypatch):
    stub = RemoteStub()
    monkeypatch.setattr(requests, "post", stub.post)
    monkeypatch.setattr(requests, "get", stub.get)
    return stub


# ─────────────────────────────────────────────────────────────────────────────
# Config / client
# ─────────────────────────────────────────────────────────────────────────────
def make_store(**sections) -> ConfigStore:
    data = {
        "api": {"endpoint": "http://bot.test", "token": "secret-token", "timeout": 2500, "workers": 4},
        "ingress": {"token": "ingress-token"},
    }
    for name, values in sections.items():
        data.setdefault(name, {}).update(values)
    return ConfigStore(ROOT / "tests" / "does-not-exist.yml", data=data)


@pytest.fixture()
def store():
    return make_store()


@pytest.fixture()
def relay(store):
    client = RelayClient(store)
    yield client
    client.close()


# ─────────────────────────────────────────────────────────────────────────────
# Command senders
# ─────────────────────────────────────────────────────────────────────────────
class FakeSender:
    def __init__(self, name: str = "Alice", uuid: Optional[str] = ALICE_UUID, permissions=("ranksync.link", "ranksync.status")):
        self.name = name
        self.uuid = uuid
        self.permissions = set(permissions)
        self.messages: list[str] = []

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def send_message(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture()
def player():
    return FakeSender()


@pytest.fixture()
def store_factory():
    return make_store


@pytest.fixture()
def sender_factory():
    return FakeSender
