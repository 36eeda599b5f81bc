"""Unit tests for session and group-change listeners."""
import logging
import threading
from concurrent.futures import Future

import pytest

from ranksync.core.directory import DirectoryGroup, DirectoryUser, InMemoryDirectory, Node
from ranksync.core.events import LocalEventBus, NodeAddEvent, NodeRemoveEvent, SessionStartEvent
from ranksync.core.listeners import JoinListener, RoleChangeListener, build_payload
from ranksync.core.relay import EventKind, RelayClient

U1 = "4b6a1c0e-8f6f-4a57-9d1c-2f8a7c3e9b10"


def _alice(*groups, primary="vip"):
    return DirectoryUser(U1, "Alice", primary, tuple(Node.group(g) for g in groups))


@pytest.fixture()
def wiring(store):
    bus = LocalEventBus()
    directory = InMemoryDirectory(bus)
    client = RelayClient(store)
    yield bus, directory, client
    directory.close()
    client.close()


def _drain(directory, client):
    directory.close()
    client.close()


# ─────────────────────────────────────────────────────────────────────────────
# Payload construction
# ─────────────────────────────────────────────────────────────────────────────
def test_build_payload_uses_inheritance_nodes_only():
    user = DirectoryUser(U1, "Alice", "vip", (Node.group("vip"), Node("essentials.fly"), Node.group("default")))

    payload = build_payload(user, EventKind.GROUP_ADD)

    assert payload.groups == ("vip", "default")
    assert payload.primary_group == "vip"
    assert payload.player_name == "Alice"


def test_build_payload_without_username_is_unknown():
    payload = build_payload(DirectoryUser(U1), EventKind.GROUP_REMOVE)
    assert payload.player_name == "Unknown"
    assert payload.groups == ()


# ─────────────────────────────────────────────────────────────────────────────
# Join listener
# ─────────────────────────────────────────────────────────────────────────────
def test_session_start_posts_player_join(store, wiring, remote):
    bus, directory, client = wiring
    directory.upsert_user(_alice("vip", "default"))
    JoinListener(store, client, directory).register(bus)

    bus.publish(SessionStartEvent(U1, "Alice"))
    _drain(directory, client)

    assert len(remote.calls) == 1
    call = remote.calls[0]
    assert call["url"] == "http://bot.test/api/player-join"
    assert call["body"]["uuid"] == U1
    assert call["body"]["playerName"] == "Alice"
    assert call["body"]["eventType"] == "PLAYER_JOIN"
    assert call["body"]["primaryGroup"] == "vip"
    assert call["body"]["groups"] == ["vip", "default"]


def test_session_start_disabled_sends_nothing(store_factory, remote):
    store = store_factory(sync={"on-join": False})
    bus = LocalEventBus()
    directory = InMemoryDirectory(bus)
    client = RelayClient(store)
    directory.upsert_user(_alice("vip"))
    JoinListener(store, client, directory).register(bus)

    bus.publish(SessionStartEvent(U1, "Alice"))
    _drain(directory, client)

    assert remote.calls == []


def test_session_start_unknown_user_is_skipped(store, wiring, remote, caplog):
    bus, directory, client = wiring
    JoinListener(store, client, directory).register(bus)

    with caplog.at_level(logging.DEBUG, logger="ranksync.core.listeners"):
        bus.publish(SessionStartEvent(U1, "Ghost"))
        _drain(directory, client)

    assert remote.calls == []
    assert "Could not load directory user for Ghost" in caplog.text


def test_session_start_lookup_failure_is_skipped(store, relay, remote, caplog):
    class FailingDirectory:
        def load_user(self, uuid):
            future = Future()
            future.set_exception(TimeoutError("directory offline"))
            return future

    bus = LocalEventBus()
    JoinListener(store, relay, FailingDirectory()).register(bus)

    with caplog.at_level(logging.DEBUG, logger="ranksync.core.listeners"):
        assert bus.publish(SessionStartEvent(U1, "Alice")) == 1
    relay.close()

    assert remote.calls == []
    assert "Directory lookup failed for Alice" in caplog.text


def test_session_start_does_not_wait_for_remote(store, wiring, remote):
    bus, directory, client = wiring
    directory.upsert_user(_alice("vip"))
    release = threading.Event()

    def _slow(method, url, body):
        release.wait(5)
        return remote.response(500, "down")

    remote.responder = _slow
    JoinListener(store, client, directory).register(bus)

    bus.publish(SessionStartEvent(U1, "Alice"))

    # publish returned while the remote is still holding the request
    assert len(remote.wait_for(1)) == 1
    assert not release.is_set()
    release.set()


def test_failed_join_is_logged_as_warning(store, wiring, remote, caplog):
    bus, directory, client = wiring
    directory.upsert_user(_alice("vip"))
    remote.respond_with(500, '{"error":"Internal server error"}')
    JoinListener(store, client, directory).register(bus)

    with caplog.at_level(logging.WARNING, logger="ranksync.core.listeners"):
        bus.publish(SessionStartEvent(U1, "Alice"))
        _drain(directory, client)

    assert 'Failed to send player join event for Alice: {"error":"Internal server error"}' in caplog.text


# ─────────────────────────────────────────────────────────────────────────────
# Role change listener
# ─────────────────────────────────────────────────────────────────────────────
def test_group_add_sends_full_snapshot(store, wiring, remote):
    bus, directory, client = wiring
    directory.upsert_user(_alice("default", primary="default"))
    RoleChangeListener(store, client).register(bus)

    directory.add_node(U1, Node.group("vip"))
    _drain(directory, client)

    body = remote.calls[0]["body"]
    assert remote.calls[0]["url"] == "http://bot.test/api/rank-update"
    assert body["eventType"] == "GROUP_ADD"
    assert body["groups"] == ["default", "vip"]
    assert body["primaryGroup"] == "default"


def test_group_remove_sends_remaining_groups(store, wiring, remote):
    bus, directory, client = wiring
    directory.upsert_user(_alice("vip", "default"))
    RoleChangeListener(store, client).register(bus)

    directory.remove_node(U1, Node.group("vip"))
    _drain(directory, client)

    body = remote.calls[0]["body"]
    assert body["eventType"] == "GROUP_REMOVE"
    assert body["groups"] == ["default"]
    assert body["primaryGroup"] == "default"


def test_permission_nodes_are_ignored(store, wiring, remote):
    bus, directory, client = wiring
    directory.upsert_user(_alice("vip"))
    RoleChangeListener(store, client).register(bus)

    directory.add_node(U1, Node("essentials.fly"))
    directory.remove_node(U1, Node("essentials.fly"))
    _drain(directory, client)

    assert remote.calls == []


def test_group_holders_are_ignored(store, relay, remote):
    listener = RoleChangeListener(store, relay)
    group = DirectoryGroup("vip", (Node.group("default"),))

    assert listener.on_node_add(NodeAddEvent(group, Node.group("default"))) is None
    relay.close()

    assert remote.calls == []


def test_rank_change_toggle(store_factory, remote):
    store = store_factory(sync={"on-rank-change": False})
    client = RelayClient(store)
    listener = RoleChangeListener(store, client)

    assert listener.on_node_add(NodeAddEvent(_alice("vip"), Node.group("vip"))) is None
    assert listener.on_node_remove(NodeRemoveEvent(_alice(), Node.group("vip"))) is None
    client.close()

    assert remote.calls == []


def test_toggle_is_read_on_every_event(store, relay, remote):
    listener = RoleChangeListener(store, relay)

    store.set("sync.on-rank-change", False)
    assert listener.on_node_add(NodeAddEvent(_alice("vip"), Node.group("vip"))) is None
    store.set("sync.on-rank-change", True)
    future = listener.on_node_add(NodeAddEvent(_alice("vip"), Node.group("vip")))

    assert future.result(timeout=5).succeeded
    assert len(remote.calls) == 1


def test_concurrent_group_changes_each_send_their_own_snapshot(store, relay, remote):
    listener = RoleChangeListener(store, relay)
    n = 12
    release = threading.Event()

    def _slow(method, url, body):
        release.wait(5)
        return remote.response(200, "{}")

    remote.responder = _slow
    events = []
    for i in range(n):
        groups = [f"rank{i}", "default"]
        user = DirectoryUser(U1, "Alice", groups[0], tuple(Node.group(g) for g in groups))
        kind = NodeAddEvent if i % 2 == 0 else NodeRemoveEvent
        events.append(kind(user, Node.group(groups[0])))

    futures = []
    lock = threading.Lock()

    def fire(event):
        handler = listener.on_node_add if isinstance(event, NodeAddEvent) else listener.on_node_remove
        future = handler(event)
        with lock:
            futures.append(future)

    threads = [threading.Thread(target=fire, args=(e,)) for e in events]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    # every handler returned while the remote was still blocked
    assert len(futures) == n
    assert not any(f.done() for f in futures)

    release.set()
    assert all(f.result(timeout=5).succeeded for f in futures)

    sent = sorted(tuple(call["body"]["groups"]) for call in remote.calls)
    expected = sorted((f"rank{i}", "default") for i in range(n))
    assert sent == expected
    kinds = [call["body"]["eventType"] for call in remote.calls]
    assert kinds.count("GROUP_ADD") == n // 2
    assert kinds.count("GROUP_REMOVE") == n // 2
