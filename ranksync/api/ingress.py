"""Ingress endpoints: the host pushes directory changes and session starts here.

Node changes go through the bridge's in-memory directory, which publishes the
matching event; listeners schedule the outbound call and the request returns
without waiting for it.
"""
from __future__ import annotations
import logging
from typing import Any

from flask import Blueprint, abort, current_app, jsonify, request

from ranksync.core.directory import DirectoryUser, InMemoryDirectory, Node, nodes_from_keys
from ranksync.core.relay.exceptions import PayloadError

from .decorators import require_ingress_token

logger = logging.getLogger(__name__)

bp = Blueprint("ingress", __name__)


def _bridge():
    return current_app.config["BRIDGE"]


def _directory() -> InMemoryDirectory:
    directory = _bridge().directory
    if not isinstance(directory, InMemoryDirectory):
        abort(501, description="Directory mirror is not available on this bridge")
    return directory


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise PayloadError("Request body must be a JSON object")
    return data


def _required_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise PayloadError(f"Missing required field: {key}")
    return value.strip()


@bp.route("/directory/users/<uuid>", methods=["PUT"])
@require_ingress_token
def upsert_user(uuid: str):
    """Replace the mirrored snapshot of a user; publishes nothing."""
    data = _json_body()
    keys = data.get("nodes") or []
    if not isinstance(keys, list):
        raise PayloadError("nodes must be a list")
    node_keys = [_required_str(item, "key") if isinstance(item, dict) else str(item) for item in keys]

    user = DirectoryUser(
        uuid=uuid,
        username=data.get("username"),
        primary_group=data.get("primaryGroup"),
        nodes=nodes_from_keys(node_keys),
    )
    _directory().upsert_user(user)
    logger.debug(f"Directory snapshot stored for {user.username} ({uuid}): {user.groups}")
    return jsonify({"uuid": uuid, "groups": user.groups, "primaryGroup": user.primary_group}), 200


@bp.route("/directory/users/<uuid>/nodes", methods=["POST"])
@require_ingress_token
def add_node(uuid: str):
    node = Node(_required_str(_json_body(), "key"))
    user = _directory().add_node(uuid, node)
    return jsonify({"accepted": True, "groups": user.groups}), 202


@bp.route("/directory/users/<uuid>/nodes/<path:key>", methods=["DELETE"])
@require_ingress_token
def remove_node(uuid: str, key: str):
    user = _directory().remove_node(uuid, Node(key))
    return jsonify({"accepted": True, "groups": user.groups}), 202


@bp.route("/events/session-start", methods=["POST"])
@require_ingress_token
def session_start():
    data = _json_body()
    uuid = _required_str(data, "uuid")
    player_name = _required_str(data, "playerName")
    _bridge().session_started(uuid, player_name)
    return jsonify({"accepted": True}), 202
