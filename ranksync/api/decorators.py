"""Bearer-token guard for ingress endpoints."""
from __future__ import annotations
import hmac
import logging
from functools import wraps

from flask import current_app, jsonify, request

logger = logging.getLogger(__name__)


def _unauthorized(detail: str):
    return jsonify({"error": "Unauthorized", "message": detail}), 401


def require_ingress_token(fn):
    """
    Decorator requiring ``Authorization: Bearer <ingress.token>``.

    The expected token is read from the bridge's config on every request, so
    a reload rotates it without restarting the app.

    Returns:
        401 Unauthorized: Missing, malformed or wrong token
        503 Service Unavailable: No ingress token configured

    Example:
        @bp.route("/events/session-start", methods=["POST"])
        @require_ingress_token
        def session_start():
            ...
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):
        bridge = current_app.config["BRIDGE"]
        expected = bridge.config.get_str("ingress.token", "")
        if not expected:
            logger.error("Ingress request rejected: ingress.token is not configured")
            return jsonify({"error": "Service Unavailable", "message": "Ingress token not configured"}), 503

        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            logger.warning(f"Ingress request missing Authorization header from {request.remote_addr}")
            return _unauthorized("Authorization header required. Use 'Authorization: Bearer <token>'")

        if not auth_header.startswith("Bearer "):
            logger.warning(f"Ingress request with invalid Authorization format from {request.remote_addr}")
            return _unauthorized("Invalid Authorization header format. Expected 'Bearer <token>'")

        token = auth_header[7:]
        if not token or not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
            logger.warning(f"Ingress request with invalid token from {request.remote_addr}")
            return _unauthorized("Invalid token")

        return fn(*args, **kwargs)

    return wrapper
