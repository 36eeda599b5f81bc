"""Flask application factory for the ingress API.

This module provides the create_app() factory function; gunicorn calls it
through ``gunicorn.conf.py``.
"""
from __future__ import annotations
import logging
from typing import Optional

from flask import Flask

from ranksync.bridge import RankSyncBridge


def create_app(bridge: Optional[RankSyncBridge] = None) -> Flask:
    """Create and configure the ingress Flask application.

    Args:
        bridge: Pre-built bridge (defaults to one built from ``load_settings()``)
    """
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    bridge = bridge or RankSyncBridge()

    app = Flask(__name__)
    app.config["BRIDGE"] = bridge

    from ranksync.api import errors, health, ingress

    app.register_blueprint(health.bp)
    app.register_blueprint(ingress.bp)
    errors.register_error_handlers(app)

    if not bridge.config.get_str("ingress.token", ""):
        app.logger.warning("ingress.token is not set; ingress endpoints will answer 503")
    app.logger.info(f"Relaying to {bridge.config.relay_settings().endpoint}")

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000)
