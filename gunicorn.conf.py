"""Gunicorn configuration for the RankSync ingress API.

The directory mirror and the event bus live in process memory, so the app
runs as a single worker; concurrency comes from threads, and outbound calls
already run on the relay's own pool.

Secrets:
    RANKSYNC_API_TOKEN / RANKSYNC_INGRESS_TOKEN, or the files
    /run/secrets/ranksync_api_token and /run/secrets/ranksync_ingress_token,
    are picked up by ranksync.config.settings when the app is created.
"""
import os

wsgi_app = "ranksync.flask_app:create_app()"
bind = os.environ.get("RANKSYNC_BIND", "0.0.0.0:5000")
workers = 1
threads = int(os.environ.get("RANKSYNC_THREADS", "4"))
accesslog = "-"


def post_fork(server, worker):
    """Log which config file the worker is about to load."""
    from pathlib import Path

    config_path = Path(os.environ.get("RANKSYNC_CONFIG", "config.yml"))
    if config_path.exists():
        worker.log.info(f"Loading RankSync config from {config_path}")
    else:
        worker.log.warning(f"{config_path} not found, using defaults and environment")

    secrets_dir = Path("/run/secrets")
    if secrets_dir.is_dir():
        found = [p.name for p in secrets_dir.glob("ranksync_*")]
        if found:
            worker.log.info(f"Found {len(found)} RankSync secrets in /run/secrets")
