"""Settings store with YAML file, environment variable and Docker secrets integration."""
from __future__ import annotations
import copy
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from ranksync.core.relay.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yml"

DEFAULTS: dict[str, Any] = {
    "api": {
        "endpoint": "http://localhost:3000",
        "token": "",
        "timeout": 5000,
        "workers": 4,
    },
    "sync": {
        "on-join": True,
        "on-rank-change": True,
    },
    "logging": {
        "debug": False,
        "log-api-calls": False,
    },
    "ingress": {
        "token": "",
    },
    "messages": {
        "prefix": "[RankSync] ",
        "no-permission": "You do not have permission to do that.",
        "reload-success": "Configuration reloaded.",
        "reload-fail": "Configuration reload failed. Check the server log.",
        "link-success": "Your account has been linked to Discord.",
        "link-fail": "Linking failed. Check your code and try again.",
        "unlink-success": "Your account has been unlinked from Discord.",
        "unlink-fail": "Unlinking failed. Is your account linked?",
        "status-linked": "Your account is linked to Discord.",
        "status-not-linked": "Your account is not linked to Discord.",
    },
}

# (dotted key, environment variable, secret file name)
_OVERRIDES = [
    ("api.endpoint", "RANKSYNC_API_ENDPOINT", None),
    ("api.token", "RANKSYNC_API_TOKEN", "ranksync_api_token"),
    ("ingress.token", "RANKSYNC_INGRESS_TOKEN", "ranksync_ingress_token"),
]


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.debug(f"Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            logger.warning(f"Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            logger.debug(f"Loaded {env_var} from environment (fallback)")
            return secret_value

    return None


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _set_dotted(tree: dict, key: str, value: Any) -> None:
    *parents, leaf = key.split(".")
    node = tree
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value


@dataclass(frozen=True)
class RelaySettings:
    """Snapshot of everything one outbound call needs."""
    endpoint: str
    token: str
    timeout_ms: int
    log_api_calls: bool = False

    @property
    def timeout_seconds(self) -> Optional[float]:
        """Seconds for requests' ``timeout``; None (wait forever) when not positive."""
        if self.timeout_ms <= 0:
            return None
        return self.timeout_ms / 1000.0


class ConfigStore:
    """Hot-reloadable configuration tree with typed accessors.

    Readers never lock: ``reload()`` builds a fresh tree and swaps the
    reference, so a reader sees either the old tree or the new one.

    Usage:
        store = ConfigStore("config.yml")
        store.get_bool("sync.on-join", True)
        store.reload()
    """

    def __init__(self, path: Optional[str | Path] = None, *, data: Optional[dict] = None):
        """Initialize the store and load it once.

        Args:
            path: YAML file (defaults to RANKSYNC_CONFIG env var, then config.yml)
            data: Literal settings tree used instead of reading a file
        """
        self.path = Path(path or os.environ.get("RANKSYNC_CONFIG", DEFAULT_CONFIG_PATH))
        self._data = data
        self._lock = threading.Lock()
        self._tree: dict[str, Any] = {}
        self.reload()

    def reload(self) -> None:
        """Re-read the file and environment; keeps the old tree on error.

        Raises:
            ConfigError: If the YAML file cannot be parsed into a mapping
        """
        with self._lock:
            tree = _deep_merge(DEFAULTS, self._read_source())
            for key, env_var, secret_name in _OVERRIDES:
                value = _load_secret_from_file(secret_name, env_var) if secret_name else os.getenv(env_var)
                if value:
                    _set_dotted(tree, key, value)
            self._tree = tree
        self._apply_logging()
        logger.debug(f"Configuration loaded from {self.path if self._data is None else '<dict>'}")

    def _read_source(self) -> dict:
        if self._data is not None:
            return copy.deepcopy(self._data)
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle)
        except yaml.YAMLError as e:
            raise ConfigError(str(self.path), f"invalid YAML: {e}") from e
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ConfigError(str(self.path), "top level must be a mapping")
        return loaded

    def _apply_logging(self) -> None:
        level = logging.DEBUG if self.get_bool("logging.debug", False) else logging.INFO
        logging.getLogger("ranksync").setLevel(level)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``api.endpoint``."""
        node: Any = self._tree
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Override one dotted key in the live tree until the next reload."""
        with self._lock:
            tree = copy.deepcopy(self._tree)
            _set_dotted(tree, key, value)
            self._tree = tree
        if key.startswith("logging."):
            self._apply_logging()

    def get_str(self, key: str, default: str = "") -> str:
        value = self.get(key, default)
        return default if value is None else str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Config value {key}={value!r} is not an integer, using {default}")
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    def relay_settings(self) -> RelaySettings:
        """Snapshot the values an outbound call uses."""
        return RelaySettings(
            endpoint=self.get_str("api.endpoint", DEFAULTS["api"]["endpoint"]).rstrip("/"),
            token=self.get_str("api.token", ""),
            timeout_ms=self.get_int("api.timeout", DEFAULTS["api"]["timeout"]),
            log_api_calls=self.get_bool("logging.log-api-calls", False),
        )

    def format_message(self, key: str) -> str:
        """User-facing message for ``key`` with the configured prefix."""
        prefix = self.get_str("messages.prefix", DEFAULTS["messages"]["prefix"])
        return prefix + self.get_str(f"messages.{key}", "")


def load_settings(path: Optional[str | Path] = None) -> ConfigStore:
    """Load settings from the YAML file, environment and /run/secrets."""
    return ConfigStore(path)
