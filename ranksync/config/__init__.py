"""Configuration module for the RankSync relay."""
from .settings import ConfigStore, RelaySettings, load_settings

__all__ = ["ConfigStore", "RelaySettings", "load_settings"]
