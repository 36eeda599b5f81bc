"""RankSync-specific exceptions for error handling."""


class RankSyncError(Exception):
    """Base exception for all RankSync operations."""
    pass


class ConfigError(RankSyncError):
    """Configuration file could not be parsed into a settings tree.

    Attributes:
        path: Config file that failed to load
    """

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class DirectoryError(RankSyncError):
    """Directory mutation targeted a user that is not known."""
    pass


class PayloadError(RankSyncError):
    """Wire payload is missing fields or has the wrong shape."""
    pass
