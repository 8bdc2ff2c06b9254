from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class FetchError(RuntimeError):
    """Raised when the timeline Actor run or dataset read fails."""


class StorageError(RuntimeError):
    """Raised when writing to SQLite or the snapshot file fails."""
