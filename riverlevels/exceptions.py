"""Riverlevels exception hierarchy."""

from __future__ import annotations


class RiverLevelsError(Exception):
    """Base exception for riverlevels."""


class FetchError(RiverLevelsError):
    """Raised when the feed cannot be fetched (network or non-2xx status)."""

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class CacheLockError(RiverLevelsError):
    """Raised when the cache directory is locked by another process."""
