"""
Riverlevels type definitions using TypedDict for the cached time series.

These types document the shape of persisted points and cache metadata. Points
are plain dicts so the persisted JSON stays byte-compatible with existing
caches: an absent reading is a missing key, never ``null``.
"""

from __future__ import annotations

from enum import Enum
from typing import TypedDict


class Point(TypedDict, total=False):
    """One timestamp's known water level(s)."""
    timestamp: int       # Milliseconds since the Unix epoch (UTC), unique key
    timestampIso: str    # ISO8601 rendering of timestamp, derived
    observed: float      # Measured height in metres
    forecast: float      # Predicted height in metres


class CacheMeta(TypedDict, total=False):
    """Metadata persisted alongside the cached points."""
    lastRefresh: str | None  # ISO8601 UTC of the last successful save
    count: int               # Number of cached points
    sizeBytes: int           # UTF-8 size of the serialized points payload


class StatusLevel(Enum):
    """Classification of the current river level."""
    SAFE = "safe"
    UNSAFE = "unsafe"
    UNKNOWN = "unknown"


class StatusPolicy(Enum):
    """How the point representing "now" is chosen."""
    CLOSEST = "closest"                  # Closest point within the staleness guard
    LATEST_OBSERVED = "latest-observed"  # Latest observed point, any age


class Status(TypedDict):
    """
    Current status derived from the cache.
    """
    value: float | None
    unsafe: bool
    label: str
    level: StatusLevel
    timestamp: int | None  # Timestamp of the point the status was taken from
