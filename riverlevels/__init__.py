"""
Riverlevels: cached river-level observations and forecasts with a
safe-to-row status.

This package provides:
- Tolerant parsing of station CSV feeds (observed and forecast heights)
- A persisted point cache merged under "observed beats forecast" rules
- One-year retention and display windows
- A current status from the freshest usable point

Public API:
    main(argv=None) - CLI entrypoint
    parse_feed(text) - CSV text to points
    merge_points(existing, incoming) - Reconcile a batch with the cache
    prune_points(points, max_age_ms, now_ms=None) - Retention
    window_points(points, window_ms, now_ms=None) - Display window
    resolve_status(points, safe_level_m, now_ms=None, policy=...) - Status
    refresh(store, url=None, ...) - Fetch, merge, prune, persist
"""

from __future__ import annotations

# Version
__version__ = "0.1.0"

from riverlevels.cli import main
from riverlevels.config import Settings, load_settings
from riverlevels.constants import (
    DEFAULT_FEED_URL,
    DEFAULT_SAFE_LEVEL_M,
    RETENTION_MS,
    STALE_AFTER_MS,
    WINDOW_PRESETS,
)
from riverlevels.exceptions import CacheLockError, FetchError, RiverLevelsError
from riverlevels.export import export_csv, write_export
from riverlevels.feed import parse_feed, resolve_columns
from riverlevels.fetch import fetch_feed
from riverlevels.merge import merge_points
from riverlevels.pipeline import LoadResult, RefreshResult, load_or_refresh, refresh
from riverlevels.retention import parse_window, prune_points, window_label, window_points
from riverlevels.status import resolve_status
from riverlevels.store import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    PointStore,
    state_lock,
)

# Type exports
from riverlevels.types import (
    CacheMeta,
    Point,
    Status,
    StatusLevel,
    StatusPolicy,
)

__all__ = [
    "__version__",
    # Core functions
    "main",
    "parse_feed",
    "resolve_columns",
    "merge_points",
    "prune_points",
    "window_points",
    "parse_window",
    "window_label",
    "resolve_status",
    "export_csv",
    "write_export",
    "fetch_feed",
    "refresh",
    "load_or_refresh",
    "RefreshResult",
    "LoadResult",
    # Persistence
    "KeyValueStore",
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    "PointStore",
    "state_lock",
    # Configuration
    "Settings",
    "load_settings",
    "DEFAULT_FEED_URL",
    "DEFAULT_SAFE_LEVEL_M",
    "RETENTION_MS",
    "STALE_AFTER_MS",
    "WINDOW_PRESETS",
    # Errors
    "RiverLevelsError",
    "FetchError",
    "CacheLockError",
    # Types
    "Point",
    "CacheMeta",
    "Status",
    "StatusLevel",
    "StatusPolicy",
]
