"""
Riverlevels configuration constants.

Defaults for the feed source, safety threshold, cache retention, staleness
guard and display windows are defined here.
"""

from __future__ import annotations

from pathlib import Path

# --- Feed ---
# Environment Agency "check for flooding" station CSV (station 8208).
DEFAULT_FEED_URL = "https://check-for-flooding.service.gov.uk/station-csv/8208"
DEFAULT_TIMEOUT_SEC = 10.0           # Applied by the CLI, not by the core

# --- Safety ---
DEFAULT_SAFE_LEVEL_M = 1.9           # Above this it is unsafe to row
DEFAULT_STATUS_POLICY = "closest"

# --- Time units ---
MS_PER_HOUR = 60 * 60 * 1000
MS_PER_DAY = 24 * MS_PER_HOUR

# --- Retention and staleness ---
RETENTION_MS = 365 * MS_PER_DAY      # Maximum age of cached points
STALE_AFTER_MS = 4 * MS_PER_HOUR     # Closest point older than this => Unknown

# --- Display windows ---
# Ordered presets; None means unbounded ("All").
WINDOW_PRESETS: dict[str, int | None] = {
    "1d": 1 * MS_PER_DAY,
    "7d": 7 * MS_PER_DAY,
    "14d": 14 * MS_PER_DAY,
    "30d": 30 * MS_PER_DAY,
    "All": None,
}
DEFAULT_WINDOW = "14d"

# --- Cache persistence ---
CACHE_DIR_DEFAULT = Path.home() / ".riverlevels"
CACHE_KEY_PREFIX = "levels-cache:"
CACHE_META_SUFFIX = ":meta"

# --- Export ---
EXPORT_HEADER = "Timestamp (UTC),Height (m),Type(observed/forecast)"
