"""
Retention pruning and display windows.

`prune_points` bounds what is persisted; `window_points` only filters what is
shown and never feeds back into the cache.
"""

from __future__ import annotations

import math
import re
from typing import Iterable

from riverlevels.constants import MS_PER_DAY, WINDOW_PRESETS
from riverlevels.types import Point
from riverlevels.utils import utc_now_ms

_DAYS_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*d\s*$", re.IGNORECASE)


def prune_points(points: Iterable[Point], max_age_ms: float, now_ms: int | None = None) -> list[Point]:
    """Drop points older than `now - max_age_ms`; the cutoff itself is kept."""
    now = utc_now_ms() if now_ms is None else now_ms
    cutoff = now - max_age_ms
    return [p for p in points if p["timestamp"] >= cutoff]


def window_points(
    points: Iterable[Point],
    window_ms: float | None,
    now_ms: int | None = None,
) -> list[Point]:
    """
    Points at or after `now - window_ms`.

    A `window_ms` of None or infinity means "All" and returns every point.
    """
    if window_ms is None or not math.isfinite(window_ms):
        return list(points)
    now = utc_now_ms() if now_ms is None else now_ms
    cutoff = now - window_ms
    return [p for p in points if p["timestamp"] >= cutoff]


def parse_window(label: str) -> int | None:
    """
    Resolve a window label ('1d', '14d', 'All', or any '<N>d') to milliseconds.

    Returns None for "All". Raises ValueError for anything else.
    """
    text = (label or "").strip()
    for name, ms in WINDOW_PRESETS.items():
        if text.lower() == name.lower():
            return ms
    m = _DAYS_RE.match(text)
    if m is None:
        raise ValueError(f"Unknown display window: {label!r}")
    days = float(m.group(1))
    if days <= 0:
        raise ValueError(f"Display window must be positive: {label!r}")
    return int(days * MS_PER_DAY)


def window_label(window_ms: float | None) -> str:
    """Preset label for a window, else whole days ('45d'), 'All' if unbounded."""
    if window_ms is None or not math.isfinite(window_ms):
        return "All"
    for name, ms in WINDOW_PRESETS.items():
        if ms == window_ms:
            return name
    return f"{int(window_ms / MS_PER_DAY + 0.5)}d"
