"""
Current river status from the cached series.

Two selection policies are supported:

- CLOSEST (default): the point nearest to now, in either direction, from the
  whole cache. If it is more than STALE_AFTER_MS away the status is Unknown,
  so a long-stale cache never claims a confident verdict. Its observed value
  is used, else its forecast.
- LATEST_OBSERVED: the most recent observed reading regardless of age;
  forecasts never drive the verdict.

The level is unsafe iff the chosen value is strictly above the threshold.
"""

from __future__ import annotations

from typing import Iterable

from riverlevels.constants import STALE_AFTER_MS
from riverlevels.types import Point, Status, StatusLevel, StatusPolicy
from riverlevels.utils import fmt_level, utc_now_ms

LABEL_UNKNOWN = "Unknown"
LABEL_NO_DATA = "No recent measurement"


def closest_point(points: Iterable[Point], now_ms: int) -> Point | None:
    """
    Point with the smallest |timestamp - now|; ties go to the later point.
    Points carrying neither an observed nor a forecast value are ignored.
    """
    best: Point | None = None
    best_key: tuple[int, int] | None = None
    for p in points:
        if p.get("observed") is None and p.get("forecast") is None:
            continue
        key = (abs(p["timestamp"] - now_ms), -p["timestamp"])
        if best_key is None or key < best_key:
            best, best_key = p, key
    return best


def latest_observed_point(points: Iterable[Point]) -> Point | None:
    """Most recent point carrying an observed value."""
    best: Point | None = None
    for p in points:
        if p.get("observed") is None:
            continue
        if best is None or p["timestamp"] > best["timestamp"]:
            best = p
    return best


def status_label(value: float | None, unsafe: bool) -> str:
    if value is None:
        return LABEL_NO_DATA
    if unsafe:
        return f"Unsafe to row ({fmt_level(value)})"
    return f"Safe to row ({fmt_level(value)})"


def _unknown(label: str, timestamp: int | None = None) -> Status:
    return Status(value=None, unsafe=False, label=label, level=StatusLevel.UNKNOWN, timestamp=timestamp)


def resolve_status(
    points: Iterable[Point],
    safe_level_m: float,
    now_ms: int | None = None,
    policy: StatusPolicy = StatusPolicy.CLOSEST,
) -> Status:
    """Classify the current level against `safe_level_m`."""
    now = utc_now_ms() if now_ms is None else now_ms
    points = list(points)

    if policy is StatusPolicy.LATEST_OBSERVED:
        point = latest_observed_point(points)
        if point is None:
            return _unknown(LABEL_NO_DATA)
        value = point.get("observed")
    else:
        point = closest_point(points, now)
        if point is None:
            return _unknown(LABEL_NO_DATA)
        if abs(point["timestamp"] - now) > STALE_AFTER_MS:
            return _unknown(LABEL_UNKNOWN, point["timestamp"])
        value = point.get("observed")
        if value is None:
            value = point.get("forecast")

    if value is None:
        return _unknown(LABEL_NO_DATA, point["timestamp"])

    unsafe = value > safe_level_m
    return Status(
        value=value,
        unsafe=unsafe,
        label=status_label(value, unsafe),
        level=StatusLevel.UNSAFE if unsafe else StatusLevel.SAFE,
        timestamp=point["timestamp"],
    )
