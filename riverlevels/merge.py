"""
Reconcile a freshly parsed batch of points with the cached series.

Precedence at a single timestamp:
- an incoming observed reading always replaces what was there and erases any
  forecast at that instant,
- an incoming forecast only fills a slot with no observed and no forecast
  value (the first forecast recorded for an instant is kept).

Timestamps seen on only one side pass through. Neither input is mutated.
"""

from __future__ import annotations

from typing import Iterable

from riverlevels.store import index_points
from riverlevels.types import Point
from riverlevels.utils import iso_from_ms


def merge_points(existing: Iterable[Point], incoming: Iterable[Point]) -> list[Point]:
    """Merge `incoming` into a copy of `existing`; sorted by timestamp."""
    by_ts = index_points(existing)

    for inc in incoming:
        ts = inc.get("timestamp")
        if not isinstance(ts, int) or isinstance(ts, bool):
            continue
        observed = inc.get("observed")
        forecast = inc.get("forecast")
        if observed is None and forecast is None:
            continue
        cur = by_ts.get(ts)
        if cur is None:
            cur = Point(timestamp=ts, timestampIso=inc.get("timestampIso") or iso_from_ms(ts))
            by_ts[ts] = cur

        if observed is not None:
            cur["observed"] = observed
            cur.pop("forecast", None)

        if forecast is not None and cur.get("observed") is None and cur.get("forecast") is None:
            cur["forecast"] = forecast

    return [by_ts[ts] for ts in sorted(by_ts)]
