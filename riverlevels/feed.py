"""
Station CSV feed parser.

Turns the raw text of a river-level CSV feed into a sorted list of points.
Column names vary between feeds ("Timestamp (UTC)", "Height (m)",
"Type(observed/forecast)", plain "timestamp,height,type", ...), so columns
are located by substring match against the header row, once per parse.

Malformed rows never raise: they are skipped.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Any

from riverlevels.types import Point
from riverlevels.utils import coerce_float, iso_from_ms, parse_timestamp, to_epoch_ms

_logger = logging.getLogger(__name__)

# Logical field -> candidate substrings, in priority order.
HEADER_CANDIDATES: dict[str, tuple[str, ...]] = {
    "timestamp": ("timestamp", "time", "date"),
    "height": ("height", "level"),
    "type": ("type",),
}

# Literal header names tried per row when the resolved column has no value.
FALLBACK_HEADERS: dict[str, tuple[str, ...]] = {
    "timestamp": ("timestamp", "date", "time", "Timestamp", "Date", "Time"),
    "height": ("height", "level", "Height", "Level"),
    "type": ("type", "Type"),
}


def resolve_columns(headers: list[str] | None) -> dict[str, str | None]:
    """
    Map each logical field to the first header containing one of its
    candidate substrings (case-insensitive), or None if nothing matches.
    """
    headers = [h for h in (headers or []) if isinstance(h, str)]
    resolved: dict[str, str | None] = {}
    for field, candidates in HEADER_CANDIDATES.items():
        resolved[field] = None
        for header in headers:
            lowered = header.lower()
            if any(c in lowered for c in candidates):
                resolved[field] = header
                break
    return resolved


def _row_value(row: dict[str, Any], columns: dict[str, str | None], field: str) -> str | None:
    key = columns.get(field)
    value = row.get(key) if key is not None else None
    if value is None:
        for name in FALLBACK_HEADERS[field]:
            value = row.get(name)
            if value is not None:
                break
    if not isinstance(value, str):
        return None
    return value


def parse_feed(text: str | None) -> list[Point]:
    """
    Parse CSV text into points, one per distinct timestamp, sorted ascending.

    Rows without a usable timestamp or a finite height are dropped. The type
    column selects ``observed`` or ``forecast``; any other value counts as an
    observed reading that only fills an empty slot.
    """
    if not text:
        return []
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.DictReader(io.StringIO(text))
    try:
        headers = list(reader.fieldnames or [])
    except csv.Error:
        return []
    columns = resolve_columns(headers)
    _logger.debug("detected CSV headers -> %s", columns)

    by_ts: dict[int, Point] = {}
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error:
            continue
        if not any(v for v in row.values() if isinstance(v, str) and v.strip()):
            continue

        ts_raw = _row_value(row, columns, "timestamp")
        height_raw = _row_value(row, columns, "height")
        if not ts_raw or not height_raw:
            continue

        dt = parse_timestamp(ts_raw)
        if dt is None:
            continue
        height = coerce_float(height_raw.strip())
        if height is None:
            continue

        kind = (_row_value(row, columns, "type") or "").strip().lower()
        ts = to_epoch_ms(dt)
        point = by_ts.get(ts)
        if point is None:
            point = Point(timestamp=ts, timestampIso=iso_from_ms(ts))
            by_ts[ts] = point

        if kind == "observed":
            point["observed"] = height
        elif kind == "forecast":
            point["forecast"] = height
        elif "observed" not in point:
            point["observed"] = height

    return [by_ts[ts] for ts in sorted(by_ts)]
