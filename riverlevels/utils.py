"""
Riverlevels utility functions.

Pure functions for timestamp parsing, epoch-millisecond conversion, number
coercion and display formatting. No side effects, no cache access.
"""

from __future__ import annotations

import math
import time
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def parse_timestamp(ts: str | None) -> datetime | None:
    """
    Parse a feed timestamp to a UTC-aware datetime.

    Accepts ISO8601 (with 'Z' suffix, numeric offsets, date-only or a space
    separator) and RFC 2822 dates. Naive values are read as UTC.
    Returns None if parsing fails.
    """
    if not ts or not isinstance(ts, str):
        return None
    raw = ts.strip()
    if not raw:
        return None
    iso = raw[:-1] + "+00:00" if raw[-1] in "Zz" else raw
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError:
        try:
            dt = parsedate_to_datetime(raw)
        except (TypeError, ValueError, IndexError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None


def to_epoch_ms(dt: datetime) -> int:
    """Milliseconds since the Unix epoch for an aware datetime (floored)."""
    return (dt - _EPOCH) // _ONE_MS


def from_epoch_ms(ms: int) -> datetime:
    """UTC-aware datetime for a millisecond epoch timestamp."""
    return _EPOCH + timedelta(milliseconds=ms)


def iso_from_ms(ms: int) -> str:
    """Render epoch milliseconds as 'YYYY-MM-DDTHH:MM:SS.mmmZ'."""
    dt = from_epoch_ms(ms)
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{dt.microsecond // 1000:03d}Z"


def utc_now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def coerce_float(val) -> float | None:
    """Safely coerce a value to a finite float, returning None on failure."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, str) and "_" in val:
        return None
    try:
        f = float(val)
        return f if math.isfinite(f) else None
    except (TypeError, ValueError):
        return None


def fmt_number(value: float) -> str:
    """Render a float the way a JavaScript number prints (2 not 2.0)."""
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def fmt_level(value: float) -> str:
    """Format a height in metres with two decimals."""
    return f"{value:.2f} m"


def fmt_size_kb(size_bytes: int | None) -> str:
    """Format a byte count as whole kilobytes, rounding half up."""
    if not size_bytes or size_bytes <= 0:
        return "0 KB"
    return f"{int(size_bytes / 1024 + 0.5)} KB"


def fmt_clock(dt: datetime | None, with_date: bool = True) -> str:
    """Format a datetime as local clock time (with date by default)."""
    if dt is None:
        return "never"
    local_dt = dt.astimezone()
    if with_date:
        return local_dt.strftime("%Y-%m-%d %H:%M:%S")
    return local_dt.strftime("%H:%M:%S")
