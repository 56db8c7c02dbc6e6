"""
CSV export of the cached series.

One line per reading: a point holding both an observed and a forecast value
yields two lines, observed first. The output parses back with `parse_feed`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from riverlevels.constants import EXPORT_HEADER
from riverlevels.types import Point
from riverlevels.utils import fmt_number, iso_from_ms


def export_lines(points: Iterable[Point]) -> list[str]:
    lines = [EXPORT_HEADER]
    for p in sorted(points, key=lambda p: p["timestamp"]):
        iso = p.get("timestampIso") or iso_from_ms(p["timestamp"])
        for kind in ("observed", "forecast"):
            value = p.get(kind)
            if value is None:
                continue
            lines.append(f"{iso},{fmt_number(float(value))},{kind}")
    return lines


def export_csv(points: Iterable[Point]) -> str:
    """Render points in the download format."""
    return "\n".join(export_lines(points)) + "\n"


def write_export(points: Iterable[Point], path: Path | str) -> int:
    """Write the export to `path`; returns the number of data lines."""
    lines = export_lines(points)
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")
    return len(lines) - 1
