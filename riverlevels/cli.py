"""
Riverlevels command line interface.

Modes:
    show     load the cache (fetching once if it is empty) and print the
             status, a cache summary and the points in the display window
    refresh  fetch the feed, merge it into the cache, then show
    export   write the cached series as CSV to --output or stdout
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import IO, Iterable

from riverlevels.config import Settings, load_settings
from riverlevels.constants import DEFAULT_WINDOW, WINDOW_PRESETS
from riverlevels.exceptions import CacheLockError, FetchError
from riverlevels.export import export_csv, write_export
from riverlevels.pipeline import load_or_refresh, refresh
from riverlevels.retention import parse_window, window_label, window_points
from riverlevels.status import resolve_status
from riverlevels.store import FileKeyValueStore, PointStore, state_lock
from riverlevels.types import CacheMeta, Point, StatusPolicy
from riverlevels.utils import fmt_clock, fmt_size_kb, from_epoch_ms, parse_timestamp, utc_now_ms

_NO_WINDOW = object()


def _window_arg(raw: str) -> int | None:
    try:
        return parse_window(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="River level cache and safe-to-row status.")
    parser.add_argument(
        "--mode",
        choices=["show", "refresh", "export"],
        default="show",
        help="Show cached levels, refresh from the feed first, or export the cache as CSV.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.toml (default: $RIVERLEVELS_CONFIG or config.toml beside the package).",
    )
    parser.add_argument("--url", default=None, help="Station CSV feed URL.")
    parser.add_argument(
        "--safe-level",
        type=float,
        default=None,
        help="Safe rowing level in metres; heights above it are unsafe (default 1.9).",
    )
    parser.add_argument(
        "--window",
        type=_window_arg,
        default=_NO_WINDOW,
        help=f"Display window: {', '.join(WINDOW_PRESETS)} or '<N>d' (default {DEFAULT_WINDOW}).",
    )
    parser.add_argument("--cache-dir", default=None, help="Directory holding the cache files.")
    parser.add_argument(
        "--status-policy",
        choices=[p.value for p in StatusPolicy],
        default=None,
        help="How the current level is chosen (default: closest point within 4 hours).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="HTTP timeout in seconds for the feed fetch (0 disables).",
    )
    parser.add_argument(
        "--output",
        default="-",
        help="Export destination for --mode export ('-' for stdout).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Emit debug logging to stderr.",
    )
    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Config file values overridden by command line flags."""
    settings = load_settings(args.config)
    if args.url:
        settings.feed_url = args.url
    if args.safe_level is not None:
        settings.safe_level_m = args.safe_level
    if args.window is not _NO_WINDOW:
        settings.window_ms = args.window
    if args.cache_dir:
        settings.cache_dir = Path(args.cache_dir).expanduser()
    if args.status_policy:
        settings.status_policy = StatusPolicy(args.status_policy)
    if args.timeout is not None:
        settings.timeout_sec = args.timeout if args.timeout > 0 else None
    return settings


def summary_line(shown: int, window_ms: int | None, meta: CacheMeta | None) -> str:
    last = parse_timestamp((meta or {}).get("lastRefresh"))
    size = (meta or {}).get("sizeBytes")
    return (
        f"Showing {shown} timestamps (window: {window_label(window_ms)}) • "
        f"Last refresh: {fmt_clock(last)} • Cache: {fmt_size_kb(size)}"
    )


def render_table(points: Iterable[Point], out: IO[str] | None = None) -> None:
    out = out or sys.stdout
    header = f"{'Time':<19} {'Observed(m)':>11} {'Forecast(m)':>11}"
    print(header, file=out)
    print("-" * len(header), file=out)
    for p in points:
        observed = p.get("observed")
        forecast = p.get("forecast")
        obs_str = f"{observed:.2f}" if isinstance(observed, (int, float)) else "--"
        fc_str = f"{forecast:.2f}" if isinstance(forecast, (int, float)) else "--"
        print(
            f"{fmt_clock(from_epoch_ms(p['timestamp'])):<19s} "
            f"{obs_str:>11s} "
            f"{fc_str:>11s}",
            file=out,
        )


def render_view(points: list[Point], meta: CacheMeta | None, settings: Settings, now_ms: int) -> None:
    if not points:
        print("No data (CSV may be empty or in an unexpected format)")
        return
    status = resolve_status(points, settings.safe_level_m, now_ms, settings.status_policy)
    shown = window_points(points, settings.window_ms, now_ms)
    print(status["label"])
    print(summary_line(len(shown), settings.window_ms, meta))
    print()
    render_table(shown)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    settings = resolve_settings(args)
    store = PointStore(FileKeyValueStore(settings.cache_dir), settings.feed_url)
    error: FetchError | None = None

    try:
        with state_lock(settings.cache_dir):
            if args.mode == "refresh":
                try:
                    result = refresh(store, timeout=settings.timeout_sec)
                    points, meta = result.points, result.meta
                except FetchError as exc:
                    error = exc
                    points, meta = store.load(), store.load_meta()
            else:
                loaded = load_or_refresh(store, timeout=settings.timeout_sec)
                points, meta, error = loaded.points, loaded.meta, loaded.error
    except CacheLockError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    if error is not None:
        print(f"Error loading CSV: {error}", file=sys.stderr)

    if args.mode == "export":
        if args.output == "-":
            sys.stdout.write(export_csv(points))
        else:
            try:
                write_export(points, args.output)
            except OSError as exc:
                print(f"Could not write export: {exc}", file=sys.stderr)
                return 1
        return 1 if error is not None and not points else 0

    render_view(points, meta, settings, utc_now_ms())
    if error is not None and (args.mode == "refresh" or not points):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
