"""
Refresh pipeline: fetch, parse, merge into the cache, prune, persist.

A refresh that fails to fetch leaves the cache exactly as it was. Refreshes
are not serialised here; callers that may run concurrently should hold
`store.state_lock` around `refresh`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from riverlevels.constants import RETENTION_MS
from riverlevels.exceptions import FetchError
from riverlevels.feed import parse_feed
from riverlevels.fetch import fetch_feed
from riverlevels.merge import merge_points
from riverlevels.retention import prune_points
from riverlevels.store import PointStore
from riverlevels.types import CacheMeta, Point
from riverlevels.utils import utc_now_ms

_logger = logging.getLogger(__name__)

Fetcher = Callable[..., str]


@dataclass
class RefreshResult:
    """Outcome of a successful refresh."""
    points: list[Point]
    incoming: int                  # Points parsed from the feed
    added: int                     # Timestamps new to the cache
    meta: CacheMeta | None = None  # None when the cache write failed


@dataclass
class LoadResult:
    """Cached points plus any error from an initial refresh."""
    points: list[Point] = field(default_factory=list)
    meta: CacheMeta | None = None
    refreshed: bool = False
    error: FetchError | None = None


def refresh(
    store: PointStore,
    url: str | None = None,
    now_ms: int | None = None,
    timeout: float | None = None,
    fetcher: Fetcher = fetch_feed,
) -> RefreshResult:
    """
    Fetch the feed and merge it into `store`.

    Raises FetchError on transport failure, before the cache is touched.
    """
    url = url or store.source_url
    text = fetcher(url, timeout=timeout)

    incoming = parse_feed(text)
    now = utc_now_ms() if now_ms is None else now_ms

    existing = store.load()
    known = {p["timestamp"] for p in existing}
    merged = merge_points(existing, incoming)
    pruned = prune_points(merged, RETENTION_MS, now)
    meta = store.save(pruned, now)

    added = sum(1 for p in incoming if p["timestamp"] not in known)
    _logger.debug(
        "refresh %s: %d incoming, %d new, %d cached after pruning",
        url, len(incoming), added, len(pruned),
    )
    return RefreshResult(points=pruned, incoming=len(incoming), added=added, meta=meta)


def load_or_refresh(
    store: PointStore,
    url: str | None = None,
    now_ms: int | None = None,
    timeout: float | None = None,
    fetcher: Fetcher = fetch_feed,
) -> LoadResult:
    """
    Return cached points, fetching once only when nothing usable is cached.

    A fetch failure is reported in `LoadResult.error`; the (empty) cache is
    still returned so the caller has something to display.
    """
    cached = store.load()
    if cached:
        return LoadResult(points=cached, meta=store.load_meta())
    if store.has_cache():
        _logger.warning("cached data for %s is unusable, fetching afresh", store.source_url)

    try:
        result = refresh(store, url, now_ms=now_ms, timeout=timeout, fetcher=fetcher)
    except FetchError as exc:
        _logger.debug("initial refresh failed: %s", exc)
        return LoadResult(points=cached, meta=store.load_meta(), error=exc)
    return LoadResult(points=result.points, meta=result.meta, refreshed=True)
