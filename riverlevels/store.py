"""
Cache persistence for riverlevels.

Handles:
- Key-value byte storage media (one file per key, or in-memory)
- Loading/saving the point series with corruption tolerance
- Best-effort cache metadata (last refresh, count, size)
- Single-writer locking (fcntl on Unix, no-op elsewhere)

Each feed source owns two independent slots: ``levels-cache:<url>`` holds the
JSON point array and ``levels-cache:<url>:meta`` holds the metadata record.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Iterator, Protocol
from urllib.parse import quote

from riverlevels.constants import CACHE_KEY_PREFIX, CACHE_META_SUFFIX, DEFAULT_FEED_URL
from riverlevels.exceptions import CacheLockError
from riverlevels.types import CacheMeta, Point
from riverlevels.utils import coerce_float, iso_from_ms, utc_now_ms

try:
    import fcntl  # type: ignore[import]
except Exception:  # pragma: no cover
    fcntl = None  # type: ignore[assignment]

_logger = logging.getLogger(__name__)

_MAX_FILENAME = 200


class KeyValueStore(Protocol):
    """Named byte-string slots."""

    def get(self, key: str) -> bytes | None:
        ...

    def set(self, key: str, data: bytes) -> None:
        ...


class MemoryKeyValueStore:
    """Dict-backed key-value store."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self.slots: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self.slots.get(key)

    def set(self, key: str, data: bytes) -> None:
        self.slots[key] = bytes(data)


class FileKeyValueStore:
    """
    One file per key under `directory`.

    Writes go to a sibling `.tmp` file that then replaces the target, so a
    reader sees either the previous or the new bytes, never a partial write.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory).expanduser()

    def path_for(self, key: str) -> Path:
        name = quote(key, safe="")
        if len(name) > _MAX_FILENAME:
            digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
            name = f"{name[:_MAX_FILENAME - 17]}-{digest}"
        return self.directory / f"{name}.json"

    def get(self, key: str) -> bytes | None:
        try:
            return self.path_for(key).read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except Exception:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise


def index_points(points: Iterable[Any]) -> dict[int, Point]:
    """
    Copy points into a timestamp-keyed dict.

    Entries that are not dicts or lack an integer timestamp are skipped.
    Duplicate timestamps are coalesced, later non-None values winning.
    """
    by_ts: dict[int, Point] = {}
    for entry in points:
        if not isinstance(entry, dict):
            continue
        ts = entry.get("timestamp")
        if not isinstance(ts, int) or isinstance(ts, bool):
            continue
        existing = by_ts.get(ts)
        if existing is None:
            by_ts[ts] = Point(**entry)  # type: ignore[typeddict-item]
            continue
        for key in ("observed", "forecast"):
            if entry.get(key) is not None:
                existing[key] = entry[key]
    return by_ts


def _clean_point(entry: Any) -> Point | None:
    if not isinstance(entry, dict):
        return None
    ts = entry.get("timestamp")
    if isinstance(ts, float) and ts.is_integer():
        ts = int(ts)
    if not isinstance(ts, int) or isinstance(ts, bool):
        return None
    iso = entry.get("timestampIso")
    if not isinstance(iso, str) or not iso:
        try:
            iso = iso_from_ms(ts)
        except (OverflowError, ValueError):
            return None
    point = Point(timestamp=ts, timestampIso=iso)
    for key in ("observed", "forecast"):
        value = coerce_float(entry.get(key))
        if value is not None:
            point[key] = value
    if "observed" not in point and "forecast" not in point:
        return None
    return point


def decode_points(raw: bytes | str | None) -> list[Point]:
    """
    Deserialize a persisted point array.

    Returns [] for missing, undecodable or non-array payloads; malformed
    entries are dropped and the rest are de-duplicated and sorted.
    """
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except Exception:
        _logger.warning("failed to read cache: payload is not valid JSON")
        return []
    if not isinstance(parsed, list):
        _logger.warning("failed to read cache: expected a JSON array")
        return []
    cleaned = [p for p in (_clean_point(e) for e in parsed) if p is not None]
    by_ts = index_points(cleaned)
    return [by_ts[ts] for ts in sorted(by_ts)]


def encode_points(points: Iterable[Point]) -> bytes:
    """Serialize points as compact JSON, sorted by timestamp."""
    ordered = sorted(points, key=lambda p: p["timestamp"])
    return json.dumps(ordered, separators=(",", ":"), allow_nan=False).encode("utf-8")


class PointStore:
    """
    The authoritative, persisted time series for one feed source.
    """

    def __init__(self, kv: KeyValueStore, source_url: str = DEFAULT_FEED_URL) -> None:
        self.kv = kv
        self.source_url = source_url
        self.data_key = f"{CACHE_KEY_PREFIX}{source_url}"
        self.meta_key = f"{self.data_key}{CACHE_META_SUFFIX}"

    def _read(self, key: str) -> bytes | None:
        try:
            return self.kv.get(key)
        except Exception as exc:
            _logger.warning("failed to read cache slot %s: %s", key, exc)
            return None

    def has_cache(self) -> bool:
        """Whether the data slot holds any bytes, readable or not."""
        return bool(self._read(self.data_key))

    def load(self) -> list[Point]:
        """Load cached points, returning [] when absent or corrupt."""
        return decode_points(self._read(self.data_key))

    def save(self, points: Iterable[Point], now_ms: int | None = None) -> CacheMeta | None:
        """
        Persist the full point sequence, then its metadata.

        Returns the metadata record when the data write succeeded (even if the
        metadata write did not), else None with the previous snapshot intact.
        """
        points = list(points)
        try:
            payload = encode_points(points)
            self.kv.set(self.data_key, payload)
        except Exception as exc:
            _logger.warning("failed to save cache: %s", exc)
            return None

        now = utc_now_ms() if now_ms is None else now_ms
        meta = CacheMeta(
            lastRefresh=iso_from_ms(now),
            count=len(points),
            sizeBytes=len(payload),
        )
        try:
            self.kv.set(self.meta_key, json.dumps(meta, separators=(",", ":")).encode("utf-8"))
        except Exception as exc:
            _logger.warning("failed to save cache meta: %s", exc)
        return meta

    def load_meta(self) -> CacheMeta | None:
        """
        Load cache metadata.

        Falls back to a record derived from the cached payload (no last
        refresh) when metadata is absent or unreadable. None when nothing is
        cached at all.
        """
        raw_meta = self._read(self.meta_key)
        if raw_meta:
            try:
                parsed = json.loads(raw_meta)
            except Exception:
                parsed = None
            if isinstance(parsed, dict):
                meta = CacheMeta()
                last = parsed.get("lastRefresh")
                meta["lastRefresh"] = last if isinstance(last, str) and last else None
                for key in ("count", "sizeBytes"):
                    val = parsed.get(key)
                    if isinstance(val, int) and not isinstance(val, bool) and val >= 0:
                        meta[key] = val
                return meta

        raw = self._read(self.data_key)
        if not raw:
            return None
        return CacheMeta(lastRefresh=None, count=len(decode_points(raw)), sizeBytes=len(raw))


LOCK_FILENAME = ".riverlevels-writer.lock"


def _lock_holder(lock_path: Path) -> str:
    with contextlib.suppress(OSError):
        pid = lock_path.read_text(encoding="utf-8").strip()
        if pid.isdigit():
            return f"pid {pid}"
    return "another process"


@contextlib.contextmanager
def _flock_dir(directory: Path) -> Iterator[Path]:
    lock_path = directory.expanduser() / LOCK_FILENAME
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fh = lock_path.open("a+", encoding="utf-8")
    try:
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as exc:
            raise CacheLockError(
                f"Cache directory {directory} is in use by {_lock_holder(lock_path)}"
            ) from exc
        fh.seek(0)
        fh.truncate()
        fh.write(str(os.getpid()))
        fh.flush()
        try:
            yield lock_path
        finally:
            with contextlib.suppress(OSError):
                fh.truncate(0)
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    finally:
        fh.close()


def state_lock(directory: Path | str) -> contextlib.AbstractContextManager:
    """
    Hold the single-writer lock of a cache directory.

    The lock file records the holder's pid so a rejected writer can say who
    holds it. Raises CacheLockError when the lock is taken; a no-op where
    `fcntl` is unavailable.
    """
    if fcntl is None:
        return contextlib.nullcontext()
    return _flock_dir(Path(directory))
