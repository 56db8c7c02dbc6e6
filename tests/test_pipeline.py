from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

import requests

from riverlevels import fetch as rl_fetch
from riverlevels import pipeline as rl_pipeline
from riverlevels.constants import MS_PER_DAY
from riverlevels.exceptions import FetchError
from riverlevels.store import MemoryKeyValueStore, PointStore
from riverlevels.utils import iso_from_ms

NOW = 1_735_732_800_000  # 2025-01-01T12:00:00Z
URL = "https://example.com/station-csv/8208"


def _csv(*rows: str) -> str:
    return "Timestamp (UTC),Height (m),Type(observed/forecast)\n" + "".join(r + "\n" for r in rows)


def _fetcher(text: str):
    calls: list[str] = []

    def fetch(url: str, timeout: float | None = None) -> str:
        calls.append(url)
        return text

    fetch.calls = calls  # type: ignore[attr-defined]
    return fetch


def _failing_fetcher(url: str, timeout: float | None = None) -> str:
    raise FetchError("Failed to fetch CSV: 500", status_code=500, url=url)


class RefreshTests(unittest.TestCase):
    def setUp(self) -> None:
        self.kv = MemoryKeyValueStore()
        self.store = PointStore(self.kv, URL)

    def test_refresh_merges_into_cache(self) -> None:
        self.store.save([
            {"timestamp": NOW - 3_600_000, "timestampIso": iso_from_ms(NOW - 3_600_000), "forecast": 1.0},
        ], NOW)
        text = _csv(
            f"{iso_from_ms(NOW - 3_600_000)},1.2,observed",
            f"{iso_from_ms(NOW + 3_600_000)},1.4,forecast",
        )
        result = rl_pipeline.refresh(self.store, now_ms=NOW, fetcher=_fetcher(text))
        self.assertEqual(result.incoming, 2)
        self.assertEqual(result.added, 1)
        self.assertEqual(
            [(p["timestamp"], p.get("observed"), p.get("forecast")) for p in self.store.load()],
            [(NOW - 3_600_000, 1.2, None), (NOW + 3_600_000, None, 1.4)],
        )
        self.assertEqual(result.meta["count"], 2)

    def test_refresh_prunes_to_one_year(self) -> None:
        old = NOW - 400 * MS_PER_DAY
        self.store.save([{"timestamp": old, "timestampIso": iso_from_ms(old), "observed": 1.0}], NOW)
        result = rl_pipeline.refresh(
            self.store, now_ms=NOW, fetcher=_fetcher(_csv(f"{iso_from_ms(NOW)},1.1,observed"))
        )
        self.assertEqual([p["timestamp"] for p in result.points], [NOW])
        self.assertEqual([p["timestamp"] for p in self.store.load()], [NOW])

    def test_fetch_failure_leaves_store_untouched(self) -> None:
        self.store.save([{"timestamp": NOW, "timestampIso": iso_from_ms(NOW), "observed": 1.0}], NOW)
        snapshot = dict(self.kv.slots)
        with self.assertRaises(FetchError):
            rl_pipeline.refresh(self.store, now_ms=NOW, fetcher=_failing_fetcher)
        self.assertEqual(self.kv.slots, snapshot)

    def test_unparseable_body_is_a_no_op_merge(self) -> None:
        self.store.save([{"timestamp": NOW, "timestampIso": iso_from_ms(NOW), "observed": 1.0}], NOW)
        result = rl_pipeline.refresh(self.store, now_ms=NOW, fetcher=_fetcher("<html>oops</html>"))
        self.assertEqual(result.incoming, 0)
        self.assertEqual(len(self.store.load()), 1)


class LoadOrRefreshTests(unittest.TestCase):
    def setUp(self) -> None:
        self.kv = MemoryKeyValueStore()
        self.store = PointStore(self.kv, URL)

    def test_cached_points_skip_fetch(self) -> None:
        self.store.save([{"timestamp": NOW, "timestampIso": iso_from_ms(NOW), "observed": 1.2}], NOW)
        fetcher = _fetcher(_csv())
        loaded = rl_pipeline.load_or_refresh(self.store, now_ms=NOW, fetcher=fetcher)
        self.assertEqual(fetcher.calls, [])
        self.assertFalse(loaded.refreshed)
        self.assertEqual(len(loaded.points), 1)
        self.assertEqual(loaded.meta["count"], 1)

    def test_empty_cache_fetches_once(self) -> None:
        fetcher = _fetcher(_csv(f"{iso_from_ms(NOW)},1.6,observed"))
        loaded = rl_pipeline.load_or_refresh(self.store, now_ms=NOW, fetcher=fetcher)
        self.assertEqual(fetcher.calls, [URL])
        self.assertTrue(loaded.refreshed)
        self.assertAlmostEqual(loaded.points[0]["observed"], 1.6)

    def test_corrupt_cache_behaves_as_first_run(self) -> None:
        self.kv.slots[self.store.data_key] = b"[{broken"
        fetcher = _fetcher(_csv(f"{iso_from_ms(NOW)},1.6,observed"))
        with self.assertLogs("riverlevels.store", level="WARNING"):
            loaded = rl_pipeline.load_or_refresh(self.store, now_ms=NOW, fetcher=fetcher)
        self.assertEqual(fetcher.calls, [URL])
        self.assertEqual(len(loaded.points), 1)

    def test_unusable_cache_is_reported_before_fetching(self) -> None:
        self.kv.slots[self.store.data_key] = b'[{"timestamp": 1}]'
        fetcher = _fetcher(_csv(f"{iso_from_ms(NOW)},1.6,observed"))
        with self.assertLogs("riverlevels.pipeline", level="WARNING") as logs:
            loaded = rl_pipeline.load_or_refresh(self.store, now_ms=NOW, fetcher=fetcher)
        self.assertIn("unusable", logs.output[0])
        self.assertTrue(loaded.refreshed)

    def test_fetch_error_reported(self) -> None:
        loaded = rl_pipeline.load_or_refresh(self.store, now_ms=NOW, fetcher=_failing_fetcher)
        self.assertEqual(loaded.points, [])
        self.assertIsInstance(loaded.error, FetchError)
        self.assertIn("500", str(loaded.error))


class PackageExportTests(unittest.TestCase):
    def test_pipeline_functions_reexported_beside_module(self) -> None:
        import riverlevels

        self.assertIs(riverlevels.refresh, rl_pipeline.refresh)
        self.assertIs(riverlevels.load_or_refresh, rl_pipeline.load_or_refresh)
        self.assertTrue(callable(rl_pipeline.refresh))


class FetchFeedTests(unittest.TestCase):
    def test_non_success_status_raises_fetch_error(self) -> None:
        response = MagicMock()
        response.status_code = 500
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error", response=response)
        with patch("http_client.requests.get", return_value=response):
            with self.assertRaises(FetchError) as ctx:
                rl_fetch.fetch_feed(URL)
        self.assertEqual(str(ctx.exception), "Failed to fetch CSV: 500")
        self.assertEqual(ctx.exception.status_code, 500)

    def test_connection_error_raises_fetch_error(self) -> None:
        with patch("http_client.requests.get", side_effect=requests.ConnectionError("unreachable")):
            with self.assertRaises(FetchError):
                rl_fetch.fetch_feed(URL, timeout=5.0)

    def test_success_returns_body(self) -> None:
        response = MagicMock()
        response.text = "timestamp,height\n"
        with patch("http_client.requests.get", return_value=response) as get:
            self.assertEqual(rl_fetch.fetch_feed(URL, timeout=5.0), "timestamp,height\n")
        self.assertEqual(get.call_args.kwargs["timeout"], 5.0)


if __name__ == "__main__":
    unittest.main()
