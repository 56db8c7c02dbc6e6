from __future__ import annotations

import unittest

from riverlevels import retention
from riverlevels.constants import MS_PER_DAY, RETENTION_MS
from riverlevels.store import MemoryKeyValueStore, PointStore
from riverlevels.utils import iso_from_ms

NOW = 1_735_732_800_000  # 2025-01-01T12:00:00Z


def _daily(days: int) -> list[dict]:
    return [
        {"timestamp": NOW - d * MS_PER_DAY, "timestampIso": iso_from_ms(NOW - d * MS_PER_DAY), "observed": 1.0}
        for d in range(days, -1, -1)
    ]


class PruneTests(unittest.TestCase):
    def test_prune_keeps_one_year_inclusive(self) -> None:
        points = _daily(400)
        kept = retention.prune_points(points, RETENTION_MS, NOW)
        cutoff = NOW - 365 * MS_PER_DAY
        self.assertTrue(all(p["timestamp"] >= cutoff for p in kept))
        self.assertEqual(kept[0]["timestamp"], cutoff)
        self.assertEqual(len(kept), 366)

    def test_prune_just_past_cutoff_dropped(self) -> None:
        points = [{"timestamp": NOW - RETENTION_MS - 1, "observed": 1.0}]
        self.assertEqual(retention.prune_points(points, RETENTION_MS, NOW), [])


class WindowTests(unittest.TestCase):
    def test_window_filters_inclusive(self) -> None:
        points = _daily(30)
        shown = retention.window_points(points, 7 * MS_PER_DAY, NOW)
        self.assertEqual(len(shown), 8)
        self.assertEqual(shown[0]["timestamp"], NOW - 7 * MS_PER_DAY)

    def test_all_returns_everything(self) -> None:
        points = _daily(30)
        self.assertEqual(retention.window_points(points, None, NOW), points)
        self.assertEqual(retention.window_points(points, float("inf"), NOW), points)

    def test_switching_windows_is_non_destructive(self) -> None:
        store = PointStore(MemoryKeyValueStore(), "https://example.com/feed.csv")
        store.save(_daily(60), NOW)
        snapshot = dict(store.kv.slots)

        first = retention.window_points(store.load(), 14 * MS_PER_DAY, NOW)
        for label in ("1d", "30d", "All", "7d"):
            retention.window_points(store.load(), retention.parse_window(label), NOW)
        again = retention.window_points(store.load(), 14 * MS_PER_DAY, NOW)

        self.assertEqual(first, again)
        self.assertEqual(store.kv.slots, snapshot)
        self.assertEqual(len(store.load()), 61)


class WindowLabelTests(unittest.TestCase):
    def test_parse_presets_and_custom(self) -> None:
        self.assertEqual(retention.parse_window("14d"), 14 * MS_PER_DAY)
        self.assertEqual(retention.parse_window("all"), None)
        self.assertEqual(retention.parse_window(" 45D "), 45 * MS_PER_DAY)
        with self.assertRaises(ValueError):
            retention.parse_window("fortnight")
        with self.assertRaises(ValueError):
            retention.parse_window("0d")

    def test_labels(self) -> None:
        self.assertEqual(retention.window_label(MS_PER_DAY), "1d")
        self.assertEqual(retention.window_label(None), "All")
        self.assertEqual(retention.window_label(45 * MS_PER_DAY), "45d")


if __name__ == "__main__":
    unittest.main()
