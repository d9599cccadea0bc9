"""
Tests for SnapshotCache: wholesale replacement, freshness and the busy flag.
"""

from __future__ import annotations

import unittest
from datetime import timedelta

from coord_alerts.cache import EPOCH, SnapshotCache
from coord_alerts.models import Category

from .test_common import FakeClock, T0, make_point


class TestSnapshotCache(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.cache = SnapshotCache(interval=timedelta(minutes=15), clock=self.clock)

    def test_starts_empty_and_stale(self):
        for category in Category:
            self.assertEqual(self.cache.get(category), [])
        self.assertFalse(self.cache.has_data())
        self.assertFalse(self.cache.is_valid())
        self.assertEqual(self.cache.metadata().last_update, EPOCH)

    def test_set_replaces_one_category(self):
        self.cache.set(Category.ARES, [make_point(1, 1), make_point(2, 2)])
        self.cache.set(Category.ARES, [make_point(3, 3)])
        self.assertEqual([p.key for p in self.cache.get(Category.ARES)], [(3, 3)])
        self.assertEqual(self.cache.get(Category.PYRAMID), [])
        self.assertEqual(self.cache.metadata().last_update, T0)

    def test_get_returns_a_copy(self):
        self.cache.set(Category.ARES, [make_point(1, 1)])
        self.cache.get(Category.ARES).append(make_point(9, 9))
        self.assertEqual(len(self.cache.get(Category.ARES)), 1)

    def test_caller_list_mutation_does_not_leak_in(self):
        points = [make_point(1, 1)]
        self.cache.set(Category.ARES, points)
        points.append(make_point(2, 2))
        self.assertEqual(len(self.cache.get(Category.ARES)), 1)

    def test_set_all_replaces_everything_and_clears_busy(self):
        self.cache.set(Category.ARES, [make_point(1, 1)])
        self.assertTrue(self.cache.try_begin_update())
        self.cache.set_all({
            Category.PYRAMID: [make_point(5, 5, level=4)],
            Category.BARBARIAN: [make_point(6, 6, power=10)],
        })
        self.assertEqual(self.cache.get(Category.ARES), [])
        self.assertEqual(len(self.cache.get(Category.PYRAMID)), 1)
        metadata = self.cache.metadata()
        self.assertFalse(metadata.is_updating)
        self.assertEqual(metadata.last_update, T0)
        self.assertEqual(metadata.next_update, T0 + timedelta(minutes=15))

    def test_is_valid_within_interval(self):
        self.cache.set(Category.ARES, [])
        self.clock.advance(minutes=14, seconds=59)
        self.assertTrue(self.cache.is_valid())
        self.clock.advance(seconds=1)
        self.assertFalse(self.cache.is_valid())

    def test_try_begin_update_is_exclusive(self):
        self.assertTrue(self.cache.try_begin_update())
        self.assertFalse(self.cache.try_begin_update())
        self.cache.set_updating(False)
        self.assertTrue(self.cache.try_begin_update())

    def test_metadata_is_a_copy(self):
        self.cache.metadata().is_updating = True
        self.assertFalse(self.cache.metadata().is_updating)

    def test_clear_resets_data_and_freshness(self):
        self.cache.set(Category.BARBARIAN, [make_point(1, 1)])
        self.assertTrue(self.cache.has_data())
        self.cache.clear()
        self.assertFalse(self.cache.has_data())
        self.assertFalse(self.cache.is_valid())
        self.assertEqual(self.cache.metadata().last_update, EPOCH)

    def test_counts(self):
        self.cache.set(Category.PYRAMID, [make_point(1, 1), make_point(2, 2)])
        self.assertEqual(self.cache.counts(), {Category.PYRAMID: 2, Category.BARBARIAN: 0, Category.ARES: 0})


if __name__ == "__main__":
    unittest.main()
