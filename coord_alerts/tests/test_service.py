"""
Tests for configuration parsing and service wiring.
"""

from __future__ import annotations

import os
import unittest
from datetime import timedelta
from unittest.mock import MagicMock, patch

from coord_alerts.config import AppConfig, DEFAULT_CRAWL_SEQUENCE
from coord_alerts.models import Category, SentAlertRecord
from coord_alerts.service import build_service
from coord_alerts.store import MemoryStore

from .test_common import FakeHarvester, RecordingDeliverer, T0


class TestAppConfig(unittest.TestCase):

    def test_defaults(self):
        config = AppConfig()
        self.assertEqual(config.update_interval_seconds, 300)
        self.assertEqual(config.cache_ttl_seconds, 900)
        self.assertEqual(config.alert_retention_hours, 24)
        self.assertEqual(config.duplicate_threshold, 10)
        self.assertEqual(config.max_alert_points, 10)
        self.assertEqual(config.crawl_sequence, DEFAULT_CRAWL_SEQUENCE)

    @patch.dict(os.environ, {"CRAWL_SEQUENCE": "ares, pyramid, barbarian", "UPDATE_INTERVAL_SECONDS": "60"})
    def test_from_env(self):
        config = AppConfig.from_env()
        self.assertEqual(config.crawl_sequence, (Category.ARES, Category.PYRAMID, Category.BARBARIAN))
        self.assertEqual(config.update_interval_seconds, 60)

    @patch.dict(os.environ, {"CRAWL_SEQUENCE": "ares,pyramid"})
    def test_incomplete_sequence_rejected(self):
        with self.assertRaises(ValueError):
            AppConfig.from_env()


class TestBuildService(unittest.TestCase):

    def setUp(self):
        self.config = AppConfig(
            update_interval_seconds=120,
            crawl_sequence=(Category.BARBARIAN, Category.ARES, Category.PYRAMID),
            cache_ttl_seconds=360,
            alert_retention_hours=12,
            duplicate_threshold=5,
            max_alert_points=3,
        )
        self.harvester = FakeHarvester()
        self.store = MemoryStore()
        self.service = build_service(
            config=self.config,
            harvester=self.harvester,
            store=self.store,
            deliverer=RecordingDeliverer(),
        )

    def test_configuration_flows_to_components(self):
        self.assertEqual(self.service.scheduler.interval, timedelta(seconds=120))
        self.assertEqual(self.service.scheduler.sequence, self.config.crawl_sequence)
        self.assertEqual(self.harvester.sequence, self.config.crawl_sequence)
        self.assertEqual(self.service.cache.interval, timedelta(seconds=360))
        self.assertEqual(self.service.notifier.retention, timedelta(hours=12))
        self.assertEqual(self.service.notifier.duplicate_threshold, 5)
        self.assertEqual(self.service.notifier.max_points, 3)

    def test_memory_store_flag(self):
        service = build_service(config=self.config, harvester=FakeHarvester(),
                                deliverer=RecordingDeliverer(), memory_store=True)
        self.assertIsInstance(service.store, MemoryStore)

    def test_purge_expired_uses_retention(self):
        self.store.record_sent([
            SentAlertRecord("u1", Category.ARES, 1, 1, 1, sent_at=T0 - timedelta(hours=13)),
            SentAlertRecord("u1", Category.ARES, 1, 2, 2, sent_at=T0 - timedelta(hours=11)),
        ])
        self.assertEqual(self.service.purge_expired(now=T0), 1)
        self.assertEqual(len(self.store.find_recent("u1", Category.ARES, 1)), 1)

    def test_stop_closes_harvester(self):
        self.service.scheduler = MagicMock()
        self.service.stop()
        self.service.scheduler.stop.assert_called_once()
        self.assertTrue(self.harvester.closed)


if __name__ == "__main__":
    unittest.main()
