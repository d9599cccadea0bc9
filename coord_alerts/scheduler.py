"""
Scheduler module for Coord Alerts.

Uses APScheduler to run a rotating crawl:
- On start: full refresh of every category so the cache is warm
- Every 5 minutes: refresh the next category in the rotation, then alert

Only one harvest runs at a time. The busy flag lives in the cache and is
checked-and-set atomically by both the tick and the manual full refresh;
a request that finds it set is skipped, never queued.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .cache import SnapshotCache
from .config import DEFAULT_CRAWL_SEQUENCE
from .models import Category
from .notifier import Notifier
from .sources.base import BaseHarvester

logger = logging.getLogger(__name__)


@dataclass
class SchedulerStatus:
    """Rotation state for display."""
    current: str            # Category refreshed most recently by the rotation
    next: str               # Category the next tick will refresh
    sequence: str           # e.g. "PYRAMID → BARBARIAN → ARES"
    seconds_until_next: int

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "next": self.next,
            "sequence": self.sequence,
            "seconds_until_next": self.seconds_until_next,
        }


class RotatingScheduler:
    """
    Refreshes one category per tick in a fixed rotation.

    The rotation index only advances after a successful harvest, so a
    failing category is retried on the next tick.

    Usage:
        scheduler = RotatingScheduler(harvester, cache, notifier)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        harvester: BaseHarvester,
        cache: SnapshotCache,
        notifier: Notifier,
        interval: timedelta = timedelta(minutes=5),
        sequence: Sequence[Category] = DEFAULT_CRAWL_SEQUENCE,
        clock: Callable[[], datetime] = datetime.utcnow,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        if len(set(sequence)) != len(sequence) or not sequence:
            raise ValueError("Crawl sequence must list each category once")
        self.harvester = harvester
        self.cache = cache
        self.notifier = notifier
        self.interval = interval
        self.sequence = tuple(sequence)
        self._clock = clock
        self._scheduler = scheduler or BackgroundScheduler()
        self._index = 0
        self._next_tick: Optional[datetime] = None
        self._started = False

    @property
    def rotation_index(self) -> int:
        return self._index

    @property
    def running(self) -> bool:
        return self._started

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Start the rotation. The initial full refresh runs right away on a worker thread."""
        if self._started:
            logger.warning("Scheduler is already running")
            return

        order = " → ".join(c.display_name for c in self.sequence)
        logger.info(f"Starting rotating scheduler ({self.interval.total_seconds():.0f}s interval)")
        logger.info(f"Crawl sequence: {order} → ...")

        self._next_tick = self._clock() + self.interval
        self.cache.schedule_next(self._next_tick)

        self._scheduler.add_job(
            self.force_full_refresh,
            trigger="date",
            id="initial_full_refresh",
            name="Warm the cache with every category",
            replace_existing=True,
        )
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.interval.total_seconds()),
            id="rotating_crawl",
            name="Refresh the next category and send alerts",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        self._started = True

    def stop(self) -> None:
        """Cancel the timer. A harvest already running finishes on its own."""
        if not self._started:
            return
        self._scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Scheduler stopped")

    # =========================================================================
    # REFRESH PATHS
    # =========================================================================

    def tick(self) -> bool:
        """
        Refresh the category at the rotation index.

        Returns:
            True if a harvest succeeded, False if skipped or failed
        """
        self._next_tick = self._clock() + self.interval
        self.cache.schedule_next(self._next_tick)

        if not self.cache.try_begin_update():
            logger.info("Update already in progress, skipping tick")
            return False

        category = self.sequence[self._index]
        try:
            logger.info(f"Starting scheduled crawl [{self._index + 1}/{len(self.sequence)}]: "
                        f"{category.emoji} {category.value.upper()}")
            previous = self.cache.get(category)

            try:
                points = self.harvester.scrape_one(category)
            except Exception as e:
                logger.error(f"{category.value.upper()} crawl failed: {e}")
                return False

            self.cache.set(category, points)
            self._index = (self._index + 1) % len(self.sequence)

            logger.info(f"{category.value.upper()} crawl completed: {len(points)} point(s), "
                        f"next {self.sequence[self._index].value.upper()} at {self._next_tick:%H:%M:%S}")

            try:
                sent = self.notifier.send_alerts(category, points, previous)
                if sent:
                    logger.info(f"Sent {sent} {category.value} alert(s)")
            except Exception as e:
                logger.error(f"{category.value.upper()} alert pass failed: {e}")

            return True
        finally:
            self.cache.set_updating(False)

    def force_full_refresh(self) -> bool:
        """
        Harvest every category and replace the whole cache.

        Used at startup and for manual refreshes. No alerts are sent. On
        failure the cache keeps its previous (stale) contents.

        Returns:
            True if the cache was replaced, False if skipped or failed
        """
        if not self.cache.try_begin_update():
            logger.info("Update already in progress, skipping full refresh")
            return False

        try:
            logger.info("Starting full crawl (all categories)...")
            data = self.harvester.scrape_all()
        except Exception as e:
            logger.error(f"Full crawl failed: {e}")
            self.cache.set_updating(False)
            return False

        # set_all releases the busy flag; a tick may hold it from here on
        self.cache.set_all(data)
        if self._next_tick is None:
            self._next_tick = self._clock() + self.interval
        self.cache.schedule_next(self._next_tick)

        counts = ", ".join(f"{c.display_name}: {len(data.get(c, []))}" for c in self.sequence)
        logger.info(f"Full crawl completed ({counts}); next scheduled crawl: "
                    f"{self.sequence[self._index].value.upper()}")
        return True

    # =========================================================================
    # STATUS
    # =========================================================================

    def seconds_until_next(self) -> int:
        remaining = (self.cache.metadata().next_update - self._clock()).total_seconds()
        return max(0, int(remaining))

    def get_status(self) -> SchedulerStatus:
        current = self.sequence[(self._index - 1) % len(self.sequence)]
        upcoming = self.sequence[self._index]
        return SchedulerStatus(
            current=current.value.upper(),
            next=upcoming.value.upper(),
            sequence=" → ".join(c.value.upper() for c in self.sequence),
            seconds_until_next=self.seconds_until_next(),
        )
