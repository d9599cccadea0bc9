"""
Snapshot cache for harvested points.

Holds the latest point list per category plus process-wide freshness
metadata (last update, projected next update, busy flag). Lists are
replaced wholesale, never merged, so a reader always sees exactly one
harvest pass per category.

The scheduler writes from APScheduler's worker thread while the HTTP front
door reads from request threads, so every access goes through one lock.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Mapping

from .models import Category, Point

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1)


@dataclass
class CacheMetadata:
    """Freshness metadata shared by all categories."""
    last_update: datetime = EPOCH
    next_update: datetime = EPOCH
    is_updating: bool = False


class SnapshotCache:
    """
    In-memory store of the current known points per category.

    Usage:
        cache = SnapshotCache(interval=timedelta(minutes=15))
        cache.set(Category.ARES, points)
        cache.get(Category.ARES)
    """

    def __init__(
        self,
        interval: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.interval = interval
        self._clock = clock
        self._lock = threading.Lock()
        self._data: dict[Category, tuple[Point, ...]] = {c: () for c in Category}
        self._metadata = CacheMetadata(next_update=clock())

    def get(self, category: Category) -> list[Point]:
        """Current points for a category (a fresh list; the snapshot itself is immutable)."""
        with self._lock:
            return list(self._data[category])

    def set(self, category: Category, points: list[Point]) -> None:
        """Replace one category's snapshot and stamp last_update."""
        snapshot = tuple(points)
        with self._lock:
            self._data[category] = snapshot
            self._metadata.last_update = self._clock()

    def set_all(self, data: Mapping[Category, list[Point]]) -> None:
        """
        Replace every category's snapshot at once.

        Also stamps last_update, projects next_update one interval ahead and
        clears the busy flag.
        """
        snapshots = {c: tuple(data.get(c, ())) for c in Category}
        with self._lock:
            now = self._clock()
            self._data = snapshots
            self._metadata.last_update = now
            self._metadata.next_update = now + self.interval
            self._metadata.is_updating = False

    def metadata(self) -> CacheMetadata:
        """Copy of the current metadata."""
        with self._lock:
            return replace(self._metadata)

    def set_updating(self, is_updating: bool) -> None:
        with self._lock:
            self._metadata.is_updating = is_updating

    def try_begin_update(self) -> bool:
        """Set the busy flag if it is clear. Returns False if a harvest is already running."""
        with self._lock:
            if self._metadata.is_updating:
                return False
            self._metadata.is_updating = True
            return True

    def schedule_next(self, when: datetime) -> None:
        """Record when the scheduler expects to write next."""
        with self._lock:
            self._metadata.next_update = when

    def is_valid(self) -> bool:
        """True while the last write is younger than the cache interval."""
        with self._lock:
            return self._clock() - self._metadata.last_update < self.interval

    def has_data(self) -> bool:
        with self._lock:
            return any(self._data.values())

    def counts(self) -> dict[Category, int]:
        with self._lock:
            return {c: len(points) for c, points in self._data.items()}

    def clear(self) -> None:
        """Drop all points and force is_valid() to False."""
        with self._lock:
            self._data = {c: () for c in Category}
            self._metadata.last_update = EPOCH
        logger.info("Cache cleared")
