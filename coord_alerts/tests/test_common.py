"""
Shared helpers and fakes for Coord Alerts tests.
Import from this module in each test file to avoid duplication.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from coord_alerts.models import AlertPayload, Category, Point, Position, Subscription
from coord_alerts.sources.base import BaseHarvester


T0 = datetime(2026, 10, 19, 12, 0, 0)


def make_point(x: int, y: int, level: int = 5, **kwargs) -> Point:
    return Point(x=x, y=y, level=level, **kwargs)


def make_subscription(user_id: str = "u1", category: Category = Category.BARBARIAN, **kwargs) -> Subscription:
    return Subscription(user_id=user_id, category=category, **kwargs)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeHarvester(BaseHarvester):
    """
    Returns canned points per category and records every call.

    A value in `results` that is an exception instance is raised instead.
    """

    def __init__(self, results: dict | None = None):
        self.results = results or {}
        self.calls: list[Category] = []
        self.full_scrapes = 0
        self.on_scrape = None
        self.closed = False

    def scrape_one(self, category: Category) -> list[Point]:
        self.calls.append(category)
        if self.on_scrape:
            self.on_scrape(category)
        result = self.results.get(category, [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    def scrape_all(self) -> dict[Category, list[Point]]:
        self.full_scrapes += 1
        return super().scrape_all()

    def close(self) -> None:
        self.closed = True


class RecordingDeliverer:
    """Deliverer that remembers payloads; users in `unreachable` fail."""

    def __init__(self, unreachable: set[str] | None = None, raises: set[str] | None = None):
        self.unreachable = unreachable or set()
        self.raises = raises or set()
        self.delivered: list[tuple[str, AlertPayload]] = []

    def deliver(self, user_id: str, payload: AlertPayload) -> bool:
        if user_id in self.raises:
            raise RuntimeError(f"connection reset for {user_id}")
        if user_id in self.unreachable:
            return False
        self.delivered.append((user_id, payload))
        return True


HOME = Position(x=100, y=100)
