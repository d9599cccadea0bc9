"""
Notifier module for Coord Alerts.

Turns one category's fresh harvest into direct-message alerts:

1. Detect points whose (x, y) was not in the previous snapshot
2. Load enabled subscriptions for the category
3. Purge sent-alert receipts older than the retention window
4. Per subscriber: filter by level / power / distance, drop points close to
   something already sent at the same level, deliver, record what was shown

A delivery failure only skips that subscriber. A store failure aborts the
pass and propagates to the caller.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Protocol

from .models import AlertPayload, Category, Point, SentAlertRecord, Subscription
from .ranking import distance
from .store import AlertStore

logger = logging.getLogger(__name__)


DUPLICATE_DISTANCE_THRESHOLD = 10
MAX_POINTS_PER_ALERT = 10
ALERT_RETENTION = timedelta(hours=24)


class AlertDeliverer(Protocol):
    def deliver(self, user_id: str, payload: AlertPayload) -> bool: ...


# =============================================================================
# MATCHING HELPERS
# =============================================================================

def find_new_points(new_points: Iterable[Point], previous_points: Iterable[Point]) -> list[Point]:
    """Points whose (x, y) is absent from the previous snapshot."""
    previous_keys = {p.key for p in previous_points}
    return [p for p in new_points if p.key not in previous_keys]


def filter_for_subscription(
    category: Category,
    points: Iterable[Point],
    subscription: Subscription,
) -> list[Point]:
    """
    Apply a subscriber's level, power and distance filters.

    Distance is only checked (and annotated, rounded) when the subscription
    has a max distance and the user saved a position.
    """
    position = subscription.position
    check_distance = subscription.max_distance is not None and position is not None
    check_power = category.carries_power and subscription.has_power_range

    matched = []
    for point in points:
        if subscription.min_level is not None and point.level < subscription.min_level:
            continue

        if check_power:
            if point.power is None:
                continue
            if not subscription.min_power <= point.power <= subscription.max_power:
                continue

        if check_distance:
            d = distance(position.x, position.y, point.x, point.y)
            if d > subscription.max_distance:
                continue
            point = replace(point, distance=round(d))

        matched.append(point)
    return matched


def is_near_duplicate(point: Point, sent: Iterable[SentAlertRecord], threshold: int = DUPLICATE_DISTANCE_THRESHOLD) -> bool:
    """True if some receipt lies within `threshold` of the point on both axes."""
    return any(
        abs(record.x - point.x) <= threshold and abs(record.y - point.y) <= threshold
        for record in sent
    )


# =============================================================================
# NOTIFIER
# =============================================================================

class Notifier:
    """
    Sends deduplicated alerts for newly discovered points.

    Usage:
        notifier = Notifier(store, sender)
        sent = notifier.send_alerts(Category.BARBARIAN, new_points, previous_points)
    """

    def __init__(
        self,
        store: AlertStore,
        deliverer: Optional[AlertDeliverer],
        retention: timedelta = ALERT_RETENTION,
        duplicate_threshold: int = DUPLICATE_DISTANCE_THRESHOLD,
        max_points: int = MAX_POINTS_PER_ALERT,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.deliverer = deliverer
        self.retention = retention
        self.duplicate_threshold = duplicate_threshold
        self.max_points = max_points
        self._clock = clock

    def send_alerts(
        self,
        category: Category,
        new_points: list[Point],
        previous_points: list[Point],
    ) -> int:
        """
        Run one alert pass for a category.

        Returns:
            Number of subscribers successfully notified
        """
        if self.deliverer is None:
            logger.warning("Notifier has no deliverer configured, skipping alerts")
            return 0

        discovered = find_new_points(new_points, previous_points)
        if not discovered:
            return 0

        logger.info(f"Found {len(discovered)} new {category.value} point(s)")

        subscriptions = self.store.get_active_subscriptions(category)
        if not subscriptions:
            return 0

        cutoff = self._clock() - self.retention
        purged = self.store.purge_older_than(cutoff)
        if purged:
            logger.info(f"Cleaned up {purged} old sent alert record(s)")

        logger.info(f"Sending {category.value} alerts to {len(subscriptions)} user(s)...")

        sent_count = 0
        for subscription in subscriptions:
            if self._notify_subscriber(category, discovered, subscription):
                sent_count += 1

        return sent_count

    def _notify_subscriber(self, category: Category, discovered: list[Point], subscription: Subscription) -> bool:
        matching = filter_for_subscription(category, discovered, subscription)
        if not matching:
            return False

        matching = self._drop_already_sent(subscription.user_id, category, matching)
        if not matching:
            return False

        if category.carries_power:
            matching.sort(key=lambda p: p.power or 0, reverse=True)

        shown = matching[:self.max_points]
        payload = AlertPayload(category=category, points=shown, total=len(matching))

        try:
            delivered = self.deliverer.deliver(subscription.user_id, payload)
        except Exception as e:
            logger.error(f"Failed to send alert to {subscription.user_id}: {e}")
            return False

        if not delivered:
            logger.warning(f"Alert not delivered to {subscription.user_id}")
            return False

        now = self._clock()
        self.store.record_sent(
            SentAlertRecord(
                user_id=subscription.user_id,
                category=category,
                level=p.level,
                x=p.x,
                y=p.y,
                power=p.power,
                sent_at=now,
            )
            for p in shown
        )
        logger.info(f"Sent {len(shown)} point(s) to {subscription.username or subscription.user_id}")
        return True

    def _drop_already_sent(self, user_id: str, category: Category, points: list[Point]) -> list[Point]:
        """Remove points near something this user was already sent at the same level."""
        history: dict[int, list[SentAlertRecord]] = {}
        kept = []
        for point in points:
            if point.level not in history:
                history[point.level] = self.store.find_recent(user_id, category, point.level)
            if not is_near_duplicate(point, history[point.level], self.duplicate_threshold):
                kept.append(point)
        return kept
