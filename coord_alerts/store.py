"""
Store contract for user positions, subscriptions and sent-alert history.

AlertStore is the interface the notifier and front door depend on.
MemoryStore keeps everything in process (tests and dry runs); the Supabase
backend lives in db.py.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from .models import Category, Position, SentAlertRecord, Subscription

logger = logging.getLogger(__name__)


class AlertStore(ABC):
    """
    Abstract base class for alert storage backends.

    All operations complete or raise; callers do not retry.
    """

    # =========================================================================
    # USER POSITION OPERATIONS
    # =========================================================================

    @abstractmethod
    def set_user_position(self, user_id: str, username: str, x: int, y: int) -> Position:
        """Save or replace a user's map position."""

    @abstractmethod
    def get_user_position(self, user_id: str) -> Optional[Position]:
        """Get a user's saved position, or None if they never saved one."""

    # =========================================================================
    # SUBSCRIPTION OPERATIONS
    # =========================================================================

    @abstractmethod
    def set_subscription(self, subscription: Subscription) -> Subscription:
        """Create or replace the subscription for (user, category). Always enabled."""

    @abstractmethod
    def get_subscription(self, user_id: str, category: Category) -> Optional[Subscription]:
        pass

    @abstractmethod
    def get_user_subscriptions(self, user_id: str) -> list[Subscription]:
        pass

    @abstractmethod
    def delete_subscription(self, user_id: str, category: Category) -> bool:
        """Delete one subscription. Returns False if there was none."""

    @abstractmethod
    def set_subscription_enabled(self, user_id: str, category: Category, enabled: bool) -> bool:
        """Toggle a subscription. Returns False if there was none."""

    @abstractmethod
    def get_active_subscriptions(self, category: Category) -> list[Subscription]:
        """Enabled subscriptions for a category, each joined with the user's saved position."""

    # =========================================================================
    # SENT ALERT OPERATIONS
    # =========================================================================

    @abstractmethod
    def record_sent(self, records: Iterable[SentAlertRecord]) -> int:
        """Save sent-alert receipts. Returns the number written."""

    @abstractmethod
    def find_recent(self, user_id: str, category: Category, level: int) -> list[SentAlertRecord]:
        """Receipts for (user, category, level), newest first."""

    @abstractmethod
    def purge_older_than(self, cutoff: datetime) -> int:
        """Delete receipts sent before `cutoff`. Returns the number deleted."""


class MemoryStore(AlertStore):
    """In-process store. Not durable; everything is lost on restart."""

    def __init__(self):
        self._lock = threading.Lock()
        self._positions: dict[str, Position] = {}
        self._usernames: dict[str, str] = {}
        self._subscriptions: dict[tuple[str, Category], Subscription] = {}
        self._sent: list[SentAlertRecord] = []

    def set_user_position(self, user_id: str, username: str, x: int, y: int) -> Position:
        position = Position(x=x, y=y)
        with self._lock:
            self._positions[user_id] = position
            self._usernames[user_id] = username
        return position

    def get_user_position(self, user_id: str) -> Optional[Position]:
        with self._lock:
            return self._positions.get(user_id)

    def set_subscription(self, subscription: Subscription) -> Subscription:
        stored = replace(subscription, enabled=True, position=None)
        with self._lock:
            self._subscriptions[(stored.user_id, stored.category)] = stored
            if stored.username:
                self._usernames[stored.user_id] = stored.username
        return self._joined(stored)

    def get_subscription(self, user_id: str, category: Category) -> Optional[Subscription]:
        with self._lock:
            sub = self._subscriptions.get((user_id, category))
        return self._joined(sub) if sub else None

    def get_user_subscriptions(self, user_id: str) -> list[Subscription]:
        with self._lock:
            subs = [s for (uid, _), s in self._subscriptions.items() if uid == user_id]
        return [self._joined(s) for s in sorted(subs, key=lambda s: s.category.value)]

    def delete_subscription(self, user_id: str, category: Category) -> bool:
        with self._lock:
            return self._subscriptions.pop((user_id, category), None) is not None

    def set_subscription_enabled(self, user_id: str, category: Category, enabled: bool) -> bool:
        with self._lock:
            sub = self._subscriptions.get((user_id, category))
            if sub is None:
                return False
            self._subscriptions[(user_id, category)] = replace(sub, enabled=enabled)
            return True

    def get_active_subscriptions(self, category: Category) -> list[Subscription]:
        with self._lock:
            subs = [s for (_, c), s in self._subscriptions.items() if c is category and s.enabled]
        return [self._joined(s) for s in subs]

    def record_sent(self, records: Iterable[SentAlertRecord]) -> int:
        records = list(records)
        with self._lock:
            self._sent.extend(records)
        return len(records)

    def find_recent(self, user_id: str, category: Category, level: int) -> list[SentAlertRecord]:
        with self._lock:
            matches = [
                r for r in self._sent
                if r.user_id == user_id and r.category is category and r.level == level
            ]
        return sorted(matches, key=lambda r: r.sent_at, reverse=True)

    def purge_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            kept = [r for r in self._sent if r.sent_at >= cutoff]
            removed = len(self._sent) - len(kept)
            self._sent = kept
        return removed

    def _joined(self, sub: Subscription) -> Subscription:
        with self._lock:
            position = self._positions.get(sub.user_id)
            username = self._usernames.get(sub.user_id, sub.username)
        return replace(sub, position=position, username=username)
