"""
Exception types for Coord Alerts.

- HarvestFailure: a category refresh or full refresh could not complete
- DeliveryFailure: one subscriber could not be reached
- StoreFailure: a subscription or sent-alert read/write failed
"""

from typing import Optional

from .models import Category


class CoordAlertsError(Exception):
    """Base class for all Coord Alerts errors."""


class HarvestFailure(CoordAlertsError):
    """Raised by a harvester when a scrape fails hard."""

    def __init__(self, message: str, category: Optional[Category] = None):
        super().__init__(message)
        self.category = category


class DeliveryFailure(CoordAlertsError):
    """Raised when an alert cannot be delivered to a user."""

    def __init__(self, message: str, user_id: str = ""):
        super().__init__(message)
        self.user_id = user_id


class StoreFailure(CoordAlertsError):
    """Raised when the backing store rejects a read or write."""
