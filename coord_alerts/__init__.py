"""
Coord Alerts - rotating map point crawler with deduplicated DM alerts

Keeps the freshest snapshot of three point categories (pyramids,
barbarians, ares) in memory and messages subscribed users when genuinely
new points appear near criteria they chose.

Modules:
- config: Configuration and environment variables
- models: Data models (dataclasses)
- errors: Harvest, delivery and store failures
- ranking: Distance and ordering helpers
- cache: In-memory snapshot cache with busy flag
- store: Store contract and in-memory backend
- db: Supabase store backend
- sources: Harvesters (iScout via Playwright)
- notifier: New-point detection and anti-spam filtering
- delivery: Discord direct-message delivery
- scheduler: APScheduler rotating crawl
- queries: On-demand ordered views of the cache
- server: Flask front door
- service: Wiring and CLI
"""

__version__ = "0.1.0"

# Convenient imports
from .models import (
    Category,
    Point,
    Position,
    Subscription,
    SentAlertRecord,
    AlertPayload,
)
from .errors import HarvestFailure, DeliveryFailure, StoreFailure
from .ranking import (
    distance,
    sort_by_distance,
    sort_by_tier_then_distance,
    sort_by_power_then_distance,
    sort_for_category,
)
from .cache import SnapshotCache
from .store import AlertStore, MemoryStore
from .notifier import Notifier
from .scheduler import RotatingScheduler, SchedulerStatus
from .queries import query_points

__all__ = [
    # Models
    "Category",
    "Point",
    "Position",
    "Subscription",
    "SentAlertRecord",
    "AlertPayload",
    # Errors
    "HarvestFailure",
    "DeliveryFailure",
    "StoreFailure",
    # Ranking
    "distance",
    "sort_by_distance",
    "sort_by_tier_then_distance",
    "sort_by_power_then_distance",
    "sort_for_category",
    # Engine
    "SnapshotCache",
    "AlertStore",
    "MemoryStore",
    "Notifier",
    "RotatingScheduler",
    "SchedulerStatus",
    "query_points",
]
