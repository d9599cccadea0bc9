"""
Supabase database integration module.

Implements the AlertStore contract on top of Supabase:
- Saving user positions
- Managing per-category alert subscriptions
- Recording and purging sent-alert receipts

Tables required:
- users: discord_id (pk), username, x, y, updated_at
- user_alerts: discord_id, type, min_level, max_distance, min_power,
  max_power, enabled (unique on discord_id + type)
- sent_alerts: discord_id, type, level, power, x, y, sent_at
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional
from supabase import create_client, Client

from .config import SupabaseConfig, get_supabase_config
from .errors import StoreFailure
from .models import Category, Position, SentAlertRecord, Subscription
from .store import AlertStore

logger = logging.getLogger(__name__)


def _naive_utc(value: datetime) -> datetime:
    """Supabase returns offset-aware timestamps; the rest of the app uses naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Database(AlertStore):
    """
    Supabase database client wrapper.

    Every backend error is re-raised as StoreFailure so the notifier can
    abort a pass without knowing about the client library.
    """

    def __init__(self, config: Optional[SupabaseConfig] = None, client: Optional[Client] = None):
        """Initialize Supabase client."""
        if client is None:
            config = config or get_supabase_config()
            if not config.url or not config.key:
                raise ValueError("Supabase URL and key must be set in environment variables")
            client = create_client(config.url, config.key)
        self._client: Client = client

    @property
    def client(self) -> Client:
        """Get the Supabase client."""
        return self._client

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except Exception as e:
            raise StoreFailure(f"Supabase {action} failed: {e}") from e

    # =========================================================================
    # USER POSITION OPERATIONS
    # =========================================================================

    def set_user_position(self, user_id: str, username: str, x: int, y: int) -> Position:
        data = {
            "discord_id": user_id,
            "username": username,
            "x": x,
            "y": y,
            "updated_at": datetime.utcnow().isoformat(),
        }
        self._execute(self._client.table("users").upsert(data), "upsert user")
        logger.info(f"Saved position for {user_id}: ({x}, {y})")
        return Position(x=x, y=y)

    def get_user_position(self, user_id: str) -> Optional[Position]:
        result = self._execute(
            self._client.table("users").select("x, y").eq("discord_id", user_id),
            "select user",
        )
        if not result.data:
            return None
        row = result.data[0]
        if row.get("x") is None or row.get("y") is None:
            return None
        return Position(x=row["x"], y=row["y"])

    def _positions_for(self, user_ids: list[str]) -> dict[str, tuple[Optional[Position], str]]:
        if not user_ids:
            return {}
        result = self._execute(
            self._client.table("users").select("discord_id, username, x, y").in_("discord_id", user_ids),
            "select users",
        )
        joined = {}
        for row in result.data:
            position = None
            if row.get("x") is not None and row.get("y") is not None:
                position = Position(x=row["x"], y=row["y"])
            joined[row["discord_id"]] = (position, row.get("username") or "")
        return joined

    def _join(self, rows: list[dict]) -> list[Subscription]:
        users = self._positions_for(sorted({row["discord_id"] for row in rows}))
        subscriptions = []
        for row in rows:
            position, username = users.get(row["discord_id"], (None, ""))
            sub = Subscription.from_dict(row, position=position)
            sub.username = username
            subscriptions.append(sub)
        return subscriptions

    # =========================================================================
    # SUBSCRIPTION OPERATIONS
    # =========================================================================

    def set_subscription(self, subscription: Subscription) -> Subscription:
        """Create or update a subscription, keeping the user row in place."""
        user = {"discord_id": subscription.user_id}
        if subscription.username:
            user["username"] = subscription.username
        self._execute(
            self._client.table("users").upsert(user, on_conflict="discord_id"),
            "upsert user",
        )
        data = subscription.to_dict()
        data["enabled"] = True
        self._execute(
            self._client.table("user_alerts").upsert(data, on_conflict="discord_id,type"),
            "upsert subscription",
        )
        logger.info(f"Saved {subscription.category.value} subscription for {subscription.user_id}")
        return self.get_subscription(subscription.user_id, subscription.category)

    def get_subscription(self, user_id: str, category: Category) -> Optional[Subscription]:
        result = self._execute(
            self._client.table("user_alerts").select("*").eq("discord_id", user_id).eq("type", category.value),
            "select subscription",
        )
        subs = self._join(result.data)
        return subs[0] if subs else None

    def get_user_subscriptions(self, user_id: str) -> list[Subscription]:
        result = self._execute(
            self._client.table("user_alerts").select("*").eq("discord_id", user_id).order("type"),
            "select subscriptions",
        )
        return self._join(result.data)

    def delete_subscription(self, user_id: str, category: Category) -> bool:
        result = self._execute(
            self._client.table("user_alerts").delete().eq("discord_id", user_id).eq("type", category.value),
            "delete subscription",
        )
        return bool(result.data)

    def set_subscription_enabled(self, user_id: str, category: Category, enabled: bool) -> bool:
        result = self._execute(
            self._client.table("user_alerts").update({"enabled": enabled})
            .eq("discord_id", user_id).eq("type", category.value),
            "toggle subscription",
        )
        return bool(result.data)

    def get_active_subscriptions(self, category: Category) -> list[Subscription]:
        result = self._execute(
            self._client.table("user_alerts").select("*").eq("type", category.value).eq("enabled", True),
            "select active subscriptions",
        )
        return self._join(result.data)

    # =========================================================================
    # SENT ALERT OPERATIONS
    # =========================================================================

    def record_sent(self, records: Iterable[SentAlertRecord]) -> int:
        rows = [r.to_dict() for r in records]
        if not rows:
            return 0
        self._execute(self._client.table("sent_alerts").insert(rows), "insert sent alerts")
        logger.debug(f"Recorded {len(rows)} sent alert(s)")
        return len(rows)

    def find_recent(self, user_id: str, category: Category, level: int) -> list[SentAlertRecord]:
        result = self._execute(
            self._client.table("sent_alerts").select("*")
            .eq("discord_id", user_id).eq("type", category.value).eq("level", level)
            .order("sent_at", desc=True),
            "select sent alerts",
        )
        records = []
        for row in result.data:
            record = SentAlertRecord.from_dict(row)
            record.sent_at = _naive_utc(record.sent_at)
            records.append(record)
        return records

    def purge_older_than(self, cutoff: datetime) -> int:
        result = self._execute(
            self._client.table("sent_alerts").delete().lt("sent_at", cutoff.isoformat()),
            "purge sent alerts",
        )
        return len(result.data or [])


# Global database instance (lazy loaded)
_db: Optional[Database] = None


def get_db() -> Database:
    """Get database instance (singleton)."""
    global _db
    if _db is None:
        _db = Database()
    return _db
