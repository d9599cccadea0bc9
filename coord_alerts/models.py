"""
Data models for Coord Alerts.

Defines the dataclasses shared by the harvester, cache, notifier and store.
Points are value objects; a point's identity for "is this new?" purposes is
its (x, y) pair within one category's snapshot.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from enum import Enum


_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO timestamp as stored by Supabase.

    PostgREST trims trailing zeros from fractional seconds
    ("12:00:00.12345+00:00"), which fromisoformat rejects before 3.11.
    """
    value = value.replace("Z", "+00:00")
    value = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    return datetime.fromisoformat(value)


class Category(str, Enum):
    """The three kinds of tracked points."""
    PYRAMID = "pyramid"      # Tiered ruin, ranked by level first
    BARBARIAN = "barbarian"  # Hostile camp, the only category carrying power
    ARES = "ares"            # Neutral structure

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def emoji(self) -> str:
        return _EMOJIS[self]

    @property
    def color(self) -> int:
        """Embed colour for this category."""
        return _COLORS[self]

    @property
    def carries_power(self) -> bool:
        return self is Category.BARBARIAN


_DISPLAY_NAMES = {
    Category.PYRAMID: "Pyramid",
    Category.BARBARIAN: "Barbarian",
    Category.ARES: "Ares",
}

_EMOJIS = {
    Category.PYRAMID: "🔺",
    Category.BARBARIAN: "🗡️",
    Category.ARES: "⚡",
}

_COLORS = {
    Category.PYRAMID: 0xFFD700,
    Category.BARBARIAN: 0xFF4444,
    Category.ARES: 0xFFA500,
}


@dataclass(frozen=True)
class Position:
    """A saved map position (the subscriber's city)."""
    x: int
    y: int


@dataclass(frozen=True)
class Point:
    """
    One harvested point of interest.

    `distance` is an annotation added by the ranking helpers relative to a
    reference position; it is not part of the point's value.
    """
    x: int
    y: int
    level: int
    power: Optional[int] = None
    alliance: Optional[str] = None
    timestamp: Optional[datetime] = None
    distance: Optional[float] = field(default=None, compare=False)

    @property
    def key(self) -> tuple[int, int]:
        return (self.x, self.y)

    def to_dict(self) -> dict:
        data = {
            "x": self.x,
            "y": self.y,
            "level": self.level,
            "power": self.power,
            "alliance": self.alliance,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
        if self.distance is not None:
            data["distance"] = round(self.distance)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Point":
        return cls(
            x=int(data["x"]),
            y=int(data["y"]),
            level=int(data.get("level", 0)),
            power=int(data["power"]) if data.get("power") is not None else None,
            alliance=data.get("alliance"),
            timestamp=parse_timestamp(data["timestamp"]) if data.get("timestamp") else None,
        )


@dataclass
class Subscription:
    """
    A user's standing request to be alerted about new points in one category.

    `position` is the user's saved position, joined in by the store. Without
    it the max-distance filter is skipped.
    """
    user_id: str
    category: Category
    min_level: Optional[int] = None
    max_distance: Optional[float] = None
    min_power: Optional[int] = None
    max_power: Optional[int] = None
    enabled: bool = True
    position: Optional[Position] = None
    username: str = ""

    @property
    def has_power_range(self) -> bool:
        return self.min_power is not None and self.max_power is not None

    def to_dict(self) -> dict:
        return {
            "discord_id": self.user_id,
            "type": self.category.value,
            "min_level": self.min_level,
            "max_distance": self.max_distance,
            "min_power": self.min_power,
            "max_power": self.max_power,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict, position: Optional[Position] = None) -> "Subscription":
        return cls(
            user_id=data["discord_id"],
            category=Category(data["type"]),
            min_level=data.get("min_level"),
            max_distance=data.get("max_distance"),
            min_power=int(data["min_power"]) if data.get("min_power") is not None else None,
            max_power=int(data["max_power"]) if data.get("max_power") is not None else None,
            enabled=data.get("enabled", True),
            position=position,
            username=data.get("username", ""),
        )


@dataclass
class SentAlertRecord:
    """
    Receipt of one point shown to one user.

    Used to suppress near-duplicate alerts for the same user, category and
    level until the record ages out of the retention window.
    """
    user_id: str
    category: Category
    level: int
    x: int
    y: int
    power: Optional[int] = None
    sent_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "discord_id": self.user_id,
            "type": self.category.value,
            "level": self.level,
            "x": self.x,
            "y": self.y,
            "power": self.power,
            "sent_at": self.sent_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SentAlertRecord":
        return cls(
            user_id=data["discord_id"],
            category=Category(data["type"]),
            level=data["level"],
            x=data["x"],
            y=data["y"],
            power=int(data["power"]) if data.get("power") is not None else None,
            sent_at=parse_timestamp(data["sent_at"]) if data.get("sent_at") else datetime.utcnow(),
        )


@dataclass
class AlertPayload:
    """What one subscriber is shown for one harvest event."""
    category: Category
    points: list[Point]  # Rendered points, already capped
    total: int           # Number of matching points before the cap

    @property
    def overflow(self) -> int:
        return max(0, self.total - len(self.points))
