"""
Alert delivery module for Coord Alerts.

Renders an AlertPayload into a Discord embed and sends it to a user as a
direct message through the Discord REST API.
"""

import logging
from datetime import datetime
from typing import Optional

import requests

from .config import DiscordConfig, get_discord_config
from .errors import DeliveryFailure
from .models import AlertPayload

logger = logging.getLogger(__name__)


# =============================================================================
# FORMATTING
# =============================================================================

def format_power(power: int) -> str:
    """Format a power value as 1.2B / 600.0M / 950,000."""
    if power >= 1_000_000_000:
        return f"{power / 1_000_000_000:.1f}B"
    if power >= 1_000_000:
        return f"{power / 1_000_000:.1f}M"
    return f"{power:,}"


def build_alert_embed(payload: AlertPayload) -> dict:
    """
    Build the Discord embed for an alert.

    One inline field per rendered point; the footer mentions how many
    matching points did not fit.
    """
    category = payload.category
    name = category.display_name

    fields = []
    for index, point in enumerate(payload.points, start=1):
        value = f"**X:** `{point.x}` | **Y:** `{point.y}`"
        if point.power is not None:
            value += f"\n⚔️ Power: {format_power(point.power)}"
        if point.distance is not None:
            value += f"\n📏 Distance: {round(point.distance)}"
        fields.append({
            "name": f"#{index} - Level {point.level}",
            "value": value,
            "inline": True,
        })

    if payload.overflow:
        footer = f"...and {payload.overflow} more. Use !{category.value} to see all."
    else:
        footer = f"Use !{category.value} to see all coordinates"

    return {
        "title": f"{category.emoji} New {name} Alert!",
        "description": f"{payload.total} new {name.lower()}(s) found!",
        "color": category.color,
        "fields": fields,
        "footer": {"text": footer},
        "timestamp": datetime.utcnow().isoformat(),
    }


# =============================================================================
# DISCORD DM SENDER
# =============================================================================

class DiscordDMSender:
    """
    Sends alert embeds to users as Discord direct messages.

    Usage:
        sender = DiscordDMSender()
        ok = sender.deliver("123456789", payload)
    """

    def __init__(self, config: Optional[DiscordConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or get_discord_config()
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bot {self.config.bot_token}",
            "Content-Type": "application/json",
            "User-Agent": "DiscordBot (coord-alerts, 0.1.0)",
        })
        self._dm_channels: dict[str, str] = {}

    def deliver(self, user_id: str, payload: AlertPayload) -> bool:
        """
        Deliver one payload to one user.

        Returns:
            True if Discord accepted the message, False otherwise
        """
        try:
            channel_id = self._open_dm(user_id)
            self._post(
                f"/channels/{channel_id}/messages",
                {"embeds": [build_alert_embed(payload)]},
                user_id,
            )
            return True
        except DeliveryFailure as e:
            logger.warning(f"Could not deliver {payload.category.value} alert to {user_id}: {e}")
            return False

    def _open_dm(self, user_id: str) -> str:
        """Get (and remember) the DM channel for a user."""
        if user_id not in self._dm_channels:
            data = self._post("/users/@me/channels", {"recipient_id": user_id}, user_id)
            self._dm_channels[user_id] = data["id"]
        return self._dm_channels[user_id]

    def _post(self, path: str, body: dict, user_id: str) -> dict:
        url = f"{self.config.api_base}{path}"
        try:
            response = self.session.post(url, json=body, timeout=self.config.request_timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise DeliveryFailure(f"POST {path} failed: {e}", user_id=user_id) from e
