"""
Configuration module for Coord Alerts.

Loads environment variables and provides configuration constants.
All sensitive values should be in .env file (never commit to git).
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

from .models import Category

# Load environment variables from .env file
load_dotenv()


DEFAULT_CRAWL_SEQUENCE = (Category.PYRAMID, Category.BARBARIAN, Category.ARES)


def _parse_sequence(raw: str) -> tuple[Category, ...]:
    """Parse a comma separated category list like "pyramid,barbarian,ares"."""
    sequence = tuple(Category(part.strip().lower()) for part in raw.split(",") if part.strip())
    if sorted(sequence) != sorted(Category):
        raise ValueError(f"Crawl sequence must name every category exactly once: {raw!r}")
    return sequence


@dataclass
class SupabaseConfig:
    """Supabase connection configuration."""
    url: str
    key: str  # Service role key for server-side operations

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        return cls(
            url=os.getenv("SUPABASE_URL", ""),
            key=os.getenv("SUPABASE_KEY", ""),
        )


@dataclass
class DiscordConfig:
    """Discord bot credentials used for direct-message alerts."""
    bot_token: str
    api_base: str = "https://discord.com/api/v10"
    request_timeout: int = 15

    @classmethod
    def from_env(cls) -> "DiscordConfig":
        return cls(
            bot_token=os.getenv("DISCORD_TOKEN", ""),
            api_base=os.getenv("DISCORD_API_BASE", "https://discord.com/api/v10"),
            request_timeout=int(os.getenv("DISCORD_TIMEOUT", "15")),
        )


@dataclass
class IScoutConfig:
    """Login and browser settings for the iScout harvester."""
    url: str
    email: str
    password: str
    headless: bool = True
    navigation_timeout_ms: int = 60000
    settle_seconds: float = 15.0  # Wait after "Apply" for the result table

    @classmethod
    def from_env(cls) -> "IScoutConfig":
        return cls(
            url=os.getenv("ISCOUT_URL", "https://www.iscout.club/en"),
            email=os.getenv("ISCOUT_EMAIL", ""),
            password=os.getenv("ISCOUT_PASSWORD", ""),
            headless=os.getenv("ISCOUT_HEADLESS", "true").lower() != "false",
            navigation_timeout_ms=int(os.getenv("ISCOUT_TIMEOUT_MS", "60000")),
            settle_seconds=float(os.getenv("ISCOUT_SETTLE_SECONDS", "15")),
        )


@dataclass
class AppConfig:
    """Main application configuration."""
    # Rotating crawl: one category per tick
    update_interval_seconds: int = 300
    crawl_sequence: tuple[Category, ...] = field(default=DEFAULT_CRAWL_SEQUENCE)

    # Cache is considered fresh for one full rotation
    cache_ttl_seconds: int = 900

    # Anti-spam window
    alert_retention_hours: int = 24
    duplicate_threshold: int = 10
    max_alert_points: int = 10

    # Front door HTTP server
    server_host: str = "0.0.0.0"
    server_port: int = 5000

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            update_interval_seconds=int(os.getenv("UPDATE_INTERVAL_SECONDS", "300")),
            crawl_sequence=_parse_sequence(os.getenv("CRAWL_SEQUENCE", "pyramid,barbarian,ares")),
            cache_ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", "900")),
            alert_retention_hours=int(os.getenv("ALERT_RETENTION_HOURS", "24")),
            duplicate_threshold=int(os.getenv("DUPLICATE_THRESHOLD", "10")),
            max_alert_points=int(os.getenv("MAX_ALERT_POINTS", "10")),
            server_host=os.getenv("SERVER_HOST", "0.0.0.0"),
            server_port=int(os.getenv("SERVER_PORT", "5000")),
        )


# Global configuration instances (lazy loaded)
_supabase_config: Optional[SupabaseConfig] = None
_discord_config: Optional[DiscordConfig] = None
_iscout_config: Optional[IScoutConfig] = None
_app_config: Optional[AppConfig] = None


def get_supabase_config() -> SupabaseConfig:
    """Get Supabase configuration (cached)."""
    global _supabase_config
    if _supabase_config is None:
        _supabase_config = SupabaseConfig.from_env()
    return _supabase_config


def get_discord_config() -> DiscordConfig:
    """Get Discord configuration (cached)."""
    global _discord_config
    if _discord_config is None:
        _discord_config = DiscordConfig.from_env()
    return _discord_config


def get_iscout_config() -> IScoutConfig:
    """Get iScout configuration (cached)."""
    global _iscout_config
    if _iscout_config is None:
        _iscout_config = IScoutConfig.from_env()
    return _iscout_config


def get_app_config() -> AppConfig:
    """Get app configuration (cached)."""
    global _app_config
    if _app_config is None:
        _app_config = AppConfig.from_env()
    return _app_config
