"""
Service wiring for Coord Alerts.

Builds the harvester, cache, store, notifier and scheduler from
configuration and provides the command line entry point:

- serve: rotating scheduler plus the HTTP front door (blocking)
- once: single full refresh, print counts
- purge: drop sent-alert records older than the retention window
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .cache import SnapshotCache
from .config import AppConfig, get_app_config
from .delivery import DiscordDMSender
from .notifier import Notifier
from .scheduler import RotatingScheduler
from .sources.base import BaseHarvester
from .store import AlertStore, MemoryStore

logger = logging.getLogger(__name__)


@dataclass
class AlertService:
    """Every long-lived component, constructed once per process."""
    config: AppConfig
    harvester: BaseHarvester
    cache: SnapshotCache
    store: AlertStore
    notifier: Notifier
    scheduler: RotatingScheduler

    def start(self) -> None:
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()
        self.harvester.close()

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete sent-alert records older than the retention window."""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(hours=self.config.alert_retention_hours)
        removed = self.store.purge_older_than(cutoff)
        logger.info(f"Purged {removed} sent alert record(s) older than {cutoff:%Y-%m-%d %H:%M}")
        return removed


def build_service(
    config: Optional[AppConfig] = None,
    harvester: Optional[BaseHarvester] = None,
    store: Optional[AlertStore] = None,
    deliverer=None,
    memory_store: bool = False,
) -> AlertService:
    """
    Assemble the service from configuration.

    Anything passed in explicitly is used as-is; the rest is built from
    environment configuration.
    """
    config = config or get_app_config()

    if harvester is None:
        from .sources.iscout import IScoutHarvester
        harvester = IScoutHarvester()
    harvester.sequence = config.crawl_sequence

    if store is None:
        if memory_store:
            logger.warning("Using in-memory store; subscriptions and history are not persisted")
            store = MemoryStore()
        else:
            from .db import get_db
            store = get_db()

    if deliverer is None:
        deliverer = DiscordDMSender()

    cache = SnapshotCache(interval=timedelta(seconds=config.cache_ttl_seconds))
    notifier = Notifier(
        store,
        deliverer,
        retention=timedelta(hours=config.alert_retention_hours),
        duplicate_threshold=config.duplicate_threshold,
        max_points=config.max_alert_points,
    )
    scheduler = RotatingScheduler(
        harvester,
        cache,
        notifier,
        interval=timedelta(seconds=config.update_interval_seconds),
        sequence=config.crawl_sequence,
    )
    return AlertService(
        config=config,
        harvester=harvester,
        cache=cache,
        store=store,
        notifier=notifier,
        scheduler=scheduler,
    )


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Coord Alerts")
    parser.add_argument(
        "--mode",
        choices=["serve", "once", "purge"],
        default="serve",
        help="Mode to run: serve (scheduler + HTTP), once (single full refresh), purge (drop expired sent alerts)"
    )
    parser.add_argument(
        "--memory-store",
        action="store_true",
        help="Keep subscriptions and sent alerts in memory instead of Supabase"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level"
    )

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    service = build_service(memory_store=args.memory_store)

    if args.mode == "serve":
        from .server import run_server
        service.start()
        try:
            run_server(service)
        except (KeyboardInterrupt, SystemExit):
            logger.info("Shutting down")
        finally:
            service.stop()
    elif args.mode == "once":
        try:
            ok = service.scheduler.force_full_refresh()
        finally:
            service.harvester.close()
        counts = {c.value: n for c, n in service.cache.counts().items()}
        print(f"Full refresh {'completed' if ok else 'failed'}: {counts}")
    elif args.mode == "purge":
        removed = service.purge_expired()
        print(f"Purged {removed} sent alert record(s)")


if __name__ == "__main__":
    main()
