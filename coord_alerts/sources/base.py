"""
Base harvester class for point sources.

All harvesters inherit from BaseHarvester and implement:
- scrape_one(): Get the current points for one category
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Sequence

from ..config import DEFAULT_CRAWL_SEQUENCE
from ..errors import HarvestFailure
from ..models import Category, Point

logger = logging.getLogger(__name__)


class BaseHarvester(ABC):
    """
    Abstract base class for harvesters.

    Contract:
    - scrape_one() returns an empty list on soft failure rather than raising
    - scrape_all() raises HarvestFailure on hard failure

    Harvesters hold shared session state and must never be called
    concurrently; the scheduler's busy flag guarantees this.
    """

    sequence: Sequence[Category] = DEFAULT_CRAWL_SEQUENCE

    @abstractmethod
    def scrape_one(self, category: Category) -> list[Point]:
        """
        Fetch the current points for one category.

        Returns:
            List of Point objects (empty on soft failure)
        """
        pass

    def scrape_all(self) -> dict[Category, list[Point]]:
        """
        Fetch every category, one after another.

        The session can only navigate one page at a time.

        Returns:
            Mapping of category to its points
        """
        logger.info("Starting full scrape...")
        start = time.monotonic()
        results = {}
        for index, category in enumerate(self.sequence, start=1):
            logger.info(f"[{index}/{len(self.sequence)}] Scraping {category.display_name}...")
            try:
                results[category] = self.scrape_one(category)
            except HarvestFailure:
                raise
            except Exception as e:
                raise HarvestFailure(f"Full scrape failed on {category.value}: {e}", category) from e

        duration = time.monotonic() - start
        counts = ", ".join(f"{c.display_name}: {len(p)}" for c, p in results.items())
        logger.info(f"Full scrape completed in {duration:.2f}s ({counts})")
        return results

    def close(self) -> None:
        """Release any browser or network resources."""
