"""
On-demand queries over the snapshot cache.

These back the front door's "show me the current points" commands: read
one category from the cache, optionally narrow to a level, and order it the
way that category is presented.
"""

from dataclasses import dataclass
from typing import Optional

from .cache import SnapshotCache
from .models import Category, Point, Position
from .ranking import filter_by_level, sort_for_category


@dataclass
class QueryResult:
    """Ordered points for one category plus how they were ordered."""
    category: Category
    points: list[Point]
    sorted_by: str
    level: Optional[int] = None

    def to_dict(self, limit: Optional[int] = None) -> dict:
        shown = self.points if limit is None else self.points[:limit]
        return {
            "category": self.category.value,
            "total": len(self.points),
            "shown": len(shown),
            "level": self.level,
            "sorted_by": self.sorted_by,
            "points": [p.to_dict() for p in shown],
        }


def describe_order(category: Category, position: Optional[Position]) -> str:
    """Human readable description of the ordering sort_for_category applies."""
    if category is Category.PYRAMID:
        return "level desc, distance asc" if position else "level desc"
    if category is Category.BARBARIAN:
        return "power desc, distance asc" if position else "power desc"
    if category is Category.ARES:
        return "distance asc" if position else "harvest order"
    raise ValueError(f"Unknown category: {category!r}")


def query_points(
    cache: SnapshotCache,
    category: Category,
    position: Optional[Position] = None,
    level: Optional[int] = None,
) -> QueryResult:
    """
    Current points for a category, ordered for display.

    Args:
        cache: The snapshot cache to read
        category: Which category to show
        position: The caller's saved position, enables distance ordering
        level: Only show points of this level (1-10)

    Returns:
        QueryResult with the ordered points
    """
    points = cache.get(category)
    if level is not None:
        points = filter_by_level(points, level)
    return QueryResult(
        category=category,
        points=sort_for_category(category, points, position),
        sorted_by=describe_order(category, position),
        level=level,
    )
