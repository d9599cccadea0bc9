"""
Ranking and filtering helpers for point collections.

Pure functions: planar distance, and ordered views of a point list relative
to an optional reference position. Every sort is stable (Python's sort is),
so points with equal keys keep their harvested order.
"""

import math
from dataclasses import replace
from typing import Iterable, Optional

from .models import Category, Point, Position


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two map coordinates."""
    dx = x2 - x1
    dy = y2 - y1
    return math.sqrt(dx * dx + dy * dy)


def annotate_distance(points: Iterable[Point], ref_x: int, ref_y: int) -> list[Point]:
    """Return copies of the points carrying their distance from (ref_x, ref_y)."""
    return [replace(p, distance=distance(ref_x, ref_y, p.x, p.y)) for p in points]


def sort_by_distance(points: Iterable[Point], ref_x: int, ref_y: int) -> list[Point]:
    """Nearest first."""
    return sorted(annotate_distance(points, ref_x, ref_y), key=lambda p: p.distance)


def sort_by_tier_then_distance(
    points: Iterable[Point],
    ref_x: Optional[int] = None,
    ref_y: Optional[int] = None,
) -> list[Point]:
    """
    Highest level first, nearest first within a level.

    Without a reference position only the level ordering applies.
    """
    if ref_x is None or ref_y is None:
        return sorted(points, key=lambda p: -p.level)
    annotated = annotate_distance(points, ref_x, ref_y)
    return sorted(annotated, key=lambda p: (-p.level, p.distance))


def sort_by_power_then_distance(
    points: Iterable[Point],
    ref_x: Optional[int] = None,
    ref_y: Optional[int] = None,
) -> list[Point]:
    """
    Strongest first, nearest first within equal power.

    Points without a power value count as strength 0 and therefore sort
    after every point that has a positive power.
    """
    if ref_x is None or ref_y is None:
        return sorted(points, key=lambda p: -(p.power or 0))
    annotated = annotate_distance(points, ref_x, ref_y)
    return sorted(annotated, key=lambda p: (-(p.power or 0), p.distance))


def sort_for_category(
    category: Category,
    points: Iterable[Point],
    position: Optional[Position] = None,
) -> list[Point]:
    """Order points the way each category is presented to users."""
    ref_x = position.x if position else None
    ref_y = position.y if position else None

    if category is Category.PYRAMID:
        return sort_by_tier_then_distance(points, ref_x, ref_y)
    if category is Category.BARBARIAN:
        return sort_by_power_then_distance(points, ref_x, ref_y)
    if category is Category.ARES:
        if position is None:
            return list(points)
        return sort_by_distance(points, position.x, position.y)
    raise ValueError(f"Unknown category: {category!r}")


def filter_by_level(points: Iterable[Point], level: int) -> list[Point]:
    """Keep only points of exactly `level` (1-10)."""
    if not 1 <= level <= 10:
        raise ValueError("Level must be between 1 and 10")
    return [p for p in points if p.level == level]
