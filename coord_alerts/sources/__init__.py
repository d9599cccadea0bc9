"""
Sources package - Harvesters for map point data.

Each harvester module handles:
1. Fetching the rendered page for a category
2. Extracting points from it
"""

from .base import BaseHarvester
from .iscout import IScoutHarvester, parse_point_rows

__all__ = [
    "BaseHarvester",
    "IScoutHarvester",
    "parse_point_rows",
]
