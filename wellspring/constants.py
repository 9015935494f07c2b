"""
wellspring.constants — Shared Constants & Helpers
==================================================

Single source of truth for the leveling formula and the presentation
constants shared by services and the API.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wellspring.engine.cache import ConfigCache

DEFAULT_POINTS_PER_LEVEL = 100

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉


# ---------------------------------------------------------------------------
# Leveling formula: THE single canonical implementation
# ---------------------------------------------------------------------------
def points_per_level(cache: ConfigCache | None = None) -> int:
    """Size of one level band, read from ``levels.points_per_level``."""
    if cache is None:
        return DEFAULT_POINTS_PER_LEVEL
    size = cache.get_int("levels.points_per_level", DEFAULT_POINTS_PER_LEVEL)
    return size if size > 0 else DEFAULT_POINTS_PER_LEVEL


def level_for_points(points: int, cache: ConfigCache | None = None) -> int:
    """Level reached with *points* total::

        level = floor(points / points_per_level) + 1
    """
    return max(points, 0) // points_per_level(cache) + 1


def level_progress(points: int, cache: ConfigCache | None = None) -> dict:
    """Progress through the current level band, for dashboards."""
    size = points_per_level(cache)
    level = level_for_points(points, cache)
    into = max(points, 0) - (level - 1) * size
    return {
        "level": level,
        "points_into_level": into,
        "points_to_next_level": size - into,
        "progress_percent": round(into / size * 100),
    }
