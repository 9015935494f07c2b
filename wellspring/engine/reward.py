"""
wellspring.engine.reward — Reward Calculation Pipeline
=======================================================

Pure calculation — no database I/O.  All tuning values are read from the
:class:`~wellspring.engine.cache.ConfigCache` (``settings`` table).

Pipeline stages:
  WellnessEvent → Base points → Long-entry bonus → Streak bonus → Cap → RewardResult
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from wellspring.database.models import ActivityKind
from wellspring.engine.events import BASE_POINTS, STREAK_BONUS, WellnessEvent

if TYPE_CHECKING:
    from wellspring.engine.cache import ConfigCache
    from wellspring.engine.streaks import StreakUpdate

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# RewardResult: output of the pipeline
# ---------------------------------------------------------------------------
@dataclass
class RewardResult:
    """Points owed for one event, split by ledger reason."""

    base: int = 0
    long_entry_bonus: int = 0
    streak_bonus: int = 0

    @property
    def total(self) -> int:
        return self.base + self.long_entry_bonus + self.streak_bonus


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------
def base_points(kind: ActivityKind, cache: ConfigCache) -> int:
    key, default = BASE_POINTS[kind]
    return max(cache.get_int(key, default), 0)


def long_entry_bonus(event: WellnessEvent, cache: ConfigCache) -> int:
    """Journal entries strictly longer than the configured word count."""
    if event.kind is not ActivityKind.JOURNAL:
        return 0
    threshold = cache.get_int("points.journal_long_entry_words", 500)
    if event.word_count <= threshold:
        return 0
    return max(cache.get_int("points.journal_long_entry_bonus", 10), 0)


def streak_bonus(update: StreakUpdate | None, cache: ConfigCache) -> int:
    """``(streak - 1) * per_day_bonus``, capped when a cap is configured.

    Same-day repeats earn no bonus; the streak did not move.
    """
    if update is None or not update.advanced or update.kind not in STREAK_BONUS:
        return 0
    key, default = STREAK_BONUS[update.kind]
    bonus = max(update.current - 1, 0) * max(cache.get_int(key, default), 0)
    cap = cache.get_int("points.streak_bonus_cap", 0)
    if cap > 0 and bonus > cap:
        logger.debug("Streak bonus %d capped at %d", bonus, cap)
        bonus = cap
    return bonus


# ---------------------------------------------------------------------------
# Full calculation pipeline
# ---------------------------------------------------------------------------
def calculate_reward(
    event: WellnessEvent,
    cache: ConfigCache,
    streak: StreakUpdate | None = None,
) -> RewardResult:
    """Run the reward pipeline for *event*.

    Parameters
    ----------
    event : the normalized activity
    cache : ConfigCache for setting lookups
    streak : the streak update this event produced, if its kind has one
    """
    return RewardResult(
        base=base_points(event.kind, cache),
        long_entry_bonus=long_entry_bonus(event, cache),
        streak_bonus=streak_bonus(streak, cache),
    )
