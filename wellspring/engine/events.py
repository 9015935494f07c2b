"""
wellspring.engine.events — WellnessEvent and ActivityKind
==========================================================

The universal event envelope.  Every activity reported by the wellness
and check-in handlers is normalized into a :class:`WellnessEvent` before
the reward pipeline processes it.  ``occurred_on`` is the patient's local
calendar date, normalized once at ingestion; nothing downstream
re-derives timezones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from wellspring.database.models import ActivityKind
from wellspring.errors import InvalidActivityKind

__all__ = [
    "ActivityKind",
    "BASE_POINTS",
    "STREAK_BONUS",
    "WellnessEvent",
    "coerce_kind",
]

# ---------------------------------------------------------------------------
# Setting key + fallback default per activity kind
# ---------------------------------------------------------------------------
BASE_POINTS: dict[ActivityKind, tuple[str, int]] = {
    ActivityKind.MOOD: ("points.mood_entry", 10),
    ActivityKind.JOURNAL: ("points.journal_entry", 15),
    ActivityKind.EXERCISE: ("points.exercise_completion", 25),
    ActivityKind.CHECKIN: ("points.daily_checkin", 10),
}

# Journal entries carry no streak
STREAK_BONUS: dict[ActivityKind, tuple[str, int]] = {
    ActivityKind.MOOD: ("points.mood_streak_bonus", 5),
    ActivityKind.EXERCISE: ("points.exercise_streak_bonus", 10),
    ActivityKind.CHECKIN: ("points.checkin_streak_bonus", 5),
}


def coerce_kind(kind: ActivityKind | str) -> ActivityKind:
    """Parse *kind* into an :class:`ActivityKind` or raise
    :class:`InvalidActivityKind`."""
    if isinstance(kind, ActivityKind):
        return kind
    try:
        return ActivityKind(str(kind).upper())
    except ValueError:
        raise InvalidActivityKind(kind) from None


# ---------------------------------------------------------------------------
# WellnessEvent: the universal event envelope
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class WellnessEvent:
    """Normalized activity from any wellness source.

    Source-specific details (word count, exercise category, mood score)
    travel in ``metadata``.  ``source_ref`` is the caller's natural key for
    the underlying entry; when present, replays of the same event are
    detected and never paid twice.
    """

    patient_id: str
    kind: ActivityKind
    occurred_on: date
    metadata: dict = field(default_factory=dict)
    source_ref: str | None = None

    @property
    def category(self) -> str | None:
        """Exercise category (upper-cased), e.g. ``BREATHING``."""
        raw = self.metadata.get("category")
        return str(raw).upper() if raw else None

    @property
    def word_count(self) -> int:
        try:
            return int(self.metadata.get("word_count") or 0)
        except (TypeError, ValueError):
            return 0
