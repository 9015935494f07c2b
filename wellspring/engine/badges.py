"""
wellspring.engine.badges — Badge Criteria Evaluation
=====================================================

Pure calculation — no database I/O.  A trigger reports the current value
of one :class:`CriteriaKind` for a patient; every active catalog badge of
that kind whose threshold is at or below the value is due, unless the
patient already owns it.

Which triggers an activity produces is declared in
:data:`EVENT_TRIGGERS`; :func:`snapshot_triggers` builds the full set
from aggregate stats (used for progress reporting and repair).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from wellspring.database.models import ActivityKind, CriteriaKind

logger = logging.getLogger(__name__)

# Criteria the engine observes itself, per activity kind
EVENT_TRIGGERS: dict[ActivityKind, tuple[CriteriaKind, ...]] = {
    ActivityKind.MOOD: (CriteriaKind.MOOD_ENTRIES, CriteriaKind.MOOD_STREAK),
    ActivityKind.JOURNAL: (CriteriaKind.JOURNAL_ENTRIES,),
    ActivityKind.EXERCISE: (
        CriteriaKind.EXERCISES_COMPLETED,
        CriteriaKind.BREATHING_EXERCISES,
        CriteriaKind.EXERCISE_STREAK,
    ),
    ActivityKind.CHECKIN: (CriteriaKind.CHECKIN_STREAK, CriteriaKind.DAILY_CHECKINS),
}

# Criteria only collaborators can report
EXTERNAL_CRITERIA: frozenset[CriteriaKind] = frozenset({
    CriteriaKind.UPVOTES_RECEIVED,
    CriteriaKind.POSTS_CREATED,
    CriteriaKind.SESSIONS_ATTENDED,
})


class BadgeLike(Protocol):
    id: int
    name: str
    criteria_kind: str
    threshold: int
    points_reward: int


@dataclass(frozen=True, slots=True)
class BadgeTrigger:
    """Observed value of one criterion, e.g. ``(breathing_exercises, 10)``."""

    kind: CriteriaKind
    current_value: int


@dataclass(frozen=True, slots=True)
class PatientSnapshot:
    """Aggregate stats a patient's triggers are derived from."""

    points_total: int = 0
    level: int = 1
    mood_streak: int = 0
    exercise_streak: int = 0
    checkin_streak: int = 0
    totals: dict[str, int] = field(default_factory=dict)
    breathing_exercises: int = 0

    def value_of(self, kind: CriteriaKind) -> int | None:
        """Current value for *kind*, or None for externally reported criteria."""
        getter = SNAPSHOT_VALUES.get(kind)
        return getter(self) if getter is not None else None


# CriteriaKind → reader over a PatientSnapshot
SNAPSHOT_VALUES: dict[CriteriaKind, Callable[[PatientSnapshot], int]] = {
    CriteriaKind.MOOD_ENTRIES: lambda s: s.totals.get(ActivityKind.MOOD.value, 0),
    CriteriaKind.JOURNAL_ENTRIES: lambda s: s.totals.get(ActivityKind.JOURNAL.value, 0),
    CriteriaKind.EXERCISES_COMPLETED: lambda s: s.totals.get(ActivityKind.EXERCISE.value, 0),
    CriteriaKind.DAILY_CHECKINS: lambda s: s.totals.get(ActivityKind.CHECKIN.value, 0),
    CriteriaKind.BREATHING_EXERCISES: lambda s: s.breathing_exercises,
    CriteriaKind.MOOD_STREAK: lambda s: s.mood_streak,
    CriteriaKind.EXERCISE_STREAK: lambda s: s.exercise_streak,
    CriteriaKind.CHECKIN_STREAK: lambda s: s.checkin_streak,
    CriteriaKind.POINTS_TOTAL: lambda s: s.points_total,
    CriteriaKind.LEVEL_REACHED: lambda s: s.level,
}


def event_triggers(kind: ActivityKind, snapshot: PatientSnapshot) -> list[BadgeTrigger]:
    """Triggers produced by one activity of *kind*."""
    return [
        BadgeTrigger(criteria, snapshot.value_of(criteria) or 0)
        for criteria in EVENT_TRIGGERS.get(kind, ())
    ]


def points_triggers(points_total: int, level: int) -> list[BadgeTrigger]:
    return [
        BadgeTrigger(CriteriaKind.POINTS_TOTAL, points_total),
        BadgeTrigger(CriteriaKind.LEVEL_REACHED, level),
    ]


def snapshot_triggers(snapshot: PatientSnapshot) -> list[BadgeTrigger]:
    """Every trigger the engine can derive on its own."""
    triggers = []
    for kind in CriteriaKind:
        value = snapshot.value_of(kind)
        if value is not None:
            triggers.append(BadgeTrigger(kind, value))
    return triggers


# ---------------------------------------------------------------------------
# Main check function
# ---------------------------------------------------------------------------
def check_badges(
    catalog: Iterable[BadgeLike],
    triggers: Iterable[BadgeTrigger],
    already_owned: set[int],
) -> list[BadgeLike]:
    """Badges newly due for these *triggers*.

    Parameters
    ----------
    catalog : active badges
    triggers : observed criterion values
    already_owned : badge IDs the patient already holds

    Returns
    -------
    Due badges in catalog order, each at most once.
    """
    best: dict[str, int] = {}
    for trigger in triggers:
        key = trigger.kind.value
        best[key] = max(best.get(key, trigger.current_value), trigger.current_value)

    due: list[BadgeLike] = []
    for badge in catalog:
        if badge.id in already_owned:
            continue
        value = best.get(badge.criteria_kind)
        if value is None:
            continue
        if badge.threshold <= value:
            due.append(badge)
            logger.debug(
                "Badge due: %s (%s %d >= %d)",
                badge.name, badge.criteria_kind, value, badge.threshold,
            )
    return due


def badge_progress(threshold: int, current_value: int) -> float:
    """Percent progress toward *threshold*: ``min(current / threshold, 1) * 100``."""
    if threshold <= 0:
        return 100.0
    return round(min(max(current_value, 0) / threshold, 1.0) * 100, 1)
