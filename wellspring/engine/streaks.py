"""
wellspring.engine.streaks — Consecutive-Day Streak Continuation
================================================================

Pure calculation — no database I/O.  A streak is the count of
consecutive calendar days with at least one activity of a given kind,
ending at the most recent such day.

Continuation rule for an event of kind K on day D, given the stored
``(streak, last_on)`` for K:

    last_on is None          → 1             (STARTED)
    D == last_on             → unchanged     (SAME_DAY)
    D == last_on + 1 day     → streak + 1    (CONTINUED)
    otherwise                → 1             (RESET)

"Otherwise" includes backdated events (D < last_on): a late event never
repairs a broken streak, and ``last_on`` never moves backwards.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta

from wellspring.database.models import ActivityKind

# ActivityKind → (PatientProfile streak column, last-day column)
STREAK_FIELDS: dict[ActivityKind, tuple[str, str]] = {
    ActivityKind.MOOD: ("mood_streak", "mood_last_on"),
    ActivityKind.EXERCISE: ("exercise_streak", "exercise_last_on"),
    ActivityKind.CHECKIN: ("checkin_streak", "checkin_last_on"),
}

ONE_DAY = timedelta(days=1)


class StreakOutcome(enum.StrEnum):
    STARTED = "started"
    SAME_DAY = "same_day"
    CONTINUED = "continued"
    RESET = "reset"


@dataclass(frozen=True, slots=True)
class StreakUpdate:
    """Result of applying one event to a stored streak."""

    kind: ActivityKind
    previous: int
    current: int
    outcome: StreakOutcome
    last_on: date
    backdated: bool = False

    @property
    def advanced(self) -> bool:
        """True unless the event was a same-day repeat."""
        return self.outcome is not StreakOutcome.SAME_DAY

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "previous": self.previous,
            "current": self.current,
            "outcome": self.outcome.value,
            "last_active_on": self.last_on.isoformat(),
        }


def continue_streak(
    kind: ActivityKind,
    streak: int,
    last_on: date | None,
    on: date,
) -> StreakUpdate:
    """Apply an event on *on* to the stored ``(streak, last_on)``."""
    if last_on is None:
        return StreakUpdate(kind, streak, 1, StreakOutcome.STARTED, on)
    if on == last_on:
        return StreakUpdate(kind, streak, streak, StreakOutcome.SAME_DAY, last_on)
    if on == last_on + ONE_DAY:
        return StreakUpdate(kind, streak, streak + 1, StreakOutcome.CONTINUED, on)
    return StreakUpdate(
        kind, streak, 1, StreakOutcome.RESET, max(on, last_on),
        backdated=on < last_on,
    )


def replay(kind: ActivityKind, days: Iterable[date]) -> tuple[int, date | None]:
    """Fold :func:`continue_streak` over *days* in arrival order.

    Reproduces exactly what live continuation stored, including resets
    caused by backdated events.
    """
    streak, last_on = 0, None
    for day in days:
        update = continue_streak(kind, streak, last_on, day)
        streak, last_on = update.current, update.last_on
    return streak, last_on


def longest_streak(days: Iterable[date]) -> int:
    """Longest run of consecutive calendar days among *days*."""
    ordered = sorted(set(days))
    best = run = 0
    previous: date | None = None
    for day in ordered:
        run = run + 1 if previous is not None and day == previous + ONE_DAY else 1
        best = max(best, run)
        previous = day
    return best


def is_streak_active(last_on: date | None, today: date) -> bool:
    """A streak is still alive if its last day is today or yesterday."""
    return last_on is not None and last_on >= today - ONE_DAY
