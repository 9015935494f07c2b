"""
wellspring.services.streak_service — Streak Tracker
====================================================

Persists the pure continuation rule from :mod:`wellspring.engine.streaks`
onto the patient profile.  Only the current streak per kind is stored;
the longest streak is derived from ``activity_events`` on demand.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from wellspring.database.models import ActivityEvent, ActivityKind, PatientProfile
from wellspring.engine import streaks
from wellspring.engine.streaks import STREAK_FIELDS, StreakOutcome, StreakUpdate
from wellspring.errors import InvalidActivityKind

logger = logging.getLogger(__name__)


def _fields(kind: ActivityKind) -> tuple[str, str]:
    try:
        return STREAK_FIELDS[kind]
    except KeyError:
        raise InvalidActivityKind(kind, "activity kind has no streak") from None


def continue_streak(
    session: Session,
    profile: PatientProfile,
    kind: ActivityKind,
    on: date,
) -> StreakUpdate:
    """Apply an event of *kind* on *on* to *profile* (already locked)."""
    streak_attr, last_attr = _fields(kind)
    update = streaks.continue_streak(
        kind, getattr(profile, streak_attr) or 0, getattr(profile, last_attr), on,
    )

    setattr(profile, streak_attr, update.current)
    setattr(profile, last_attr, update.last_on)
    if profile.last_active_on is None or on > profile.last_active_on:
        profile.last_active_on = on

    if update.backdated:
        logger.info(
            "Backdated %s event for %s on %s (last %s) — streak reset to 1",
            kind, profile.id, on, update.last_on,
        )
    elif update.outcome is StreakOutcome.RESET:
        logger.info(
            "%s streak for %s reset after %d day(s)", kind, profile.id, update.previous,
        )
    session.flush()
    return update


def current_streak(profile: PatientProfile, kind: ActivityKind) -> int:
    streak_attr, _ = _fields(kind)
    return getattr(profile, streak_attr) or 0


def activity_days(session: Session, patient_id: str, kind: ActivityKind) -> list[date]:
    """Distinct days with an event of *kind*, oldest first."""
    return list(session.scalars(
        select(ActivityEvent.occurred_on)
        .where(ActivityEvent.patient_id == patient_id, ActivityEvent.kind == kind.value)
        .distinct()
        .order_by(ActivityEvent.occurred_on)
    ).all())


def longest_streak(session: Session, patient_id: str, kind: ActivityKind) -> int:
    """Longest run of consecutive days with *kind*, derived from the log."""
    return streaks.longest_streak(activity_days(session, patient_id, kind))


def streak_summary(profile: PatientProfile, today: date) -> dict:
    """Per-kind ``{current, last_active_on, active}`` for dashboards.

    A streak whose last day is before yesterday is reported inactive; the
    stored counter is left untouched until the next event resets it.
    """
    summary = {}
    for kind, (streak_attr, last_attr) in STREAK_FIELDS.items():
        last_on = getattr(profile, last_attr)
        summary[kind.value.lower()] = {
            "current": getattr(profile, streak_attr) or 0,
            "last_active_on": last_on.isoformat() if last_on else None,
            "active": streaks.is_streak_active(last_on, today),
        }
    return summary
