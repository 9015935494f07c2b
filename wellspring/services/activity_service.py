"""
wellspring.services.activity_service — Activity Recording & Stats
==================================================================

Entry point for the wellness handlers (mood, journal, exercise).  Each
reported activity runs the same pipeline in a single transaction:

1. Append the :class:`ActivityEvent` (idempotent on ``source_ref``)
2. Continue the streak for its kind, when the kind has one
3. Pay base points, long-entry and streak bonuses through the ledger
4. Evaluate badges for the triggers the activity produces

Check-ins have their own once-per-day flow in
:mod:`wellspring.services.checkin_service` and are rejected here.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wellspring.constants import level_progress
from wellspring.database.engine import get_profile, get_session, lock_profile
from wellspring.database.models import (
    ActivityEvent,
    ActivityKind,
    Badge,
    PatientBadge,
    PatientProfile,
)
from wellspring.engine.badges import event_triggers
from wellspring.engine.events import WellnessEvent, coerce_kind
from wellspring.engine.reward import calculate_reward
from wellspring.engine.streaks import STREAK_FIELDS
from wellspring.errors import ConcurrentAwardConflict, InvalidActivityKind
from wellspring.services import badge_service, ledger_service, streak_service
from wellspring.services.checkin_service import local_today

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from wellspring.engine.cache import ConfigCache

logger = logging.getLogger(__name__)

# Key under which the reward summary is kept in the event's metadata
SUMMARY_KEY = "reward_summary"


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------
def validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name!r}") from exc
    return name


def provision_patient(
    engine: Engine,
    patient_id: str,
    timezone: str = "UTC",
) -> dict:
    """Get-or-create the profile for *patient_id*.

    Called when a patient account is provisioned; the engine never creates
    profiles implicitly anywhere else.  An existing profile is returned
    unchanged.
    """
    validate_timezone(timezone)
    with get_session(engine) as session:
        profile = session.get(PatientProfile, patient_id)
        created = False
        if profile is None:
            now = datetime.now(UTC)
            profile = PatientProfile(
                id=patient_id,
                timezone=timezone,
                points_total=0,
                level=1,
                created_at=now,
                updated_at=now,
            )
            try:
                with session.begin_nested():
                    session.add(profile)
                    session.flush()
                created = True
                logger.info("Provisioned patient %s (%s)", patient_id, timezone)
            except IntegrityError:
                profile = get_profile(session, patient_id)

        return {
            "patient_id": profile.id,
            "timezone": profile.timezone,
            "points_total": profile.points_total,
            "level": profile.level,
            "created": created,
        }


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------
def _by_source_ref(
    session: Session, patient_id: str, kind: ActivityKind, source_ref: str,
) -> ActivityEvent | None:
    return session.scalar(
        select(ActivityEvent).where(
            ActivityEvent.patient_id == patient_id,
            ActivityEvent.kind == kind.value,
            ActivityEvent.source_ref == source_ref,
        )
    )


def _duplicate(event: ActivityEvent) -> dict:
    summary = dict((event.metadata_ or {}).get(SUMMARY_KEY) or {})
    summary.update(event_id=event.id, duplicate=True)
    return summary


def _insert_event(session: Session, event: ActivityEvent) -> None:
    """Insert *event* in a SAVEPOINT.

    Raises :class:`ConcurrentAwardConflict` if its ``source_ref`` was
    already recorded.
    """
    try:
        with session.begin_nested():
            session.add(event)
            session.flush()
    except IntegrityError:
        raise ConcurrentAwardConflict(
            event.patient_id, f"{event.kind} {event.source_ref}",
        ) from None


def record_activity(
    engine: Engine,
    cache: ConfigCache,
    patient_id: str,
    kind: ActivityKind | str,
    occurred_on: date,
    metadata: dict | None = None,
    source_ref: str | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Record one mood / journal / exercise activity and pay for it.

    Parameters
    ----------
    occurred_on : the patient's local calendar date for the activity
    metadata : e.g. ``{"word_count": 620}`` or ``{"category": "breathing"}``
    source_ref : caller's natural key; a replay returns the stored summary
        with ``duplicate=True`` and pays nothing

    Returns ``{event_id, points_awarded, base_points, long_entry_bonus,
    streak_bonus, streak, badges_awarded, duplicate}``.

    Raises
    ------
    InvalidActivityKind
        Unknown kind, or CHECKIN.
    PatientNotFound
        No profile for *patient_id*.
    """
    activity = coerce_kind(kind)
    if activity is ActivityKind.CHECKIN:
        raise InvalidActivityKind(kind, "check-ins are recorded through check_in")
    if isinstance(occurred_on, datetime):
        occurred_on = occurred_on.date()
    if metadata is not None and not isinstance(metadata, dict):
        raise TypeError("metadata must be a dict")

    event = WellnessEvent(patient_id, activity, occurred_on, dict(metadata or {}), source_ref)
    now = now or datetime.now(UTC)

    with get_session(engine) as session:
        profile = lock_profile(session, patient_id)

        if source_ref is not None:
            existing = _by_source_ref(session, patient_id, activity, source_ref)
            if existing is not None:
                return _duplicate(existing)

        row = ActivityEvent(
            patient_id=patient_id,
            kind=activity.value,
            occurred_on=occurred_on,
            category=event.category,
            source_ref=source_ref,
            metadata_=dict(event.metadata),
            created_at=now,
        )
        try:
            _insert_event(session, row)
        except ConcurrentAwardConflict as exc:
            logger.warning("%s — returning the recorded activity", exc)
            return _duplicate(_by_source_ref(session, patient_id, activity, source_ref))

        streak = None
        if activity in STREAK_FIELDS:
            streak = streak_service.continue_streak(session, profile, activity, occurred_on)
        elif profile.last_active_on is None or occurred_on > profile.last_active_on:
            profile.last_active_on = occurred_on

        reward = calculate_reward(event, cache, streak)
        reason = activity.value.lower()
        for amount, why in (
            (reward.base, reason),
            (reward.long_entry_bonus, f"{reason}:long_entry"),
            (reward.streak_bonus, f"streak:{reason}"),
        ):
            if amount:
                ledger_service.award(
                    session, profile, amount, why,
                    cache=cache, activity_event_id=row.id, now=now,
                )

        badges = badge_service.evaluate(
            session, profile,
            event_triggers(activity, badge_service.snapshot(session, profile)),
            cache, event_id=row.id, now=now,
        )

        summary = {
            "points_awarded": reward.total,
            "base_points": reward.base,
            "long_entry_bonus": reward.long_entry_bonus,
            "streak_bonus": reward.streak_bonus,
            "streak": streak.to_dict() if streak is not None else None,
            "badges_awarded": [b.name for b in badges],
        }
        row.metadata_ = {**event.metadata, SUMMARY_KEY: summary}
        session.flush()

        logger.info(
            "Activity %s for %s on %s: +%d points, %d badge(s)",
            activity, patient_id, occurred_on, reward.total, len(badges),
        )
        return {**summary, "event_id": row.id, "duplicate": False}


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------
def get_stats(
    engine: Engine,
    cache: ConfigCache | None,
    patient_id: str,
    *,
    today: date | None = None,
    now: datetime | None = None,
) -> dict:
    """Read-only dashboard aggregate for *patient_id*."""
    with get_session(engine) as session:
        profile = get_profile(session, patient_id)
        day = today or local_today(profile, now)
        stats = badge_service.snapshot(session, profile)
        earned = session.execute(
            select(Badge.name, Badge.icon, PatientBadge.unlocked_at)
            .join(Badge, Badge.id == PatientBadge.badge_id)
            .where(PatientBadge.patient_id == patient_id)
            .order_by(PatientBadge.unlocked_at, Badge.id)
        ).all()

        return {
            "patient_id": profile.id,
            "points_total": profile.points_total,
            "level": profile.level,
            "level_progress": level_progress(profile.points_total, cache),
            "streaks": streak_service.streak_summary(profile, day),
            "totals_by_kind": {
                k.value.lower(): stats.totals.get(k.value, 0) for k in ActivityKind
            },
            "breathing_exercises": stats.breathing_exercises,
            "last_active_on": (
                profile.last_active_on.isoformat() if profile.last_active_on else None
            ),
            "badges": [
                {
                    "name": row.name,
                    "icon": row.icon,
                    "unlocked_at": row.unlocked_at.isoformat() if row.unlocked_at else None,
                }
                for row in earned
            ],
        }
