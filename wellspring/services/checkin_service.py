"""
wellspring.services.checkin_service — Daily Check-In
=====================================================

Once per calendar day a patient checks in:

    NOT_CHECKED_IN ──check_in()──▶ CHECKED_IN   (terminal for the day)

The day boundary is the patient's own timezone.  The first check-in of a
day appends a CHECKIN event, continues the check-in streak, pays the
base points plus the streak bonus and evaluates check-in badges, all in
one transaction.  Its summary is stored on the event, so every repeat
call that day returns the same numbers with ``is_new_check_in=False``
and pays nothing.

Two concurrent first calls race on the one-check-in-per-day unique index;
the loser sees the winner's row and reports it as a repeat.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wellspring.database.engine import get_profile, get_session, lock_profile
from wellspring.database.models import ActivityEvent, ActivityKind, PatientProfile
from wellspring.engine.badges import event_triggers
from wellspring.engine.events import WellnessEvent
from wellspring.engine.reward import calculate_reward
from wellspring.engine.streaks import longest_streak
from wellspring.errors import ConcurrentAwardConflict
from wellspring.services import badge_service, ledger_service, streak_service

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from wellspring.engine.cache import ConfigCache

logger = logging.getLogger(__name__)

MAX_CALENDAR_DAYS = 365


@dataclass
class CheckInResult:
    is_new_check_in: bool
    check_in_date: str
    current_streak: int = 0
    longest_streak: int = 0
    points_awarded: int = 0
    streak_bonus: int = 0
    badges_awarded: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Day boundaries
# ---------------------------------------------------------------------------
def local_today(profile: PatientProfile, now: datetime | None = None) -> date:
    """Calendar date for *profile* at *now* (UTC), in the patient's timezone."""
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(ZoneInfo(profile.timezone or "UTC")).date()


def _checkin_on(session: Session, patient_id: str, day: date) -> ActivityEvent | None:
    return session.scalar(
        select(ActivityEvent).where(
            ActivityEvent.patient_id == patient_id,
            ActivityEvent.kind == ActivityKind.CHECKIN.value,
            ActivityEvent.occurred_on == day,
        )
    )


def has_checked_in_today(
    engine: Engine,
    patient_id: str,
    *,
    today: date | None = None,
    now: datetime | None = None,
) -> bool:
    with get_session(engine) as session:
        profile = get_profile(session, patient_id)
        day = today or local_today(profile, now)
        return _checkin_on(session, patient_id, day) is not None


# ---------------------------------------------------------------------------
# Check-in
# ---------------------------------------------------------------------------
def _repeat(event: ActivityEvent) -> CheckInResult:
    stored = dict(event.metadata_ or {})
    stored.pop("is_new_check_in", None)
    stored.setdefault("check_in_date", event.occurred_on.isoformat())
    return CheckInResult(is_new_check_in=False, **stored)


def _insert_checkin(session: Session, event: ActivityEvent) -> None:
    """Insert today's CHECKIN row in a SAVEPOINT.

    Raises :class:`ConcurrentAwardConflict` if the day is already taken.
    """
    try:
        with session.begin_nested():
            session.add(event)
            session.flush()
    except IntegrityError:
        raise ConcurrentAwardConflict(
            event.patient_id, f"check-in on {event.occurred_on}",
        ) from None


def check_in(
    engine: Engine,
    cache: ConfigCache,
    patient_id: str,
    *,
    today: date | None = None,
    now: datetime | None = None,
) -> CheckInResult:
    """Check *patient_id* in for *today* (default: their local date).

    Raises :class:`~wellspring.errors.PatientNotFound` for unknown patients.
    """
    now = now or datetime.now(UTC)
    with get_session(engine) as session:
        profile = lock_profile(session, patient_id)
        day = today or local_today(profile, now)

        existing = _checkin_on(session, patient_id, day)
        if existing is not None:
            return _repeat(existing)

        event = ActivityEvent(
            patient_id=patient_id,
            kind=ActivityKind.CHECKIN.value,
            occurred_on=day,
            metadata_={},
            created_at=now,
        )
        try:
            _insert_checkin(session, event)
        except ConcurrentAwardConflict as exc:
            logger.warning("%s — returning the existing check-in", exc)
            return _repeat(_checkin_on(session, patient_id, day))

        streak = streak_service.continue_streak(session, profile, ActivityKind.CHECKIN, day)
        reward = calculate_reward(
            WellnessEvent(patient_id, ActivityKind.CHECKIN, day), cache, streak,
        )
        if reward.base:
            ledger_service.award(
                session, profile, reward.base, "checkin",
                cache=cache, activity_event_id=event.id, now=now,
            )
        if reward.streak_bonus:
            ledger_service.award(
                session, profile, reward.streak_bonus, "streak:checkin",
                cache=cache, activity_event_id=event.id, now=now,
            )

        stats = badge_service.snapshot(session, profile)
        badges = badge_service.evaluate(
            session, profile, event_triggers(ActivityKind.CHECKIN, stats), cache,
            event_id=event.id, now=now,
        )

        result = CheckInResult(
            is_new_check_in=True,
            check_in_date=day.isoformat(),
            current_streak=streak.current,
            longest_streak=streak_service.longest_streak(
                session, patient_id, ActivityKind.CHECKIN,
            ),
            points_awarded=reward.base,
            streak_bonus=reward.streak_bonus,
            badges_awarded=[b.name for b in badges],
        )
        summary = result.to_dict()
        summary.pop("is_new_check_in")
        event.metadata_ = summary
        session.flush()

        logger.info(
            "Check-in: %s on %s (streak %d, +%d)",
            patient_id, day, streak.current, reward.total,
        )
        return result


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------
def check_in_calendar(
    engine: Engine,
    patient_id: str,
    days: int = 30,
    *,
    today: date | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """The last *days* calendar days (oldest first), clamped to 1..365."""
    days = min(max(int(days), 1), MAX_CALENDAR_DAYS)
    with get_session(engine) as session:
        profile = get_profile(session, patient_id)
        end = today or local_today(profile, now)
        start = end - timedelta(days=days - 1)
        checked = set(session.scalars(
            select(ActivityEvent.occurred_on).where(
                ActivityEvent.patient_id == patient_id,
                ActivityEvent.kind == ActivityKind.CHECKIN.value,
                ActivityEvent.occurred_on >= start,
                ActivityEvent.occurred_on <= end,
            )
        ).all())

    calendar = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        calendar.append({
            "date": day.isoformat(),
            "has_check_in": day in checked,
            "is_today": day == end,
        })
    return calendar


def check_in_stats(
    engine: Engine,
    patient_id: str,
    *,
    today: date | None = None,
    now: datetime | None = None,
) -> dict:
    """Streak and frequency figures for the check-in dashboard.

    ``this_week`` counts the last seven days including today;
    ``this_month`` counts the current calendar month;
    ``average_per_week`` divides the total by whole weeks since the
    first check-in (at least one).
    """
    with get_session(engine) as session:
        profile = get_profile(session, patient_id)
        day = today or local_today(profile, now)
        days = streak_service.activity_days(session, patient_id, ActivityKind.CHECKIN)

        def count_since(start: date) -> int:
            return session.scalar(
                select(func.count())
                .select_from(ActivityEvent)
                .where(
                    ActivityEvent.patient_id == patient_id,
                    ActivityEvent.kind == ActivityKind.CHECKIN.value,
                    ActivityEvent.occurred_on >= start,
                    ActivityEvent.occurred_on <= day,
                )
            ) or 0

        this_week = count_since(day - timedelta(days=6))
        this_month = count_since(day.replace(day=1))
        current = profile.checkin_streak or 0
        last_on = profile.checkin_last_on

    total = len(days)
    average = 0.0
    if total:
        weeks = max(1, math.ceil((day - days[0]).days / 7))
        average = round(total / weeks, 1)

    return {
        "current_streak": current,
        "longest_streak": longest_streak(days),
        "last_check_in": last_on.isoformat() if last_on else None,
        "total_check_ins": total,
        "this_week_check_ins": this_week,
        "this_month_check_ins": this_month,
        "average_per_week": average,
        "has_checked_in_today": day in days,
    }
