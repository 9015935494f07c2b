"""
wellspring.services.badge_service — Badge Unlocks
==================================================

Awards catalog badges exactly once per patient.  The composite primary
key on ``patient_badges`` is the source of truth: a grant is inserted in
a SAVEPOINT and a uniqueness violation is treated as "already unlocked",
so two concurrent evaluations can never both pay a badge reward.

The owned-IDs read before evaluation only prunes work; correctness never
depends on it.
"""

from __future__ import annotations

import enum
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wellspring.database.engine import get_profile, get_session, lock_profile
from wellspring.database.models import (
    ActivityEvent,
    ActivityKind,
    Badge,
    CriteriaKind,
    PatientBadge,
    PatientProfile,
)
from wellspring.engine.badges import (
    EXTERNAL_CRITERIA,
    BadgeTrigger,
    PatientSnapshot,
    badge_progress,
    check_badges,
    points_triggers,
    snapshot_triggers,
)
from wellspring.errors import ConcurrentAwardConflict, InvalidActivityKind
from wellspring.services import ledger_service

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import Engine

    from wellspring.engine.cache import ConfigCache

logger = logging.getLogger(__name__)

BREATHING = "BREATHING"


class UnlockOutcome(enum.StrEnum):
    UNLOCKED = "unlocked"
    ALREADY_UNLOCKED = "already_unlocked"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def owned_badge_ids(session: Session, patient_id: str) -> set[int]:
    """Badge IDs *patient_id* holds.  Selects IDs only, never ORM rows."""
    rows = session.scalars(
        select(PatientBadge.badge_id).where(PatientBadge.patient_id == patient_id)
    ).all()
    return set(rows)


def snapshot(session: Session, profile: PatientProfile) -> PatientSnapshot:
    """Aggregate stats for *profile*, read inside the current transaction."""
    rows = session.execute(
        select(ActivityEvent.kind, func.count().label("cnt"))
        .where(ActivityEvent.patient_id == profile.id)
        .group_by(ActivityEvent.kind)
    ).all()
    breathing = session.scalar(
        select(func.count())
        .select_from(ActivityEvent)
        .where(
            ActivityEvent.patient_id == profile.id,
            ActivityEvent.kind == ActivityKind.EXERCISE.value,
            ActivityEvent.category == BREATHING,
        )
    ) or 0
    return PatientSnapshot(
        points_total=profile.points_total,
        level=profile.level,
        mood_streak=profile.mood_streak or 0,
        exercise_streak=profile.exercise_streak or 0,
        checkin_streak=profile.checkin_streak or 0,
        totals={row.kind: row.cnt for row in rows},
        breathing_exercises=breathing,
    )


def points_trigger_set(profile: PatientProfile) -> list[BadgeTrigger]:
    return points_triggers(profile.points_total, profile.level)


# ---------------------------------------------------------------------------
# Unlock primitive
# ---------------------------------------------------------------------------
def _insert_grant(
    session: Session,
    profile: PatientProfile,
    badge: Badge,
    event_id: int | None,
    now: datetime,
) -> None:
    """Insert the ``patient_badges`` row in a SAVEPOINT.

    Raises :class:`ConcurrentAwardConflict` if the row already exists.
    """
    try:
        with session.begin_nested():
            session.add(PatientBadge(
                patient_id=profile.id,
                badge_id=badge.id,
                unlocked_at=now,
                activity_event_id=event_id,
            ))
            session.flush()
    except IntegrityError:
        # The SAVEPOINT was rolled back; the outer transaction is intact.
        raise ConcurrentAwardConflict(profile.id, f"badge {badge.name}") from None


def try_unlock(
    session: Session,
    profile: PatientProfile,
    badge: Badge,
    cache: ConfigCache | None = None,
    *,
    event_id: int | None = None,
    now: datetime | None = None,
) -> UnlockOutcome:
    """Grant *badge* and pay its reward, or report it was already held."""
    now = now or datetime.now(UTC)
    try:
        _insert_grant(session, profile, badge, event_id, now)
    except ConcurrentAwardConflict as exc:
        logger.warning("%s — treating as already unlocked", exc)
        return UnlockOutcome.ALREADY_UNLOCKED

    logger.info("Badge unlocked: %s → %s", profile.id, badge.name)
    if badge.points_reward > 0:
        ledger_service.award(
            session, profile, badge.points_reward, f"badge:{badge.name}",
            cache=cache, activity_event_id=event_id, now=now,
        )
    return UnlockOutcome.UNLOCKED


def evaluate(
    session: Session,
    profile: PatientProfile,
    triggers: Iterable[BadgeTrigger],
    cache: ConfigCache,
    *,
    event_id: int | None = None,
    now: datetime | None = None,
) -> list[Badge]:
    """Unlock every badge due for *triggers*; return those newly unlocked.

    Badge rewards raise ``points_total``, so the points and level triggers
    are re-checked after each round until nothing new unlocks.
    """
    catalog = cache.get_active_badges()
    owned = owned_badge_ids(session, profile.id)
    unlocked: list[Badge] = []

    due = check_badges(catalog, triggers, owned)
    while due:
        for badge in due:
            owned.add(badge.id)
            outcome = try_unlock(session, profile, badge, cache, event_id=event_id, now=now)
            if outcome is UnlockOutcome.UNLOCKED:
                unlocked.append(badge)
        due = check_badges(catalog, points_trigger_set(profile), owned)

    return unlocked


# ---------------------------------------------------------------------------
# Self-contained operations
# ---------------------------------------------------------------------------
def evaluate_external(
    engine: Engine,
    cache: ConfigCache,
    patient_id: str,
    kind: CriteriaKind | str,
    current_value: int,
    *,
    now: datetime | None = None,
) -> list[str]:
    """Apply a trigger reported by a collaborator (community, sessions)."""
    try:
        criteria = CriteriaKind(str(kind).lower())
    except ValueError:
        raise InvalidActivityKind(kind, "unknown badge criterion") from None
    if criteria not in EXTERNAL_CRITERIA:
        raise InvalidActivityKind(kind, "criterion is tracked by the engine")

    with get_session(engine) as session:
        profile = lock_profile(session, patient_id)
        unlocked = evaluate(
            session, profile, [BadgeTrigger(criteria, max(int(current_value), 0))],
            cache, now=now,
        )
        return [b.name for b in unlocked]


def evaluate_all(
    engine: Engine,
    cache: ConfigCache,
    patient_id: str,
    *,
    now: datetime | None = None,
) -> list[str]:
    """Re-evaluate every engine-observed criterion from the patient's stats."""
    with get_session(engine) as session:
        profile = lock_profile(session, patient_id)
        triggers = snapshot_triggers(snapshot(session, profile))
        unlocked = evaluate(session, profile, triggers, cache, now=now)
        return [b.name for b in unlocked]


def list_badges(engine: Engine, cache: ConfigCache, patient_id: str) -> list[dict]:
    """Every active badge with unlock state and progress for *patient_id*.

    Progress is ``None`` for locked badges on externally reported
    criteria, which the engine has no current value for.
    """
    with get_session(engine) as session:
        profile = get_profile(session, patient_id)
        stats = snapshot(session, profile)
        earned = {
            row.badge_id: row.unlocked_at
            for row in session.execute(
                select(PatientBadge.badge_id, PatientBadge.unlocked_at)
                .where(PatientBadge.patient_id == patient_id)
            ).all()
        }

    result = []
    for badge in cache.get_active_badges():
        unlocked_at = earned.get(badge.id)
        if badge.id in earned:
            progress: float | None = 100.0
        else:
            current = stats.value_of(CriteriaKind(badge.criteria_kind))
            progress = None if current is None else badge_progress(badge.threshold, current)
        result.append({
            "id": badge.id,
            "name": badge.name,
            "description": badge.description,
            "icon": badge.icon,
            "category": badge.category,
            "criteria_kind": badge.criteria_kind,
            "threshold": badge.threshold,
            "points_reward": badge.points_reward,
            "unlocked": badge.id in earned,
            "unlocked_at": unlocked_at.isoformat() if unlocked_at else None,
            "progress": progress,
        })
    return result
