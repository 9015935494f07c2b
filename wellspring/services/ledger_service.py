"""
wellspring.services.ledger_service — Points Ledger
===================================================

Append-only point accounting.  Every award writes one
:class:`PointTransaction` and increments the cached ``points_total`` in the
same transaction, so ``points_total`` always equals the ledger sum.
``level`` is recomputed from the new total on every award.

:func:`award` is the in-transaction primitive used by the other services;
:func:`award_points`, :func:`balance` and :func:`history` open their own
transaction.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wellspring.constants import level_for_points
from wellspring.database.engine import get_profile, get_session, lock_profile
from wellspring.database.models import PatientProfile, PointTransaction
from wellspring.errors import InvalidAmount

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from wellspring.engine.cache import ConfigCache

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 120


def validate_amount(amount: object) -> int:
    """Return *amount* if it is a positive integer, else raise InvalidAmount."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount)
    return amount


def award(
    session: Session,
    profile: PatientProfile,
    amount: int,
    reason: str,
    *,
    cache: ConfigCache | None = None,
    activity_event_id: int | None = None,
    now: datetime | None = None,
) -> PointTransaction:
    """Append a transaction and apply it to *profile* (already locked).

    Raises :class:`InvalidAmount` before touching the session when *amount*
    is not a positive integer.
    """
    validate_amount(amount)

    txn = PointTransaction(
        patient_id=profile.id,
        amount=amount,
        reason=reason[:MAX_REASON_LENGTH],
        activity_event_id=activity_event_id,
        created_at=now or datetime.now(UTC),
    )
    session.add(txn)

    old_level = profile.level
    profile.points_total += amount
    profile.level = level_for_points(profile.points_total, cache)
    session.flush()

    logger.info(
        "Awarded %d points to %s (%s) → total %d",
        amount, profile.id, reason, profile.points_total,
    )
    if profile.level > old_level:
        logger.info("Level up: %s %d → %d", profile.id, old_level, profile.level)
    return txn


def ledger_sum(session: Session, patient_id: str) -> int:
    """Sum of every transaction amount for *patient_id*."""
    return session.scalar(
        select(func.coalesce(func.sum(PointTransaction.amount), 0))
        .where(PointTransaction.patient_id == patient_id)
    ) or 0


# ---------------------------------------------------------------------------
# Self-contained operations
# ---------------------------------------------------------------------------
def award_points(
    engine: Engine,
    cache: ConfigCache | None,
    patient_id: str,
    amount: int,
    reason: str,
    *,
    now: datetime | None = None,
) -> dict:
    """Award *amount* points in its own transaction.

    Points-driven badges (``points_total`` / ``level_reached``) are
    evaluated after the award when a cache is supplied.
    """
    from wellspring.services.badge_service import evaluate, points_trigger_set

    validate_amount(amount)
    with get_session(engine) as session:
        profile = lock_profile(session, patient_id)
        txn = award(session, profile, amount, reason, cache=cache, now=now)
        unlocked = []
        if cache is not None:
            unlocked = evaluate(session, profile, points_trigger_set(profile), cache, now=now)
        return {
            "transaction_id": txn.id,
            "amount": txn.amount,
            "reason": txn.reason,
            "points_total": profile.points_total,
            "level": profile.level,
            "badges_awarded": [b.name for b in unlocked],
        }


def balance(engine: Engine, patient_id: str) -> int:
    """Current ``points_total`` for *patient_id*."""
    with get_session(engine) as session:
        return get_profile(session, patient_id).points_total


def history(
    engine: Engine,
    patient_id: str,
    limit: int = 20,
    offset: int = 0,
) -> dict:
    """Newest-first transactions for *patient_id*.

    Returns ``{"transactions": [...], "total": int}``.
    """
    with get_session(engine) as session:
        get_profile(session, patient_id)

        total = session.scalar(
            select(func.count())
            .select_from(PointTransaction)
            .where(PointTransaction.patient_id == patient_id)
        ) or 0
        rows = session.scalars(
            select(PointTransaction)
            .where(PointTransaction.patient_id == patient_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .offset(max(offset, 0))
            .limit(max(limit, 0))
        ).all()

        return {
            "transactions": [
                {
                    "id": t.id,
                    "amount": t.amount,
                    "reason": t.reason,
                    "activity_event_id": t.activity_event_id,
                    "created_at": t.created_at.isoformat() if t.created_at else None,
                }
                for t in rows
            ],
            "total": total,
        }
