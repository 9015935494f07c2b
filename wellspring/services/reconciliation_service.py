"""
wellspring.services.reconciliation_service — Aggregate Repair
==============================================================

The aggregate columns on ``patient_profiles`` are a cache of the logs.
This module is the explicit repair path: it recomputes them from the
source of truth and corrects any drift.

How it works:
    1. ``points_total`` ← ``SUM(point_transactions.amount)``
    2. ``level`` ← leveling formula over the recomputed total
    3. Each streak ← replay of that kind's events in insertion order
       through the live continuation rule, so resets caused by backdated
       events are reproduced rather than "repaired"
    4. ``last_active_on`` ← latest ``occurred_on`` across all events
    5. Log all corrections for audit.

Nothing calls this implicitly; it runs on admin request.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from wellspring.constants import level_for_points
from wellspring.database.engine import get_session, lock_profile
from wellspring.database.models import ActivityEvent, PatientProfile
from wellspring.engine.streaks import STREAK_FIELDS, replay
from wellspring.services.ledger_service import ledger_sum

if TYPE_CHECKING:
    from wellspring.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


def _expected(session: Session, profile: PatientProfile, cache: ConfigCache | None) -> dict:
    """Aggregate values recomputed from the logs."""
    points = ledger_sum(session, profile.id)
    expected = {
        "points_total": points,
        "level": level_for_points(points, cache),
        "last_active_on": session.scalar(
            select(func.max(ActivityEvent.occurred_on))
            .where(ActivityEvent.patient_id == profile.id)
        ),
    }
    for kind, (streak_attr, last_attr) in STREAK_FIELDS.items():
        days = session.scalars(
            select(ActivityEvent.occurred_on)
            .where(
                ActivityEvent.patient_id == profile.id,
                ActivityEvent.kind == kind.value,
            )
            .order_by(ActivityEvent.id)
        ).all()
        streak, last_on = replay(kind, days)
        expected[streak_attr] = streak
        expected[last_attr] = last_on
    return expected


def _reconcile(session: Session, patient_id: str, cache: ConfigCache | None) -> list[dict]:
    profile = lock_profile(session, patient_id)
    corrections = []
    for field, actual in _expected(session, profile, cache).items():
        stored = getattr(profile, field)
        if stored != actual:
            corrections.append({
                "patient_id": patient_id,
                "field": field,
                "stored": stored.isoformat() if hasattr(stored, "isoformat") else stored,
                "actual": actual.isoformat() if hasattr(actual, "isoformat") else actual,
            })
            setattr(profile, field, actual)
    return corrections


def _report(checked: int, corrections: list[dict]) -> dict:
    if corrections:
        logger.warning(
            "Aggregate reconciliation: corrected %d field(s) across %d patient(s): %s",
            len(corrections), checked, corrections,
        )
    else:
        logger.info("Aggregate reconciliation: all %d patient(s) match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections),
        "corrections": corrections,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def reconcile_patient(
    engine: Engine,
    patient_id: str,
    cache: ConfigCache | None = None,
) -> dict:
    """Recompute one patient's aggregates and fix drift.

    Returns ``{"checked": 1, "corrected": M, "corrections": [...]}``.
    """
    with get_session(engine) as session:
        corrections = _reconcile(session, patient_id, cache)
    return _report(1, corrections)


def reconcile_all(engine: Engine, cache: ConfigCache | None = None) -> dict:
    """Reconcile every patient, one transaction per patient."""
    with get_session(engine) as session:
        patient_ids = session.scalars(
            select(PatientProfile.id).order_by(PatientProfile.id)
        ).all()

    corrections: list[dict] = []
    for patient_id in patient_ids:
        with get_session(engine) as session:
            corrections.extend(_reconcile(session, patient_id, cache))
    return _report(len(patient_ids), corrections)
