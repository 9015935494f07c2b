"""
wellspring.services.leaderboard_service — Leaderboard Ranking
==============================================================

Pure reads computed fresh per call; nothing here writes or caches.

* ``all``   — every provisioned patient by ``points_total`` (zeros included)
* ``week``  — points earned in the last 7 days (rolling)
* ``month`` — points earned in the last 30 days (rolling)

Windowed periods rank only patients with at least one transaction inside
the window.  Ties on points break by ``patient_id`` ascending, so the
order is total and stable across calls; positions are ordinal.
"""

from __future__ import annotations

import enum
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from wellspring.constants import RANK_BADGES
from wellspring.database.engine import get_profile, get_session
from wellspring.database.models import PatientProfile, PointTransaction
from wellspring.errors import PatientNotFound

if TYPE_CHECKING:
    from sqlalchemy import Engine, Select


logger = logging.getLogger(__name__)


class Period(enum.StrEnum):
    ALL = "all"
    WEEK = "week"
    MONTH = "month"


WINDOW_DAYS: dict[Period, int] = {
    Period.WEEK: 7,
    Period.MONTH: 30,
}


def window_start(period: Period | str, now: datetime | None = None) -> datetime | None:
    """Inclusive lower bound of *period*'s window, or None for ALL."""
    period = Period(period)
    if period is Period.ALL:
        return None
    now = now or datetime.now(UTC)
    return now - timedelta(days=WINDOW_DAYS[period])


def _standings(period: Period, now: datetime | None) -> Select:
    """``(patient_id, period_points, points_total, level, checkin_streak)`` rows
    for every ranked patient."""
    start = window_start(period, now)
    if start is None:
        return select(
            PatientProfile.id.label("patient_id"),
            PatientProfile.points_total.label("period_points"),
            PatientProfile.points_total,
            PatientProfile.level,
            PatientProfile.checkin_streak,
        )

    earned = (
        select(
            PointTransaction.patient_id.label("patient_id"),
            func.sum(PointTransaction.amount).label("period_points"),
        )
        .where(PointTransaction.created_at >= start)
        .group_by(PointTransaction.patient_id)
        .subquery()
    )
    return (
        select(
            earned.c.patient_id,
            earned.c.period_points,
            PatientProfile.points_total,
            PatientProfile.level,
            PatientProfile.checkin_streak,
        )
        .join(PatientProfile, PatientProfile.id == earned.c.patient_id)
    )


def _entry(position: int, row) -> dict:
    return {
        "position": position,
        "patient_id": row.patient_id,
        "period_points": int(row.period_points or 0),
        "points_total": row.points_total,
        "level": row.level,
        "checkin_streak": row.checkin_streak or 0,
        "rank_badge": RANK_BADGES[position - 1] if position <= len(RANK_BADGES) else None,
    }


def rank_in_session(
    session: Session,
    period: Period | str,
    limit: int = 10,
    offset: int = 0,
    *,
    now: datetime | None = None,
) -> list[dict]:
    period = Period(period)
    standings = _standings(period, now).subquery()
    rows = session.execute(
        select(standings)
        .order_by(standings.c.period_points.desc(), standings.c.patient_id.asc())
        .offset(max(offset, 0))
        .limit(max(limit, 0))
    ).all()
    return [_entry(max(offset, 0) + i + 1, row) for i, row in enumerate(rows)]


def rank(
    engine: Engine,
    period: Period | str = Period.ALL,
    limit: int = 10,
    offset: int = 0,
    *,
    now: datetime | None = None,
) -> list[dict]:
    """One page of the ranking for *period*."""
    with get_session(engine) as session:
        return rank_in_session(session, period, limit, offset, now=now)


def position_in_session(
    session: Session,
    patient_id: str,
    period: Period | str = Period.ALL,
    *,
    now: datetime | None = None,
) -> int | None:
    get_profile(session, patient_id)
    standings = _standings(Period(period), now).subquery()
    mine = session.scalar(
        select(standings.c.period_points).where(standings.c.patient_id == patient_id)
    )
    if mine is None:
        return None

    ahead = session.scalar(
        select(func.count())
        .select_from(standings)
        .where(or_(
            standings.c.period_points > mine,
            and_(
                standings.c.period_points == mine,
                standings.c.patient_id < patient_id,
            ),
        ))
    ) or 0
    return ahead + 1


def position_of(
    engine: Engine,
    patient_id: str,
    period: Period | str = Period.ALL,
    *,
    now: datetime | None = None,
) -> int | None:
    """Ordinal position *patient_id* holds in the full ranking.

    None if the patient has no transaction inside a windowed period.
    Raises :class:`~wellspring.errors.PatientNotFound` for unknown patients.
    """
    with get_session(engine) as session:
        return position_in_session(session, patient_id, period, now=now)


def get_leaderboard(
    engine: Engine,
    period: Period | str = Period.ALL,
    limit: int = 10,
    offset: int = 0,
    *,
    viewer_id: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Ranking page plus, when *viewer_id* is given, the viewer's position.

    Both are read in one transaction so they agree with each other.  A
    viewer without a provisioned profile still gets the board, with no
    position.
    """
    period = Period(period)
    now = now or datetime.now(UTC)
    with get_session(engine) as session:
        entries = rank_in_session(session, period, limit, offset, now=now)
        viewer_position = None
        if viewer_id is not None:
            try:
                viewer_position = position_in_session(session, viewer_id, period, now=now)
            except PatientNotFound:
                logger.debug("Leaderboard viewer %s has no profile", viewer_id)
    return {
        "period": period.value,
        "entries": entries,
        "viewer_position": viewer_position,
    }
