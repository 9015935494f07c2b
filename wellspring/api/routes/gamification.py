"""
wellspring.api.routes.gamification — Patient-facing endpoints (JWT-protected)
==============================================================================

Thin consumers of the service layer.  The patient id always comes from
the token, never from the request body.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from wellspring.api.deps import (
    get_cache,
    get_config,
    get_current_patient,
    get_engine,
    get_optional_patient,
)
from wellspring.config import WellspringConfig
from wellspring.engine.cache import ConfigCache
from wellspring.services import (
    activity_service,
    badge_service,
    checkin_service,
    leaderboard_service,
    ledger_service,
)
from wellspring.services.leaderboard_service import Period

router = APIRouter(prefix="/gamification", tags=["gamification"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CheckInRequest(BaseModel):
    # Client-normalized local date; defaults to today in the profile timezone
    today: date | None = None


class ActivityReport(BaseModel):
    kind: str
    occurred_on: date
    metadata: dict = Field(default_factory=dict)
    source_ref: str | None = Field(default=None, max_length=100)


# ---------------------------------------------------------------------------
# Check-in
# ---------------------------------------------------------------------------
@router.post("/checkin")
def check_in(
    body: CheckInRequest | None = None,
    patient_id: str = Depends(get_current_patient),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    today = body.today if body is not None else None
    result = checkin_service.check_in(engine, cache, patient_id, today=today)
    return {
        "data": result.to_dict(),
        "message": (
            "Daily check-in complete!" if result.is_new_check_in
            else "You have already checked in today."
        ),
    }


@router.get("/checkin")
def check_in_status(
    view: Literal["stats", "calendar"] = "stats",
    days: int = Query(30, ge=1, le=checkin_service.MAX_CALENDAR_DAYS),
    patient_id: str = Depends(get_current_patient),
    engine: Engine = Depends(get_engine),
):
    if view == "calendar":
        return {"data": checkin_service.check_in_calendar(engine, patient_id, days)}
    return {"data": checkin_service.check_in_stats(engine, patient_id)}


# ---------------------------------------------------------------------------
# Activities & stats
# ---------------------------------------------------------------------------
@router.post("/activity")
def record_activity(
    body: ActivityReport,
    patient_id: str = Depends(get_current_patient),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    return activity_service.record_activity(
        engine, cache, patient_id,
        body.kind, body.occurred_on, body.metadata, body.source_ref,
    )


@router.get("/stats")
def stats(
    patient_id: str = Depends(get_current_patient),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    return activity_service.get_stats(engine, cache, patient_id)


@router.get("/points/history")
def points_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    patient_id: str = Depends(get_current_patient),
    engine: Engine = Depends(get_engine),
):
    return ledger_service.history(engine, patient_id, limit, offset)


@router.get("/badges")
def badges(
    patient_id: str = Depends(get_current_patient),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    items = badge_service.list_badges(engine, cache, patient_id)
    return {
        "badges": items,
        "unlocked": sum(1 for b in items if b["unlocked"]),
        "total": len(items),
    }


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------
@router.get("/leaderboard")
def leaderboard(
    period: Period = Period.ALL,
    limit: int = Query(10, ge=1),
    offset: int = Query(0, ge=0),
    viewer_id: str | None = Depends(get_optional_patient),
    engine: Engine = Depends(get_engine),
    cfg: WellspringConfig = Depends(get_config),
):
    limit = min(limit, cfg.leaderboard_max_limit)
    return leaderboard_service.get_leaderboard(
        engine, period, limit, offset, viewer_id=viewer_id,
    )
