"""
wellspring.api.routes.admin — Admin endpoints (JWT-protected)
==============================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Engine

from wellspring.api.deps import get_cache, get_config, get_current_admin, get_engine
from wellspring.config import WellspringConfig
from wellspring.engine.cache import ConfigCache
from wellspring.services import (
    activity_service,
    badge_service,
    ledger_service,
    reconciliation_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PatientCreate(BaseModel):
    patient_id: str = Field(min_length=1, max_length=64)
    timezone: str | None = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if value is not None:
            activity_service.validate_timezone(value)
        return value


class ManualAward(BaseModel):
    patient_id: str
    amount: int
    note: str = Field(default="", max_length=100)


class BadgeEvaluation(BaseModel):
    patient_id: str
    # External criterion (upvotes_received, posts_created, sessions_attended);
    # omitted → re-evaluate every engine-tracked criterion
    kind: str | None = None
    current_value: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------
@router.post("/patients")
def provision_patient(
    body: PatientCreate,
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    cfg: WellspringConfig = Depends(get_config),
):
    return activity_service.provision_patient(
        engine, body.patient_id, body.timezone or cfg.default_timezone,
    )


@router.post("/patients/{patient_id}/reconcile")
def reconcile_patient(
    patient_id: str,
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    return reconciliation_service.reconcile_patient(engine, patient_id, cache)


@router.post("/reconcile")
def reconcile_all(
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    return reconciliation_service.reconcile_all(engine, cache)


# ---------------------------------------------------------------------------
# Points & badges
# ---------------------------------------------------------------------------
@router.post("/points")
def award_points(
    body: ManualAward,
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    logger.info(
        "Manual award by %s: %d points to %s (%s)",
        admin.get("sub"), body.amount, body.patient_id, body.note,
    )
    return ledger_service.award_points(
        engine, cache, body.patient_id, body.amount, f"manual:{body.note}",
    )


@router.post("/badges/evaluate")
def evaluate_badges(
    body: BadgeEvaluation,
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    if body.kind is None:
        unlocked = badge_service.evaluate_all(engine, cache, body.patient_id)
    else:
        unlocked = badge_service.evaluate_external(
            engine, cache, body.patient_id, body.kind, body.current_value,
        )
    return {"patient_id": body.patient_id, "badges_awarded": unlocked}


# ---------------------------------------------------------------------------
# Config cache
# ---------------------------------------------------------------------------
@router.post("/cache/reload")
def reload_cache(
    admin: dict = Depends(get_current_admin),
    cache: ConfigCache = Depends(get_cache),
):
    cache.reload()
    return {
        "status": "reloaded",
        "badges": len(cache.get_active_badges()),
    }
