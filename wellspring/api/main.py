"""
wellspring.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn wellspring.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from wellspring.api.deps import get_cache, get_engine  # noqa: E402
from wellspring.api.routes.admin import router as admin_router  # noqa: E402
from wellspring.api.routes.gamification import router as gamification_router  # noqa: E402
from wellspring.errors import (  # noqa: E402
    InvalidActivityKind,
    InvalidAmount,
    PatientNotFound,
    PersistenceError,
)

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine and config cache."""
    engine = get_engine()
    get_cache()
    logger.info("Wellspring API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Wellspring API shutting down")


app = FastAPI(
    title="Wellspring Gamification API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Domain error → HTTP status
# ---------------------------------------------------------------------------
@app.exception_handler(PatientNotFound)
async def _patient_not_found(request: Request, exc: PatientNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidAmount)
@app.exception_handler(InvalidActivityKind)
async def _invalid_input(request: Request, exc: Exception):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def _persistence_error(request: Request, exc: PersistenceError):
    return JSONResponse(
        status_code=503,
        content={"detail": "Temporary storage failure, please retry"},
        headers={"Retry-After": "1"},
    )


# Mount routers
app.include_router(gamification_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
