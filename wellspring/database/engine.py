"""
wellspring.database.engine — Database Connection & Transaction Boundary
=======================================================================

Every engine write path (award, streak continuation, badge unlock,
check-in) runs inside exactly one :func:`get_session` block, scoped to a
single patient.  The block is all-or-nothing: it commits on success and
rolls back on any exception, so a failed request never leaves partial
state behind.

Store-level failures (connectivity, aborted transactions, unexpected
constraint violations) surface as :class:`~wellspring.errors.PersistenceError`
so callers can retry the whole operation.  Domain errors pass through
untouched.

Usage::

    from wellspring.database.engine import create_db_engine, get_session, init_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS + seeds

    with get_session(engine) as session:
        profile = lock_profile(session, patient_id)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wellspring.database.models import Base, PatientProfile
from wellspring.errors import PatientNotFound, PersistenceError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine() -> Engine:
    """Build a SQLAlchemy :class:`Engine` from the ``DATABASE_URL`` env var.

    The pool is sized for a web tier serving synchronous requests:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If ``DATABASE_URL`` is not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables, then seed default settings and the badge catalog.

    Safe to call on every startup: ``CREATE TABLE IF NOT EXISTS`` under the
    hood, and both seeders only insert rows that are missing.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    from wellspring.database.seed import seed_default_settings
    from wellspring.services.seed import seed_badge_catalog

    seed_default_settings(engine)
    seed_badge_catalog(engine)


# ---------------------------------------------------------------------------
# Session helper: the transaction boundary
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Yield a :class:`Session` that commits on success and rolls back on
    exception.

    ``SQLAlchemyError`` is converted to :class:`PersistenceError`; every
    other exception is re-raised as-is after the rollback.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Transaction aborted")
        raise PersistenceError(str(exc)) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def lock_profile(session: Session, patient_id: str) -> PatientProfile:
    """Load *patient_id*'s profile with a row lock held until commit.

    Serializes concurrent write paths for the same patient on stores that
    support ``SELECT … FOR UPDATE``; stores that don't fall back to the
    uniqueness constraints on ``activity_events`` / ``patient_badges``.

    Raises :class:`PatientNotFound` if no profile exists.
    """
    profile = session.scalar(
        select(PatientProfile)
        .where(PatientProfile.id == patient_id)
        .with_for_update()
    )
    if profile is None:
        raise PatientNotFound(patient_id)
    return profile


def get_profile(session: Session, patient_id: str) -> PatientProfile:
    """Read-only profile lookup.  Raises :class:`PatientNotFound`."""
    profile = session.get(PatientProfile, patient_id)
    if profile is None:
        raise PatientNotFound(patient_id)
    return profile
