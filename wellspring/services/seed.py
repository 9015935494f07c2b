"""
wellspring.services.seed — Badge Catalog Seed Service
======================================================

Seeds the badge catalog from ``wellspring/seeds/badges.yaml``.

YAML is used only for initial seeding: badges already present (matched
by name) are left alone, so catalog edits made after deployment survive
restarts.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from wellspring.database.models import Badge, CriteriaKind

logger = logging.getLogger(__name__)

# Resolve the seeds directory inside the package
_SEEDS_DIR = Path(__file__).resolve().parent.parent / "seeds"


def _load_yaml(filename: str) -> Any:
    """Load a YAML file from the seeds directory."""
    path = _SEEDS_DIR / filename
    if not path.exists():
        logger.warning("Seed file not found: %s", path)
        return {}
    with open(path, encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _badge_from_yaml(item: dict, now: datetime) -> Badge:
    """Build a :class:`Badge` from one YAML entry, validating its criterion."""
    criteria = CriteriaKind(item["criteria_kind"])
    threshold = int(item["threshold"])
    if threshold <= 0:
        raise ValueError(f"Badge {item['name']!r}: threshold must be positive")
    return Badge(
        name=item["name"],
        description=item.get("description"),
        icon=item.get("icon"),
        category=item.get("category", "wellness"),
        criteria_kind=criteria.value,
        threshold=threshold,
        points_reward=max(int(item.get("points_reward", 0)), 0),
        active=bool(item.get("active", True)),
        created_at=now,
    )


def seed_badge_catalog(engine: Engine, filename: str = "badges.yaml") -> int:
    """Insert catalog badges whose names are not yet present.

    Returns the number of badges inserted.
    """
    data = _load_yaml(filename)
    items = data.get("badges") or []
    if not items:
        return 0

    now = datetime.now(UTC)
    with Session(engine) as session:
        existing = set(session.scalars(select(Badge.name)).all())
        count = 0
        for item in items:
            if item["name"] in existing:
                continue
            session.add(_badge_from_yaml(item, now))
            existing.add(item["name"])
            count += 1
        session.commit()

    if count:
        logger.info("Seeded %d badges.", count)
    else:
        logger.info("Badge catalog already seeded — skipping.")
    return count
