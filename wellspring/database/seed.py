"""
wellspring.database.seed — Default Settings Seeder
===================================================

Baseline gameplay settings seeded on first startup so the engine pays
out sensible amounts immediately (activity points, streak bonuses,
level size).

Idempotent — only inserts keys that don't already exist.  Settings
edited by admins are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from wellspring.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "points.mood_entry": (10, "points", "Base points per mood entry"),
    "points.mood_streak_bonus": (5, "points", "Bonus per consecutive mood-logging day"),
    "points.journal_entry": (15, "points", "Base points per journal entry"),
    "points.journal_long_entry_bonus": (
        10, "points", "Bonus for journal entries above the long-entry word count",
    ),
    "points.journal_long_entry_words": (
        500, "points", "Word count above which a journal entry is 'long'",
    ),
    "points.exercise_completion": (25, "points", "Base points per completed exercise"),
    "points.exercise_streak_bonus": (
        10, "points", "Bonus per consecutive exercise day",
    ),
    "points.daily_checkin": (10, "points", "Base points per daily check-in"),
    "points.checkin_streak_bonus": (5, "points", "Bonus per consecutive check-in day"),
    "points.streak_bonus_cap": (
        0, "points", "Maximum single streak bonus payout (0 = uncapped)",
    ),
    "levels.points_per_level": (100, "levels", "Points needed per level"),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist.

    Runs on every startup but only writes rows for keys that are missing,
    so it is safe to call repeatedly.
    """
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            existing = session.get(Setting, key)
            if existing is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)
