"""
wellspring.engine.cache — In-Memory Config Cache
=================================================

Gameplay settings and the active badge catalog are read on every
activity, so both are cached in memory.  Admin changes take effect after
:meth:`ConfigCache.reload` (exposed as ``POST /api/admin/cache/reload``).
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from wellspring.database.models import Badge, Setting

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# Tables whose rows the cache mirrors
CACHED_TABLES: frozenset[str] = frozenset({"settings", "badges"})


class ConfigCache:
    """Thread-safe in-memory cache for settings and the badge catalog.

    Usage:
        cache = ConfigCache(engine)
        cache.load_all()
        points = cache.get_int("points.mood_entry", default=10)
        catalog = cache.get_active_badges()
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        # key → parsed JSON value
        self._settings: dict[str, Any] = {}
        # Active badges, detached from their session, ordered by id
        self._badges: list[Badge] = []

    # -------------------------------------------------------------------
    # Cache loading
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load all config caches from DB. Call on startup."""
        self._load_settings()
        self._load_badges()
        logger.info(
            "ConfigCache loaded: %d settings, %d active badges",
            len(self._settings), len(self._badges),
        )

    def _load_settings(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(select(Setting)).all()
            parsed: dict[str, Any] = {}
            for row in rows:
                try:
                    parsed[row.key] = json.loads(row.value_json)
                except (json.JSONDecodeError, TypeError):
                    parsed[row.key] = row.value_json

        with self._lock:
            self._settings = parsed

    def _load_badges(self) -> None:
        with Session(self._engine) as session:
            badges = session.scalars(
                select(Badge).where(Badge.active.is_(True)).order_by(Badge.id)
            ).all()
            for badge in badges:
                session.expunge(badge)

        with self._lock:
            self._badges = list(badges)

    # -------------------------------------------------------------------
    # Badge catalog reads
    # -------------------------------------------------------------------
    def get_active_badges(self) -> list[Badge]:
        with self._lock:
            return list(self._badges)

    def get_badge_by_name(self, name: str) -> Badge | None:
        with self._lock:
            for badge in self._badges:
                if badge.name == name:
                    return badge
        return None

    # -------------------------------------------------------------------
    # Typed setting accessors (thread-safe)
    # -------------------------------------------------------------------
    def get_setting(self, key: str, default: Any = None) -> Any:
        """Return the parsed JSON value for *key*, or *default*."""
        with self._lock:
            return self._settings.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return int(val)
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return float(val)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        val = self.get_setting(key)
        if val is None:
            return default
        return bool(val)

    # -------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------
    def invalidate(self, table_name: str) -> None:
        """Reload the cache partition mirroring *table_name*."""
        table_name = table_name.strip().lower()
        logger.info("Config cache invalidation for table: %s", table_name)

        if table_name == "settings":
            self._load_settings()
        elif table_name == "badges":
            self._load_badges()
        else:
            logger.warning("Unknown table in invalidation: %s — ignoring", table_name)

    def reload(self) -> None:
        """Reload every partition."""
        for table_name in sorted(CACHED_TABLES):
            self.invalidate(table_name)
