"""
tests/test_seed.py — Seeding Tests
===================================
"""

from __future__ import annotations

import json

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wellspring.database.models import Badge, CriteriaKind, Setting
from wellspring.database.seed import DEFAULT_SETTINGS, seed_default_settings
from wellspring.services import seed
from wellspring.services.seed import seed_badge_catalog


class TestDefaultSettings:
    def test_idempotent_and_preserves_edits(self, db_engine):
        seed_default_settings(db_engine)
        with Session(db_engine) as session:
            session.get(Setting, "points.mood_entry").value_json = json.dumps(12)
            session.commit()

        seed_default_settings(db_engine)

        with Session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(Setting)) == len(DEFAULT_SETTINGS)
            assert json.loads(session.get(Setting, "points.mood_entry").value_json) == 12


class TestBadgeCatalog:
    def test_bundled_catalog_is_valid(self, db_engine):
        inserted = seed_badge_catalog(db_engine)
        assert inserted > 0

        with Session(db_engine) as session:
            badges = session.scalars(select(Badge)).all()
        assert len(badges) == inserted
        assert all(b.threshold > 0 for b in badges)
        assert {b.criteria_kind for b in badges} <= {k.value for k in CriteriaKind}

        warrior = next(b for b in badges if b.name == "breathing_warrior")
        assert (warrior.criteria_kind, warrior.threshold, warrior.points_reward) == (
            "breathing_exercises", 10, 50,
        )

    def test_idempotent(self, db_engine):
        first = seed_badge_catalog(db_engine)
        assert seed_badge_catalog(db_engine) == 0
        with Session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(Badge)) == first

    def test_missing_file(self, db_engine):
        assert seed_badge_catalog(db_engine, "absent.yaml") == 0

    def test_rejects_bad_threshold(self, db_engine, tmp_path, monkeypatch):
        (tmp_path / "bad.yaml").write_text(
            "badges:\n"
            "  - name: broken\n"
            "    criteria_kind: mood_entries\n"
            "    threshold: 0\n",
            encoding="utf-8",
        )
        monkeypatch.setattr(seed, "_SEEDS_DIR", tmp_path)
        with pytest.raises(ValueError, match="threshold"):
            seed_badge_catalog(db_engine, "bad.yaml")

    def test_rejects_unknown_criterion(self, db_engine, tmp_path, monkeypatch):
        (tmp_path / "bad.yaml").write_text(
            "badges:\n"
            "  - name: broken\n"
            "    criteria_kind: karma\n"
            "    threshold: 3\n",
            encoding="utf-8",
        )
        monkeypatch.setattr(seed, "_SEEDS_DIR", tmp_path)
        with pytest.raises(ValueError):
            seed_badge_catalog(db_engine, "bad.yaml")
