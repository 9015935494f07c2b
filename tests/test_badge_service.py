"""
tests/test_badge_service.py — Badge Unlock Integration Tests
=============================================================

At-most-once unlocks, conflict handling when a concurrent grant slips
past the owned-IDs pre-read, points-driven chains, external triggers
and progress listing.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import make_badge, make_patient
from wellspring.database.engine import get_session, lock_profile
from wellspring.database.models import CriteriaKind, PatientBadge, PointTransaction
from wellspring.engine.badges import BadgeTrigger
from wellspring.errors import InvalidActivityKind, PatientNotFound
from wellspring.services import badge_service


def _evaluate(engine, cache, patient_id, kind, value):
    with get_session(engine) as session:
        profile = lock_profile(session, patient_id)
        unlocked = badge_service.evaluate(
            session, profile, [BadgeTrigger(kind, value)], cache,
        )
        return [b.name for b in unlocked]


def _count(engine, model, patient_id) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.count()).select_from(model).where(model.patient_id == patient_id)
        )


class TestEvaluate:
    def test_unlock_pays_reward_once(self, engine, cache, patient):
        make_badge(engine, "journal_keeper", "journal_entries", 10, 30, cache=cache)

        assert _evaluate(engine, cache, patient, CriteriaKind.JOURNAL_ENTRIES, 10) == [
            "journal_keeper"
        ]
        for _ in range(5):
            assert _evaluate(engine, cache, patient, CriteriaKind.JOURNAL_ENTRIES, 11) == []

        assert _count(engine, PatientBadge, patient) == 1
        assert _count(engine, PointTransaction, patient) == 1
        with Session(engine) as session:
            reason = session.scalar(select(PointTransaction.reason))
        assert reason == "badge:journal_keeper"

    def test_below_threshold(self, engine, cache, patient):
        make_badge(engine, "journal_keeper", "journal_entries", 10, 30, cache=cache)
        assert _evaluate(engine, cache, patient, CriteriaKind.JOURNAL_ENTRIES, 9) == []

    def test_reward_chains_into_points_badge(self, engine, cache, patient):
        make_badge(engine, "regular_attendee", "sessions_attended", 10, 100, cache=cache)
        make_badge(engine, "level_2", "level_reached", 2, 5, cache=cache)

        unlocked = _evaluate(engine, cache, patient, CriteriaKind.SESSIONS_ATTENDED, 10)
        assert unlocked == ["regular_attendee", "level_2"]
        with Session(engine) as session:
            total = session.scalar(select(func.sum(PointTransaction.amount)))
        assert total == 105

    def test_zero_reward_badge_writes_no_transaction(self, engine, cache, patient):
        make_badge(engine, "first_post", "posts_created", 1, 0, cache=cache)
        assert _evaluate(engine, cache, patient, CriteriaKind.POSTS_CREATED, 1) == ["first_post"]
        assert _count(engine, PointTransaction, patient) == 0


class TestConcurrentGrant:
    def test_conflict_reported_as_already_unlocked(self, engine, cache, patient, caplog):
        make_badge(engine, "helpful_commenter", "upvotes_received", 10, 25, cache=cache)
        _evaluate(engine, cache, patient, CriteriaKind.UPVOTES_RECEIVED, 10)

        # A stale pre-read: the grant exists but evaluation does not know it
        with patch.object(badge_service, "owned_badge_ids", return_value=set()):
            unlocked = _evaluate(engine, cache, patient, CriteriaKind.UPVOTES_RECEIVED, 12)

        assert unlocked == []
        assert _count(engine, PatientBadge, patient) == 1
        assert _count(engine, PointTransaction, patient) == 1
        assert "treating as already unlocked" in caplog.text

    def test_try_unlock_outcomes(self, engine, cache, patient):
        make_badge(engine, "first_session", "sessions_attended", 1, 15, cache=cache)
        badge = cache.get_badge_by_name("first_session")

        with get_session(engine) as session:
            profile = lock_profile(session, patient)
            first = badge_service.try_unlock(session, profile, badge, cache)
        with get_session(engine) as session:
            profile = lock_profile(session, patient)
            second = badge_service.try_unlock(session, profile, badge, cache)
            points = profile.points_total

        assert first is badge_service.UnlockOutcome.UNLOCKED
        assert second is badge_service.UnlockOutcome.ALREADY_UNLOCKED
        assert points == 15


class TestExternalTriggers:
    def test_upvotes_unlock(self, engine, cache, patient):
        make_badge(engine, "helpful_commenter", "upvotes_received", 10, 25, cache=cache)
        assert badge_service.evaluate_external(
            engine, cache, patient, "upvotes_received", 10,
        ) == ["helpful_commenter"]

    def test_engine_tracked_criterion_rejected(self, engine, cache, patient):
        with pytest.raises(InvalidActivityKind):
            badge_service.evaluate_external(engine, cache, patient, "mood_streak", 50)

    def test_unknown_criterion_rejected(self, engine, cache, patient):
        with pytest.raises(InvalidActivityKind):
            badge_service.evaluate_external(engine, cache, patient, "karma", 50)

    def test_unknown_patient(self, engine, cache):
        with pytest.raises(PatientNotFound):
            badge_service.evaluate_external(engine, cache, "ghost", "posts_created", 1)


class TestListBadges:
    def test_progress_and_unlock_state(self, engine, cache):
        patient = make_patient(engine, "bob")
        make_badge(engine, "first_post", "posts_created", 1, 0, cache=cache)
        make_badge(engine, "journal_keeper", "journal_entries", 10, 30, cache=cache)
        badge_service.evaluate_external(engine, cache, patient, "posts_created", 1)

        listed = {b["name"]: b for b in badge_service.list_badges(engine, cache, patient)}
        assert listed["first_post"]["unlocked"] is True
        assert listed["first_post"]["unlocked_at"] is not None
        assert listed["first_post"]["progress"] == 100.0
        assert listed["journal_keeper"]["unlocked"] is False
        assert listed["journal_keeper"]["progress"] == 0.0

    def test_external_locked_badge_has_no_progress(self, engine, cache, patient):
        make_badge(engine, "popular", "upvotes_received", 100, 100, cache=cache)
        listed = badge_service.list_badges(engine, cache, patient)
        assert listed[0]["progress"] is None
