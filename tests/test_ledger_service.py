"""
tests/test_ledger_service.py — Points Ledger Integration Tests
===============================================================

Award validation, level recomputation, history and the
``points_total == SUM(transactions)`` invariant, against SQLite.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from conftest import make_badge
from wellspring.database.models import PatientProfile, PointTransaction
from wellspring.errors import InvalidAmount, PatientNotFound
from wellspring.services import ledger_service


class TestAward:
    def test_award_appends_and_increments(self, engine, cache, patient):
        result = ledger_service.award_points(engine, cache, patient, 40, "manual:welcome")
        assert result["points_total"] == 40
        assert result["level"] == 1
        assert result["reason"] == "manual:welcome"

        with Session(engine) as session:
            rows = session.query(PointTransaction).filter_by(patient_id=patient).all()
            assert [(t.amount, t.reason) for t in rows] == [(40, "manual:welcome")]

    def test_level_recomputed(self, engine, cache, patient):
        ledger_service.award_points(engine, cache, patient, 90, "manual:a")
        result = ledger_service.award_points(engine, cache, patient, 20, "manual:b")
        assert result["points_total"] == 110
        assert result["level"] == 2

    @pytest.mark.parametrize("amount", [0, -5, 2.5, True, "10"])
    def test_invalid_amount_rejected_before_write(self, engine, cache, patient, amount):
        with pytest.raises(InvalidAmount):
            ledger_service.award_points(engine, cache, patient, amount, "manual:x")
        assert ledger_service.balance(engine, patient) == 0
        with Session(engine) as session:
            assert session.query(PointTransaction).count() == 0

    def test_unknown_patient(self, engine, cache):
        with pytest.raises(PatientNotFound):
            ledger_service.award_points(engine, cache, "nobody", 10, "manual:x")

    def test_points_badge_unlocked_by_award(self, engine, cache, patient):
        make_badge(engine, "rising_star", "points_total", 100, points_reward=0, cache=cache)
        result = ledger_service.award_points(engine, cache, patient, 100, "manual:x")
        assert result["badges_awarded"] == ["rising_star"]


class TestLedgerConsistency:
    def test_balance_equals_ledger_sum(self, engine, cache, patient):
        for amount in (5, 10, 15, 20, 1):
            ledger_service.award_points(engine, cache, patient, amount, "manual:x")

        assert ledger_service.balance(engine, patient) == 51
        with Session(engine) as session:
            assert ledger_service.ledger_sum(session, patient) == 51
            assert session.get(PatientProfile, patient).points_total == 51

    def test_balance_unknown_patient(self, engine):
        with pytest.raises(PatientNotFound):
            ledger_service.balance(engine, "ghost")


class TestHistory:
    def test_newest_first_with_paging(self, engine, cache, patient):
        start = datetime(2026, 3, 1, 12, tzinfo=UTC)
        for i in range(5):
            ledger_service.award_points(
                engine, cache, patient, i + 1, f"manual:{i}", now=start + timedelta(hours=i),
            )

        page = ledger_service.history(engine, patient, limit=2, offset=0)
        assert page["total"] == 5
        assert [t["reason"] for t in page["transactions"]] == ["manual:4", "manual:3"]

        page = ledger_service.history(engine, patient, limit=2, offset=4)
        assert [t["amount"] for t in page["transactions"]] == [1]

    def test_reason_truncated(self, engine, cache, patient):
        ledger_service.award_points(engine, cache, patient, 1, "manual:" + "x" * 300)
        page = ledger_service.history(engine, patient)
        assert len(page["transactions"][0]["reason"]) == ledger_service.MAX_REASON_LENGTH
