"""
tests/test_reconciliation_service.py — Aggregate Repair Tests
==============================================================
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import pytest
from sqlalchemy.orm import Session

from conftest import make_patient
from wellspring.database.models import PatientProfile
from wellspring.errors import PatientNotFound
from wellspring.services import activity_service, checkin_service, reconciliation_service

MON = date(2026, 3, 2)


@pytest.fixture
def active_patient(engine, cache, patient):
    activity_service.record_activity(engine, cache, patient, "MOOD", MON)
    activity_service.record_activity(engine, cache, patient, "MOOD", MON + timedelta(days=1))
    checkin_service.check_in(engine, cache, patient, today=MON + timedelta(days=1))
    return patient


def _corrupt(engine, patient_id, **fields):
    with Session(engine) as session:
        profile = session.get(PatientProfile, patient_id)
        for name, value in fields.items():
            setattr(profile, name, value)
        session.commit()


class TestReconcilePatient:
    def test_clean_profile_reports_nothing(self, engine, active_patient, caplog):
        caplog.set_level(logging.INFO)
        report = reconciliation_service.reconcile_patient(engine, active_patient)
        assert report["checked"] == 1
        assert report["corrected"] == 0
        assert report["corrections"] == []
        assert "all 1 patient(s) match" in caplog.text

    def test_drift_is_corrected(self, engine, active_patient, caplog):
        _corrupt(engine, active_patient, points_total=999, level=10, mood_streak=7)

        report = reconciliation_service.reconcile_patient(engine, active_patient)

        fields = {c["field"]: c for c in report["corrections"]}
        assert set(fields) == {"points_total", "level", "mood_streak"}
        # mood 10 + mood 10 + streak 5 + checkin 10
        assert fields["points_total"] == {
            "patient_id": active_patient,
            "field": "points_total",
            "stored": 999,
            "actual": 35,
        }
        assert fields["mood_streak"]["actual"] == 2
        assert "corrected 3 field(s)" in caplog.text

        with Session(engine) as session:
            profile = session.get(PatientProfile, active_patient)
            assert (profile.points_total, profile.level, profile.mood_streak) == (35, 1, 2)

        again = reconciliation_service.reconcile_patient(engine, active_patient)
        assert again["corrected"] == 0

    def test_dates_are_restored(self, engine, active_patient):
        _corrupt(engine, active_patient, last_active_on=None, checkin_last_on=MON)
        report = reconciliation_service.reconcile_patient(engine, active_patient)
        fields = {c["field"]: c for c in report["corrections"]}
        assert fields["last_active_on"]["actual"] == "2026-03-03"
        assert fields["checkin_last_on"] == {
            "patient_id": active_patient,
            "field": "checkin_last_on",
            "stored": "2026-03-02",
            "actual": "2026-03-03",
        }

    def test_unknown_patient(self, engine):
        with pytest.raises(PatientNotFound):
            reconciliation_service.reconcile_patient(engine, "ghost")


class TestReconcileAll:
    def test_every_patient_checked(self, engine, active_patient):
        make_patient(engine, "bob")
        _corrupt(engine, "bob", points_total=40)

        report = reconciliation_service.reconcile_all(engine)

        assert report["checked"] == 2
        assert [(c["patient_id"], c["field"]) for c in report["corrections"]] == [
            ("bob", "points_total"),
        ]
