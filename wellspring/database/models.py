"""
wellspring.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- patient_profiles   — Gamified actor; cached point/level/streak aggregates
- activity_events    — Append-only dated activity journal (idempotent inserts)
- point_transactions — Append-only ledger; audit trail for points_total
- badges             — Static badge catalog (seeded)
- patient_badges     — Unlocked badges, at most one row per (patient, badge)
- settings           — Admin-configurable gameplay tuning

The aggregate columns on ``patient_profiles`` are a transactionally
updated materialized view of ``point_transactions`` and
``activity_events``; see ``services.reconciliation_service`` for the
repair path.
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Wellspring ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ActivityKind(enum.StrEnum):
    """Dated patient activities that flow through the engine."""
    MOOD = "MOOD"
    JOURNAL = "JOURNAL"
    EXERCISE = "EXERCISE"
    CHECKIN = "CHECKIN"


class CriteriaKind(enum.StrEnum):
    """Quantity a badge threshold is compared against."""
    MOOD_ENTRIES = "mood_entries"
    JOURNAL_ENTRIES = "journal_entries"
    EXERCISES_COMPLETED = "exercises_completed"
    BREATHING_EXERCISES = "breathing_exercises"
    MOOD_STREAK = "mood_streak"
    EXERCISE_STREAK = "exercise_streak"
    CHECKIN_STREAK = "checkin_streak"
    DAILY_CHECKINS = "daily_checkins"
    POINTS_TOTAL = "points_total"
    LEVEL_REACHED = "level_reached"
    # Reported by external collaborators (community, sessions)
    UPVOTES_RECEIVED = "upvotes_received"
    POSTS_CREATED = "posts_created"
    SESSIONS_ATTENDED = "sessions_attended"


# ---------------------------------------------------------------------------
# PatientProfile: one row per provisioned patient account
# ---------------------------------------------------------------------------
class PatientProfile(Base):
    __tablename__ = "patient_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    points_total: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)

    # Per-kind streak state: counter + last calendar day of that kind
    mood_streak: Mapped[int] = mapped_column(Integer, default=0)
    mood_last_on: Mapped[date | None] = mapped_column(Date, default=None)
    exercise_streak: Mapped[int] = mapped_column(Integer, default=0)
    exercise_last_on: Mapped[date | None] = mapped_column(Date, default=None)
    checkin_streak: Mapped[int] = mapped_column(Integer, default=0)
    checkin_last_on: Mapped[date | None] = mapped_column(Date, default=None)

    last_active_on: Mapped[date | None] = mapped_column(Date, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    activity_events: Mapped[list[ActivityEvent]] = relationship(
        back_populates="patient", cascade="all, delete-orphan"
    )
    transactions: Mapped[list[PointTransaction]] = relationship(
        back_populates="patient", cascade="all, delete-orphan"
    )
    badges: Mapped[list[PatientBadge]] = relationship(
        back_populates="patient", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_patient_profiles_points_desc", "points_total"),
        CheckConstraint("points_total >= 0", name="ck_patient_profiles_points_nonneg"),
    )

    def __repr__(self) -> str:
        return f"<PatientProfile id={self.id!r} pts={self.points_total} lvl={self.level}>"


# ---------------------------------------------------------------------------
# ActivityEvent: append-only activity journal
# ---------------------------------------------------------------------------
class ActivityEvent(Base):
    __tablename__ = "activity_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patient_profiles.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    occurred_on: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    patient: Mapped[PatientProfile] = relationship(back_populates="activity_events")

    __table_args__ = (
        # One check-in per patient per calendar day
        Index(
            "ix_activity_events_one_checkin_per_day",
            "patient_id",
            "occurred_on",
            unique=True,
            postgresql_where=text("kind = 'CHECKIN'"),
            sqlite_where=text("kind = 'CHECKIN'"),
        ),
        # Caller-supplied natural key makes record_activity retry-safe
        Index(
            "ix_activity_events_idempotent",
            "patient_id",
            "kind",
            "source_ref",
            unique=True,
            postgresql_where=text("source_ref IS NOT NULL"),
            sqlite_where=text("source_ref IS NOT NULL"),
        ),
        Index("ix_activity_events_patient_kind_day", "patient_id", "kind", "occurred_on"),
    )

    def __repr__(self) -> str:
        return (
            f"<ActivityEvent id={self.id} patient={self.patient_id!r} "
            f"kind={self.kind} on={self.occurred_on}>"
        )


# ---------------------------------------------------------------------------
# PointTransaction: append-only points ledger
# ---------------------------------------------------------------------------
class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patient_profiles.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(120), nullable=False)
    activity_event_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("activity_events.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    patient: Mapped[PatientProfile] = relationship(back_populates="transactions")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_point_transactions_amount_positive"),
        Index("ix_point_transactions_patient_time", "patient_id", "created_at"),
        Index("ix_point_transactions_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointTransaction id={self.id} patient={self.patient_id!r} "
            f"amount={self.amount} reason={self.reason!r}>"
        )


# ---------------------------------------------------------------------------
# Badge: static catalog entry
# ---------------------------------------------------------------------------
class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    icon: Mapped[str | None] = mapped_column(String(16), default=None)
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="wellness")
    criteria_kind: Mapped[str] = mapped_column(String(40), nullable=False)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    points_reward: Mapped[int] = mapped_column(Integer, default=0)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    earned_by: Mapped[list[PatientBadge]] = relationship(back_populates="badge")

    __table_args__ = (
        CheckConstraint("threshold > 0", name="ck_badges_threshold_positive"),
        CheckConstraint("points_reward >= 0", name="ck_badges_reward_nonneg"),
    )

    def __repr__(self) -> str:
        return f"<Badge id={self.id} name={self.name!r} {self.criteria_kind}>={self.threshold}>"


# ---------------------------------------------------------------------------
# PatientBadge: unlocked badges; composite PK enforces at-most-once
# ---------------------------------------------------------------------------
class PatientBadge(Base):
    __tablename__ = "patient_badges"

    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patient_profiles.id", ondelete="CASCADE"), primary_key=True
    )
    badge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("badges.id", ondelete="CASCADE"), primary_key=True
    )
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    activity_event_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("activity_events.id", ondelete="SET NULL"), nullable=True
    )

    patient: Mapped[PatientProfile] = relationship(back_populates="badges")
    badge: Mapped[Badge] = relationship(back_populates="earned_by")

    def __repr__(self) -> str:
        return f"<PatientBadge patient={self.patient_id!r} badge={self.badge_id}>"


# ---------------------------------------------------------------------------
# Setting: admin-configurable key-value store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Every gameplay tuning knob (points per activity, streak bonuses, level
    size) lives here so admins can adjust values without redeploying.
    Values are stored as JSON strings; typed accessors live in
    :class:`~wellspring.engine.cache.ConfigCache`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"
