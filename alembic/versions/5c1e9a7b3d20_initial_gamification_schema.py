"""Initial gamification schema

Patient profiles, activity journal, points ledger, badge catalog,
patient badges and settings.

Revision ID: 5c1e9a7b3d20
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "5c1e9a7b3d20"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "patient_profiles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("points_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("mood_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mood_last_on", sa.Date(), nullable=True),
        sa.Column("exercise_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("exercise_last_on", sa.Date(), nullable=True),
        sa.Column("checkin_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("checkin_last_on", sa.Date(), nullable=True),
        sa.Column("last_active_on", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("points_total >= 0", name="ck_patient_profiles_points_nonneg"),
    )
    op.create_index("ix_patient_profiles_points_desc", "patient_profiles", ["points_total"])

    op.create_table(
        "activity_events",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column(
            "patient_id", sa.String(64),
            sa.ForeignKey("patient_profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("occurred_on", sa.Date(), nullable=False),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("source_ref", sa.String(100), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_activity_events_one_checkin_per_day",
        "activity_events",
        ["patient_id", "occurred_on"],
        unique=True,
        postgresql_where=sa.text("kind = 'CHECKIN'"),
    )
    op.create_index(
        "ix_activity_events_idempotent",
        "activity_events",
        ["patient_id", "kind", "source_ref"],
        unique=True,
        postgresql_where=sa.text("source_ref IS NOT NULL"),
    )
    op.create_index(
        "ix_activity_events_patient_kind_day",
        "activity_events",
        ["patient_id", "kind", "occurred_on"],
    )

    op.create_table(
        "point_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column(
            "patient_id", sa.String(64),
            sa.ForeignKey("patient_profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(120), nullable=False),
        sa.Column(
            "activity_event_id", sa.Integer(),
            sa.ForeignKey("activity_events.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="ck_point_transactions_amount_positive"),
    )
    op.create_index(
        "ix_point_transactions_patient_time", "point_transactions",
        ["patient_id", "created_at"],
    )
    op.create_index("ix_point_transactions_created_at", "point_transactions", ["created_at"])

    op.create_table(
        "badges",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(16), nullable=True),
        sa.Column("category", sa.String(30), nullable=False, server_default="wellness"),
        sa.Column("criteria_kind", sa.String(40), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=False),
        sa.Column("points_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("threshold > 0", name="ck_badges_threshold_positive"),
        sa.CheckConstraint("points_reward >= 0", name="ck_badges_reward_nonneg"),
    )

    op.create_table(
        "patient_badges",
        sa.Column(
            "patient_id", sa.String(64),
            sa.ForeignKey("patient_profiles.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "badge_id", sa.Integer(),
            sa.ForeignKey("badges.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column(
            "activity_event_id", sa.Integer(),
            sa.ForeignKey("activity_events.id", ondelete="SET NULL"), nullable=True,
        ),
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_settings_category", "settings", ["category"])


def downgrade() -> None:
    op.drop_index("ix_settings_category", table_name="settings")
    op.drop_table("settings")
    op.drop_table("patient_badges")
    op.drop_table("badges")
    op.drop_index("ix_point_transactions_created_at", table_name="point_transactions")
    op.drop_index("ix_point_transactions_patient_time", table_name="point_transactions")
    op.drop_table("point_transactions")
    op.drop_index("ix_activity_events_patient_kind_day", table_name="activity_events")
    op.drop_index("ix_activity_events_idempotent", table_name="activity_events")
    op.drop_index("ix_activity_events_one_checkin_per_day", table_name="activity_events")
    op.drop_table("activity_events")
    op.drop_index("ix_patient_profiles_points_desc", table_name="patient_profiles")
    op.drop_table("patient_profiles")
