"""initial scheduler schema"""

from alembic import op
import sqlalchemy as sa


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "athletes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=200), nullable=False, unique=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("primary_goal", sa.String(length=40), nullable=False, server_default="well-rounded"),
        sa.Column("training_days_per_week", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("experience_level", sa.String(length=20), nullable=False, server_default="intermediate"),
        sa.Column("equipment_access", sa.String(length=40), nullable=False, server_default="full-gym"),
        sa.Column("travel_frequency", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False, unique=True),
        sa.Column("plan_tier", sa.String(length=40), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint(
            "status in ('ACTIVE','PAST_DUE','CANCELED','PAUSED','TRIALING')", name="ck_subscription_status"
        ),
    )
    op.create_index("ix_subscriptions_status", "subscriptions", ["status"])

    op.create_table(
        "workout_plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("block_type", sa.String(length=16), nullable=False, server_default="base"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("planned_tss", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("end_date >= start_date", name="ck_workout_plan_dates"),
    )
    op.create_index("ix_workout_plans_athlete_id", "workout_plans", ["athlete_id"])
    op.create_index(
        "uq_workout_plan_active",
        "workout_plans",
        ["athlete_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    op.create_table(
        "workout_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("workout_plans.id"), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_order", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("session_type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("prescribed_duration", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("prescribed_tss", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("content", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="SCHEDULED"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("athlete_notes", sa.Text(), nullable=True),
        sa.Column("original_date", sa.Date(), nullable=True),
        sa.Column("rescheduled_from_id", sa.Integer(), sa.ForeignKey("workout_sessions.id"), nullable=True),
        sa.CheckConstraint(
            "status in ('SCHEDULED','COMPLETED','MISSED','SKIPPED')", name="ck_workout_session_status"
        ),
        sa.CheckConstraint("prescribed_duration >= 0"),
    )
    op.create_index("ix_workout_sessions_plan_id", "workout_sessions", ["plan_id"])
    op.create_index("ix_workout_sessions_scheduled_date", "workout_sessions", ["scheduled_date"])

    op.create_table(
        "adjustment_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("workout_plans.id"), nullable=False),
        sa.Column("trigger_event", sa.String(length=40), nullable=False),
        sa.Column("trigger_data", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("adjustment_type", sa.String(length=40), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("affected_session_ids", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("created_on", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_adjustment_logs_plan_id", "adjustment_logs", ["plan_id"])
    op.create_index("ix_adjustment_logs_created_on", "adjustment_logs", ["created_on"])

    op.create_table(
        "readiness_metrics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("metric_date", sa.Date(), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="MANUAL"),
        sa.Column("perceived_energy", sa.Integer(), nullable=True),
        sa.Column("perceived_soreness", sa.Integer(), nullable=True),
        sa.Column("perceived_mood", sa.Integer(), nullable=True),
        sa.Column("sleep_quality", sa.Integer(), nullable=True),
        sa.Column("sleep_duration_min", sa.Integer(), nullable=True),
        sa.Column("sleep_score", sa.Integer(), nullable=True),
        sa.Column("hrv_ms", sa.Float(), nullable=True),
        sa.Column("fatigue_score", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("athlete_id", "metric_date", "source", name="uq_readiness_daily_source"),
    )
    op.create_index("ix_readiness_metrics_athlete_id", "readiness_metrics", ["athlete_id"])

    op.create_table(
        "adherence_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("scheduled_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("missed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("adherence_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("consecutive_missed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("escalation_triggered", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("athlete_id", "week_start", name="uq_adherence_week"),
    )
    op.create_index("ix_adherence_records_athlete_id", "adherence_records", ["athlete_id"])

    op.create_table(
        "message_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("channel", sa.String(length=16), nullable=False),
        sa.Column("template_id", sa.String(length=80), nullable=True),
        sa.Column("context", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("sent_on", sa.Date(), nullable=False),
        sa.Column("external_id", sa.String(length=120), nullable=True),
        sa.Column("failed_at", sa.DateTime(), nullable=True),
        sa.Column("failure_reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_message_logs_athlete_id", "message_logs", ["athlete_id"])
    op.create_index("ix_message_logs_sent_on", "message_logs", ["sent_on"])

    op.create_table(
        "escalation_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("trigger_reason", sa.String(length=60), nullable=False),
        sa.Column("escalation_level", sa.Integer(), nullable=False),
        sa.Column("created_on", sa.Date(), nullable=False),
        sa.Column("message_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("message_log_id", sa.Integer(), sa.ForeignKey("message_logs.id"), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("athlete_id", "created_on", name="uq_escalation_daily"),
        sa.CheckConstraint("escalation_level between 1 and 3"),
    )
    op.create_index("ix_escalation_events_athlete_id", "escalation_events", ["athlete_id"])


def downgrade() -> None:
    op.drop_table("escalation_events")
    op.drop_table("message_logs")
    op.drop_table("adherence_records")
    op.drop_table("readiness_metrics")
    op.drop_table("adjustment_logs")
    op.drop_table("workout_sessions")
    op.drop_table("workout_plans")
    op.drop_table("subscriptions")
    op.drop_table("athletes")
