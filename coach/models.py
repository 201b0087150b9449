from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Athlete(Base):
    __tablename__ = "athletes"
    id: Mapped[int] = mapped_column(primary_key=True)
    first_name: Mapped[str] = mapped_column(String(80))
    last_name: Mapped[str] = mapped_column(String(80), default="")
    email: Mapped[str] = mapped_column(String(200), unique=True)
    phone: Mapped[str | None] = mapped_column(String(40))
    timezone: Mapped[str | None] = mapped_column(String(64))
    primary_goal: Mapped[str] = mapped_column(String(40), default="well-rounded")
    training_days_per_week: Mapped[int] = mapped_column(Integer, default=3)
    experience_level: Mapped[str] = mapped_column(String(20), default="intermediate")
    equipment_access: Mapped[str] = mapped_column(String(40), default="full-gym")
    travel_frequency: Mapped[str | None] = mapped_column(String(20))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)


class Subscription(Base):
    __tablename__ = "subscriptions"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), unique=True)
    plan_tier: Mapped[str | None] = mapped_column(String(40))
    status: Mapped[str] = mapped_column(String(16), default="ACTIVE", index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    __table_args__ = (
        CheckConstraint("status in ('ACTIVE','PAST_DUE','CANCELED','PAUSED','TRIALING')", name="ck_subscription_status"),
    )


class WorkoutPlan(Base):
    __tablename__ = "workout_plans"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    week_number: Mapped[int] = mapped_column(Integer, default=1)
    block_type: Mapped[str] = mapped_column(String(16), default="base")
    start_date: Mapped[dt.date] = mapped_column(Date)
    end_date: Mapped[dt.date] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    planned_tss: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    sessions: Mapped[list[WorkoutSession]] = relationship(back_populates="plan", order_by="WorkoutSession.scheduled_date")
    __table_args__ = (
        Index(
            "uq_workout_plan_active",
            "athlete_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        CheckConstraint("end_date >= start_date", name="ck_workout_plan_dates"),
    )


class WorkoutSession(Base):
    __tablename__ = "workout_sessions"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("workout_plans.id"), index=True)
    scheduled_date: Mapped[dt.date] = mapped_column(Date, index=True)
    scheduled_order: Mapped[int] = mapped_column(Integer, default=1)
    session_type: Mapped[str] = mapped_column(String(32))
    title: Mapped[str] = mapped_column(String(120))
    description: Mapped[str] = mapped_column(Text, default="")
    prescribed_duration: Mapped[int] = mapped_column(Integer, default=30)
    prescribed_tss: Mapped[int] = mapped_column(Integer, default=30)
    content: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(16), default="SCHEDULED")
    completed_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    athlete_notes: Mapped[str | None] = mapped_column(Text)
    original_date: Mapped[dt.date | None] = mapped_column(Date)
    rescheduled_from_id: Mapped[int | None] = mapped_column(ForeignKey("workout_sessions.id"))

    plan: Mapped[WorkoutPlan] = relationship(back_populates="sessions")
    __table_args__ = (
        CheckConstraint("status in ('SCHEDULED','COMPLETED','MISSED','SKIPPED')", name="ck_workout_session_status"),
        CheckConstraint("prescribed_duration >= 0"),
    )


class AdjustmentLog(Base):
    __tablename__ = "adjustment_logs"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("workout_plans.id"), index=True)
    trigger_event: Mapped[str] = mapped_column(String(40))
    trigger_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    adjustment_type: Mapped[str] = mapped_column(String(40))
    description: Mapped[str] = mapped_column(Text)
    affected_session_ids: Mapped[list[int]] = mapped_column(JSON, default=list)
    created_on: Mapped[dt.date] = mapped_column(Date, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)


class ReadinessMetric(Base):
    __tablename__ = "readiness_metrics"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    metric_date: Mapped[dt.date] = mapped_column(Date)
    source: Mapped[str] = mapped_column(String(20), default="MANUAL")
    perceived_energy: Mapped[int | None] = mapped_column(Integer)
    perceived_soreness: Mapped[int | None] = mapped_column(Integer)
    perceived_mood: Mapped[int | None] = mapped_column(Integer)
    sleep_quality: Mapped[int | None] = mapped_column(Integer)
    sleep_duration_min: Mapped[int | None] = mapped_column(Integer)
    sleep_score: Mapped[int | None] = mapped_column(Integer)
    hrv_ms: Mapped[float | None] = mapped_column(Float)
    fatigue_score: Mapped[float | None] = mapped_column(Float)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    __table_args__ = (
        UniqueConstraint("athlete_id", "metric_date", "source", name="uq_readiness_daily_source"),
    )


class AdherenceRecord(Base):
    __tablename__ = "adherence_records"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    week_start: Mapped[dt.date] = mapped_column(Date)
    scheduled_count: Mapped[int] = mapped_column(Integer, default=0)
    completed_count: Mapped[int] = mapped_column(Integer, default=0)
    missed_count: Mapped[int] = mapped_column(Integer, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, default=0)
    adherence_rate: Mapped[float] = mapped_column(Float, default=0.0)
    consecutive_missed: Mapped[int] = mapped_column(Integer, default=0)
    escalation_triggered: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)
    __table_args__ = (UniqueConstraint("athlete_id", "week_start", name="uq_adherence_week"),)


class MessageLog(Base):
    __tablename__ = "message_logs"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    category: Mapped[str] = mapped_column(String(32))
    channel: Mapped[str] = mapped_column(String(16))
    template_id: Mapped[str | None] = mapped_column(String(80))
    context: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    sent_on: Mapped[dt.date] = mapped_column(Date, index=True)
    external_id: Mapped[str | None] = mapped_column(String(120))
    failed_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    failure_reason: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)


class EscalationEvent(Base):
    __tablename__ = "escalation_events"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    trigger_reason: Mapped[str] = mapped_column(String(60))
    escalation_level: Mapped[int] = mapped_column(Integer)
    created_on: Mapped[dt.date] = mapped_column(Date)
    message_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    message_log_id: Mapped[int | None] = mapped_column(ForeignKey("message_logs.id"))
    resolved_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    resolution: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    __table_args__ = (
        UniqueConstraint("athlete_id", "created_on", name="uq_escalation_daily"),
        CheckConstraint("escalation_level between 1 and 3"),
    )
