from __future__ import annotations

import datetime as dt
import random

import pytest

from coach.config import get_settings
from coach.db import create_schema, reset_engine, session_scope
from coach.models import Athlete, ReadinessMetric, Subscription, WorkoutPlan, WorkoutSession
from coach.services.content import MainExercise, SessionContent
from coach.services.messaging import Notifier

MONDAY = dt.date(2026, 10, 12)


class RecordingGateway:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[int, str, str, dict]] = []

    def request_message(self, athlete_id, category, channel, context):
        if self.fail:
            raise RuntimeError("gateway down")
        self.sent.append((athlete_id, category, channel, context))
        return f"msg-{len(self.sent)}"


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'coach.db'}")
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.delenv("NOTIFY_URL", raising=False)
    get_settings.cache_clear()
    reset_engine()
    create_schema()
    yield
    reset_engine()
    get_settings.cache_clear()


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def notifier(gateway):
    return Notifier(gateway)


def make_athlete(
    email: str = "alex@example.com",
    timezone: str | None = "UTC",
    goal: str = "well-rounded",
    days: int = 4,
    experience: str = "intermediate",
    equipment: str = "full-gym",
    plan_tier: str | None = "standard",
    subscription_status: str | None = "ACTIVE",
) -> int:
    with session_scope() as s:
        athlete = Athlete(
            first_name="Alex",
            last_name="Rivera",
            email=email,
            timezone=timezone,
            primary_goal=goal,
            training_days_per_week=days,
            experience_level=experience,
            equipment_access=equipment,
        )
        s.add(athlete)
        s.flush()
        if subscription_status is not None:
            s.add(Subscription(athlete_id=athlete.id, plan_tier=plan_tier, status=subscription_status))
        return athlete.id


def simple_content(sets: int = 3, tss: int = 50, duration: int = 45, template_id: str = "test-1") -> dict:
    return SessionContent(
        template_id=template_id,
        main=(MainExercise("Goblet Squat", sets, "10", "60s", "RPE 7"),),
        estimated_duration=duration,
        estimated_tss=tss,
    ).to_dict()


def make_plan(
    athlete_id: int,
    start: dt.date = MONDAY,
    sessions: list[tuple[int, str, str]] = (),
    week_number: int = 1,
    is_active: bool = True,
) -> tuple[int, list[int]]:
    """Create a plan with sessions given as (day offset, session type, status)."""
    with session_scope() as s:
        plan = WorkoutPlan(
            athlete_id=athlete_id,
            name=f"Week {week_number}",
            week_number=week_number,
            block_type="base",
            start_date=start,
            end_date=start + dt.timedelta(days=6),
            is_active=is_active,
        )
        s.add(plan)
        s.flush()
        ids = []
        for order, (offset, session_type, status) in enumerate(sessions, start=1):
            row = WorkoutSession(
                plan_id=plan.id,
                scheduled_date=start + dt.timedelta(days=offset),
                scheduled_order=order,
                session_type=session_type,
                title=session_type.title(),
                description="",
                prescribed_duration=45,
                prescribed_tss=50,
                content=simple_content(),
                status=status,
            )
            s.add(row)
            s.flush()
            ids.append(row.id)
        return plan.id, ids


def add_readiness(athlete_id: int, day: dt.date, source: str = "MANUAL", **values) -> int:
    with session_scope() as s:
        row = ReadinessMetric(athlete_id=athlete_id, metric_date=day, source=source, **values)
        s.add(row)
        s.flush()
        return row.id
