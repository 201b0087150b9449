"""Tests for plan generation and weekly rollover."""

from __future__ import annotations

import datetime as dt
import random

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from conftest import MONDAY, make_athlete, make_plan
from coach.db import session_scope
from coach.errors import AthleteNotFound, InvalidTransition, SessionNotFound
from coach.models import WorkoutPlan, WorkoutSession
from coach.services.plans import generate_initial_plan, generate_next_week, update_session_status

WEDNESDAY = MONDAY + dt.timedelta(days=2)
SUNDAY = MONDAY + dt.timedelta(days=6)


def _plans(athlete_id):
    with session_scope() as s:
        return list(
            s.execute(select(WorkoutPlan).where(WorkoutPlan.athlete_id == athlete_id).order_by(WorkoutPlan.id)).scalars()
        )


def _sessions(plan_id):
    with session_scope() as s:
        return list(
            s.execute(
                select(WorkoutSession).where(WorkoutSession.plan_id == plan_id).order_by(WorkoutSession.scheduled_order)
            ).scalars()
        )


def test_initial_plan_starts_on_monday(db, rng):
    athlete_id = make_athlete(days=4)
    result = generate_initial_plan(athlete_id, today=WEDNESDAY, rng=rng)
    assert result.session_count == 4

    (plan,) = _plans(athlete_id)
    assert plan.is_active is True
    assert plan.week_number == 1
    assert plan.block_type == "base"
    assert plan.name == "Week 1 — Foundation Phase"
    assert (plan.start_date, plan.end_date) == (MONDAY, SUNDAY)

    sessions = _sessions(plan.id)
    assert [x.scheduled_date for x in sessions] == [MONDAY + dt.timedelta(days=i) for i in range(4)]
    assert [x.session_type for x in sessions] == ["STRENGTH_UPPER", "STRENGTH_LOWER", "ENDURANCE_ZONE2", "ENDURANCE_ZONE2"]
    assert all(x.status == "SCHEDULED" for x in sessions)
    assert plan.planned_tss == sum(x.prescribed_tss for x in sessions)
    assert sessions[0].content["template_id"]


def test_initial_plan_unknown_athlete(db):
    with pytest.raises(AthleteNotFound):
        generate_initial_plan(999, today=MONDAY)


def test_next_week_replaces_active_plan(db, rng):
    athlete_id = make_athlete(days=4)
    first = generate_initial_plan(athlete_id, today=MONDAY, rng=rng)
    second = generate_next_week(athlete_id, today=SUNDAY, rng=rng)

    plans = _plans(athlete_id)
    assert [p.is_active for p in plans] == [False, True]
    new = plans[1]
    assert new.id == second.plan_id
    assert new.week_number == 2
    assert new.start_date == MONDAY + dt.timedelta(days=7)
    assert new.name == "Week 2 — Base Phase"

    previous_load = sum(x.prescribed_tss for x in _sessions(first.plan_id))
    sessions = _sessions(new.id)
    assert new.planned_tss == sum(x.prescribed_tss for x in sessions)
    assert previous_load * 0.6 <= new.planned_tss <= previous_load * 1.1


def test_next_week_avoids_last_weeks_templates(db, rng):
    athlete_id = make_athlete(days=4)
    first = generate_initial_plan(athlete_id, today=MONDAY, rng=rng)
    second = generate_next_week(athlete_id, today=SUNDAY, rng=rng)
    upper_before = _sessions(first.plan_id)[0].content["template_id"]
    upper_after = _sessions(second.plan_id)[0].content["template_id"]
    assert upper_before != upper_after


def test_fourth_week_is_a_deload(db, rng):
    athlete_id = make_athlete(days=3)
    make_plan(athlete_id, MONDAY, [(0, "STRENGTH_FULL", "COMPLETED"), (2, "STRENGTH_FULL", "COMPLETED")], week_number=3)
    result = generate_next_week(athlete_id, today=SUNDAY, rng=rng)

    plan = next(p for p in _plans(athlete_id) if p.id == result.plan_id)
    assert plan.block_type == "deload"
    assert plan.name == "Week 4 — Deload"
    assert all("Deload week" in x.description for x in _sessions(plan.id))


def test_lapsed_plan_rolls_into_current_week(db, rng):
    athlete_id = make_athlete(days=3)
    make_plan(athlete_id, MONDAY, [(0, "STRENGTH_FULL", "MISSED")])
    today = MONDAY + dt.timedelta(days=16)
    result = generate_next_week(athlete_id, today=today, rng=rng)
    plan = next(p for p in _plans(athlete_id) if p.id == result.plan_id)
    assert plan.start_date == MONDAY + dt.timedelta(days=14)


def test_explicit_start_date(db, rng):
    athlete_id = make_athlete(days=2)
    generate_initial_plan(athlete_id, today=MONDAY, rng=rng)
    start = MONDAY + dt.timedelta(days=21)
    result = generate_next_week(athlete_id, today=SUNDAY, start=start, rng=random.Random(1))
    plan = next(p for p in _plans(athlete_id) if p.id == result.plan_id)
    assert (plan.start_date, plan.end_date) == (start, start + dt.timedelta(days=6))


def test_only_one_active_plan_per_athlete(db):
    athlete_id = make_athlete()
    make_plan(athlete_id, MONDAY)
    with pytest.raises(IntegrityError):
        make_plan(athlete_id, MONDAY + dt.timedelta(days=7), week_number=2)


def test_update_session_status(db):
    athlete_id = make_athlete()
    _, (session_id,) = make_plan(athlete_id, MONDAY, [(0, "STRENGTH_FULL", "SCHEDULED")])
    updated = update_session_status(session_id, "COMPLETED", "felt strong")
    assert updated.status == "COMPLETED"
    assert updated.completed_at is not None
    assert updated.athlete_notes == "felt strong"

    with pytest.raises(InvalidTransition):
        update_session_status(session_id, "MISSED")
    with pytest.raises(SessionNotFound):
        update_session_status(12345, "COMPLETED")
