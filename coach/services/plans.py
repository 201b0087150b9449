"""Plan generation: the initial week and each weekly rollover.

Both paths swap the athlete's active plan inside a single transaction; the
partial unique index on ``workout_plans`` backs the one-active-plan rule.
"""

from __future__ import annotations

import datetime as dt
import logging
import random
from dataclasses import dataclass, replace
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from coach.config import get_settings
from coach.db import session_scope
from coach.errors import AthleteNotFound, SessionNotFound
from coach.models import Athlete, WorkoutPlan, WorkoutSession
from coach.services.adherence import recent_adherence_rates, week_counts
from coach.services.planning import DraftSession, build_session_specs, draft_week
from coach.services.progression import (
    ProgressionSignals,
    block_type_for_week,
    clamp_weekly_load,
    distribute_load,
    plan_name,
    select_volume_multiplier,
)
from coach.services.readiness import average_energy, high_fatigue_days
from coach.services.session_types import BlockType, SessionStatus, assert_transition
from coach.services.template_catalog import TemplateSource
from coach.services.timezones import local_today, week_start

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanResult:
    plan_id: int
    session_count: int


def load_athlete(s: Session, athlete_id: int) -> Athlete:
    athlete = s.get(Athlete, athlete_id)
    if not athlete:
        raise AthleteNotFound(athlete_id)
    return athlete


def active_plan(s: Session, athlete_id: int) -> Optional[WorkoutPlan]:
    return s.execute(
        select(WorkoutPlan)
        .where(WorkoutPlan.athlete_id == athlete_id, WorkoutPlan.is_active.is_(True))
        .order_by(WorkoutPlan.week_number.desc())
    ).scalars().first()


def plan_starting_from(s: Session, athlete_id: int, start: dt.date) -> Optional[WorkoutPlan]:
    return s.execute(
        select(WorkoutPlan).where(WorkoutPlan.athlete_id == athlete_id, WorkoutPlan.start_date >= start)
    ).scalars().first()


def recent_template_ids(s: Session, athlete_id: int, today: dt.date, weeks: Optional[int] = None) -> list[str]:
    weeks = weeks or get_settings().template_lookback_weeks
    since = today - dt.timedelta(weeks=weeks)
    contents = s.execute(
        select(WorkoutSession.content)
        .join(WorkoutPlan, WorkoutSession.plan_id == WorkoutPlan.id)
        .where(WorkoutPlan.athlete_id == athlete_id, WorkoutSession.scheduled_date >= since)
    ).scalars()
    return [c["template_id"] for c in contents if isinstance(c, dict) and c.get("template_id")]


def plan_load(s: Session, plan_id: int) -> int:
    return sum(
        s.execute(select(WorkoutSession.prescribed_tss).where(WorkoutSession.plan_id == plan_id)).scalars()
    )


def next_week_start(current: Optional[WorkoutPlan], today: dt.date) -> dt.date:
    """Monday after the outgoing plan's week, or this Monday when that plan has lapsed."""
    this_monday = week_start(today)
    if current is None:
        return this_monday
    return max(week_start(current.start_date) + dt.timedelta(days=7), this_monday)


def activate_plan(s: Session, athlete_id: int, plan: WorkoutPlan, drafts: list[DraftSession]) -> WorkoutPlan:
    """Deactivate the athlete's active plan and insert the new one in the caller's transaction."""
    s.execute(
        update(WorkoutPlan)
        .where(WorkoutPlan.athlete_id == athlete_id, WorkoutPlan.is_active.is_(True))
        .values(is_active=False)
    )
    plan.is_active = True
    s.add(plan)
    s.flush()
    for d in drafts:
        s.add(
            WorkoutSession(
                plan_id=plan.id,
                scheduled_date=d.scheduled_date,
                scheduled_order=d.scheduled_order,
                session_type=d.session_type.value,
                title=d.title,
                description=d.description,
                prescribed_duration=d.prescribed_duration,
                prescribed_tss=d.prescribed_tss,
                content=d.content.to_dict(),
                status=SessionStatus.SCHEDULED.value,
            )
        )
    s.flush()
    return plan


def generate_initial_plan(
    athlete_id: int,
    today: Optional[dt.date] = None,
    rng: Optional[random.Random] = None,
    catalog: Optional[TemplateSource] = None,
) -> PlanResult:
    with session_scope() as s:
        athlete = load_athlete(s, athlete_id)
        today = today or local_today(athlete.timezone)
        start = week_start(today)
        specs = build_session_specs(athlete.training_days_per_week, athlete.primary_goal)
        drafts = draft_week(
            specs,
            start,
            week_number=1,
            equipment=athlete.equipment_access,
            experience_level=athlete.experience_level,
            catalog=catalog,
            rng=rng,
        )
        plan = WorkoutPlan(
            athlete_id=athlete_id,
            name=plan_name(1, BlockType.BASE),
            week_number=1,
            block_type=BlockType.BASE.value,
            start_date=start,
            end_date=start + dt.timedelta(days=6),
            planned_tss=sum(d.prescribed_tss for d in drafts),
        )
        activate_plan(s, athlete_id, plan, drafts)
        result = PlanResult(plan_id=plan.id, session_count=len(drafts))

    logger.info(
        "Initial workout plan generated",
        extra={
            "ctx_athlete_id": athlete_id,
            "ctx_plan_id": result.plan_id,
            "ctx_session_count": result.session_count,
            "ctx_goal": athlete.primary_goal,
            "ctx_equipment": athlete.equipment_access,
            "ctx_experience": athlete.experience_level,
        },
    )
    return result


def progression_signals(
    s: Session, athlete_id: int, outgoing: Optional[WorkoutPlan], block_type: BlockType, today: dt.date
) -> ProgressionSignals:
    adherence = week_counts(s, athlete_id, week_start(outgoing.start_date)).adherence_rate if outgoing else 0.0
    return ProgressionSignals(
        block_type=block_type,
        adherence_rate=adherence,
        average_energy=average_energy(s, athlete_id, today),
        high_fatigue_days=high_fatigue_days(s, athlete_id, today),
        recent_adherence_rates=recent_adherence_rates(s, athlete_id, 2),
    )


def _apply_load(drafts: list[DraftSession], target_total: int) -> list[DraftSession]:
    loads = distribute_load([d.prescribed_tss for d in drafts], target_total)
    return [replace(d, content=replace(d.content, estimated_tss=load)) for d, load in zip(drafts, loads)]


def generate_next_week(
    athlete_id: int,
    today: Optional[dt.date] = None,
    start: Optional[dt.date] = None,
    rng: Optional[random.Random] = None,
    catalog: Optional[TemplateSource] = None,
) -> PlanResult:
    """Roll the athlete forward one week with progression and the load clamp applied."""
    with session_scope() as s:
        athlete = load_athlete(s, athlete_id)
        today = today or local_today(athlete.timezone)
        current = active_plan(s, athlete_id)

        week_number = (current.week_number if current else 0) + 1
        block_type = block_type_for_week(week_number)
        deload = block_type is BlockType.DELOAD
        signals = progression_signals(s, athlete_id, current, block_type, today)
        multiplier = select_volume_multiplier(signals)

        start = start or next_week_start(current, today)
        specs = build_session_specs(athlete.training_days_per_week, athlete.primary_goal)
        drafts = draft_week(
            specs,
            start,
            week_number=week_number,
            equipment=athlete.equipment_access,
            experience_level=athlete.experience_level,
            exclude_ids=recent_template_ids(s, athlete_id, today),
            volume_multiplier=multiplier,
            deload=deload,
            catalog=catalog,
            rng=rng,
        )

        previous_total = plan_load(s, current.id) if current else 0
        raw_total = sum(d.prescribed_tss for d in drafts)
        planned_tss = clamp_weekly_load(raw_total, previous_total)
        if planned_tss != raw_total:
            drafts = _apply_load(drafts, planned_tss)

        plan = WorkoutPlan(
            athlete_id=athlete_id,
            name=plan_name(week_number, block_type),
            week_number=week_number,
            block_type=block_type.value,
            start_date=start,
            end_date=start + dt.timedelta(days=6),
            planned_tss=planned_tss,
        )
        activate_plan(s, athlete_id, plan, drafts)
        result = PlanResult(plan_id=plan.id, session_count=len(drafts))

    logger.info(
        "Next week workout plan generated",
        extra={
            "ctx_athlete_id": athlete_id,
            "ctx_plan_id": result.plan_id,
            "ctx_week_number": week_number,
            "ctx_block_type": block_type.value,
            "ctx_adherence_rate": round(signals.adherence_rate, 3),
            "ctx_avg_energy": round(signals.average_energy, 2),
            "ctx_volume_multiplier": multiplier,
            "ctx_raw_tss": raw_total,
            "ctx_planned_tss": planned_tss,
            "ctx_session_count": result.session_count,
        },
    )
    return result


def update_session_status(
    session_id: int, status: SessionStatus | str, athlete_notes: Optional[str] = None
) -> WorkoutSession:
    """Record the athlete's outcome for a scheduled session."""
    status = SessionStatus(status)
    with session_scope() as s:
        session = s.get(WorkoutSession, session_id)
        if not session:
            raise SessionNotFound(session_id)
        assert_transition(session.status, status)
        session.status = status.value
        if status is SessionStatus.COMPLETED:
            session.completed_at = dt.datetime.utcnow()
        if athlete_notes:
            session.athlete_notes = athlete_notes
        s.flush()
        logger.info(
            "Workout session status updated",
            extra={"ctx_session_id": session_id, "ctx_plan_id": session.plan_id, "ctx_status": status.value},
        )
        return session
