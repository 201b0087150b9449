"""Adaptive plan adjustments for missed sessions, readiness flags, and travel.

Each trigger is its own rule and its own transaction:
- missed strength: reschedule, consolidate, or absorb
- missed endurance: extend existing endurance work or add a Zone 2 session
- high fatigue: ease today's session, pull the deload forward when sustained
- low sleep: trim today's session, swap the next HIIT after two short nights
- travel week: cap the week at three bodyweight-friendly sessions

Every rule that acts writes exactly one AdjustmentLog row, including when it
found nothing to change. A rule whose precondition no longer holds (session
already resolved, trigger already applied today) returns None untouched.
"""

from __future__ import annotations

import datetime as dt
import logging
import random
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from coach.db import session_scope
from coach.errors import AthleteNotFound, PlanNotFound, SessionNotFound
from coach.models import AdjustmentLog, Athlete, WorkoutPlan, WorkoutSession
from coach.services.content import SessionContent
from coach.services.planning import build_session_content
from coach.services.readiness import consecutive_low_sleep, sustained_high_fatigue
from coach.services.session_types import (
    BlockType,
    SessionFamily,
    SessionStatus,
    SessionType,
    assert_transition,
    family,
    session_title,
)
from coach.services.template_catalog import BODYWEIGHT, TemplateSource
from coach.services.timezones import local_today

logger = logging.getLogger(__name__)

# trigger events
MISSED_STRENGTH = "missed_strength"
MISSED_ENDURANCE = "missed_endurance"
MISSED_WORKOUT = "missed_workout"
HIGH_FATIGUE = "high_fatigue"
LOW_SLEEP = "low_sleep"
TRAVEL_WEEK = "travel_week"

# adjustment types
RESCHEDULE = "reschedule"
CONSOLIDATE = "consolidate"
ABSORBED = "absorbed"
EXTEND_ENDURANCE = "extend_endurance"
ADD_ZONE2 = "add_zone2"
SWAP_SESSION = "swap_session"
REDUCE_VOLUME = "reduce_volume"
REDUCE_INTENSITY = "reduce_intensity"
ADVANCE_DELOAD = "advance_deload"
TRAVEL_CONVERSION = "travel_conversion"
MARK_MISSED = "mark_missed"

RESCHEDULE_VOLUME = 0.85
FATIGUE_VOLUME = 0.75
DELOAD_VOLUME = 0.60
LOW_SLEEP_VOLUME = 0.90
ENDURANCE_EXTRA_MINUTES = 15
ENDURANCE_EXTRA_LOAD = 12
WEEKEND_STRETCH = 1.20
ADDED_ZONE2_MINUTES = 30
ADDED_ZONE2_LOAD = 30
TRAVEL_MAX_SESSIONS = 3
TRAVEL_NOTE = "Cancelled for travel week"


@dataclass
class AdjustmentResult:
    log_id: int
    plan_id: int
    trigger: str
    adjustment_type: str
    affected_session_ids: list[int] = field(default_factory=list)


# ── Shared helpers ───────────────────────────────────────────────────────

def find_next_free_day(
    sessions: Iterable[WorkoutSession], after: dt.date, plan_end: dt.date
) -> Optional[dt.date]:
    """First day after ``after`` (up to ``plan_end``) with no live session.

    MISSED and SKIPPED sessions do not occupy their date.
    """
    occupied = {
        x.scheduled_date
        for x in sessions
        if SessionStatus(x.status) not in (SessionStatus.MISSED, SessionStatus.SKIPPED)
    }
    cursor = after + dt.timedelta(days=1)
    while cursor <= plan_end:
        if cursor not in occupied:
            return cursor
        cursor += dt.timedelta(days=1)
    return None


def triggered_on(s: Session, athlete_id: int, trigger: str, day: dt.date) -> bool:
    """Whether ``trigger`` already produced an adjustment on ``day`` in any of the athlete's plans.

    A Sunday rollover swaps the active plan mid-day, so the check spans plans.
    """
    return (
        s.execute(
            select(AdjustmentLog.id)
            .join(WorkoutPlan, AdjustmentLog.plan_id == WorkoutPlan.id)
            .where(
                WorkoutPlan.athlete_id == athlete_id,
                AdjustmentLog.trigger_event == trigger,
                AdjustmentLog.created_on == day,
            )
        ).first()
        is not None
    )


def _plan_sessions(s: Session, plan_id: int) -> list[WorkoutSession]:
    return list(
        s.execute(
            select(WorkoutSession)
            .where(WorkoutSession.plan_id == plan_id)
            .order_by(WorkoutSession.scheduled_date, WorkoutSession.scheduled_order, WorkoutSession.id)
        ).scalars()
    )


def _load_plan(s: Session, plan_id: int) -> tuple[WorkoutPlan, Athlete]:
    plan = s.get(WorkoutPlan, plan_id)
    if not plan:
        raise PlanNotFound(plan_id)
    athlete = s.get(Athlete, plan.athlete_id)
    if not athlete:
        raise AthleteNotFound(plan.athlete_id)
    return plan, athlete


def _load_session(s: Session, plan_id: int, session_id: int) -> WorkoutSession:
    session = s.get(WorkoutSession, session_id)
    if not session or session.plan_id != plan_id:
        raise SessionNotFound(session_id)
    return session


def _set_content(session: WorkoutSession, content: SessionContent) -> None:
    session.content = content.to_dict()
    session.prescribed_duration = content.estimated_duration
    session.prescribed_tss = content.estimated_tss


def _append_description(session: WorkoutSession, note: str) -> None:
    session.description = f"{session.description or ''} ({note})".strip()


def _mark(session: WorkoutSession, status: SessionStatus) -> None:
    assert_transition(session.status, status)
    session.status = status.value


def _sync_planned_load(s: Session, plan_id: int) -> None:
    """Keep the plan aggregate equal to the sum of its sessions after an adjustment."""
    plan = s.get(WorkoutPlan, plan_id)
    if plan is not None:
        plan.planned_tss = sum(
            tss or 0
            for tss in s.execute(select(WorkoutSession.prescribed_tss).where(WorkoutSession.plan_id == plan_id)).scalars()
        )


def _write_log(
    s: Session,
    plan_id: int,
    trigger: str,
    adjustment_type: str,
    description: str,
    affected: list[int],
    day: dt.date,
    trigger_data: Optional[dict[str, Any]] = None,
) -> AdjustmentResult:
    _sync_planned_load(s, plan_id)
    row = AdjustmentLog(
        plan_id=plan_id,
        trigger_event=trigger,
        trigger_data=trigger_data or {},
        adjustment_type=adjustment_type,
        description=description,
        affected_session_ids=list(affected),
        created_on=day,
    )
    s.add(row)
    s.flush()
    logger.info(
        "Plan adjusted",
        extra={
            "ctx_plan_id": plan_id,
            "ctx_trigger": trigger,
            "ctx_adjustment_type": adjustment_type,
            "ctx_affected": list(affected),
        },
    )
    return AdjustmentResult(
        log_id=row.id,
        plan_id=plan_id,
        trigger=trigger,
        adjustment_type=adjustment_type,
        affected_session_ids=list(affected),
    )


def _insert_replacement(
    s: Session,
    missed: WorkoutSession,
    day: dt.date,
    session_type: SessionType,
    title: str,
    description: str,
    content: SessionContent,
    order: Optional[int] = None,
) -> WorkoutSession:
    created = WorkoutSession(
        plan_id=missed.plan_id,
        scheduled_date=day,
        scheduled_order=order if order is not None else missed.scheduled_order,
        session_type=session_type.value,
        title=title,
        description=description,
        status=SessionStatus.SCHEDULED.value,
        original_date=missed.scheduled_date,
        rescheduled_from_id=missed.id,
    )
    _set_content(created, content)
    s.add(created)
    s.flush()
    return created


def _upcoming(sessions: list[WorkoutSession], after: dt.date) -> list[WorkoutSession]:
    return [x for x in sessions if x.scheduled_date > after and x.status == SessionStatus.SCHEDULED.value]


# ── Missed sessions ──────────────────────────────────────────────────────

def adjust_missed_strength(
    plan_id: int,
    session_id: int,
    today: dt.date,
    catalog: Optional[TemplateSource] = None,
    rng: Optional[random.Random] = None,
) -> Optional[AdjustmentResult]:
    with session_scope() as s:
        plan, athlete = _load_plan(s, plan_id)
        missed = _load_session(s, plan_id, session_id)
        if missed.status != SessionStatus.SCHEDULED.value:
            return None

        sessions = _plan_sessions(s, plan_id)
        prior_missed = sum(
            1 for x in sessions if x.status == SessionStatus.MISSED.value and family(x.session_type) is SessionFamily.STRENGTH
        )
        _mark(missed, SessionStatus.MISSED)

        # replacements never land in the past
        horizon = max(missed.scheduled_date, today - dt.timedelta(days=1))
        affected: list[int] = []
        data = {"missed_session_id": missed.id, "session_type": missed.session_type, "prior_missed_strength": prior_missed}

        if prior_missed >= 2:
            upcoming = _upcoming(sessions, horizon)
            if upcoming:
                target = upcoming[0]
                content = build_session_content(
                    SessionType.STRENGTH_FULL,
                    athlete.equipment_access,
                    athlete.experience_level,
                    volume_multiplier=RESCHEDULE_VOLUME,
                    catalog=catalog,
                    rng=rng,
                )
                target.session_type = SessionType.STRENGTH_FULL.value
                target.title = "Consolidated Full Body (Adjusted)"
                target.description = "Consolidated session after missed strength days. Reduced volume."
                _set_content(target, content)
                affected.append(target.id)
                description = (
                    f"Consolidated remaining strength work into a full-body session after "
                    f"{prior_missed + 1} missed strength days."
                )
            else:
                description = "Strength deficit noted; no scheduled session left to consolidate into."
            return _write_log(s, plan_id, MISSED_STRENGTH, CONSOLIDATE, description, affected, today, data)

        next_day = missed.scheduled_date + dt.timedelta(days=1)
        live_next_day = [
            x
            for x in sessions
            if x.scheduled_date == next_day
            and x.status not in (SessionStatus.MISSED.value, SessionStatus.SKIPPED.value)
        ]
        slot: Optional[dt.date] = None
        if next_day > plan.end_date:
            slot = None
        elif next_day > horizon and not live_next_day:
            slot = next_day
        elif any(family(x.session_type) is SessionFamily.STRENGTH for x in live_next_day):
            slot = None
        else:
            slot = find_next_free_day(sessions, horizon, plan.end_date)

        if slot is None:
            description = f"Missed {missed.session_type} absorbed; no free day left before the plan ends."
            return _write_log(s, plan_id, MISSED_STRENGTH, ABSORBED, description, affected, today, data)

        content = build_session_content(
            missed.session_type,
            athlete.equipment_access,
            athlete.experience_level,
            volume_multiplier=RESCHEDULE_VOLUME,
            catalog=catalog,
            rng=rng,
        )
        created = _insert_replacement(
            s,
            missed,
            slot,
            SessionType(missed.session_type),
            f"{missed.title} (Rescheduled)",
            "Rescheduled from missed day. Volume reduced 15%.",
            content,
        )
        affected.append(created.id)
        data["rescheduled_to"] = slot.isoformat()
        description = f"Rescheduled missed {missed.session_type} session to {slot.isoformat()} with 15% volume reduction."
        return _write_log(s, plan_id, MISSED_STRENGTH, RESCHEDULE, description, affected, today, data)


def adjust_missed_endurance(
    plan_id: int,
    session_id: int,
    today: dt.date,
    catalog: Optional[TemplateSource] = None,
    rng: Optional[random.Random] = None,
) -> Optional[AdjustmentResult]:
    with session_scope() as s:
        plan, athlete = _load_plan(s, plan_id)
        missed = _load_session(s, plan_id, session_id)
        if missed.status != SessionStatus.SCHEDULED.value:
            return None

        sessions = _plan_sessions(s, plan_id)
        _mark(missed, SessionStatus.MISSED)

        horizon = max(missed.scheduled_date, today - dt.timedelta(days=1))
        upcoming = [x for x in _upcoming(sessions, horizon) if family(x.session_type) is SessionFamily.ENDURANCE]
        affected: list[int] = []
        data = {"missed_session_id": missed.id, "session_type": missed.session_type}

        if upcoming:
            target = upcoming[0]
            _set_content(target, SessionContent.from_dict(target.content).extended(ENDURANCE_EXTRA_MINUTES, ENDURANCE_EXTRA_LOAD))
            _append_description(target, "Extended +15 min to compensate for missed session")
            affected.append(target.id)
            for weekend in upcoming[1:]:
                if weekend.scheduled_date.weekday() < 5:
                    continue
                _set_content(weekend, SessionContent.from_dict(weekend.content).stretched(WEEKEND_STRETCH))
                _append_description(weekend, "Extended 20% for weekend compensation")
                affected.append(weekend.id)
            description = "Extended next endurance session by 15 min to compensate for missed cardio."
            return _write_log(s, plan_id, MISSED_ENDURANCE, EXTEND_ENDURANCE, description, affected, today, data)

        slot = find_next_free_day(sessions, horizon, plan.end_date)
        if slot is None:
            description = "Missed endurance session absorbed; no free day left before the plan ends."
            return _write_log(s, plan_id, MISSED_ENDURANCE, ABSORBED, description, affected, today, data)

        content = build_session_content(
            SessionType.ENDURANCE_ZONE2, athlete.equipment_access, athlete.experience_level, catalog=catalog, rng=rng
        )
        content = replace(content, estimated_duration=ADDED_ZONE2_MINUTES, estimated_tss=ADDED_ZONE2_LOAD)
        created = _insert_replacement(
            s,
            missed,
            slot,
            SessionType.ENDURANCE_ZONE2,
            "Zone 2 Cardio (Added)",
            "Added Zone 2 session to compensate for missed endurance day.",
            content,
            order=99,
        )
        affected.append(created.id)
        data["added_on"] = slot.isoformat()
        description = "Added 30-min Zone 2 session on a free day to compensate for missed endurance."
        return _write_log(s, plan_id, MISSED_ENDURANCE, ADD_ZONE2, description, affected, today, data)


def mark_session_missed(
    plan_id: int, session_id: int, today: dt.date, reason: str = "no compensating adjustment"
) -> Optional[AdjustmentResult]:
    """Mark a session MISSED and log it, without touching the rest of the plan."""
    with session_scope() as s:
        missed = _load_session(s, plan_id, session_id)
        if missed.status != SessionStatus.SCHEDULED.value:
            return None
        _mark(missed, SessionStatus.MISSED)
        data = {"missed_session_id": missed.id, "session_type": missed.session_type, "reason": reason}
        description = f"Marked {missed.session_type} session on {missed.scheduled_date.isoformat()} as missed ({reason})."
        return _write_log(s, plan_id, MISSED_WORKOUT, MARK_MISSED, description, [missed.id], today, data)


def adjust_missed_session(
    plan_id: int,
    session_id: int,
    today: dt.date,
    catalog: Optional[TemplateSource] = None,
    rng: Optional[random.Random] = None,
) -> Optional[AdjustmentResult]:
    """Route a missed session to the rule for its family."""
    with session_scope() as s:
        session_type = _load_session(s, plan_id, session_id).session_type
    fam = family(session_type)
    if fam is SessionFamily.STRENGTH:
        return adjust_missed_strength(plan_id, session_id, today, catalog, rng)
    if fam is SessionFamily.ENDURANCE:
        return adjust_missed_endurance(plan_id, session_id, today, catalog, rng)
    return mark_session_missed(plan_id, session_id, today, reason=f"{fam.value.lower()} session")


# ── Readiness ────────────────────────────────────────────────────────────

def _todays_session(sessions: list[WorkoutSession], today: dt.date) -> Optional[WorkoutSession]:
    return next(
        (x for x in sessions if x.scheduled_date == today and x.status == SessionStatus.SCHEDULED.value),
        None,
    )


def adjust_high_fatigue(
    plan_id: int,
    today: dt.date,
    readiness_data: Optional[dict[str, Any]] = None,
    catalog: Optional[TemplateSource] = None,
    rng: Optional[random.Random] = None,
) -> Optional[AdjustmentResult]:
    with session_scope() as s:
        plan, athlete = _load_plan(s, plan_id)
        if triggered_on(s, plan.athlete_id, HIGH_FATIGUE, today):
            return None

        sessions = _plan_sessions(s, plan_id)
        todays = _todays_session(sessions, today)
        affected: list[int] = []
        adjustment_type = REDUCE_VOLUME
        summary = "No session scheduled today."

        if todays is not None:
            fam = family(todays.session_type)
            if fam is SessionFamily.HIIT:
                content = build_session_content(
                    SessionType.MOBILITY_RECOVERY, athlete.equipment_access, athlete.experience_level, catalog=catalog, rng=rng
                )
                todays.session_type = SessionType.MOBILITY_RECOVERY.value
                todays.title = "Mobility & Recovery (Fatigue Adjustment)"
                todays.description = "HIIT replaced with recovery due to high fatigue. Listen to your body."
                _set_content(todays, content)
                affected.append(todays.id)
                adjustment_type = SWAP_SESSION
                summary = "Replaced HIIT with recovery."
            elif fam is SessionFamily.STRENGTH:
                _set_content(todays, SessionContent.from_dict(todays.content).scale_sets(FATIGUE_VOLUME))
                _append_description(todays, "Volume reduced 25%, fatigue detected")
                affected.append(todays.id)
                summary = "Reduced today's strength volume by 25%."
            elif fam is SessionFamily.ENDURANCE:
                todays.session_type = SessionType.ENDURANCE_ZONE2.value
                _set_content(
                    todays,
                    SessionContent.from_dict(todays.content).with_intensity(
                        "Zone 2 (conversational pace)", "Fatigue detected, keep effort easy."
                    ),
                )
                _append_description(todays, "Capped at Zone 2, fatigue detected")
                affected.append(todays.id)
                adjustment_type = REDUCE_INTENSITY
                summary = "Capped today's endurance session at Zone 2."
            else:
                summary = "Today's session is already low intensity."

        sustained = sustained_high_fatigue(s, plan.athlete_id, today)
        if sustained:
            for x in _upcoming(sessions, today):
                if x.id in affected:
                    continue
                _set_content(x, SessionContent.from_dict(x.content).scale_sets(DELOAD_VOLUME))
                _append_description(x, "Emergency deload, sustained fatigue")
                affected.append(x.id)
            plan.block_type = BlockType.DELOAD.value
            adjustment_type = ADVANCE_DELOAD
            summary = f"{summary} Sustained fatigue over 3 days: remaining sessions reduced to 60% volume."

        return _write_log(
            s, plan_id, HIGH_FATIGUE, adjustment_type, f"Fatigue detected. {summary}", affected, today, readiness_data
        )


def adjust_low_sleep(
    plan_id: int,
    today: dt.date,
    readiness_data: Optional[dict[str, Any]] = None,
    catalog: Optional[TemplateSource] = None,
    rng: Optional[random.Random] = None,
) -> Optional[AdjustmentResult]:
    with session_scope() as s:
        plan, athlete = _load_plan(s, plan_id)
        if triggered_on(s, plan.athlete_id, LOW_SLEEP, today):
            return None

        sessions = _plan_sessions(s, plan_id)
        todays = _todays_session(sessions, today)
        affected: list[int] = []

        if todays is not None:
            content = (
                SessionContent.from_dict(todays.content)
                .scale_sets(LOW_SLEEP_VOLUME)
                .with_notes("Priority: get 8 hours of sleep tonight.")
            )
            _set_content(todays, content)
            _append_description(todays, "Reduced 10%, prioritize 8hr sleep tonight")
            affected.append(todays.id)

        consecutive = consecutive_low_sleep(s, plan.athlete_id, today)
        if consecutive:
            next_hiit = next(
                (x for x in _upcoming(sessions, today) if family(x.session_type) is SessionFamily.HIIT and x.id not in affected),
                None,
            )
            if next_hiit is not None:
                content = build_session_content(
                    SessionType.ACTIVE_RECOVERY, athlete.equipment_access, athlete.experience_level, catalog=catalog, rng=rng
                )
                next_hiit.session_type = SessionType.ACTIVE_RECOVERY.value
                next_hiit.title = "Active Recovery (Sleep Adjustment)"
                next_hiit.description = "HIIT replaced with active recovery due to consecutive low sleep nights."
                _set_content(next_hiit, content)
                affected.append(next_hiit.id)

        if consecutive:
            description = "2+ consecutive low sleep nights. Replaced next HIIT with active recovery. Reduced today's intensity."
            adjustment_type = SWAP_SESSION
        else:
            description = "Low sleep detected. Reduced today's session by 10%. Prioritize sleep tonight."
            adjustment_type = REDUCE_INTENSITY
        return _write_log(s, plan_id, LOW_SLEEP, adjustment_type, description, affected, today, readiness_data)


# ── Travel ───────────────────────────────────────────────────────────────

def adjust_travel_week(
    athlete_id: int,
    today: Optional[dt.date] = None,
    catalog: Optional[TemplateSource] = None,
    rng: Optional[random.Random] = None,
) -> Optional[AdjustmentResult]:
    """Cap the rest of the active plan at three travel-friendly sessions."""
    with session_scope() as s:
        athlete = s.get(Athlete, athlete_id)
        if not athlete:
            raise AthleteNotFound(athlete_id)
        today = today or local_today(athlete.timezone)
        plan = s.execute(
            select(WorkoutPlan)
            .where(WorkoutPlan.athlete_id == athlete_id, WorkoutPlan.is_active.is_(True))
            .order_by(WorkoutPlan.week_number.desc())
        ).scalars().first()
        if plan is None:
            raise PlanNotFound(f"active plan for athlete {athlete_id}")
        already = s.execute(
            select(AdjustmentLog.id).where(AdjustmentLog.plan_id == plan.id, AdjustmentLog.trigger_event == TRAVEL_WEEK)
        ).first()
        if already is not None:
            return None

        remaining = [
            x for x in _plan_sessions(s, plan.id) if x.scheduled_date >= today and x.status == SessionStatus.SCHEDULED.value
        ]
        keep, cancel = remaining[:TRAVEL_MAX_SESSIONS], remaining[TRAVEL_MAX_SESSIONS:]
        affected: list[int] = []

        for x in cancel:
            _mark(x, SessionStatus.SKIPPED)
            x.athlete_notes = TRAVEL_NOTE
            affected.append(x.id)

        kept_run = False
        for x in keep:
            fam = family(x.session_type)
            if fam is SessionFamily.ENDURANCE and not kept_run:
                kept_run = True
                content = build_session_content(
                    SessionType.ENDURANCE_ZONE2, BODYWEIGHT, athlete.experience_level, catalog=catalog, rng=rng
                )
                x.session_type = SessionType.ENDURANCE_ZONE2.value
                x.title = "Zone 2 Run (Travel)"
                x.description = "Maintained cardio session; running requires no equipment."
                _set_content(x, content)
                affected.append(x.id)
                continue
            if fam is SessionFamily.MOBILITY:
                continue
            target_type = SessionType(x.session_type)
            if fam is SessionFamily.ENDURANCE:
                target_type = SessionType.ENDURANCE_ZONE2
            content = build_session_content(
                target_type,
                BODYWEIGHT,
                athlete.experience_level,
                volume_multiplier=RESCHEDULE_VOLUME,
                catalog=catalog,
                rng=rng,
            )
            x.session_type = target_type.value
            x.title = f"{session_title(target_type)} (Travel, Bodyweight)"
            x.description = "Converted to bodyweight for hotel/travel. No equipment needed."
            _set_content(x, content)
            affected.append(x.id)

        data = {
            "athlete_id": athlete_id,
            "travel_frequency": athlete.travel_frequency,
            "original_session_count": len(remaining),
            "adjusted_session_count": len(keep),
        }
        description = (
            f"Travel week adjustment: reduced from {len(remaining)} to {len(keep)} sessions. "
            "Gym work replaced with bodyweight alternatives."
        )
        return _write_log(s, plan.id, TRAVEL_WEEK, TRAVEL_CONVERSION, description, affected, today, data)
