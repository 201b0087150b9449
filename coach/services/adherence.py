"""Adherence tracking: weekly completion ratios and missed-session streaks.

Weekly records are always recomputed from session statuses, never patched.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from coach.db import session_scope
from coach.errors import AthleteNotFound
from coach.models import AdherenceRecord, Athlete, WorkoutPlan, WorkoutSession
from coach.services.session_types import SessionStatus
from coach.services.timezones import local_today, week_start

logger = logging.getLogger(__name__)

ESCALATION_MISSED_THRESHOLD = 3
TRAILING_DAYS = 7
STREAK_LOOKBACK_DAYS = 60


@dataclass(frozen=True)
class WeekCounts:
    scheduled: int = 0
    completed: int = 0
    missed: int = 0
    skipped: int = 0

    @property
    def adherence_rate(self) -> float:
        return self.completed / self.scheduled if self.scheduled > 0 else 0.0


def count_statuses(statuses: Iterable[str]) -> WeekCounts:
    statuses = [SessionStatus(st) for st in statuses]
    return WeekCounts(
        scheduled=len(statuses),
        completed=sum(1 for st in statuses if st is SessionStatus.COMPLETED),
        missed=sum(1 for st in statuses if st is SessionStatus.MISSED),
        skipped=sum(1 for st in statuses if st is SessionStatus.SKIPPED),
    )


def streak_length(sessions: Iterable[WorkoutSession], today: dt.date) -> int:
    """Length of the most recent run of MISSED/SKIPPED sessions.

    Walks newest first from today. A session still SCHEDULED for today has not
    had its chance yet and is passed over; a past-due SCHEDULED session ends
    the run without being counted, as does a COMPLETED one.
    """
    ordered = sorted(
        (x for x in sessions if x.scheduled_date <= today),
        key=lambda x: (x.scheduled_date, x.scheduled_order, x.id or 0),
        reverse=True,
    )
    streak = 0
    for session in ordered:
        status = SessionStatus(session.status)
        if status in (SessionStatus.MISSED, SessionStatus.SKIPPED):
            streak += 1
            continue
        if status is SessionStatus.SCHEDULED and session.scheduled_date == today:
            continue
        break
    return streak


def _athlete_sessions(athlete_id: int):
    return (
        select(WorkoutSession)
        .join(WorkoutPlan, WorkoutSession.plan_id == WorkoutPlan.id)
        .where(WorkoutPlan.athlete_id == athlete_id)
    )


def week_counts(s: Session, athlete_id: int, start: dt.date) -> WeekCounts:
    end = start + dt.timedelta(days=7)
    statuses = s.execute(
        select(WorkoutSession.status)
        .join(WorkoutPlan, WorkoutSession.plan_id == WorkoutPlan.id)
        .where(
            WorkoutPlan.athlete_id == athlete_id,
            WorkoutSession.scheduled_date >= start,
            WorkoutSession.scheduled_date < end,
        )
    ).scalars()
    return count_statuses(statuses)


def consecutive_missed(s: Session, athlete_id: int, today: dt.date) -> int:
    since = today - dt.timedelta(days=STREAK_LOOKBACK_DAYS)
    rows = s.execute(
        _athlete_sessions(athlete_id).where(
            WorkoutSession.scheduled_date >= since,
            WorkoutSession.scheduled_date <= today,
        )
    ).scalars()
    return streak_length(rows, today)


def missed_in_trailing_week(s: Session, athlete_id: int, today: dt.date) -> int:
    """MISSED or SKIPPED sessions dated within the seven days ending today."""
    since = today - dt.timedelta(days=TRAILING_DAYS - 1)
    return s.execute(
        select(func.count(WorkoutSession.id))
        .join(WorkoutPlan, WorkoutSession.plan_id == WorkoutPlan.id)
        .where(
            WorkoutPlan.athlete_id == athlete_id,
            WorkoutSession.scheduled_date >= since,
            WorkoutSession.scheduled_date <= today,
            WorkoutSession.status.in_([SessionStatus.MISSED.value, SessionStatus.SKIPPED.value]),
        )
    ).scalar_one()


def escalation_eligible(s: Session, athlete_id: int, today: dt.date) -> bool:
    return missed_in_trailing_week(s, athlete_id, today) >= ESCALATION_MISSED_THRESHOLD


def recompute_week(s: Session, athlete_id: int, day: dt.date, today: Optional[dt.date] = None) -> AdherenceRecord:
    """Rebuild the adherence record for the week containing ``day``."""
    today = today or day
    start = week_start(day)
    counts = week_counts(s, athlete_id, start)
    streak = consecutive_missed(s, athlete_id, today)
    eligible = escalation_eligible(s, athlete_id, today)

    record = s.execute(
        select(AdherenceRecord).where(AdherenceRecord.athlete_id == athlete_id, AdherenceRecord.week_start == start)
    ).scalar_one_or_none()
    if record is None:
        record = AdherenceRecord(athlete_id=athlete_id, week_start=start)
        s.add(record)
    record.scheduled_count = counts.scheduled
    record.completed_count = counts.completed
    record.missed_count = counts.missed
    record.skipped_count = counts.skipped
    record.adherence_rate = counts.adherence_rate
    record.consecutive_missed = streak
    record.escalation_triggered = eligible
    s.flush()

    logger.info(
        "Adherence record updated",
        extra={
            "ctx_athlete_id": athlete_id,
            "ctx_week_start": start.isoformat(),
            "ctx_adherence_rate": round(counts.adherence_rate, 3),
            "ctx_completed": counts.completed,
            "ctx_scheduled": counts.scheduled,
        },
    )
    return record


def recent_adherence_rates(s: Session, athlete_id: int, limit: int = 2) -> tuple[float, ...]:
    rows = s.execute(
        select(AdherenceRecord.adherence_rate)
        .where(AdherenceRecord.athlete_id == athlete_id)
        .order_by(AdherenceRecord.week_start.desc())
        .limit(limit)
    ).scalars()
    return tuple(rows)


def adherence_history(athlete_id: int, weeks: int = 8, today: Optional[dt.date] = None) -> list[AdherenceRecord]:
    with session_scope() as s:
        athlete = s.get(Athlete, athlete_id)
        if not athlete:
            raise AthleteNotFound(athlete_id)
        today = today or local_today(athlete.timezone)
        since = week_start(today) - dt.timedelta(weeks=weeks)
        return list(
            s.execute(
                select(AdherenceRecord)
                .where(AdherenceRecord.athlete_id == athlete_id, AdherenceRecord.week_start >= since)
                .order_by(AdherenceRecord.week_start.desc())
            ).scalars()
        )


def current_week_adherence(athlete_id: int, today: Optional[dt.date] = None) -> WeekCounts:
    with session_scope() as s:
        athlete = s.get(Athlete, athlete_id)
        if not athlete:
            raise AthleteNotFound(athlete_id)
        today = today or local_today(athlete.timezone)
        return week_counts(s, athlete_id, week_start(today))
