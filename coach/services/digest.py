"""Monday morning email summarising last week and the week ahead.

The digest goes out at local Monday 09:00. A MessageLog row carrying the
digest template marks the week as done, so a repeated tick or a restart
sends nothing new until the following Monday.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from coach.db import session_scope
from coach.errors import AthleteNotFound
from coach.models import Athlete, MessageLog, WorkoutSession
from coach.services.adherence import week_counts
from coach.services.messaging import Channel, MessageCategory, Notifier
from coach.services.plans import active_plan
from coach.services.readiness import readiness_trend
from coach.services.timezones import LocalTime, week_start

logger = logging.getLogger(__name__)

DIGEST = "digest"
DIGEST_TEMPLATE = "weekly-digest"
DIGEST_WEEKDAY = 0
DIGEST_HOUR = 9

TREND_LABELS = {"improving": "Trending Up", "declining": "Needs Attention"}


@dataclass(frozen=True)
class WeeklyDigest:
    first_name: str
    completed: int
    scheduled: int
    adherence_rate: float
    trend: str
    avg_energy: float
    avg_sleep: float
    plan_name: Optional[str] = None
    sessions: list[str] = field(default_factory=list)

    @property
    def trend_label(self) -> str:
        return TREND_LABELS.get(self.trend, "Holding Steady")

    @property
    def note(self) -> str:
        done = f"{self.completed}/{self.scheduled}"
        if self.adherence_rate >= 0.9:
            return f"Outstanding week, {self.first_name}. {done} sessions completed. Your consistency is building real results."
        if self.adherence_rate >= 0.7:
            return f"Solid week, {self.first_name}. {done} sessions logged. Keep building on this momentum."
        if self.adherence_rate >= 0.5:
            return f"{self.first_name}, you got {done} sessions in. Every rep counts. Let's build from here this week."
        return f"{self.first_name}, last week was tough: {done} sessions. No judgment. This week is a fresh start."

    def render(self) -> str:
        if self.sessions:
            week_ahead = [self.plan_name or "This week's plan", *self.sessions]
        else:
            week_ahead = ["Your plan for this week is being prepared."]
        return "\n".join(
            [
                "Last Week",
                f"Sessions: {self.completed}/{self.scheduled} completed",
                f"Adherence: {round(self.adherence_rate * 100)}%",
                f"Readiness: {self.trend_label} (Energy {self.avg_energy}/10, Sleep {self.avg_sleep}/10)",
                "",
                self.note,
                "",
                "This Week",
                *week_ahead,
            ]
        )

    def to_context(self) -> dict[str, Any]:
        return {
            "first_name": self.first_name,
            "completed": self.completed,
            "scheduled": self.scheduled,
            "adherence_rate": round(self.adherence_rate, 2),
            "trend": self.trend,
            "trend_label": self.trend_label,
            "plan_name": self.plan_name,
            "sessions": list(self.sessions),
            "content": self.render(),
        }


def is_digest_window(lt: LocalTime) -> bool:
    return lt.weekday == DIGEST_WEEKDAY and lt.hour == DIGEST_HOUR


def digest_sent_since(s: Session, athlete_id: int, since: dt.date) -> bool:
    return (
        s.execute(
            select(MessageLog.id).where(
                MessageLog.athlete_id == athlete_id,
                MessageLog.template_id == DIGEST_TEMPLATE,
                MessageLog.sent_on >= since,
            )
        ).first()
        is not None
    )


def compose_weekly_digest(athlete_id: int, today: dt.date) -> WeeklyDigest:
    """Summarise the week before ``today``'s week and list the active plan's sessions."""
    last_monday = week_start(today) - dt.timedelta(days=7)
    with session_scope() as s:
        athlete = s.get(Athlete, athlete_id)
        if not athlete:
            raise AthleteNotFound(athlete_id)
        first_name = athlete.first_name
        counts = week_counts(s, athlete_id, last_monday)
        plan = active_plan(s, athlete_id)
        plan_name = plan.name if plan else None
        sessions = []
        if plan is not None:
            rows = s.execute(
                select(WorkoutSession.scheduled_date, WorkoutSession.title)
                .where(WorkoutSession.plan_id == plan.id)
                .order_by(WorkoutSession.scheduled_date, WorkoutSession.scheduled_order)
            ).all()
            sessions = [f"{r.scheduled_date.strftime('%a')}: {r.title}" for r in rows]

    trend = readiness_trend(athlete_id, today)
    return WeeklyDigest(
        first_name=first_name,
        completed=counts.completed,
        scheduled=counts.scheduled,
        adherence_rate=counts.adherence_rate,
        trend=trend.trend,
        avg_energy=trend.avg_energy,
        avg_sleep=trend.avg_sleep,
        plan_name=plan_name,
        sessions=sessions,
    )


def send_weekly_digest(athlete_id: int, today: dt.date, notifier: Notifier) -> Optional[int]:
    """Request this week's digest email unless one already went out; returns the MessageLog id."""
    with session_scope() as s:
        if digest_sent_since(s, athlete_id, week_start(today)):
            return None

    digest = compose_weekly_digest(athlete_id, today)
    message_id = notifier.request(
        athlete_id, MessageCategory.SYSTEM, Channel.EMAIL, today, digest.to_context(), template_id=DIGEST_TEMPLATE
    )
    logger.info(
        "Weekly digest requested",
        extra={
            "ctx_athlete_id": athlete_id,
            "ctx_completed": digest.completed,
            "ctx_scheduled": digest.scheduled,
            "ctx_adherence_rate": round(digest.adherence_rate, 2),
            "ctx_trend": digest.trend,
        },
    )
    return message_id
