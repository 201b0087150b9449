"""Escalation policy: when an athlete's misses warrant a human-toned alert.

Levels: 1 nudge, 2 direct concern, 3 book a call. The level grows with the
number of unresolved escalations inside the lookback window.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from coach.config import get_settings
from coach.db import session_scope
from coach.errors import AthleteNotFound, EscalationNotFound
from coach.models import Athlete, EscalationEvent
from coach.services.adherence import ESCALATION_MISSED_THRESHOLD, consecutive_missed, missed_in_trailing_week
from coach.services.messaging import Channel, MessageCategory, Notifier
from coach.services.timezones import local_today

logger = logging.getLogger(__name__)

MAX_LEVEL = 3
CONSECUTIVE_MISSED = "consecutive_missed"
MISSED_IN_TRAILING_WEEK = "missed_in_trailing_week"


@dataclass(frozen=True)
class EscalationOutcome:
    event_id: int
    level: int
    reason: str
    message_log_id: Optional[int] = None


def level_for(unresolved: int) -> int:
    return min(unresolved + 1, MAX_LEVEL)


def channel_for(level: int) -> Channel:
    return Channel.EMAIL if level >= MAX_LEVEL else Channel.SMS


def trigger_reason(consecutive: int, missed_trailing: int) -> Optional[str]:
    if consecutive >= ESCALATION_MISSED_THRESHOLD:
        return CONSECUTIVE_MISSED
    if missed_trailing >= ESCALATION_MISSED_THRESHOLD:
        return MISSED_IN_TRAILING_WEEK
    return None


def unresolved_count(s: Session, athlete_id: int, today: dt.date, lookback_days: Optional[int] = None) -> int:
    lookback_days = lookback_days or get_settings().escalation_lookback_days
    since = today - dt.timedelta(days=lookback_days)
    return s.execute(
        select(func.count(EscalationEvent.id)).where(
            EscalationEvent.athlete_id == athlete_id,
            EscalationEvent.resolved_at.is_(None),
            EscalationEvent.created_on > since,
        )
    ).scalar_one()


def escalated_on(s: Session, athlete_id: int, day: dt.date) -> bool:
    return (
        s.execute(
            select(EscalationEvent.id).where(EscalationEvent.athlete_id == athlete_id, EscalationEvent.created_on == day)
        ).first()
        is not None
    )


def raise_escalation_if_needed(
    athlete_id: int,
    today: dt.date,
    notifier: Optional[Notifier] = None,
    context: Optional[dict] = None,
) -> Optional[EscalationOutcome]:
    """Create today's escalation when the miss pattern calls for one.

    Returns None when today already has an event or nothing qualifies.
    """
    with session_scope() as s:
        if escalated_on(s, athlete_id, today):
            return None
        streak = consecutive_missed(s, athlete_id, today)
        trailing = missed_in_trailing_week(s, athlete_id, today)
        reason = trigger_reason(streak, trailing)
        if reason is None:
            return None
        level = level_for(unresolved_count(s, athlete_id, today))
        event = EscalationEvent(athlete_id=athlete_id, trigger_reason=reason, escalation_level=level, created_on=today)
        s.add(event)
        s.flush()
        event_id = event.id

    logger.warning(
        "Escalation raised",
        extra={
            "ctx_athlete_id": athlete_id,
            "ctx_level": level,
            "ctx_reason": reason,
            "ctx_consecutive_missed": streak,
            "ctx_missed_trailing_week": trailing,
        },
    )

    message_log_id = None
    if notifier is not None:
        message_context = {**(context or {}), "escalation_level": level, "reason": reason}
        message_log_id = notifier.request(athlete_id, MessageCategory.ESCALATION, channel_for(level), today, message_context)
        with session_scope() as s:
            event = s.get(EscalationEvent, event_id)
            event.message_sent = True
            event.message_log_id = message_log_id

    return EscalationOutcome(event_id=event_id, level=level, reason=reason, message_log_id=message_log_id)


def resolve_escalation(event_id: int, resolution: str) -> EscalationEvent:
    with session_scope() as s:
        event = s.get(EscalationEvent, event_id)
        if not event:
            raise EscalationNotFound(event_id)
        if event.resolved_at is None:
            event.resolved_at = dt.datetime.utcnow()
            event.resolution = resolution
        return event


def escalation_history(athlete_id: int, limit: int = 20) -> list[EscalationEvent]:
    with session_scope() as s:
        return list(
            s.execute(
                select(EscalationEvent)
                .where(EscalationEvent.athlete_id == athlete_id)
                .order_by(EscalationEvent.created_on.desc(), EscalationEvent.id.desc())
                .limit(limit)
            ).scalars()
        )


def current_escalation_level(athlete_id: int, today: Optional[dt.date] = None) -> int:
    """Level the next escalation would carry."""
    with session_scope() as s:
        athlete = s.get(Athlete, athlete_id)
        if not athlete:
            raise AthleteNotFound(athlete_id)
        today = today or local_today(athlete.timezone)
        return level_for(unresolved_count(s, athlete_id, today))
