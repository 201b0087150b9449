from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from coach.db import session_scope
from coach.errors import AthleteNotFound
from coach.models import Athlete, ReadinessMetric
from coach.services.timezones import local_today

logger = logging.getLogger(__name__)

MANUAL = "MANUAL"

HIGH_FATIGUE = "high_fatigue"
LOW_SLEEP = "low_sleep"
LOW_HRV = "low_hrv"


def is_high_fatigue(m: ReadinessMetric) -> bool:
    if m.fatigue_score is not None and m.fatigue_score > 70:
        return True
    return (
        m.perceived_energy is not None
        and m.perceived_soreness is not None
        and m.perceived_energy < 4
        and m.perceived_soreness > 7
    )


def is_low_sleep(m: ReadinessMetric) -> bool:
    if m.sleep_score is not None and m.sleep_score < 50:
        return True
    if m.sleep_quality is not None and m.sleep_quality < 4:
        return True
    return m.sleep_duration_min is not None and m.sleep_duration_min < 360


def is_low_hrv(m: ReadinessMetric) -> bool:
    return m.hrv_ms is not None and m.hrv_ms < 30


def readiness_flags(metrics: Iterable[ReadinessMetric]) -> list[str]:
    """Flags raised by any of the day's readings, in a stable order."""
    metrics = list(metrics)
    flags = []
    for name, check in ((HIGH_FATIGUE, is_high_fatigue), (LOW_SLEEP, is_low_sleep), (LOW_HRV, is_low_hrv)):
        if any(check(m) for m in metrics):
            flags.append(name)
    return flags


def metrics_on(s: Session, athlete_id: int, day: dt.date) -> list[ReadinessMetric]:
    return list(
        s.execute(
            select(ReadinessMetric)
            .where(ReadinessMetric.athlete_id == athlete_id, ReadinessMetric.metric_date == day)
            .order_by(ReadinessMetric.source)
        ).scalars()
    )


def _every_day(
    s: Session, athlete_id: int, days: list[dt.date], check: Callable[[ReadinessMetric], bool]
) -> bool:
    rows = s.execute(
        select(ReadinessMetric).where(
            ReadinessMetric.athlete_id == athlete_id,
            ReadinessMetric.metric_date.in_(days),
        )
    ).scalars()
    qualifying = {r.metric_date for r in rows if check(r)}
    return all(d in qualifying for d in days)


def sustained_high_fatigue(s: Session, athlete_id: int, today: dt.date) -> bool:
    """High fatigue on each of the last three days, today included."""
    days = [today - dt.timedelta(days=n) for n in range(3)]
    return _every_day(s, athlete_id, days, is_high_fatigue)


def consecutive_low_sleep(s: Session, athlete_id: int, today: dt.date) -> bool:
    return _every_day(s, athlete_id, [today - dt.timedelta(days=1), today], is_low_sleep)


def high_fatigue_days(s: Session, athlete_id: int, today: dt.date, days: int = 14) -> int:
    since = today - dt.timedelta(days=days - 1)
    rows = s.execute(
        select(ReadinessMetric.metric_date).where(
            ReadinessMetric.athlete_id == athlete_id,
            ReadinessMetric.metric_date >= since,
            ReadinessMetric.metric_date <= today,
            ReadinessMetric.fatigue_score > 70,
        )
    ).scalars()
    return len(set(rows))


def average_energy(s: Session, athlete_id: int, today: dt.date, days: int = 14) -> float:
    """Mean self-reported energy over the window; 5 when nothing was reported."""
    since = today - dt.timedelta(days=days - 1)
    values = [
        v
        for v in s.execute(
            select(ReadinessMetric.perceived_energy).where(
                ReadinessMetric.athlete_id == athlete_id,
                ReadinessMetric.source == MANUAL,
                ReadinessMetric.metric_date >= since,
                ReadinessMetric.metric_date <= today,
            )
        ).scalars()
        if v is not None
    ]
    return sum(values) / len(values) if values else 5.0


@dataclass
class CheckinResult:
    id: int
    metric_date: dt.date
    flagged: bool
    flags: list[str] = field(default_factory=list)


_CHECKIN_FIELDS = (
    "perceived_energy",
    "perceived_soreness",
    "perceived_mood",
    "sleep_quality",
    "sleep_duration_min",
    "sleep_score",
    "hrv_ms",
    "fatigue_score",
    "notes",
)


def record_checkin(
    athlete_id: int,
    values: dict,
    day: Optional[dt.date] = None,
    source: str = MANUAL,
) -> CheckinResult:
    """Upsert the athlete's reading for one day and source, returning its flags."""
    with session_scope() as s:
        athlete = s.get(Athlete, athlete_id)
        if not athlete:
            raise AthleteNotFound(athlete_id)
        day = day or local_today(athlete.timezone)
        metric = s.execute(
            select(ReadinessMetric).where(
                ReadinessMetric.athlete_id == athlete_id,
                ReadinessMetric.metric_date == day,
                ReadinessMetric.source == source,
            )
        ).scalar_one_or_none()
        if metric is None:
            metric = ReadinessMetric(athlete_id=athlete_id, metric_date=day, source=source)
            s.add(metric)
        for name in _CHECKIN_FIELDS:
            if name in values:
                setattr(metric, name, values[name])
        s.flush()

        flags = readiness_flags([metric])
        if flags:
            logger.warning(
                "Readiness flags raised",
                extra={"ctx_athlete_id": athlete_id, "ctx_flags": flags, "ctx_metric_id": metric.id},
            )
        logger.info("Readiness check-in recorded", extra={"ctx_athlete_id": athlete_id, "ctx_metric_id": metric.id})
        return CheckinResult(id=metric.id, metric_date=day, flagged=bool(flags), flags=flags)


@dataclass
class ReadinessTrend:
    avg_energy: float
    avg_soreness: float
    avg_mood: float
    avg_sleep: float
    trend: str  # improving | declining | stable


def _averages(rows: list[ReadinessMetric]) -> tuple[float, float, float, float]:
    def mean(values: list[Optional[int]]) -> float:
        present = [v for v in values if v is not None]
        return round(sum(present) / len(present), 1) if present else 0.0

    return (
        mean([r.perceived_energy for r in rows]),
        mean([r.perceived_soreness for r in rows]),
        mean([r.perceived_mood for r in rows]),
        mean([r.sleep_quality for r in rows]),
    )


def readiness_trend(athlete_id: int, today: Optional[dt.date] = None) -> ReadinessTrend:
    """Compare the last 14 days of self-reported readiness with the 14 before."""
    with session_scope() as s:
        athlete = s.get(Athlete, athlete_id)
        if not athlete:
            raise AthleteNotFound(athlete_id)
        today = today or local_today(athlete.timezone)
        recent_since = today - dt.timedelta(days=14)
        previous_since = today - dt.timedelta(days=28)
        rows = list(
            s.execute(
                select(ReadinessMetric).where(
                    ReadinessMetric.athlete_id == athlete_id,
                    ReadinessMetric.source == MANUAL,
                    ReadinessMetric.metric_date >= previous_since,
                )
            ).scalars()
        )
    recent = [r for r in rows if r.metric_date >= recent_since]
    previous = [r for r in rows if r.metric_date < recent_since]

    energy, soreness, mood, sleep = _averages(recent)
    p_energy, p_soreness, p_mood, p_sleep = _averages(previous)
    diff = (energy + mood + sleep - soreness) - (p_energy + p_mood + p_sleep - p_soreness)

    trend = "stable"
    if previous and diff > 2:
        trend = "improving"
    elif previous and diff < -2:
        trend = "declining"
    return ReadinessTrend(avg_energy=energy, avg_soreness=soreness, avg_mood=mood, avg_sleep=sleep, trend=trend)
