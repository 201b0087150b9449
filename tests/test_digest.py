"""Tests for the Monday weekly digest."""

from __future__ import annotations

import dataclasses
import datetime as dt

import pytest
from sqlalchemy import select

from conftest import MONDAY, add_readiness, make_athlete, make_plan
from coach.config import get_settings
from coach.db import session_scope
from coach.models import MessageLog
from coach.services import daily_review
from coach.services.daily_review import DailyReview
from coach.services.digest import (
    DIGEST_TEMPLATE,
    WeeklyDigest,
    compose_weekly_digest,
    is_digest_window,
    send_weekly_digest,
)
from coach.services.timezones import local_time

UTC = dt.timezone.utc
NEXT_MONDAY = MONDAY + dt.timedelta(days=7)


def at(day: dt.date, hour: int, minute: int = 0) -> dt.datetime:
    return dt.datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


def _digest(rate: float, trend: str = "stable") -> WeeklyDigest:
    return WeeklyDigest(
        first_name="Alex", completed=3, scheduled=4, adherence_rate=rate, trend=trend, avg_energy=6.0, avg_sleep=7.0
    )


def _athlete_with_history() -> int:
    athlete_id = make_athlete()
    make_plan(
        athlete_id,
        MONDAY,
        [
            (0, "STRENGTH_UPPER", "COMPLETED"),
            (2, "HIIT", "COMPLETED"),
            (4, "ENDURANCE_ZONE2", "COMPLETED"),
            (5, "STRENGTH_LOWER", "MISSED"),
        ],
        is_active=False,
    )
    make_plan(athlete_id, NEXT_MONDAY, [(0, "STRENGTH_FULL", "SCHEDULED"), (2, "HIIT", "SCHEDULED")], week_number=2)
    return athlete_id


def _digest_rows(athlete_id: int) -> list[MessageLog]:
    with session_scope() as s:
        return list(
            s.execute(
                select(MessageLog).where(MessageLog.athlete_id == athlete_id, MessageLog.template_id == DIGEST_TEMPLATE)
            ).scalars()
        )


@pytest.fixture
def review(db, notifier, rng):
    settings = dataclasses.replace(get_settings(), motivation_probability=0.0)
    return DailyReview(notifier=notifier, rng=rng, settings=settings)


def test_digest_window_is_monday_nine_local():
    assert is_digest_window(local_time("UTC", at(NEXT_MONDAY, 9, 0)))
    assert is_digest_window(local_time("America/New_York", at(NEXT_MONDAY, 13, 0)))
    assert not is_digest_window(local_time("UTC", at(NEXT_MONDAY, 8, 59)))
    assert not is_digest_window(local_time("UTC", at(NEXT_MONDAY + dt.timedelta(days=1), 9, 0)))


@pytest.mark.parametrize(
    "rate, opening",
    [(0.95, "Outstanding week"), (0.75, "Solid week"), (0.5, "Alex, you got 3/4"), (0.2, "Alex, last week was tough")],
)
def test_note_bands(rate, opening):
    assert _digest(rate).note.startswith(opening)


def test_trend_labels():
    assert _digest(1.0, "improving").trend_label == "Trending Up"
    assert _digest(1.0, "declining").trend_label == "Needs Attention"
    assert _digest(1.0, "stable").trend_label == "Holding Steady"


def test_compose_summarises_last_week_and_lists_this_week(db):
    athlete_id = _athlete_with_history()
    digest = compose_weekly_digest(athlete_id, NEXT_MONDAY)
    assert (digest.completed, digest.scheduled) == (3, 4)
    assert digest.adherence_rate == 0.75
    assert digest.plan_name == "Week 2"
    assert digest.sessions == ["Mon: Strength_Full", "Wed: Hiit"]
    text = digest.render()
    assert "Sessions: 3/4 completed" in text
    assert "Adherence: 75%" in text
    assert "Solid week, Alex." in text


def test_compose_without_plan_says_plan_is_coming(db):
    athlete_id = make_athlete()
    add_readiness(athlete_id, MONDAY, perceived_energy=7, sleep_quality=8)
    digest = compose_weekly_digest(athlete_id, NEXT_MONDAY)
    assert (digest.completed, digest.scheduled) == (0, 0)
    assert digest.sessions == []
    assert "Your plan for this week is being prepared." in digest.render()


def test_send_once_per_week(db, notifier, gateway):
    athlete_id = _athlete_with_history()
    message_id = send_weekly_digest(athlete_id, NEXT_MONDAY, notifier)
    assert message_id is not None
    (_, category, channel, context), = gateway.sent
    assert (category, channel) == ("SYSTEM", "EMAIL")
    assert context["completed"] == 3
    assert context["sessions"] == ["Mon: Strength_Full", "Wed: Hiit"]

    assert send_weekly_digest(athlete_id, NEXT_MONDAY + dt.timedelta(days=2), notifier) is None
    assert len(_digest_rows(athlete_id)) == 1
    assert send_weekly_digest(athlete_id, NEXT_MONDAY + dt.timedelta(days=7), notifier) is not None


def test_tick_sends_digest_at_local_monday_nine(review, notifier, rng):
    athlete_id = _athlete_with_history()
    assert review.run_hourly_tick(at(NEXT_MONDAY, 8, 0)).digests == 0

    report = review.run_hourly_tick(at(NEXT_MONDAY, 9, 0))
    assert report.digests == 1
    assert report.eligible == 0
    assert review.run_hourly_tick(at(NEXT_MONDAY, 9, 0)).digests == 0

    restarted = DailyReview(notifier=notifier, rng=rng, settings=review.settings)
    assert restarted.run_hourly_tick(at(NEXT_MONDAY, 9, 0)).digests == 0
    assert len(_digest_rows(athlete_id)) == 1


def test_failing_digest_does_not_stop_the_tick(review, monkeypatch):
    first = make_athlete("a@example.com")
    second = make_athlete("b@example.com")
    original = daily_review.send_weekly_digest

    def flaky(athlete_id, today, notifier):
        if athlete_id == first:
            raise RuntimeError("summary query failed")
        return original(athlete_id, today, notifier)

    monkeypatch.setattr(daily_review, "send_weekly_digest", flaky)
    report = review.run_hourly_tick(at(NEXT_MONDAY, 9, 0))
    assert report.digests == 1
    assert len(_digest_rows(first)) == 0
    assert len(_digest_rows(second)) == 1
