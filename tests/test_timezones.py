from __future__ import annotations

import datetime as dt

from coach.services.timezones import MIDNIGHT, MORNING, local_time, local_today, resolve_zone, review_window, week_start

UTC = dt.timezone.utc


def _at(hour, minute=0, day=19):
    return dt.datetime(2026, 10, day, hour, minute, tzinfo=UTC)


def test_new_york_just_after_midnight():
    # EDT is UTC-4 until November
    lt = local_time("America/New_York", _at(4, 5))
    assert (lt.hour, lt.minute) == (0, 5)
    assert lt.date == dt.date(2026, 10, 19)
    assert lt.weekday == 0
    assert review_window(lt) == MIDNIGHT


def test_half_hour_offset_morning_window():
    # India is UTC+5:30: the top-of-hour tick lands at 05:30 and 06:30 local
    first = local_time("Asia/Kolkata", _at(0))
    second = local_time("Asia/Kolkata", _at(1))
    assert (first.hour, first.minute) == (5, 30)
    assert review_window(first) == MORNING
    assert review_window(second) == MORNING
    assert first.date == second.date


def test_half_hour_offset_midnight_window():
    lt = local_time("Asia/Kolkata", _at(19))
    assert (lt.hour, lt.minute) == (0, 30)
    assert review_window(lt) == MIDNIGHT


def test_outside_windows():
    assert review_window(local_time("UTC", _at(5))) is None
    assert review_window(local_time("UTC", _at(7))) is None
    assert review_window(local_time("UTC", _at(12))) is None


def test_invalid_zone_falls_back_to_utc():
    assert resolve_zone("Mars/Olympus_Mons") is UTC
    assert resolve_zone("not a zone at all") is UTC
    lt = local_time("Mars/Olympus_Mons", _at(6, 15))
    assert lt.timezone == "UTC"
    assert review_window(lt) == MORNING


def test_missing_zone_uses_default(monkeypatch):
    from coach.config import get_settings

    monkeypatch.setenv("DEFAULT_TIMEZONE", "Europe/London")
    get_settings.cache_clear()
    try:
        lt = local_time(None, _at(23))
        assert lt.timezone == "Europe/London"
        assert (lt.hour, lt.date) == (0, dt.date(2026, 10, 20))
    finally:
        get_settings.cache_clear()


def test_naive_datetimes_are_utc():
    assert local_today("Asia/Tokyo", dt.datetime(2026, 10, 19, 16, 0)) == dt.date(2026, 10, 20)


def test_sunday_flag():
    assert local_time("UTC", _at(0, day=18)).is_sunday is True
    assert local_time("UTC", _at(0, day=19)).is_sunday is False


def test_week_start():
    assert week_start(dt.date(2026, 10, 18)) == dt.date(2026, 10, 12)
    assert week_start(dt.date(2026, 10, 19)) == dt.date(2026, 10, 19)


def test_directory_and_overlong_zone_names_fall_back_to_utc():
    assert resolve_zone("America") is UTC
    assert resolve_zone("Europe/" + "x" * 5000) is UTC
    lt = local_time("America", _at(0, 5))
    assert lt.timezone == "UTC"
    assert review_window(lt) == MIDNIGHT
