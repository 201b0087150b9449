from __future__ import annotations

import datetime as dt
import json

import httpx
import pytest

from conftest import MONDAY, RecordingGateway, make_athlete
from coach.config import get_settings
from coach.db import session_scope
from coach.models import MessageLog
from coach.services.messaging import (
    Channel,
    HttpMessageGateway,
    LogOnlyGateway,
    MessageCategory,
    Notifier,
    already_sent,
    default_gateway,
    sent_count,
)


def test_request_records_delivered_message(db, notifier, gateway):
    athlete_id = make_athlete()
    log_id = notifier.request(athlete_id, MessageCategory.CHECK_IN, Channel.SMS, MONDAY, {"first_name": "Alex"})
    with session_scope() as s:
        row = s.get(MessageLog, log_id)
        assert row.category == "CHECK_IN"
        assert row.channel == "SMS"
        assert row.template_id == "check_in-default"
        assert row.external_id == "msg-1"
        assert row.failed_at is None
        assert already_sent(s, athlete_id, "CHECK_IN", MONDAY)
        assert not already_sent(s, athlete_id, MessageCategory.MOTIVATION, MONDAY)
    assert gateway.sent == [(athlete_id, "CHECK_IN", "SMS", {"first_name": "Alex"})]


def test_failed_delivery_is_recorded_not_raised(db):
    athlete_id = make_athlete()
    notifier = Notifier(RecordingGateway(fail=True))
    log_id = notifier.request(athlete_id, "RECOVERY_TIP", "SMS", MONDAY)
    with session_scope() as s:
        row = s.get(MessageLog, log_id)
        assert row.failed_at is not None
        assert row.failure_reason == "gateway down"
        assert row.external_id is None
        assert sent_count(s, athlete_id, MONDAY) == 1


def test_request_once_per_category_and_day(db, notifier, gateway):
    athlete_id = make_athlete()
    assert notifier.request_once(athlete_id, "MOTIVATION", "SMS", MONDAY) is not None
    assert notifier.request_once(athlete_id, "MOTIVATION", "SMS", MONDAY) is None
    assert notifier.request_once(athlete_id, "MOTIVATION", "SMS", MONDAY + dt.timedelta(days=1)) is not None
    assert len(gateway.sent) == 2


def test_unknown_category_rejected(db, notifier):
    with pytest.raises(ValueError):
        notifier.request(1, "NEWSLETTER", "SMS", MONDAY)


def test_http_gateway_posts_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(202, json={"id": "ext-42"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    gateway = HttpMessageGateway("https://notify.test/messages", client=client)
    assert gateway.request_message(7, "ESCALATION", "EMAIL", {"escalation_level": 3}) == "ext-42"
    assert seen["url"] == "https://notify.test/messages"
    assert seen["body"] == {
        "athlete_id": 7,
        "category": "ESCALATION",
        "channel": "EMAIL",
        "context": {"escalation_level": 3},
    }


def test_http_gateway_raises_on_error_status():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    gateway = HttpMessageGateway("https://notify.test/messages", client=client)
    with pytest.raises(httpx.HTTPStatusError):
        gateway.request_message(7, "SYSTEM", "SMS", {})


def test_default_gateway_follows_settings(monkeypatch):
    monkeypatch.delenv("NOTIFY_URL", raising=False)
    get_settings.cache_clear()
    assert isinstance(default_gateway(), LogOnlyGateway)

    monkeypatch.setenv("NOTIFY_URL", "https://notify.test/messages")
    get_settings.cache_clear()
    gateway = default_gateway()
    assert isinstance(gateway, HttpMessageGateway)
    assert gateway.url == "https://notify.test/messages"
    get_settings.cache_clear()


def test_log_only_gateway_returns_local_id():
    assert LogOnlyGateway().request_message(1, "SYSTEM", "SMS", {}).startswith("local-")
