"""Tests for the HTTP surface."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import MONDAY, make_athlete, make_plan
from api.main import create_app
from coach.services.escalation import raise_escalation_if_needed


@pytest.fixture
def client(db):
    with TestClient(create_app()) as c:
        yield c


def test_health_reports_env_and_request_id(client):
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["env"] == "test"
    assert resp.headers["X-Request-ID"] == "req-123"


def test_generate_initial_and_next_week(client):
    athlete_id = make_athlete(days=4)
    first = client.post(f"/api/v1/athletes/{athlete_id}/plans")
    assert first.status_code == 201
    assert first.json()["session_count"] == 4

    nxt = client.post(f"/api/v1/athletes/{athlete_id}/plans/next", json={"start": "2030-01-07"})
    assert nxt.status_code == 201
    assert nxt.json()["plan_id"] != first.json()["plan_id"]


def test_plan_for_unknown_athlete_is_404(client):
    resp = client.post("/api/v1/athletes/999/plans")
    assert resp.status_code == 404
    assert "999" in resp.json()["detail"]


def test_checkin_returns_flags(client):
    athlete_id = make_athlete()
    resp = client.post(
        f"/api/v1/athletes/{athlete_id}/checkins",
        json={"day": MONDAY.isoformat(), "fatigue_score": 85, "sleep_quality": 2},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["flagged"] is True
    assert body["flags"] == ["high_fatigue", "low_sleep"]
    assert body["metric_date"] == MONDAY.isoformat()


@pytest.mark.parametrize("payload", [{}, {"notes": "tired"}, {"perceived_energy": 11}, {"sleep_score": -1}])
def test_checkin_validation(client, payload):
    athlete_id = make_athlete()
    assert client.post(f"/api/v1/athletes/{athlete_id}/checkins", json=payload).status_code == 422


def test_checkin_unknown_athlete(client):
    assert client.post("/api/v1/athletes/999/checkins", json={"perceived_energy": 5}).status_code == 404


def test_travel_week(client):
    athlete_id = make_athlete()
    assert client.post(f"/api/v1/athletes/{athlete_id}/travel-week").status_code == 404

    client.post(f"/api/v1/athletes/{athlete_id}/plans")
    first = client.post(f"/api/v1/athletes/{athlete_id}/travel-week")
    assert first.status_code == 200
    assert first.json()["applied"] is True
    assert first.json()["trigger"] == "travel_week"

    second = client.post(f"/api/v1/athletes/{athlete_id}/travel-week")
    assert second.json() == {
        "applied": False,
        "log_id": None,
        "plan_id": None,
        "trigger": None,
        "adjustment_type": None,
        "affected_session_ids": [],
    }


def test_session_status_transitions(client):
    athlete_id = make_athlete()
    _, (scheduled_id, done_id) = make_plan(athlete_id, MONDAY, [(0, "HIIT", "SCHEDULED"), (1, "HIIT", "COMPLETED")])

    ok = client.post(f"/api/v1/sessions/{scheduled_id}/status", json={"status": "COMPLETED", "athlete_notes": "felt good"})
    assert ok.status_code == 200
    assert ok.json()["status"] == "COMPLETED"
    assert ok.json()["completed_at"] is not None

    conflict = client.post(f"/api/v1/sessions/{done_id}/status", json={"status": "MISSED"})
    assert conflict.status_code == 409

    assert client.post("/api/v1/sessions/999/status", json={"status": "MISSED"}).status_code == 404
    assert client.post(f"/api/v1/sessions/{scheduled_id}/status", json={"status": "PAUSED"}).status_code == 422


def test_admin_review(client):
    athlete_id = make_athlete()
    resp = client.post(f"/api/v1/admin/athletes/{athlete_id}/review", params={"window": "morning"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["athlete_id"] == athlete_id
    assert body["window"] == "morning"
    assert "CHECK_IN" in body["messages"]

    assert client.post("/api/v1/admin/athletes/999/review").status_code == 404
    assert client.post(f"/api/v1/admin/athletes/{athlete_id}/review", params={"window": "noon"}).status_code == 422


def test_escalations_listed_and_resolved(client):
    athlete_id = make_athlete()
    make_plan(athlete_id, MONDAY, [(0, "HIIT", "MISSED"), (1, "HIIT", "MISSED"), (2, "HIIT", "MISSED")])
    outcome = raise_escalation_if_needed(athlete_id, MONDAY.replace(day=15))

    listed = client.get(f"/api/v1/athletes/{athlete_id}/escalations").json()
    assert [e["id"] for e in listed] == [outcome.event_id]
    assert listed[0]["escalation_level"] == 1

    resolved = client.post(f"/api/v1/escalations/{outcome.event_id}/resolve", json={"resolution": "Spoke on the phone"})
    assert resolved.status_code == 200
    assert resolved.json()["resolution"] == "Spoke on the phone"
    assert resolved.json()["resolved_at"] is not None

    assert client.post("/api/v1/escalations/999/resolve", json={"resolution": "x"}).status_code == 404
    assert client.post(f"/api/v1/escalations/{outcome.event_id}/resolve", json={"resolution": ""}).status_code == 422


def test_adherence_and_trend(client):
    athlete_id = make_athlete()
    assert client.get(f"/api/v1/athletes/{athlete_id}/adherence").json() == []
    assert client.get(f"/api/v1/athletes/{athlete_id}/adherence", params={"weeks": 0}).status_code == 422
    trend = client.get(f"/api/v1/athletes/{athlete_id}/readiness/trend")
    assert trend.status_code == 200
    assert trend.json()["trend"] == "stable"
    assert client.get("/api/v1/athletes/999/readiness/trend").status_code == 404
