from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Query, status

from api.schemas import (
    AdherenceOut,
    AdjustmentOut,
    CheckInInput,
    CheckInOut,
    EscalationOut,
    HealthOut,
    NextWeekInput,
    PlanResultOut,
    ReadinessTrendOut,
    ResolveInput,
    ReviewOutcomeOut,
    SessionOut,
    SessionStatusInput,
)
from coach.config import get_settings
from coach.db import get_query_stats
from coach.services.adherence import adherence_history
from coach.services.daily_review import review_athlete
from coach.services.escalation import escalation_history, resolve_escalation
from coach.services.plan_adjuster import adjust_travel_week
from coach.services.plans import generate_initial_plan, generate_next_week, update_session_status
from coach.services.readiness import readiness_trend, record_checkin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1")


@router.get("/health", response_model=HealthOut, tags=["ops"])
def health():
    stats = get_query_stats()
    return HealthOut(
        env=get_settings().app_env, query_count=stats.total, slow_queries=stats.slow, query_p95_ms=stats.p95_ms
    )


@router.post("/admin/athletes/{athlete_id}/review", response_model=ReviewOutcomeOut, tags=["admin"])
def review_now(athlete_id: int, window: Optional[Literal["midnight", "morning"]] = Query(None)):
    outcome = review_athlete(athlete_id, window)
    logger.info("Manual review requested", extra={"ctx_athlete_id": athlete_id, "ctx_window": outcome.window})
    return outcome


@router.post(
    "/athletes/{athlete_id}/plans",
    response_model=PlanResultOut,
    status_code=status.HTTP_201_CREATED,
    tags=["plans"],
)
def create_initial_plan(athlete_id: int):
    return generate_initial_plan(athlete_id)


@router.post(
    "/athletes/{athlete_id}/plans/next",
    response_model=PlanResultOut,
    status_code=status.HTTP_201_CREATED,
    tags=["plans"],
)
def create_next_week(athlete_id: int, payload: Optional[NextWeekInput] = None):
    return generate_next_week(athlete_id, start=payload.start if payload else None)


@router.post("/athletes/{athlete_id}/travel-week", response_model=AdjustmentOut, tags=["plans"])
def travel_week(athlete_id: int):
    result = adjust_travel_week(athlete_id)
    if result is None:
        return AdjustmentOut(applied=False)
    return AdjustmentOut(
        applied=True,
        log_id=result.log_id,
        plan_id=result.plan_id,
        trigger=result.trigger,
        adjustment_type=result.adjustment_type,
        affected_session_ids=result.affected_session_ids,
    )


@router.post("/sessions/{session_id}/status", response_model=SessionOut, tags=["plans"])
def set_session_status(session_id: int, payload: SessionStatusInput):
    return update_session_status(session_id, payload.status, payload.athlete_notes)


@router.post(
    "/athletes/{athlete_id}/checkins",
    response_model=CheckInOut,
    status_code=status.HTTP_201_CREATED,
    tags=["readiness"],
)
def submit_checkin(athlete_id: int, payload: CheckInInput):
    return record_checkin(athlete_id, payload.readings(), day=payload.day, source=payload.source)


@router.get("/athletes/{athlete_id}/readiness/trend", response_model=ReadinessTrendOut, tags=["readiness"])
def get_readiness_trend(athlete_id: int):
    return readiness_trend(athlete_id)


@router.get("/athletes/{athlete_id}/adherence", response_model=list[AdherenceOut], tags=["adherence"])
def get_adherence(athlete_id: int, weeks: int = Query(8, ge=1, le=52)):
    return adherence_history(athlete_id, weeks=weeks)


@router.get("/athletes/{athlete_id}/escalations", response_model=list[EscalationOut], tags=["adherence"])
def get_escalations(athlete_id: int, limit: int = Query(20, ge=1, le=100)):
    return escalation_history(athlete_id, limit=limit)


@router.post("/escalations/{event_id}/resolve", response_model=EscalationOut, tags=["adherence"])
def resolve(event_id: int, payload: ResolveInput):
    return resolve_escalation(event_id, payload.resolution)
