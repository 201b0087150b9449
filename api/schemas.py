from __future__ import annotations

from datetime import date as dt_date
from datetime import datetime as dt_datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class HealthOut(BaseModel):
    status: str = "ok"
    env: str
    query_count: int = 0
    slow_queries: int = 0
    query_p95_ms: float = 0.0


class PlanResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    plan_id: int
    session_count: int


class NextWeekInput(BaseModel):
    start: Optional[dt_date] = None


class AdjustmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    applied: bool
    log_id: Optional[int] = None
    plan_id: Optional[int] = None
    trigger: Optional[str] = None
    adjustment_type: Optional[str] = None
    affected_session_ids: list[int] = Field(default_factory=list)


class CheckInInput(BaseModel):
    day: Optional[dt_date] = None
    source: str = "MANUAL"
    perceived_energy: Optional[int] = Field(default=None, ge=1, le=10)
    perceived_soreness: Optional[int] = Field(default=None, ge=1, le=10)
    perceived_mood: Optional[int] = Field(default=None, ge=1, le=10)
    sleep_quality: Optional[int] = Field(default=None, ge=1, le=10)
    sleep_duration_min: Optional[int] = Field(default=None, ge=0, le=1440)
    sleep_score: Optional[int] = Field(default=None, ge=0, le=100)
    hrv_ms: Optional[float] = Field(default=None, ge=0)
    fatigue_score: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _has_reading(self):
        readings = self.model_dump(exclude={"day", "source", "notes"}, exclude_none=True)
        if not readings:
            raise ValueError("at least one readiness value is required")
        return self

    def readings(self) -> dict:
        return self.model_dump(exclude={"day", "source"}, exclude_none=True)


class CheckInOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    metric_date: dt_date
    flagged: bool
    flags: list[str]


class SessionStatusInput(BaseModel):
    status: Literal["COMPLETED", "MISSED", "SKIPPED"]
    athlete_notes: Optional[str] = None


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plan_id: int
    scheduled_date: dt_date
    scheduled_order: int
    session_type: str
    title: str
    status: str
    prescribed_duration: int
    prescribed_tss: int
    completed_at: Optional[dt_datetime] = None


class ReviewOutcomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    athlete_id: int
    window: str
    local_date: dt_date
    missed: int
    completed: int
    adjustments: list[str]
    escalation_level: Optional[int] = None
    rolled_over: bool
    messages: list[str]
    errors: list[str]
    duration_ms: float


class AdherenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_start: dt_date
    scheduled_count: int
    completed_count: int
    missed_count: int
    skipped_count: int
    adherence_rate: float
    consecutive_missed: int
    escalation_triggered: bool


class EscalationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    athlete_id: int
    trigger_reason: str
    escalation_level: int
    created_on: dt_date
    message_sent: bool
    resolved_at: Optional[dt_datetime] = None
    resolution: Optional[str] = None


class ResolveInput(BaseModel):
    resolution: str = Field(min_length=1, max_length=2000)


class ReadinessTrendOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    avg_energy: float
    avg_soreness: float
    avg_mood: float
    avg_sleep: float
    trend: str
