"""Pydantic schemas for support tooling."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CooldownToggleResponse(BaseModel):
    cooldown_disabled: bool


class EngineConfigResponse(BaseModel):
    cooldown_disabled: bool
    study_cooldown_ms: int
    study_clicks_per_grade: int
    study_energy_cost: int
    market_fee_percent: int
    weekly_event_duration_minutes: int


class EnergyRenewedResponse(BaseModel):
    study_energy: int
    olympiad_energy: int


class GrantGradeRequest(BaseModel):
    subject_id: str
    score: int | None = Field(default=None, ge=0, le=100)


class GrantedGradeResponse(BaseModel):
    id: int
    class_id: str
    subject_id: str
    score: int


class TestEventRequest(BaseModel):
    duration_minutes: int = Field(default=60, ge=1)
    subject_id: str | None = None


class TestEventResponse(BaseModel):
    id: int
    subject_id: str | None
    starts_at: datetime
    ends_at: datetime


class FinalizeResponse(BaseModel):
    event_id: int | None
    finalized: bool
