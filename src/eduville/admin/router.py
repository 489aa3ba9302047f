"""Support endpoints. Answer 404 unless admin tooling is enabled."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from eduville.admin.flags import DebugFlags
from eduville.admin.schemas import (
    CooldownToggleResponse,
    EnergyRenewedResponse,
    EngineConfigResponse,
    FinalizeResponse,
    GrantedGradeResponse,
    GrantGradeRequest,
    TestEventRequest,
    TestEventResponse,
)
from eduville.admin.service import create_test_event, grant_grade, renew_energy, reset_account
from eduville.config import get_settings
from eduville.database import get_session
from eduville.dependencies import get_debug_flags, require_admin
from eduville.olympiads.weekly_service import finalize_due_events
from eduville.redis_client import get_redis

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.post("/cooldown/toggle", response_model=CooldownToggleResponse)
async def toggle_cooldown(flags: DebugFlags = Depends(get_debug_flags)):
    return CooldownToggleResponse(cooldown_disabled=flags.toggle_cooldown())


@router.get("/config", response_model=EngineConfigResponse)
async def get_engine_config(flags: DebugFlags = Depends(get_debug_flags)):
    settings = get_settings()
    return EngineConfigResponse(
        cooldown_disabled=flags.cooldown_disabled,
        study_cooldown_ms=settings.study_cooldown_ms,
        study_clicks_per_grade=settings.study_clicks_per_grade,
        study_energy_cost=settings.study_energy_cost,
        market_fee_percent=settings.market_fee_percent,
        weekly_event_duration_minutes=settings.weekly_event_duration_minutes,
    )


@router.post("/characters/{character_id}/energy", response_model=EnergyRenewedResponse)
async def renew_character_energy(character_id: int, db: AsyncSession = Depends(get_session)):
    return await renew_energy(db, character_id)


@router.post("/characters/{character_id}/grades", response_model=GrantedGradeResponse, status_code=201)
async def grant_character_grade(
    character_id: int,
    body: GrantGradeRequest,
    db: AsyncSession = Depends(get_session),
):
    try:
        grade = await grant_grade(db, character_id, body.subject_id, score=body.score)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return GrantedGradeResponse(id=grade.id, class_id=grade.class_id, subject_id=grade.subject_id, score=grade.score)


@router.post("/characters/{character_id}/reset", status_code=204)
async def reset_character_account(character_id: int, db: AsyncSession = Depends(get_session)) -> None:
    await reset_account(db, character_id)


@router.post("/weekly/test-event", response_model=TestEventResponse, status_code=201)
async def open_test_event(body: TestEventRequest, db: AsyncSession = Depends(get_session)):
    event = await create_test_event(db, duration_minutes=body.duration_minutes, subject_id=body.subject_id)
    return TestEventResponse(id=event.id, subject_id=event.subject_id, starts_at=event.starts_at, ends_at=event.ends_at)


@router.post("/weekly/finalize", response_model=FinalizeResponse)
async def finalize_weekly(db: AsyncSession = Depends(get_session)):
    """Runs the scheduled finalization now."""
    event = await finalize_due_events(db, redis_client=get_redis())
    return FinalizeResponse(event_id=event.id if event else None, finalized=event is not None)
