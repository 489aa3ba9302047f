"""Progression API: study, class/location advance, specializations."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eduville.admin.flags import DebugFlags
from eduville.database import get_session
from eduville.dependencies import get_character_id, get_debug_flags
from eduville.progression.schemas import (
    AdvanceLocationResponse,
    ClassPreviewResponse,
    CompleteClassResponse,
    LocationPreviewResponse,
    ProgressResponse,
    SelectSpecializationResponse,
    SpecializationEntry,
    StudyResponse,
)
from eduville.progression.service import (
    advance_location,
    class_preview,
    complete_class,
    get_progress,
    list_specializations,
    location_preview,
    select_specialization,
)
from eduville.progression.study_service import study
from eduville.redis_client import get_redis

router = APIRouter(prefix="/api/v1", tags=["Progression"])


@router.post("/study", response_model=StudyResponse)
async def study_click(
    character_id: int = Depends(get_character_id),
    flags: DebugFlags = Depends(get_debug_flags),
    db: AsyncSession = Depends(get_session),
):
    """One study click."""
    return await study(db, character_id, flags=flags, redis_client=get_redis())


@router.get("/progress", response_model=ProgressResponse)
async def get_my_progress(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await get_progress(db, character_id)


@router.get("/progress/class", response_model=ClassPreviewResponse)
async def preview_class(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await class_preview(db, character_id)


@router.post("/progress/class/complete", response_model=CompleteClassResponse)
async def complete_current_class(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await complete_class(db, character_id)


@router.get("/progress/location", response_model=LocationPreviewResponse)
async def preview_location(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await location_preview(db, character_id)


@router.post("/progress/location/advance", response_model=AdvanceLocationResponse)
async def advance_to_next_location(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await advance_location(db, character_id)


@router.get("/specializations", response_model=list[SpecializationEntry])
async def get_specializations(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await list_specializations(db, character_id)


@router.post("/specializations/{specialization_id}/select", response_model=SelectSpecializationResponse)
async def choose_specialization(
    specialization_id: str,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    """Irrevocable: a character can specialize once."""
    return await select_specialization(db, character_id, specialization_id)
