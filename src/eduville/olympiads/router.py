"""Olympiad API: NPC battles and the weekly ranked olympiad."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from eduville.database import get_session
from eduville.dependencies import get_character_id
from eduville.olympiads.battle_service import battle, list_olympiads
from eduville.olympiads.schemas import (
    ActiveEventResponse,
    BattleResponse,
    ClaimResponse,
    JoinResponse,
    LeaderboardResponse,
    MyRankResponse,
    OlympiadListResponse,
)
from eduville.olympiads.weekly_service import (
    claim_rewards,
    get_active_event,
    get_event,
    get_leaderboard,
    get_my_rank,
    join_event,
)
from eduville.redis_client import get_redis

router = APIRouter(prefix="/api/v1/olympiads", tags=["Olympiads"])


# ── NPC battles ──


@router.get("", response_model=OlympiadListResponse)
async def get_olympiads(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await list_olympiads(db, character_id)


@router.post("/{olympiad_id}/battle", response_model=BattleResponse)
async def fight(
    olympiad_id: str,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await battle(db, character_id, olympiad_id, redis_client=get_redis())


# ── Weekly olympiad ──


@router.get("/weekly/active", response_model=ActiveEventResponse)
async def get_weekly_active(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    active = await get_active_event(db, character_id)
    if active is None:
        return ActiveEventResponse(event=None, participation=None)
    return active


@router.post("/weekly/{event_id}/join", response_model=JoinResponse, status_code=201)
async def join_weekly(
    event_id: int,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    participation = await join_event(db, character_id, event_id)
    return JoinResponse(event_id=event_id, score=participation.score, joined_at=participation.joined_at)


@router.get("/weekly/{event_id}/me", response_model=MyRankResponse)
async def get_weekly_rank(
    event_id: int,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    await get_event(db, event_id)
    return await get_my_rank(db, character_id, event_id)


@router.get("/weekly/{event_id}/leaderboard", response_model=LeaderboardResponse)
async def get_weekly_leaderboard(
    event_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
):
    await get_event(db, event_id)
    return await get_leaderboard(db, event_id, limit=limit, offset=offset)


@router.post("/weekly/{event_id}/claim", response_model=ClaimResponse)
async def claim_weekly(
    event_id: int,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    """Pays the participant's reward tier once."""
    return await claim_rewards(db, character_id, event_id, redis_client=get_redis())
