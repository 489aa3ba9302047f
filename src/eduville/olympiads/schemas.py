"""Pydantic schemas for NPC olympiads and the weekly ranked olympiad."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from eduville.characters.schemas import ItemDrop


class OlympiadEntry(BaseModel):
    id: str
    name: str
    difficulty: str
    subject_id: str | None
    energy_cost: int
    required_level: int
    is_unlocked: bool
    can_afford: bool
    rewards: dict[str, Any]


class OlympiadListResponse(BaseModel):
    olympiad_energy: int
    olympiad_energy_max: int
    olympiads: list[OlympiadEntry]


class BattleRewards(BaseModel):
    cash: int
    xp: int
    item_drop: ItemDrop | None = None


class BattleResponse(BaseModel):
    won: bool
    player_score: int
    npc_score: int
    npc_level: int
    rewards: BattleRewards | None
    olympiad_energy: int
    level: int


# --- Weekly ---


class WeeklyEventResponse(BaseModel):
    id: int
    subject_id: str | None
    starts_at: datetime
    ends_at: datetime
    reward_tiers: dict[str, Any]
    status: str
    finalized_at: datetime | None
    total_participants: int


class ParticipationResponse(BaseModel):
    score: int
    rank: int | None
    rewards_claimed: bool


class ActiveEventResponse(BaseModel):
    event: WeeklyEventResponse | None
    participation: ParticipationResponse | None


class JoinResponse(BaseModel):
    event_id: int
    score: int
    joined_at: datetime


class MyRankResponse(BaseModel):
    joined: bool
    score: int | None = None
    rank: int | None = None
    total: int | None = None
    percentile: float | None = None
    rewards_claimed: bool | None = None


class LeaderboardEntry(BaseModel):
    rank: int
    character_id: int
    character_name: str
    character_level: int
    score: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]
    total: int
    has_more: bool


class ClaimResponse(BaseModel):
    tier: str
    rank: int
    total: int
    percentile: float
    cash: int
    xp: int
    level: int
