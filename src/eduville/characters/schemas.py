"""Pydantic schemas for characters, grades and inventory."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CreateCharacterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=64)


class UpdateSettingsRequest(BaseModel):
    grade_display_system: Literal["letter", "five_point", "twelve_point"]


# --- Character view ---


class EnergyPoolResponse(BaseModel):
    value: int
    max: int
    last_regen: datetime


class SubjectProgressResponse(BaseModel):
    subject_id: str
    level: int
    current_xp: int
    xp_to_next: int


class EquippedItemResponse(BaseModel):
    slot: str
    item_id: str
    item_name: str
    stats: dict[str, int]


class BonusesResponse(BaseModel):
    xp_bonus: int
    cash_bonus: int
    grade_bonus: int


class CharacterResponse(BaseModel):
    id: int
    name: str
    level: int
    xp: int
    xp_to_next: int
    total_xp: int
    cash: int
    study_energy: EnergyPoolResponse
    olympiad_energy: EnergyPoolResponse
    current_location_id: str
    current_class_id: str | None
    current_specialization_id: str | None
    total_study_clicks: int
    study_clicks_in_current_class: int
    grade_display_system: str
    subjects: list[SubjectProgressResponse]
    equipment: list[EquippedItemResponse]
    bonuses: BonusesResponse


# --- Grades ---


class GradeResponse(BaseModel):
    id: int
    class_id: str
    subject_id: str
    score: int
    display: str
    created_at: datetime


class GradeStatsEntry(BaseModel):
    subject_id: str
    count: int
    average: float
    best: int


# --- Items / inventory ---


class ItemResponse(BaseModel):
    id: str
    name: str
    description: str
    slot: str
    rarity: str
    stats: dict[str, int]
    is_tradeable: bool
    npc_sell_price: int | None
    npc_buy_price: int | None


class InventoryEntryResponse(BaseModel):
    item: ItemResponse
    quantity: int


class InventoryResponse(BaseModel):
    items: list[InventoryEntryResponse]
    equipment: list[EquippedItemResponse]


class EquipRequest(BaseModel):
    item_id: str


class NpcTradeRequest(BaseModel):
    item_id: str
    quantity: int = Field(default=1, ge=1)


class NpcTradeResponse(BaseModel):
    item_id: str
    quantity: int
    amount: int
    cash: int


class ItemDrop(BaseModel):
    item_id: str
    item_name: str
    rarity: str
