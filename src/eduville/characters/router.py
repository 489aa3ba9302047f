"""Characters, grades and inventory API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from eduville.characters.inventory_service import (
    buy_from_npc,
    equip_item,
    get_inventory,
    list_items,
    sell_to_npc,
    unequip_slot,
)
from eduville.characters.schemas import (
    BonusesResponse,
    CharacterResponse,
    CreateCharacterRequest,
    EnergyPoolResponse,
    EquippedItemResponse,
    EquipRequest,
    GradeResponse,
    GradeStatsEntry,
    InventoryEntryResponse,
    InventoryResponse,
    ItemResponse,
    NpcTradeRequest,
    NpcTradeResponse,
    SubjectProgressResponse,
    UpdateSettingsRequest,
)
from eduville.characters.service import (
    create_character,
    get_character,
    get_equipment_bonuses,
    get_equipped_items,
    get_subject_progress,
    grade_stats,
    list_grades,
    regen_and_get,
    set_grade_display_system,
)
from eduville.database import get_session
from eduville.db.models import Character, Item
from eduville.dependencies import get_character_id
from eduville.progression.curves import CHARACTER_CURVE, SUBJECT_CURVE
from eduville.progression.grades import format_grade

router = APIRouter(prefix="/api/v1", tags=["Characters"])


def _item_to_response(item: Item) -> ItemResponse:
    return ItemResponse(
        id=item.id,
        name=item.name,
        description=item.description,
        slot=item.slot,
        rarity=item.rarity,
        stats=item.stats or {},
        is_tradeable=item.is_tradeable,
        npc_sell_price=item.npc_sell_price,
        npc_buy_price=item.npc_buy_price,
    )


async def _equipment(db: AsyncSession, character_id: int) -> list[EquippedItemResponse]:
    return [
        EquippedItemResponse(slot=eq.slot, item_id=item.id, item_name=item.name, stats=item.stats or {})
        for eq, item in await get_equipped_items(db, character_id)
    ]


async def _character_response(db: AsyncSession, character: Character) -> CharacterResponse:
    bonuses = await get_equipment_bonuses(db, character.id)
    subjects = await get_subject_progress(db, character.id)
    return CharacterResponse(
        id=character.id,
        name=character.name,
        level=character.level,
        xp=character.xp,
        xp_to_next=CHARACTER_CURVE.xp_to_next(character.level),
        total_xp=character.total_xp,
        cash=character.cash,
        study_energy=EnergyPoolResponse(
            value=character.study_energy,
            max=character.study_energy_max,
            last_regen=character.study_energy_last_regen,
        ),
        olympiad_energy=EnergyPoolResponse(
            value=character.olympiad_energy,
            max=character.olympiad_energy_max,
            last_regen=character.olympiad_energy_last_regen,
        ),
        current_location_id=character.current_location_id,
        current_class_id=character.current_class_id,
        current_specialization_id=character.current_specialization_id,
        total_study_clicks=character.total_study_clicks,
        study_clicks_in_current_class=character.study_clicks_in_current_class,
        grade_display_system=character.grade_display_system,
        subjects=[
            SubjectProgressResponse(
                subject_id=s.subject_id,
                level=s.level,
                current_xp=s.current_xp,
                xp_to_next=SUBJECT_CURVE.xp_to_next(s.level),
            )
            for s in subjects
        ],
        equipment=await _equipment(db, character.id),
        bonuses=BonusesResponse(
            xp_bonus=bonuses.xp_bonus,
            cash_bonus=bonuses.cash_bonus,
            grade_bonus=bonuses.grade_bonus,
        ),
    )


# ── Characters ──


@router.post("/characters", response_model=CharacterResponse, status_code=201)
async def create_character_endpoint(
    body: CreateCharacterRequest,
    db: AsyncSession = Depends(get_session),
) -> CharacterResponse:
    character = await create_character(db, body.name)
    return await _character_response(db, character)


@router.get("/characters/me", response_model=CharacterResponse)
async def get_me(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
) -> CharacterResponse:
    """Character view with both energy pools regenerated."""
    character = await regen_and_get(db, character_id)
    return await _character_response(db, character)


@router.patch("/characters/me/settings", response_model=CharacterResponse)
async def update_settings(
    body: UpdateSettingsRequest,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
) -> CharacterResponse:
    try:
        character = await set_grade_display_system(db, character_id, body.grade_display_system)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return await _character_response(db, character)


# ── Grades ──


@router.get("/characters/me/grades", response_model=list[GradeResponse])
async def get_my_grades(
    class_id: str | None = Query(None),
    subject_id: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
) -> list[GradeResponse]:
    character = await get_character(db, character_id)
    grades = await list_grades(db, character.id, class_id=class_id, subject_id=subject_id, limit=limit)
    return [
        GradeResponse(
            id=g.id,
            class_id=g.class_id,
            subject_id=g.subject_id,
            score=g.score,
            display=format_grade(g.score, character.grade_display_system),
            created_at=g.created_at,
        )
        for g in grades
    ]


@router.get("/characters/me/grades/stats", response_model=list[GradeStatsEntry])
async def get_my_grade_stats(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
) -> list[GradeStatsEntry]:
    await get_character(db, character_id)
    return [GradeStatsEntry(**entry) for entry in await grade_stats(db, character_id)]


# ── Items & inventory ──


@router.get("/items", response_model=list[ItemResponse])
async def get_items(db: AsyncSession = Depends(get_session)) -> list[ItemResponse]:
    return [_item_to_response(item) for item in await list_items(db)]


@router.get("/inventory", response_model=InventoryResponse)
async def get_my_inventory(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
) -> InventoryResponse:
    await get_character(db, character_id)
    entries = await get_inventory(db, character_id)
    return InventoryResponse(
        items=[InventoryEntryResponse(item=_item_to_response(item), quantity=entry.quantity) for entry, item in entries],
        equipment=await _equipment(db, character_id),
    )


@router.post("/inventory/equip", response_model=InventoryResponse)
async def equip(
    body: EquipRequest,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
) -> InventoryResponse:
    await equip_item(db, character_id, body.item_id)
    return await get_my_inventory(character_id, db)


@router.post("/inventory/unequip/{slot}", response_model=InventoryResponse)
async def unequip(
    slot: str,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
) -> InventoryResponse:
    await unequip_slot(db, character_id, slot)
    return await get_my_inventory(character_id, db)


@router.post("/inventory/npc/buy", response_model=NpcTradeResponse)
async def npc_buy(
    body: NpcTradeRequest,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
) -> NpcTradeResponse:
    cost = await buy_from_npc(db, character_id, body.item_id, body.quantity)
    character = await get_character(db, character_id)
    return NpcTradeResponse(item_id=body.item_id, quantity=body.quantity, amount=cost, cash=character.cash)


@router.post("/inventory/npc/sell", response_model=NpcTradeResponse)
async def npc_sell(
    body: NpcTradeRequest,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
) -> NpcTradeResponse:
    value = await sell_to_npc(db, character_id, body.item_id, body.quantity)
    character = await get_character(db, character_id)
    return NpcTradeResponse(item_id=body.item_id, quantity=body.quantity, amount=value, cash=character.cash)
