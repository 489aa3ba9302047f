"""Character lifecycle plus the currency/XP mutation primitives shared by every subsystem."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update

from eduville.clock import resolve_now
from eduville.config import get_settings
from eduville.db.models import (
    Character,
    CharacterSubject,
    EquippedItem,
    Grade,
    InventoryEntry,
    Item,
    Location,
    LocationProgress,
    MarketListing,
    SchoolClass,
    Subject,
)
from eduville.errors import ConflictError, NotFoundError, PreconditionFailedError, conflict_on_stale_write
from eduville.progression.curves import CHARACTER_CURVE, LevelUpResult, apply_xp_gain
from eduville.progression.energy import olympiad_pool, regen_pool, study_pool
from eduville.progression.grades import GRADE_DISPLAY_SYSTEMS
from eduville.progression.requirements import ClauseResult
from eduville.redis_client import publish

if TYPE_CHECKING:
    import redis.asyncio as redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EquipmentBonuses:
    """Summed percentage/flat bonuses from every equipped item."""

    xp_bonus: int = 0
    cash_bonus: int = 0
    grade_bonus: int = 0


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


async def get_character(db: AsyncSession, character_id: int) -> Character:
    """Load a character or raise NotFoundError."""
    character = await db.get(Character, character_id)
    if character is None:
        msg = "Character not found"
        raise NotFoundError(msg, character_id=character_id)
    return character


@conflict_on_stale_write
async def regen_and_get(db: AsyncSession, character_id: int, now: datetime | None = None) -> Character:
    """Load a character with both energy pools brought up to date and persisted."""
    now = resolve_now(now)
    settings = get_settings()
    character = await get_character(db, character_id)
    regen_pool(character, study_pool(settings), now)
    regen_pool(character, olympiad_pool(settings), now)
    await db.commit()
    return character


async def get_subject_progress(db: AsyncSession, character_id: int) -> list[CharacterSubject]:
    result = await db.execute(
        select(CharacterSubject)
        .where(CharacterSubject.character_id == character_id)
        .order_by(CharacterSubject.subject_id)
    )
    return list(result.scalars().all())


async def get_equipped_items(db: AsyncSession, character_id: int) -> list[tuple[EquippedItem, Item]]:
    result = await db.execute(
        select(EquippedItem, Item)
        .join(Item, Item.id == EquippedItem.item_id)
        .where(EquippedItem.character_id == character_id)
        .order_by(EquippedItem.slot)
    )
    return [(row[0], row[1]) for row in result.all()]


async def get_equipment_bonuses(db: AsyncSession, character_id: int) -> EquipmentBonuses:
    """Sum the stats of every equipped item."""
    totals: dict[str, int] = defaultdict(int)
    for _, item in await get_equipped_items(db, character_id):
        for stat in ("xp_bonus", "cash_bonus", "grade_bonus"):
            totals[stat] += int((item.stats or {}).get(stat, 0))
    return EquipmentBonuses(**totals)


# ---------------------------------------------------------------------------
# Creation / reset
# ---------------------------------------------------------------------------


async def _starting_position(db: AsyncSession) -> tuple[Location, SchoolClass | None]:
    location = (
        await db.execute(select(Location).order_by(Location.order_index).limit(1))
    ).scalar_one_or_none()
    if location is None:
        msg = "World has no locations"
        raise NotFoundError(msg)

    first_class = (
        await db.execute(
            select(SchoolClass)
            .where(SchoolClass.location_id == location.id)
            .order_by(SchoolClass.grade_number)
            .limit(1)
        )
    ).scalar_one_or_none()
    return location, first_class


async def create_character(db: AsyncSession, name: str, now: datetime | None = None) -> Character:
    """Create a character at the start of the path with a progress row for every subject.

    Raises:
        ConflictError: If the name is already taken.
    """
    now = resolve_now(now)
    settings = get_settings()

    existing = await db.execute(select(Character.id).where(Character.name == name))
    if existing.scalar_one_or_none() is not None:
        msg = "Character name already taken"
        raise ConflictError(msg, name=name)

    location, first_class = await _starting_position(db)
    character = Character(
        name=name,
        level=1,
        xp=0,
        total_xp=0,
        cash=0,
        study_energy=settings.study_energy_max,
        study_energy_max=settings.study_energy_max,
        study_energy_last_regen=now,
        olympiad_energy=settings.olympiad_energy_max,
        olympiad_energy_max=settings.olympiad_energy_max,
        olympiad_energy_last_regen=now,
        current_location_id=location.id,
        current_class_id=first_class.id if first_class else None,
        created_at=now,
    )
    db.add(character)
    await db.flush()

    subject_ids = (await db.execute(select(Subject.id))).scalars().all()
    for subject_id in subject_ids:
        db.add(CharacterSubject(character_id=character.id, subject_id=subject_id, level=1, current_xp=0))
    db.add(LocationProgress(character_id=character.id, location_id=location.id, completion_percent=0))

    await db.commit()
    logger.info("Created character %s (id=%d) at %s", name, character.id, location.id)
    return character


@conflict_on_stale_write
async def reset_character(db: AsyncSession, character_id: int, now: datetime | None = None) -> Character:
    """Wipe all progress and put the character back at the start of the path.

    Market history is kept; open listings are withdrawn without returning items.
    """
    now = resolve_now(now)
    character = await get_character(db, character_id)
    location, first_class = await _starting_position(db)

    for model in (Grade, LocationProgress, InventoryEntry, EquippedItem):
        await db.execute(delete(model).where(model.character_id == character.id))
    await db.execute(
        update(MarketListing)
        .where(MarketListing.seller_id == character.id, MarketListing.is_active.is_(True))
        .values(is_active=False, quantity=0)
    )
    await db.execute(
        update(CharacterSubject)
        .where(CharacterSubject.character_id == character.id)
        .values(level=1, current_xp=0)
    )

    character.level = 1
    character.xp = 0
    character.total_xp = 0
    character.cash = 0
    character.study_energy = character.study_energy_max
    character.study_energy_last_regen = now
    character.olympiad_energy = character.olympiad_energy_max
    character.olympiad_energy_last_regen = now
    character.current_location_id = location.id
    character.current_class_id = first_class.id if first_class else None
    character.current_specialization_id = None
    character.total_study_clicks = 0
    character.study_clicks_in_current_class = 0
    character.last_study_at = None
    db.add(LocationProgress(character_id=character.id, location_id=location.id, completion_percent=0))

    await db.commit()
    logger.info("Reset character id=%d", character.id)
    return character


@conflict_on_stale_write
async def set_grade_display_system(db: AsyncSession, character_id: int, system: str) -> Character:
    if system not in GRADE_DISPLAY_SYSTEMS:
        msg = f"Unknown grade display system: {system}"
        raise ValueError(msg)
    character = await get_character(db, character_id)
    character.grade_display_system = system
    await db.commit()
    return character


# ---------------------------------------------------------------------------
# Mutation primitives (no commit; callers own the transaction)
# ---------------------------------------------------------------------------


def grant_character_xp(character: Character, amount: int) -> LevelUpResult:
    """Run ``amount`` XP through the character curve and record the lifetime total."""
    result = apply_xp_gain(character.level, character.xp, amount, CHARACTER_CURVE)
    character.level = result.level
    character.xp = result.xp
    character.total_xp += amount
    return result


def credit_cash(character: Character, amount: int) -> int:
    if amount < 0:
        msg = "Credit amount cannot be negative"
        raise ValueError(msg)
    character.cash += amount
    return character.cash


def debit_cash(character: Character, amount: int) -> int:
    """Debit cash or raise PreconditionFailedError with the balance deficit."""
    if amount < 0:
        msg = "Debit amount cannot be negative"
        raise ValueError(msg)
    if character.cash < amount:
        raise PreconditionFailedError(
            "Not enough cash",
            unmet=[ClauseResult(kind="balance", met=False, current=character.cash, required=amount, label="cash")],
        )
    character.cash -= amount
    return character.cash


async def announce_level_up(client: redis.Redis | None, character: Character, levels_gained: int) -> None:
    if levels_gained <= 0:
        return
    await publish(
        client,
        "pubsub:level_up",
        {"character_id": character.id, "level": character.level, "levels_gained": levels_gained},
    )


# ---------------------------------------------------------------------------
# Grades
# ---------------------------------------------------------------------------


async def list_grades(
    db: AsyncSession,
    character_id: int,
    class_id: str | None = None,
    subject_id: str | None = None,
    limit: int = 100,
) -> list[Grade]:
    """Most recent grades first."""
    query = select(Grade).where(Grade.character_id == character_id)
    if class_id is not None:
        query = query.where(Grade.class_id == class_id)
    if subject_id is not None:
        query = query.where(Grade.subject_id == subject_id)
    result = await db.execute(query.order_by(Grade.created_at.desc(), Grade.id.desc()).limit(limit))
    return list(result.scalars().all())


async def grade_stats(db: AsyncSession, character_id: int) -> list[dict[str, Any]]:
    """Per-subject grade count, average and best score."""
    result = await db.execute(select(Grade.subject_id, Grade.score).where(Grade.character_id == character_id))
    scores: dict[str, list[int]] = defaultdict(list)
    for row in result:
        scores[row.subject_id].append(row.score)

    return [
        {
            "subject_id": subject_id,
            "count": len(values),
            "average": round(sum(values) / len(values), 1),
            "best": max(values),
        }
        for subject_id, values in sorted(scores.items())
    ]
