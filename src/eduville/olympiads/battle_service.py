"""NPC olympiad battles paid for with olympiad energy."""

from __future__ import annotations

import logging
import math
import random
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from eduville.characters.drops import OLYMPIAD_RARITY_WEIGHTS, describe_drop, drop_random_item
from eduville.characters.service import (
    announce_level_up,
    credit_cash,
    get_character,
    get_equipment_bonuses,
    grant_character_xp,
)
from eduville.clock import resolve_now
from eduville.config import get_settings
from eduville.db.models import CharacterSubject, OlympiadType
from eduville.errors import NotFoundError, PreconditionFailedError, conflict_on_stale_write
from eduville.progression.energy import olympiad_pool, regen_pool, spend_pool
from eduville.progression.requirements import ClauseResult

if TYPE_CHECKING:
    import redis.asyncio as redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

SCORE_PER_LEVEL = 10
SWING_MIN = -15
SWING_MAX = 14


def effective_level(character_level: int, subject_levels: dict[str, int], subject_id: str | None) -> int:
    """Average of character level and the olympiad's subject level (or the mean subject level)."""
    if subject_id is not None:
        if subject_id not in subject_levels:
            return character_level
        return math.floor((character_level + subject_levels[subject_id]) / 2)
    if not subject_levels:
        return character_level
    avg = sum(subject_levels.values()) / len(subject_levels)
    return math.floor((character_level + avg) / 2)


def battle_score(level: int, swing: int, bonus: int = 0) -> int:
    return max(0, level * SCORE_PER_LEVEL + swing + bonus)


@conflict_on_stale_write
async def list_olympiads(db: AsyncSession, character_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Olympiad catalogue with unlock/affordability flags and the regenerated energy."""
    now = resolve_now(now)
    character = await get_character(db, character_id)
    energy = regen_pool(character, olympiad_pool(get_settings()), now)
    await db.commit()

    types = (
        await db.execute(select(OlympiadType).order_by(OlympiadType.required_character_level, OlympiadType.name))
    ).scalars().all()
    return {
        "olympiad_energy": energy,
        "olympiad_energy_max": character.olympiad_energy_max,
        "olympiads": [
            {
                "id": ot.id,
                "name": ot.name,
                "difficulty": ot.difficulty,
                "subject_id": ot.subject_id,
                "energy_cost": ot.energy_cost,
                "required_level": ot.required_character_level,
                "is_unlocked": character.level >= ot.required_character_level,
                "can_afford": energy >= ot.energy_cost,
                "rewards": ot.rewards,
            }
            for ot in types
        ],
    }


@conflict_on_stale_write
async def battle(
    db: AsyncSession,
    character_id: int,
    olympiad_id: str,
    redis_client: redis.Redis | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Fight an NPC of random level. Energy is spent win or lose; rewards only on a win."""
    now = resolve_now(now)
    rng = rng or random.Random()

    character = await get_character(db, character_id)
    olympiad = await db.get(OlympiadType, olympiad_id)
    if olympiad is None:
        msg = "Olympiad not found"
        raise NotFoundError(msg, olympiad_id=olympiad_id)

    if character.level < olympiad.required_character_level:
        raise PreconditionFailedError(
            f"Requires character level {olympiad.required_character_level}",
            unmet=[
                ClauseResult(
                    kind="character_level",
                    met=False,
                    current=character.level,
                    required=olympiad.required_character_level,
                    label="character level",
                )
            ],
        )

    energy_left = spend_pool(character, olympiad_pool(get_settings()), olympiad.energy_cost, now)

    levels = await db.execute(
        select(CharacterSubject.subject_id, CharacterSubject.level).where(
            CharacterSubject.character_id == character.id
        )
    )
    player_level = effective_level(character.level, {r.subject_id: r.level for r in levels}, olympiad.subject_id)
    bonuses = await get_equipment_bonuses(db, character.id)

    npc_level = rng.randint(olympiad.npc_level_min, olympiad.npc_level_max)
    player_score = battle_score(player_level, rng.randint(SWING_MIN, SWING_MAX), bonuses.grade_bonus)
    npc_score = battle_score(npc_level, rng.randint(SWING_MIN, SWING_MAX))
    won = player_score > npc_score

    rewards: dict[str, Any] | None = None
    levels_gained = 0
    if won:
        cfg = olympiad.rewards
        rewards = {
            "cash": rng.randint(cfg["cash_min"], cfg["cash_max"]),
            "xp": rng.randint(cfg["xp_min"], cfg["xp_max"]),
        }
        credit_cash(character, rewards["cash"])
        levels_gained = grant_character_xp(character, rewards["xp"]).levels_gained
        dropped = None
        if rng.random() < cfg.get("item_chance", 0):
            weights = OLYMPIAD_RARITY_WEIGHTS.get(olympiad.difficulty, OLYMPIAD_RARITY_WEIGHTS["school"])
            dropped = await drop_random_item(db, character.id, weights, rng)
        rewards["item_drop"] = describe_drop(dropped)

    await db.commit()
    await announce_level_up(redis_client, character, levels_gained)

    logger.info(
        "Character %d %s olympiad %s (%d vs %d)",
        character.id, "won" if won else "lost", olympiad.id, player_score, npc_score,
    )
    return {
        "won": won,
        "player_score": player_score,
        "npc_score": npc_score,
        "npc_level": npc_level,
        "rewards": rewards,
        "olympiad_energy": energy_left,
        "level": character.level,
    }
