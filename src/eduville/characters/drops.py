"""Random item drops from studying and olympiad wins."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from eduville.characters.inventory_service import add_item
from eduville.db.models import Item

if TYPE_CHECKING:
    import random

    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

# Relative weights; rarities without a seeded item simply yield no drop
STUDY_RARITY_WEIGHTS: dict[str, float] = {
    "common": 60,
    "uncommon": 25,
    "rare": 10,
    "epic": 4,
    "legendary": 0.9,
    "mythic": 0.1,
}

OLYMPIAD_RARITY_WEIGHTS: dict[str, dict[str, float]] = {
    "school": {"common": 70, "uncommon": 25, "rare": 5, "epic": 0, "legendary": 0},
    "district": {"common": 50, "uncommon": 35, "rare": 12, "epic": 3, "legendary": 0},
    "city": {"common": 30, "uncommon": 40, "rare": 20, "epic": 8, "legendary": 2},
    "national": {"common": 15, "uncommon": 30, "rare": 30, "epic": 18, "legendary": 7},
}


def roll_rarity(weights: dict[str, float], rng: random.Random) -> str:
    rarities = [rarity for rarity, weight in weights.items() if weight > 0]
    return rng.choices(rarities, weights=[weights[r] for r in rarities], k=1)[0]


async def drop_random_item(
    db: AsyncSession,
    character_id: int,
    weights: dict[str, float],
    rng: random.Random,
) -> Item | None:
    """Pick a rarity, then a random item of that rarity, and put one in the inventory.

    Does not commit. Returns ``None`` when no item of the rolled rarity exists.
    """
    rarity = roll_rarity(weights, rng)
    result = await db.execute(select(Item).where(Item.rarity == rarity).order_by(Item.id))
    candidates = list(result.scalars().all())
    if not candidates:
        return None

    item = rng.choice(candidates)
    await add_item(db, character_id, item.id)
    logger.info("item_dropped", character_id=character_id, item_id=item.id, rarity=rarity)
    return item


def describe_drop(item: Item | None) -> dict[str, Any] | None:
    if item is None:
        return None
    return {"item_id": item.id, "item_name": item.name, "rarity": item.rarity}
