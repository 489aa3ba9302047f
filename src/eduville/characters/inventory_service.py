"""Inventory stacks, equipment slots and the fixed-price NPC shop."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from eduville.characters.service import credit_cash, debit_cash, get_character
from eduville.db.models import EquippedItem, InventoryEntry, Item
from eduville.errors import NotFoundError, PreconditionFailedError, conflict_on_stale_write
from eduville.progression.requirements import ClauseResult

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_item(db: AsyncSession, item_id: str) -> Item:
    item = await db.get(Item, item_id)
    if item is None:
        msg = "Item not found"
        raise NotFoundError(msg, item_id=item_id)
    return item


async def list_items(db: AsyncSession) -> list[Item]:
    result = await db.execute(select(Item).order_by(Item.slot, Item.name))
    return list(result.scalars().all())


async def get_inventory(db: AsyncSession, character_id: int) -> list[tuple[InventoryEntry, Item]]:
    result = await db.execute(
        select(InventoryEntry, Item)
        .join(Item, Item.id == InventoryEntry.item_id)
        .where(InventoryEntry.character_id == character_id, InventoryEntry.quantity > 0)
        .order_by(Item.slot, Item.name)
    )
    return [(row[0], row[1]) for row in result.all()]


async def _get_entry(db: AsyncSession, character_id: int, item_id: str) -> InventoryEntry | None:
    result = await db.execute(
        select(InventoryEntry).where(
            InventoryEntry.character_id == character_id,
            InventoryEntry.item_id == item_id,
        )
    )
    return result.scalar_one_or_none()


async def add_item(db: AsyncSession, character_id: int, item_id: str, quantity: int = 1) -> InventoryEntry:
    """Increment a stack, creating it on first use. Does not commit."""
    if quantity <= 0:
        msg = "Quantity must be positive"
        raise ValueError(msg)
    entry = await _get_entry(db, character_id, item_id)
    if entry is None:
        entry = InventoryEntry(character_id=character_id, item_id=item_id, quantity=0)
        db.add(entry)
    entry.quantity += quantity
    await db.flush()
    return entry


async def remove_item(db: AsyncSession, character_id: int, item_id: str, quantity: int = 1) -> int:
    """Decrement a stack. Returns the remaining quantity. Does not commit.

    Raises:
        PreconditionFailedError: If the character owns fewer than ``quantity``.
    """
    if quantity <= 0:
        msg = "Quantity must be positive"
        raise ValueError(msg)
    entry = await _get_entry(db, character_id, item_id)
    owned = entry.quantity if entry else 0
    if entry is None or owned < quantity:
        raise PreconditionFailedError(
            "Not enough items in inventory",
            unmet=[
                ClauseResult(
                    kind="inventory",
                    met=False,
                    current=owned,
                    required=quantity,
                    label=item_id,
                )
            ],
        )

    entry.quantity -= quantity
    if entry.quantity == 0:
        await db.delete(entry)
    await db.flush()
    return owned - quantity


@conflict_on_stale_write
async def equip_item(db: AsyncSession, character_id: int, item_id: str) -> EquippedItem:
    """Move one item from inventory into its slot, returning any previous occupant."""
    await get_character(db, character_id)
    item = await get_item(db, item_id)
    await remove_item(db, character_id, item_id, 1)

    result = await db.execute(
        select(EquippedItem).where(
            EquippedItem.character_id == character_id,
            EquippedItem.slot == item.slot,
        )
    )
    equipped = result.scalar_one_or_none()
    if equipped is None:
        equipped = EquippedItem(character_id=character_id, slot=item.slot, item_id=item.id)
        db.add(equipped)
    else:
        await add_item(db, character_id, equipped.item_id, 1)
        equipped.item_id = item.id

    await db.commit()
    logger.info("item_equipped", character_id=character_id, item_id=item_id, slot=item.slot)
    return equipped


@conflict_on_stale_write
async def unequip_slot(db: AsyncSession, character_id: int, slot: str) -> InventoryEntry:
    result = await db.execute(
        select(EquippedItem).where(
            EquippedItem.character_id == character_id,
            EquippedItem.slot == slot,
        )
    )
    equipped = result.scalar_one_or_none()
    if equipped is None:
        msg = "No item equipped in this slot"
        raise NotFoundError(msg, slot=slot)

    entry = await add_item(db, character_id, equipped.item_id, 1)
    await db.delete(equipped)
    await db.commit()
    return entry


@conflict_on_stale_write
async def buy_from_npc(db: AsyncSession, character_id: int, item_id: str, quantity: int = 1) -> int:
    """Buy at the fixed NPC price. Returns the total cost."""
    item = await get_item(db, item_id)
    if item.npc_buy_price is None:
        msg = "Item cannot be bought from NPC"
        raise PreconditionFailedError(msg)
    if quantity <= 0:
        msg = "Quantity must be positive"
        raise ValueError(msg)

    character = await get_character(db, character_id)
    total_cost = item.npc_buy_price * quantity
    debit_cash(character, total_cost)
    await add_item(db, character_id, item_id, quantity)
    await db.commit()
    return total_cost


@conflict_on_stale_write
async def sell_to_npc(db: AsyncSession, character_id: int, item_id: str, quantity: int = 1) -> int:
    """Sell at the fixed NPC price. Returns the cash received."""
    item = await get_item(db, item_id)
    if item.npc_sell_price is None:
        msg = "Item cannot be sold to NPC"
        raise PreconditionFailedError(msg)

    character = await get_character(db, character_id)
    await remove_item(db, character_id, item_id, quantity)
    total_value = item.npc_sell_price * quantity
    credit_cash(character, total_value)
    await db.commit()
    return total_value
