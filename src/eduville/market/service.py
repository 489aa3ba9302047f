"""Peer-to-peer market: listings, purchases with fee settlement, cancellation, history.

Listed quantity is locked out of the seller's inventory while the listing is
active. Expired listings only drop out of the browse view; nothing sweeps
their locked quantity back to the seller.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, or_, select, update

from eduville.characters.inventory_service import add_item, get_item, remove_item
from eduville.characters.service import get_character
from eduville.clock import as_utc, resolve_now
from eduville.config import get_settings
from eduville.db.models import Character, Item, MarketListing, MarketTransaction
from eduville.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    PreconditionFailedError,
    conflict_on_stale_write,
)
from eduville.progression.requirements import ClauseResult

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def calculate_fee(total_price: int, fee_percent: int) -> int:
    """Seller-side fee, rounded up to the next whole coin."""
    return math.ceil(total_price * fee_percent / 100)


def _listing_to_dict(listing: MarketListing, item: Item, viewer_id: int | None, now: datetime) -> dict[str, Any]:
    return {
        "id": listing.id,
        "seller_id": listing.seller_id,
        "item_id": item.id,
        "item_name": item.name,
        "rarity": item.rarity,
        "slot": item.slot,
        "quantity": listing.quantity,
        "price_per_unit": listing.price_per_unit,
        "total_price": listing.quantity * listing.price_per_unit,
        "is_active": listing.is_active,
        "is_expired": as_utc(listing.expires_at) <= now,
        "is_own_listing": listing.seller_id == viewer_id,
        "expires_at": listing.expires_at,
        "created_at": listing.created_at,
    }


async def get_listing(db: AsyncSession, listing_id: int) -> MarketListing:
    listing = await db.get(MarketListing, listing_id)
    if listing is None:
        msg = "Listing not found"
        raise NotFoundError(msg, listing_id=listing_id)
    return listing


@conflict_on_stale_write
async def create_listing(
    db: AsyncSession,
    seller_id: int,
    item_id: str,
    quantity: int,
    price_per_unit: int,
    now: datetime | None = None,
) -> MarketListing:
    """Lock ``quantity`` items out of the seller's inventory into a new listing.

    Raises:
        PreconditionFailedError: Non-tradeable item or not enough owned.
    """
    now = resolve_now(now)
    settings = get_settings()
    if quantity <= 0 or price_per_unit <= 0:
        msg = "Quantity and price must be positive"
        raise ValueError(msg)

    await get_character(db, seller_id)
    item = await get_item(db, item_id)
    if not item.is_tradeable:
        msg = "This item cannot be traded"
        raise PreconditionFailedError(msg, item_id=item_id)

    await remove_item(db, seller_id, item_id, quantity)
    listing = MarketListing(
        seller_id=seller_id,
        item_id=item_id,
        quantity=quantity,
        price_per_unit=price_per_unit,
        expires_at=now + timedelta(days=settings.market_listing_days),
        is_active=True,
        created_at=now,
    )
    db.add(listing)
    await db.commit()

    logger.info("Listing %d created: %d x %s at %d by %d", listing.id, quantity, item_id, price_per_unit, seller_id)
    return listing


async def browse_listings(
    db: AsyncSession,
    viewer_id: int | None = None,
    now: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[dict[str, Any]]:
    """Active, unexpired, non-empty listings, newest first."""
    now = resolve_now(now)
    result = await db.execute(
        select(MarketListing, Item)
        .join(Item, Item.id == MarketListing.item_id)
        .where(
            MarketListing.is_active.is_(True),
            MarketListing.expires_at > now,
            MarketListing.quantity > 0,
        )
        .order_by(MarketListing.created_at.desc(), MarketListing.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return [_listing_to_dict(listing, item, viewer_id, now) for listing, item in result.all()]


async def my_listings(db: AsyncSession, seller_id: int, now: datetime | None = None) -> list[dict[str, Any]]:
    """The seller's active listings, including expired ones still holding stock."""
    now = resolve_now(now)
    result = await db.execute(
        select(MarketListing, Item)
        .join(Item, Item.id == MarketListing.item_id)
        .where(MarketListing.seller_id == seller_id, MarketListing.is_active.is_(True))
        .order_by(MarketListing.created_at.desc(), MarketListing.id.desc())
    )
    return [_listing_to_dict(listing, item, seller_id, now) for listing, item in result.all()]


async def reserve_listing_quantity(db: AsyncSession, listing_id: int, quantity: int, now: datetime) -> bool:
    """Atomically take ``quantity`` units off a live listing.

    Returns False when another buyer got there first (or the listing lapsed
    in between); the caller must roll back.
    """
    result = await db.execute(
        update(MarketListing)
        .where(
            MarketListing.id == listing_id,
            MarketListing.is_active.is_(True),
            MarketListing.quantity >= quantity,
            MarketListing.expires_at > now,
        )
        .values(
            quantity=MarketListing.quantity - quantity,
            is_active=case((MarketListing.quantity == quantity, False), else_=True),
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


async def _debit_buyer(db: AsyncSession, buyer_id: int, amount: int) -> bool:
    result = await db.execute(
        update(Character)
        .where(Character.id == buyer_id, Character.cash >= amount)
        .values(cash=Character.cash - amount, version=Character.version + 1)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


@conflict_on_stale_write
async def buy_listing(
    db: AsyncSession,
    buyer_id: int,
    listing_id: int,
    quantity: int | None = None,
    now: datetime | None = None,
) -> MarketTransaction:
    """Buy ``quantity`` units (default: all remaining) from a listing.

    Debit, credit, inventory transfer, listing update and ledger entry commit
    together or not at all.

    Raises:
        NotFoundError: Listing missing or inactive.
        ExpiredError: Listing past its expiry.
        ConflictError: Buying your own listing, or a concurrent buyer won.
        PreconditionFailedError: Asking for more than listed, or not enough cash.
    """
    now = resolve_now(now)
    settings = get_settings()

    buyer = await get_character(db, buyer_id)
    listing = await db.get(MarketListing, listing_id)
    if listing is None or not listing.is_active:
        msg = "Listing not found or no longer active"
        raise NotFoundError(msg, listing_id=listing_id)
    if as_utc(listing.expires_at) <= now:
        msg = "This listing has expired"
        raise ExpiredError(msg, listing_id=listing_id)
    if listing.seller_id == buyer.id:
        msg = "You cannot buy your own listing"
        raise ConflictError(msg, listing_id=listing_id)

    quantity = listing.quantity if quantity is None else quantity
    if quantity <= 0:
        msg = "Quantity must be positive"
        raise ValueError(msg)
    if quantity > listing.quantity:
        raise PreconditionFailedError(
            "Not enough items available",
            unmet=[
                ClauseResult(kind="listing_quantity", met=False, current=listing.quantity, required=quantity)
            ],
        )

    total_price = quantity * listing.price_per_unit
    fee = calculate_fee(total_price, settings.market_fee_percent)
    if buyer.cash < total_price:
        raise PreconditionFailedError(
            "Not enough cash",
            unmet=[ClauseResult(kind="balance", met=False, current=buyer.cash, required=total_price, label="cash")],
        )

    if not await reserve_listing_quantity(db, listing.id, quantity, now):
        await db.rollback()
        msg = "Listing changed while buying; try again"
        raise ConflictError(msg, listing_id=listing_id)
    # The CASE on is_active cannot be evaluated in Python, so reload both columns
    await db.refresh(listing, attribute_names=["quantity", "is_active"])
    if not await _debit_buyer(db, buyer.id, total_price):
        await db.rollback()
        msg = "Balance changed while buying; try again"
        raise ConflictError(msg, listing_id=listing_id)

    await db.execute(
        update(Character)
        .where(Character.id == listing.seller_id)
        .values(cash=Character.cash + (total_price - fee), version=Character.version + 1)
        .execution_options(synchronize_session="fetch")
    )
    await add_item(db, buyer.id, listing.item_id, quantity)

    transaction = MarketTransaction(
        listing_id=listing.id,
        buyer_id=buyer.id,
        quantity=quantity,
        total_price=total_price,
        fee=fee,
        created_at=now,
    )
    db.add(transaction)
    await db.commit()

    logger.info(
        "Listing %d: buyer %d bought %d for %d (fee %d)",
        listing.id, buyer.id, quantity, total_price, fee,
    )
    return transaction


@conflict_on_stale_write
async def cancel_listing(db: AsyncSession, seller_id: int, listing_id: int) -> int:
    """Withdraw an active listing and return its remaining quantity. No fee.

    Raises:
        NotFoundError: Listing missing.
        ConflictError: Not the seller, or the listing is no longer active.
    """
    listing = await get_listing(db, listing_id)
    if listing.seller_id != seller_id:
        msg = "This is not your listing"
        raise ConflictError(msg, listing_id=listing_id)
    if not listing.is_active:
        msg = "Listing is already inactive"
        raise ConflictError(msg, listing_id=listing_id)

    returned = listing.quantity
    result = await db.execute(
        update(MarketListing)
        .where(MarketListing.id == listing.id, MarketListing.is_active.is_(True))
        .values(is_active=False, quantity=0)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        await db.rollback()
        msg = "Listing is already inactive"
        raise ConflictError(msg, listing_id=listing_id)

    if returned > 0:
        await add_item(db, seller_id, listing.item_id, returned)
    await db.commit()

    logger.info("Listing %d cancelled, %d returned to %d", listing.id, returned, seller_id)
    return returned


async def get_transaction_history(db: AsyncSession, character_id: int, limit: int | None = None) -> list[dict[str, Any]]:
    """Purchases and sales involving the character, newest first, with signed net cash."""
    limit = limit or get_settings().market_history_limit
    result = await db.execute(
        select(MarketTransaction, MarketListing, Item)
        .join(MarketListing, MarketListing.id == MarketTransaction.listing_id)
        .join(Item, Item.id == MarketListing.item_id)
        .where(
            or_(
                MarketTransaction.buyer_id == character_id,
                MarketListing.seller_id == character_id,
            )
        )
        .order_by(MarketTransaction.created_at.desc(), MarketTransaction.id.desc())
        .limit(limit)
    )

    history = []
    for tx, listing, item in result.all():
        is_purchase = tx.buyer_id == character_id
        history.append({
            "id": tx.id,
            "type": "purchase" if is_purchase else "sale",
            "listing_id": listing.id,
            "item_id": item.id,
            "item_name": item.name,
            "quantity": tx.quantity,
            "total_price": tx.total_price,
            "fee": tx.fee,
            "net_amount": -tx.total_price if is_purchase else tx.total_price - tx.fee,
            "counterparty_id": listing.seller_id if is_purchase else tx.buyer_id,
            "created_at": tx.created_at,
        })
    return history
