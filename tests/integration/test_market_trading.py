"""Integration tests for the player market."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from eduville.characters.inventory_service import get_inventory
from eduville.db.models import InventoryEntry, Item, MarketListing
from eduville.errors import ConflictError, ExpiredError, NotFoundError, PreconditionFailedError
from eduville.market.service import (
    browse_listings,
    buy_listing,
    calculate_fee,
    cancel_listing,
    create_listing,
    get_transaction_history,
    my_listings,
    reserve_listing_quantity,
)
from tests.helpers import NOW, give_item


async def _quantity(db, character_id: int, item_id: str) -> int:
    result = await db.execute(
        select(InventoryEntry.quantity).where(
            InventoryEntry.character_id == character_id,
            InventoryEntry.item_id == item_id,
        )
    )
    return result.scalar_one_or_none() or 0


class TestFee:
    @pytest.mark.parametrize(("total", "fee"), [(1000, 50), (100, 5), (19, 1), (21, 2), (1, 1)])
    def test_rounds_up(self, total, fee):
        assert calculate_fee(total, 5) == fee


class TestListing:
    async def test_listing_locks_inventory(self, db_session, alice):
        await give_item(db_session, alice.id, "gel-pen", 3)
        listing = await create_listing(db_session, alice.id, "gel-pen", 2, 100, now=NOW)

        assert await _quantity(db_session, alice.id, "gel-pen") == 1
        assert listing.expires_at == NOW + timedelta(days=7)
        mine = await my_listings(db_session, alice.id, now=NOW)
        assert [entry["id"] for entry in mine] == [listing.id]
        assert mine[0]["is_own_listing"]

    async def test_cannot_list_more_than_owned(self, db_session, alice):
        await give_item(db_session, alice.id, "gel-pen", 1)
        with pytest.raises(PreconditionFailedError):
            await create_listing(db_session, alice.id, "gel-pen", 2, 100, now=NOW)

    async def test_non_tradeable_item(self, db_session, alice):
        pen = await db_session.get(Item, "gel-pen")
        pen.is_tradeable = False
        await db_session.commit()
        await give_item(db_session, alice.id, "gel-pen", 1)
        with pytest.raises(PreconditionFailedError):
            await create_listing(db_session, alice.id, "gel-pen", 1, 100, now=NOW)

    async def test_browse_hides_expired(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "gel-pen", 1)
        await create_listing(db_session, alice.id, "gel-pen", 1, 100, now=NOW)

        assert len(await browse_listings(db_session, viewer_id=bob.id, now=NOW + timedelta(days=1))) == 1
        assert await browse_listings(db_session, viewer_id=bob.id, now=NOW + timedelta(days=8)) == []


class TestBuy:
    async def test_full_purchase_settles_fee(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "ballpoint-pen", 2)
        listing = await create_listing(db_session, alice.id, "ballpoint-pen", 2, 500, now=NOW)
        bob.cash = 1000
        await db_session.commit()

        tx = await buy_listing(db_session, bob.id, listing.id, now=NOW + timedelta(hours=1))

        assert (tx.quantity, tx.total_price, tx.fee) == (2, 1000, 50)
        await db_session.refresh(alice)
        await db_session.refresh(bob)
        await db_session.refresh(listing)
        assert bob.cash == 0
        assert alice.cash == 950
        assert listing.quantity == 0
        assert not listing.is_active
        assert await _quantity(db_session, bob.id, "ballpoint-pen") == 2

    async def test_partial_purchase_keeps_listing_active(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "ballpoint-pen", 3)
        listing = await create_listing(db_session, alice.id, "ballpoint-pen", 3, 100, now=NOW)
        bob.cash = 500
        await db_session.commit()

        tx = await buy_listing(db_session, bob.id, listing.id, quantity=1, now=NOW)

        assert tx.fee == 5
        await db_session.refresh(listing)
        assert listing.quantity == 2
        assert listing.is_active

    async def test_not_enough_cash(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "ballpoint-pen", 1)
        listing = await create_listing(db_session, alice.id, "ballpoint-pen", 1, 500, now=NOW)
        bob.cash = 499
        await db_session.commit()

        with pytest.raises(PreconditionFailedError) as exc_info:
            await buy_listing(db_session, bob.id, listing.id, now=NOW)
        assert exc_info.value.unmet[0].missing == 1

    async def test_more_than_listed(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "ballpoint-pen", 1)
        listing = await create_listing(db_session, alice.id, "ballpoint-pen", 1, 10, now=NOW)
        bob.cash = 500
        await db_session.commit()

        with pytest.raises(PreconditionFailedError):
            await buy_listing(db_session, bob.id, listing.id, quantity=2, now=NOW)

    async def test_own_listing(self, db_session, alice):
        await give_item(db_session, alice.id, "ballpoint-pen", 1)
        listing = await create_listing(db_session, alice.id, "ballpoint-pen", 1, 10, now=NOW)
        with pytest.raises(ConflictError):
            await buy_listing(db_session, alice.id, listing.id, now=NOW)

    async def test_expired_listing(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "ballpoint-pen", 1)
        listing = await create_listing(db_session, alice.id, "ballpoint-pen", 1, 10, now=NOW)
        bob.cash = 500
        await db_session.commit()

        with pytest.raises(ExpiredError):
            await buy_listing(db_session, bob.id, listing.id, now=NOW + timedelta(days=7))

    async def test_sold_out_listing_is_gone(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "ballpoint-pen", 1)
        listing = await create_listing(db_session, alice.id, "ballpoint-pen", 1, 10, now=NOW)
        bob.cash = 500
        await db_session.commit()
        await buy_listing(db_session, bob.id, listing.id, now=NOW)

        with pytest.raises(NotFoundError):
            await buy_listing(db_session, bob.id, listing.id, now=NOW)

    async def test_repeat_partial_buys_in_one_session(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "ballpoint-pen", 3)
        listing = await create_listing(db_session, alice.id, "ballpoint-pen", 3, 10, now=NOW)
        bob.cash = 500
        await db_session.commit()

        await buy_listing(db_session, bob.id, listing.id, quantity=1, now=NOW)
        await buy_listing(db_session, bob.id, listing.id, quantity=2, now=NOW)

        # The sell-out state is visible on the same object without a refresh
        assert listing.quantity == 0
        assert not listing.is_active
        assert await _quantity(db_session, bob.id, "ballpoint-pen") == 3

    async def test_reservation_loses_to_earlier_buyer(self, db_session, alice):
        await give_item(db_session, alice.id, "ballpoint-pen", 2)
        listing = await create_listing(db_session, alice.id, "ballpoint-pen", 2, 10, now=NOW)

        assert await reserve_listing_quantity(db_session, listing.id, 2, NOW)
        # A second buyer racing for the same units finds nothing left
        assert not await reserve_listing_quantity(db_session, listing.id, 1, NOW)
        await db_session.rollback()


class TestCancelAndHistory:
    async def test_cancel_returns_items(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "gel-pen", 2)
        listing = await create_listing(db_session, alice.id, "gel-pen", 2, 100, now=NOW)

        with pytest.raises(ConflictError):
            await cancel_listing(db_session, bob.id, listing.id)

        assert await cancel_listing(db_session, alice.id, listing.id) == 2
        assert await _quantity(db_session, alice.id, "gel-pen") == 2

        with pytest.raises(ConflictError):
            await cancel_listing(db_session, alice.id, listing.id)

    async def test_history_from_both_sides(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "gel-pen", 1)
        listing = await create_listing(db_session, alice.id, "gel-pen", 1, 200, now=NOW)
        bob.cash = 200
        await db_session.commit()
        await buy_listing(db_session, bob.id, listing.id, now=NOW)

        [sale] = await get_transaction_history(db_session, alice.id)
        [purchase] = await get_transaction_history(db_session, bob.id)
        assert (sale["type"], sale["net_amount"], sale["counterparty_id"]) == ("sale", 190, bob.id)
        assert (purchase["type"], purchase["net_amount"], purchase["counterparty_id"]) == ("purchase", -200, alice.id)

    async def test_inventory_lists_bought_items(self, db_session, alice, bob):
        await give_item(db_session, alice.id, "gel-pen", 1)
        listing = await create_listing(db_session, alice.id, "gel-pen", 1, 200, now=NOW)
        bob.cash = 200
        await db_session.commit()
        await buy_listing(db_session, bob.id, listing.id, now=NOW)

        entries = await get_inventory(db_session, bob.id)
        assert [(item.id, entry.quantity) for entry, item in entries] == [("gel-pen", 1)]
        remaining = (await db_session.execute(select(MarketListing.is_active))).scalars().all()
        assert remaining == [False]
