"""Market API: browse, list, buy, cancel, history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from eduville.database import get_session
from eduville.dependencies import get_character_id
from eduville.market.schemas import (
    BuyListingRequest,
    CancelListingResponse,
    CreatedListingResponse,
    CreateListingRequest,
    ListingResponse,
    PurchaseResponse,
    TransactionHistoryEntry,
)
from eduville.market.service import (
    browse_listings,
    buy_listing,
    cancel_listing,
    create_listing,
    get_transaction_history,
    my_listings,
)

router = APIRouter(prefix="/api/v1/market", tags=["Market"])


@router.get("/listings", response_model=list[ListingResponse])
async def get_listings(
    limit: int = Query(100, ge=1, le=200),
    offset: int = Query(0, ge=0),
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await browse_listings(db, viewer_id=character_id, limit=limit, offset=offset)


@router.get("/listings/mine", response_model=list[ListingResponse])
async def get_my_listings(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await my_listings(db, character_id)


@router.post("/listings", response_model=CreatedListingResponse, status_code=201)
async def post_listing(
    body: CreateListingRequest,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        listing = await create_listing(db, character_id, body.item_id, body.quantity, body.price_per_unit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return CreatedListingResponse(
        id=listing.id,
        item_id=listing.item_id,
        quantity=listing.quantity,
        price_per_unit=listing.price_per_unit,
        total_price=listing.quantity * listing.price_per_unit,
        expires_at=listing.expires_at,
    )


@router.post("/listings/{listing_id}/buy", response_model=PurchaseResponse)
async def buy(
    listing_id: int,
    body: BuyListingRequest | None = None,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    quantity = body.quantity if body else None
    try:
        tx = await buy_listing(db, character_id, listing_id, quantity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return PurchaseResponse(
        transaction_id=tx.id,
        listing_id=tx.listing_id,
        quantity=tx.quantity,
        total_price=tx.total_price,
        fee=tx.fee,
    )


@router.delete("/listings/{listing_id}", response_model=CancelListingResponse)
async def cancel(
    listing_id: int,
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    returned = await cancel_listing(db, character_id, listing_id)
    return CancelListingResponse(listing_id=listing_id, returned_quantity=returned)


@router.get("/history", response_model=list[TransactionHistoryEntry])
async def history(
    character_id: int = Depends(get_character_id),
    db: AsyncSession = Depends(get_session),
):
    return await get_transaction_history(db, character_id)
