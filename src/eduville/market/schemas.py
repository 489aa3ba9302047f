"""Pydantic schemas for the player market."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CreateListingRequest(BaseModel):
    item_id: str
    quantity: int = Field(ge=1)
    price_per_unit: int = Field(ge=1)


class BuyListingRequest(BaseModel):
    quantity: int | None = Field(default=None, ge=1)  # None buys everything left


class ListingResponse(BaseModel):
    id: int
    seller_id: int
    item_id: str
    item_name: str
    rarity: str
    slot: str
    quantity: int
    price_per_unit: int
    total_price: int
    is_active: bool
    is_expired: bool
    is_own_listing: bool
    expires_at: datetime
    created_at: datetime


class CreatedListingResponse(BaseModel):
    id: int
    item_id: str
    quantity: int
    price_per_unit: int
    total_price: int
    expires_at: datetime


class PurchaseResponse(BaseModel):
    transaction_id: int
    listing_id: int
    quantity: int
    total_price: int
    fee: int


class CancelListingResponse(BaseModel):
    listing_id: int
    returned_quantity: int


class TransactionHistoryEntry(BaseModel):
    id: int
    type: Literal["purchase", "sale"]
    listing_id: int
    item_id: str
    item_name: str
    quantity: int
    total_price: int
    fee: int
    net_amount: int
    counterparty_id: int
    created_at: datetime
