"""ORM models for the Eduville world, characters, market and weekly olympiads.

Static world content (subjects, locations, classes, specializations, items,
olympiad types) is keyed by string slugs so seed data is stable across
environments. Player-owned rows use integer ids. Rows reference each other by
id only; lookups go through explicit queries instead of relationship graphs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from eduville.clock import utcnow
from eduville.db.base import Base


# ---------------------------------------------------------------------------
# World content
# ---------------------------------------------------------------------------


class Subject(Base):
    """A studyable subject (Mathematics, Literature, ...)."""

    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)


class Location(Base):
    """A stop on the education path, totally ordered by order_index."""

    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    # Empty list means every subject is allowed
    allowed_subjects: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # {previous_location_id, previous_location_percent, required_subject_levels: [...]}
    unlock_requirement: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class SchoolClass(Base):
    """A class (grade year) inside a location."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("location_id", "grade_number", name="classes_location_grade_key"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    location_id: Mapped[str] = mapped_column(String(64), ForeignKey("locations.id"), nullable=False)
    grade_number: Mapped[int] = mapped_column(Integer, nullable=False)
    required_grades_per_subject: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    allowed_subjects: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # {min_subject_level, subject_levels: [...], min_grade_quality: [...]}
    requirements: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class Specialization(Base):
    """An irrevocable college specialization."""

    __tablename__ = "specializations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    location_id: Mapped[str] = mapped_column(String(64), ForeignKey("locations.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    # {required_subject_levels: [...], min_grade_average}
    requirements: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    unlock_cost: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class Item(Base):
    """Equippable item definition."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    slot: Mapped[str] = mapped_column(String(32), nullable=False)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False)
    # {xp_bonus, cash_bonus, grade_bonus}
    stats: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    is_tradeable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    npc_sell_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    npc_buy_price: Mapped[int | None] = mapped_column(Integer, nullable=True)


class OlympiadType(Base):
    """NPC olympiad battle definition."""

    __tablename__ = "olympiad_types"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("subjects.id"), nullable=True)
    energy_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    npc_level_min: Mapped[int] = mapped_column(Integer, nullable=False)
    npc_level_max: Mapped[int] = mapped_column(Integer, nullable=False)
    # {cash_min, cash_max, xp_min, xp_max, item_chance}
    rewards: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    required_character_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


# ---------------------------------------------------------------------------
# Characters
# ---------------------------------------------------------------------------


class Character(Base):
    """A player's character. Reset, never deleted."""

    __tablename__ = "characters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Progress into the current level; total_xp is the lifetime grant
    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    cash: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    study_energy: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    study_energy_max: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    study_energy_last_regen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    olympiad_energy: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    olympiad_energy_max: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    olympiad_energy_last_regen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    current_location_id: Mapped[str] = mapped_column(String(64), ForeignKey("locations.id"), nullable=False)
    current_class_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("classes.id"), nullable=True)
    current_specialization_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("specializations.id"), nullable=True
    )

    total_study_clicks: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    study_clicks_in_current_class: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_study_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    grade_display_system: Mapped[str] = mapped_column(String(16), nullable=False, default="letter")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    # Bumped on every write; a flush against a stale copy raises StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}


class CharacterSubject(Base):
    """Per-subject level track for a character."""

    __tablename__ = "character_subjects"
    __table_args__ = (
        UniqueConstraint("character_id", "subject_id", name="character_subjects_char_subject_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    character_id: Mapped[int] = mapped_column(Integer, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), ForeignKey("subjects.id"), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class Grade(Base):
    """Immutable assessment result."""

    __tablename__ = "grades"
    __table_args__ = (
        Index("ix_grades_character_class_subject", "character_id", "class_id", "subject_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    character_id: Mapped[int] = mapped_column(Integer, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False)
    class_id: Mapped[str] = mapped_column(String(64), ForeignKey("classes.id"), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), ForeignKey("subjects.id"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class LocationProgress(Base):
    """Cached class-count completion snapshot, written on class completion."""

    __tablename__ = "location_progress"
    __table_args__ = (
        UniqueConstraint("character_id", "location_id", name="location_progress_char_location_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    character_id: Mapped[int] = mapped_column(Integer, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), ForeignKey("locations.id"), nullable=False)
    completion_percent: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class InventoryEntry(Base):
    """Stack of items owned by a character."""

    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("character_id", "item_id", name="inventory_char_item_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    character_id: Mapped[int] = mapped_column(Integer, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False)
    item_id: Mapped[str] = mapped_column(String(64), ForeignKey("items.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class EquippedItem(Base):
    """Item worn in an equipment slot."""

    __tablename__ = "equipment"
    __table_args__ = (
        UniqueConstraint("character_id", "slot", name="equipment_char_slot_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    character_id: Mapped[int] = mapped_column(Integer, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False)
    slot: Mapped[str] = mapped_column(String(32), nullable=False)
    item_id: Mapped[str] = mapped_column(String(64), ForeignKey("items.id"), nullable=False)


# ---------------------------------------------------------------------------
# Market
# ---------------------------------------------------------------------------


class MarketListing(Base):
    """Peer-to-peer sell order. Quantity is locked out of the seller's inventory."""

    __tablename__ = "market_listings"
    __table_args__ = (
        Index("ix_market_listings_active_expiry", "is_active", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    seller_id: Mapped[int] = mapped_column(Integer, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False)
    item_id: Mapped[str] = mapped_column(String(64), ForeignKey("items.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class MarketTransaction(Base):
    """Immutable ledger entry for a completed (partial) sale."""

    __tablename__ = "market_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listing_id: Mapped[int] = mapped_column(Integer, ForeignKey("market_listings.id"), nullable=False)
    buyer_id: Mapped[int] = mapped_column(Integer, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fee: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Weekly olympiad (ranked event)
# ---------------------------------------------------------------------------


class RankedEvent(Base):
    """Time-boxed scored competition with percentile reward tiers."""

    __tablename__ = "weekly_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("subjects.id"), nullable=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # {top10: {cash, xp}, top25: ..., top50: ..., participation: ...}
    reward_tiers: Mapped[dict[str, dict[str, int]]] = mapped_column(JSON, nullable=False)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class EventParticipant(Base):
    """One row per (event, character), created only by join."""

    __tablename__ = "weekly_event_participants"
    __table_args__ = (
        UniqueConstraint("event_id", "character_id", name="weekly_event_participants_event_char_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(Integer, ForeignKey("weekly_events.id", ondelete="CASCADE"), nullable=False)
    character_id: Mapped[int] = mapped_column(Integer, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rewards_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
