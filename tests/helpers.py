"""Data builders shared by the integration tests."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from eduville.characters.inventory_service import add_item
from eduville.characters.service import create_character
from eduville.db.models import Character, Grade

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


async def make_character(db: AsyncSession, name: str, now: datetime = NOW, **fields) -> Character:
    """Create a character through the service, then apply field overrides."""
    character = await create_character(db, name, now=now)
    for key, value in fields.items():
        setattr(character, key, value)
    await db.commit()
    return character


async def give_item(db: AsyncSession, character_id: int, item_id: str, quantity: int = 1) -> None:
    await add_item(db, character_id, item_id, quantity)
    await db.commit()


async def give_grades(
    db: AsyncSession,
    character_id: int,
    class_id: str,
    subject_id: str,
    *scores: int,
    now: datetime = NOW,
) -> None:
    for score in scores:
        db.add(Grade(character_id=character_id, class_id=class_id, subject_id=subject_id, score=score, created_at=now))
    await db.commit()
