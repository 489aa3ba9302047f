"""Support and test tooling. Kept apart from the player-facing paths.

Nothing here is reachable unless ``admin_enabled`` is set.
"""

from __future__ import annotations

import random
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from eduville.characters.service import get_character, reset_character
from eduville.clock import resolve_now
from eduville.config import get_settings
from eduville.db.models import Grade, RankedEvent, Subject
from eduville.errors import NotFoundError, PreconditionFailedError, conflict_on_stale_write
from eduville.olympiads.weekly_service import create_weekly_event
from eduville.progression.energy import olympiad_pool, refill_pool, study_pool

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

GRANTED_GRADE_MIN = 70
GRANTED_GRADE_MAX = 99


@conflict_on_stale_write
async def renew_energy(db: AsyncSession, character_id: int, now: datetime | None = None) -> dict[str, int]:
    now = resolve_now(now)
    settings = get_settings()
    character = await get_character(db, character_id)
    study = refill_pool(character, study_pool(settings), now)
    olympiad = refill_pool(character, olympiad_pool(settings), now)
    await db.commit()
    logger.info("admin_energy_renewed", character_id=character_id)
    return {"study_energy": study, "olympiad_energy": olympiad}


async def grant_grade(
    db: AsyncSession,
    character_id: int,
    subject_id: str,
    score: int | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> Grade:
    """Record a grade in the character's current class without studying for it."""
    now = resolve_now(now)
    rng = rng or random.Random()
    character = await get_character(db, character_id)
    if character.current_class_id is None:
        msg = "Character has no current class"
        raise PreconditionFailedError(msg)
    if await db.get(Subject, subject_id) is None:
        msg = "Subject not found"
        raise NotFoundError(msg, subject_id=subject_id)
    if score is not None and not 0 <= score <= 100:
        msg = "Score must be between 0 and 100"
        raise ValueError(msg)

    grade = Grade(
        character_id=character.id,
        class_id=character.current_class_id,
        subject_id=subject_id,
        score=score if score is not None else rng.randint(GRANTED_GRADE_MIN, GRANTED_GRADE_MAX),
        created_at=now,
    )
    db.add(grade)
    await db.commit()
    logger.info("admin_grade_granted", character_id=character_id, subject_id=subject_id, score=grade.score)
    return grade


async def create_test_event(
    db: AsyncSession,
    duration_minutes: int = 60,
    subject_id: str | None = None,
    now: datetime | None = None,
) -> RankedEvent:
    return await create_weekly_event(db, now=now, duration_minutes=duration_minutes, subject_id=subject_id)


async def reset_account(db: AsyncSession, character_id: int, now: datetime | None = None) -> None:
    await reset_character(db, character_id, now)
    logger.info("admin_account_reset", character_id=character_id)
