"""The study click: subject and character XP, occasional cash, a grade every N clicks."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from eduville.characters.drops import STUDY_RARITY_WEIGHTS, describe_drop, drop_random_item
from eduville.characters.service import (
    announce_level_up,
    credit_cash,
    get_character,
    get_equipment_bonuses,
    get_subject_progress,
    grant_character_xp,
)
from eduville.clock import as_utc, resolve_now
from eduville.config import get_settings
from eduville.db.models import Grade
from eduville.errors import PreconditionFailedError, conflict_on_stale_write
from eduville.progression.curves import SUBJECT_CURVE, apply_bonus, apply_xp_gain
from eduville.progression.energy import spend_pool, study_pool
from eduville.progression.grades import format_grade, generate_grade
from eduville.progression.requirements import ClauseResult
from eduville.progression.snapshot import load_world

if TYPE_CHECKING:
    import redis.asyncio as redis
    from sqlalchemy.ext.asyncio import AsyncSession

    from eduville.admin.flags import DebugFlags
    from eduville.db.models import CharacterSubject

logger = logging.getLogger(__name__)

SUBJECT_XP_MIN = 10
SUBJECT_XP_MAX = 25
SUBJECTS_AFFECTED_MIN = 1
SUBJECTS_AFFECTED_MAX = 3
CHARACTER_XP_MIN = 3
CHARACTER_XP_MAX = 8
CASH_CHANCE = 0.15
CASH_MIN = 1
CASH_MAX = 5
GRADE_BONUS_XP_FACTOR = 0.5


def _award_subject_xp(progress: CharacterSubject, amount: int, gains: dict[str, dict[str, Any]]) -> None:
    """Apply XP to a progress row and fold it into the per-subject gain summary."""
    result = apply_xp_gain(progress.level, progress.current_xp, amount, SUBJECT_CURVE)
    progress.level = result.level
    progress.current_xp = result.xp

    entry = gains.setdefault(
        progress.subject_id,
        {"subject_id": progress.subject_id, "xp_gained": 0, "leveled_up": False},
    )
    entry["xp_gained"] += amount
    entry["level"] = result.level
    entry["xp"] = result.xp
    entry["leveled_up"] = entry["leveled_up"] or result.leveled_up


@conflict_on_stale_write
async def study(
    db: AsyncSession,
    character_id: int,
    *,
    flags: DebugFlags | None = None,
    redis_client: redis.Redis | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Perform one study click.

    Raises:
        PreconditionFailedError: On cooldown, out of study energy, or nothing to study.
    """
    settings = get_settings()
    now = resolve_now(now)
    rng = rng or random.Random()

    character = await get_character(db, character_id)

    cooldown = timedelta(milliseconds=settings.study_cooldown_ms)
    cooldown_active = not (flags and flags.cooldown_disabled)
    if cooldown_active and character.last_study_at is not None:
        elapsed = now - as_utc(character.last_study_at)
        if elapsed < cooldown:
            raise PreconditionFailedError(
                "Study is on cooldown",
                unmet=[
                    ClauseResult(
                        kind="cooldown",
                        met=False,
                        current=int(elapsed.total_seconds() * 1000),
                        required=settings.study_cooldown_ms,
                        label="study cooldown (ms)",
                    )
                ],
            )

    world = await load_world(db)
    class_def = world.classes.get(character.current_class_id) if character.current_class_id else None
    if class_def is not None and class_def.allowed_subjects:
        allowed = set(class_def.allowed_subjects)
    else:
        allowed = set(world.locations[character.current_location_id].allowed_subjects)

    available = [p for p in await get_subject_progress(db, character.id) if not allowed or p.subject_id in allowed]
    if not available:
        msg = "No subjects available to study"
        raise PreconditionFailedError(msg)

    energy_left = spend_pool(character, study_pool(settings), settings.study_energy_cost, now)
    bonuses = await get_equipment_bonuses(db, character.id)

    # Subject XP split evenly across 1-3 random allowed subjects
    total_subject_xp = rng.randint(SUBJECT_XP_MIN, SUBJECT_XP_MAX)
    subjects_affected = rng.randint(SUBJECTS_AFFECTED_MIN, SUBJECTS_AFFECTED_MAX)
    xp_per_subject = total_subject_xp // subjects_affected

    gains: dict[str, dict[str, Any]] = {}
    for progress in rng.sample(available, min(subjects_affected, len(available))):
        _award_subject_xp(progress, apply_bonus(xp_per_subject, bonuses.xp_bonus), gains)

    character_xp = rng.randint(CHARACTER_XP_MIN, CHARACTER_XP_MAX)
    level_up = grant_character_xp(character, character_xp)

    cash_gained = 0
    if rng.random() < CASH_CHANCE:
        cash_gained = apply_bonus(rng.randint(CASH_MIN, CASH_MAX), bonuses.cash_bonus)
        credit_cash(character, cash_gained)

    character.total_study_clicks += 1
    character.study_clicks_in_current_class += 1
    character.last_study_at = now

    grade: dict[str, Any] | None = None
    clicks = character.study_clicks_in_current_class
    if class_def is not None and clicks % settings.study_clicks_per_grade == 0:
        graded = rng.choice(available)
        score = generate_grade(graded.level, bonuses.grade_bonus, rng)
        db.add(Grade(
            character_id=character.id,
            class_id=class_def.id,
            subject_id=graded.subject_id,
            score=score,
            created_at=now,
        ))
        # The graded subject earns half the per-subject XP on top
        _award_subject_xp(graded, apply_bonus(xp_per_subject * GRADE_BONUS_XP_FACTOR, bonuses.xp_bonus), gains)
        grade = {
            "subject_id": graded.subject_id,
            "subject_name": world.subject_name(graded.subject_id),
            "score": score,
            "display": format_grade(score, character.grade_display_system),
        }

    dropped = None
    if rng.random() < settings.study_item_drop_chance:
        dropped = await drop_random_item(db, character.id, STUDY_RARITY_WEIGHTS, rng)

    await db.commit()
    await announce_level_up(redis_client, character, level_up.levels_gained)

    return {
        "character_xp_gained": character_xp,
        "level": character.level,
        "xp": character.xp,
        "leveled_up": level_up.leveled_up,
        "subject_xp_gains": list(gains.values()),
        "cash_gained": cash_gained,
        "cash": character.cash,
        "grade": grade,
        "study_energy": energy_left,
        "study_clicks_in_current_class": clicks,
        "clicks_until_next_grade": settings.study_clicks_per_grade - clicks % settings.study_clicks_per_grade,
        "cooldown_until": now + cooldown,
        "item_drop": describe_drop(dropped),
    }
