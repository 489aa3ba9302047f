"""Progression state machine: class completion, location advance and specializations.

Every mutating operation evaluates the same requirement bundle its preview
shows, and applies the transition in a single commit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update

from eduville.characters.service import get_character
from eduville.db.models import Character, LocationProgress, Specialization
from eduville.errors import ConflictError, NotFoundError, PreconditionFailedError, conflict_on_stale_write
from eduville.progression.requirements import (
    RequirementReport,
    class_advancement_bundle,
    class_completion_bundle,
    completion_percent,
    location_unlock_bundle,
    specialization_bundle,
)
from eduville.progression.rounding import round_half_up
from eduville.progression.snapshot import load_snapshot, load_world

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

SPECIALIZATION_LOCATION_TYPE = "college"
ASSESSMENT_LOCATION_TYPE = "school"


def _missing_grades_message(report: RequirementReport, subject_names: dict[str, str]) -> str:
    parts = [
        f"{int(clause.missing)} more {subject_names.get(clause.subject_id or '', clause.subject_id)} grades"
        for clause in report.unmet
    ]
    return "Need " + ", ".join(parts)


async def _get_location_progress(db: AsyncSession, character_id: int, location_id: str) -> LocationProgress:
    result = await db.execute(
        select(LocationProgress).where(
            LocationProgress.character_id == character_id,
            LocationProgress.location_id == location_id,
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        progress = LocationProgress(
            character_id=character_id,
            location_id=location_id,
            completion_percent=0,
            is_completed=False,
        )
        db.add(progress)
    return progress


# ---------------------------------------------------------------------------
# Previews (read-only)
# ---------------------------------------------------------------------------


async def get_progress(db: AsyncSession, character_id: int) -> dict[str, Any]:
    """Whole-path overview: cached percent per location plus current-class grade counts."""
    character = await get_character(db, character_id)
    world = await load_world(db)
    snapshot = await load_snapshot(db, character)

    cached = {
        row.location_id: row
        for row in (
            await db.execute(select(LocationProgress).where(LocationProgress.character_id == character.id))
        ).scalars()
    }
    current_order = world.locations[character.current_location_id].order_index

    locations = []
    for loc in world.ordered_locations():
        progress = cached.get(loc.id)
        locations.append({
            "location_id": loc.id,
            "name": loc.name,
            "type": loc.type,
            "order_index": loc.order_index,
            "completion_percent": float(progress.completion_percent) if progress else 0.0,
            "is_completed": progress.is_completed if progress else False,
            "is_unlocked": loc.order_index <= current_order,
            "is_current": loc.id == character.current_location_id,
            "class_count": len(world.classes_in(loc.id)),
        })

    current_class_grades: dict[str, dict[str, int]] = {}
    if character.current_class_id is not None:
        class_def = world.classes[character.current_class_id]
        report = class_completion_bundle(world, class_def, snapshot).evaluate(snapshot, world)
        current_class_grades = {
            clause.subject_id or "": {"collected": int(clause.current), "required": int(clause.required)}
            for clause in report.clauses
        }

    return {
        "character_id": character.id,
        "current_location_id": character.current_location_id,
        "current_class_id": character.current_class_id,
        "current_specialization_id": character.current_specialization_id,
        "locations": locations,
        "current_class_grades": current_class_grades,
    }


async def class_preview(db: AsyncSession, character_id: int) -> dict[str, Any]:
    """Per-subject requirements of the current class and whether the next class is reachable."""
    character = await get_character(db, character_id)
    if character.current_class_id is None:
        msg = "Character has no current class"
        raise PreconditionFailedError(msg)

    world = await load_world(db)
    snapshot = await load_snapshot(db, character)
    class_def = world.classes[character.current_class_id]
    report = class_advancement_bundle(world, class_def, snapshot).evaluate(snapshot, world)

    classes = world.classes_in(class_def.location_id)
    index = [c.id for c in classes].index(class_def.id)
    next_class = classes[index + 1] if index + 1 < len(classes) else None

    return {
        "class_id": class_def.id,
        "grade_number": class_def.grade_number,
        "next_class_id": next_class.id if next_class else None,
        "can_complete": class_completion_bundle(world, class_def, snapshot).evaluate(snapshot, world).satisfied,
        "can_advance": report.satisfied,
        "clauses": [clause.to_dict() for clause in report.clauses],
    }


async def location_preview(db: AsyncSession, character_id: int) -> dict[str, Any]:
    """Requirements for entering the next location on the path."""
    character = await get_character(db, character_id)
    world = await load_world(db)
    snapshot = await load_snapshot(db, character)

    next_location = world.next_location(character.current_location_id)
    fresh_percent = completion_percent(world, character.current_location_id, snapshot)
    if next_location is None:
        return {
            "current_location_id": character.current_location_id,
            "current_completion_percent": fresh_percent,
            "next_location_id": None,
            "can_advance": False,
            "clauses": [],
        }

    report = location_unlock_bundle(world, next_location, character.current_location_id).evaluate(snapshot, world)
    return {
        "current_location_id": character.current_location_id,
        "current_completion_percent": fresh_percent,
        "next_location_id": next_location.id,
        "can_advance": report.satisfied,
        "clauses": [clause.to_dict() for clause in report.clauses],
    }


async def list_specializations(db: AsyncSession, character_id: int) -> list[dict[str, Any]]:
    """Every specialization with its evaluated requirements for this character."""
    character = await get_character(db, character_id)
    world = await load_world(db)
    snapshot = await load_snapshot(db, character)
    at_location = world.locations[character.current_location_id]

    specs = (await db.execute(select(Specialization).order_by(Specialization.name))).scalars().all()
    entries = []
    for spec in specs:
        report = specialization_bundle(spec.requirements, spec.unlock_cost, ASSESSMENT_LOCATION_TYPE).evaluate(
            snapshot, world
        )
        entries.append({
            "id": spec.id,
            "name": spec.name,
            "location_id": spec.location_id,
            "unlock_cost": spec.unlock_cost,
            "is_selected": spec.id == character.current_specialization_id,
            "can_select": (
                report.satisfied
                and character.current_specialization_id is None
                and at_location.type == SPECIALIZATION_LOCATION_TYPE
                and spec.location_id == at_location.id
            ),
            "clauses": [clause.to_dict() for clause in report.clauses],
        })
    return entries


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@conflict_on_stale_write
async def complete_class(db: AsyncSession, character_id: int) -> dict[str, Any]:
    """Finish the current class once every relevant subject has enough grades.

    The cached location percentage written here is a class-count ratio and is
    deliberately independent of the grade-based percentage used for unlocks.

    Raises:
        PreconditionFailedError: Listing missing grades per deficient subject.
    """
    character = await get_character(db, character_id)
    if character.current_class_id is None:
        msg = "Character has no current class"
        raise PreconditionFailedError(msg)

    world = await load_world(db)
    snapshot = await load_snapshot(db, character)
    class_def = world.classes[character.current_class_id]

    report = class_completion_bundle(world, class_def, snapshot).evaluate(snapshot, world)
    if not report.satisfied:
        raise PreconditionFailedError(_missing_grades_message(report, world.subjects), unmet=report.unmet)

    classes = world.classes_in(class_def.location_id)
    index = [c.id for c in classes].index(class_def.id)
    next_class = classes[index + 1] if index + 1 < len(classes) else None
    percent = round_half_up((index + 1) / len(classes) * 100, 2)

    progress = await _get_location_progress(db, character.id, class_def.location_id)
    progress.completion_percent = percent
    progress.is_completed = next_class is None

    character.current_class_id = next_class.id if next_class else None
    character.study_clicks_in_current_class = 0
    await db.commit()

    logger.info(
        "Character %d completed class %s (%s%% of %s)",
        character.id, class_def.id, percent, class_def.location_id,
    )
    return {
        "completed_class_id": class_def.id,
        "next_class_id": character.current_class_id,
        "location_id": class_def.location_id,
        "location_completion_percent": percent,
        "location_completed": progress.is_completed,
    }


@conflict_on_stale_write
async def advance_location(db: AsyncSession, character_id: int) -> dict[str, Any]:
    """Move to the next location on the path.

    Gated on the freshly computed grade percentage of the current location, not
    the cached class-count value.

    Raises:
        NotFoundError: At the end of the path.
        PreconditionFailedError: When unlock clauses are unmet.
    """
    character = await get_character(db, character_id)
    world = await load_world(db)
    snapshot = await load_snapshot(db, character)

    previous_location_id = character.current_location_id
    next_location = world.next_location(previous_location_id)
    if next_location is None:
        msg = "No next location on the path"
        raise NotFoundError(msg, location_id=previous_location_id)

    report = location_unlock_bundle(world, next_location, previous_location_id).evaluate(snapshot, world)
    if not report.satisfied:
        msg = f"Requirements for {next_location.name} not met"
        raise PreconditionFailedError(msg, unmet=report.unmet)

    classes = world.classes_in(next_location.id)
    character.current_location_id = next_location.id
    character.current_class_id = classes[0].id if classes else None
    character.study_clicks_in_current_class = 0
    await _get_location_progress(db, character.id, next_location.id)
    await db.commit()

    logger.info("Character %d advanced from %s to %s", character.id, previous_location_id, next_location.id)
    return {
        "previous_location_id": previous_location_id,
        "location_id": next_location.id,
        "class_id": character.current_class_id,
    }


@conflict_on_stale_write
async def select_specialization(
    db: AsyncSession,
    character_id: int,
    specialization_id: str,
) -> dict[str, Any]:
    """Irrevocably pick a specialization, paying its unlock cost.

    The debit and the assignment are one conditional UPDATE, so two racing
    selections cannot both succeed.
    """
    character = await get_character(db, character_id)
    world = await load_world(db)
    location = world.locations[character.current_location_id]

    if location.type != SPECIALIZATION_LOCATION_TYPE:
        msg = "Specializations can only be chosen at college"
        raise PreconditionFailedError(msg, location_id=location.id)
    if character.current_specialization_id is not None:
        msg = "Character already has a specialization"
        raise ConflictError(msg, specialization_id=character.current_specialization_id)

    spec = await db.get(Specialization, specialization_id)
    if spec is None or spec.location_id != location.id:
        msg = "Specialization not found"
        raise NotFoundError(msg, specialization_id=specialization_id)

    snapshot = await load_snapshot(db, character)
    report = specialization_bundle(spec.requirements, spec.unlock_cost, ASSESSMENT_LOCATION_TYPE).evaluate(
        snapshot, world
    )
    if not report.satisfied:
        msg = f"Requirements for {spec.name} not met"
        raise PreconditionFailedError(msg, unmet=report.unmet)

    result = await db.execute(
        update(Character)
        .where(
            Character.id == character.id,
            Character.current_specialization_id.is_(None),
            Character.cash >= spec.unlock_cost,
        )
        .values(
            cash=Character.cash - spec.unlock_cost,
            current_specialization_id=spec.id,
            version=Character.version + 1,
        )
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        await db.rollback()
        msg = "Specialization selection lost a concurrent update"
        raise ConflictError(msg)

    await db.commit()
    await db.refresh(character)
    logger.info("Character %d selected specialization %s", character.id, spec.id)
    return {
        "specialization_id": spec.id,
        "cost": spec.unlock_cost,
        "cash": character.cash,
    }
