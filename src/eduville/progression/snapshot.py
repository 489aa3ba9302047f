"""Load the world arena and per-character progress snapshots from the database."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eduville.db.models import Character, CharacterSubject, Grade, Location, SchoolClass, Subject
from eduville.progression.requirements import (
    ClassDef,
    GradeRecord,
    LocationDef,
    ProgressSnapshot,
    World,
)


async def load_world(db: AsyncSession) -> World:
    """Build the id-indexed world arena from static content tables."""
    subjects = (await db.execute(select(Subject))).scalars().all()
    locations = (await db.execute(select(Location))).scalars().all()
    classes = (await db.execute(select(SchoolClass))).scalars().all()

    return World(
        subjects={s.id: s.name for s in subjects},
        locations={
            loc.id: LocationDef(
                id=loc.id,
                name=loc.name,
                type=loc.type,
                order_index=loc.order_index,
                allowed_subjects=tuple(loc.allowed_subjects or ()),
                unlock_requirement=loc.unlock_requirement,
            )
            for loc in locations
        },
        classes={
            c.id: ClassDef(
                id=c.id,
                location_id=c.location_id,
                grade_number=c.grade_number,
                required_grades_per_subject=c.required_grades_per_subject,
                allowed_subjects=tuple(c.allowed_subjects or ()),
                requirements=c.requirements,
            )
            for c in classes
        },
    )


async def load_snapshot(db: AsyncSession, character: Character) -> ProgressSnapshot:
    """Read-only view of everything the requirement clauses look at."""
    subject_rows = await db.execute(
        select(CharacterSubject.subject_id, CharacterSubject.level).where(
            CharacterSubject.character_id == character.id
        )
    )
    grade_rows = await db.execute(
        select(Grade.class_id, Grade.subject_id, Grade.score).where(Grade.character_id == character.id)
    )

    return ProgressSnapshot(
        subject_levels={row.subject_id: row.level for row in subject_rows},
        grades=[GradeRecord(row.class_id, row.subject_id, row.score) for row in grade_rows],
        cash=character.cash,
    )
