"""Integration tests for class completion, location advance and specializations."""

from __future__ import annotations

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from eduville.db.models import Character, CharacterSubject, LocationProgress
from eduville.errors import ConflictError, NotFoundError, PreconditionFailedError
from eduville.progression.service import (
    advance_location,
    class_preview,
    complete_class,
    get_progress,
    list_specializations,
    location_preview,
    select_specialization,
)
from tests.helpers import give_grades


async def _set_levels(db: AsyncSession, character_id: int, **levels: int) -> None:
    for subject_id, level in levels.items():
        await db.execute(
            update(CharacterSubject)
            .where(CharacterSubject.character_id == character_id, CharacterSubject.subject_id == subject_id)
            .values(level=level)
        )
    await db.commit()


async def _move_to(db: AsyncSession, character: Character, location_id: str, class_id: str | None) -> None:
    character.current_location_id = location_id
    character.current_class_id = class_id
    await db.commit()


class TestNewCharacter:
    async def test_starts_in_prep_school(self, db_session, alice):
        progress = await get_progress(db_session, alice.id)
        assert progress["current_location_id"] == "prep-school"
        assert progress["current_class_id"] == "prep-class-1"
        assert [loc["location_id"] for loc in progress["locations"]] == [
            "prep-school", "school", "college", "university",
        ]
        assert progress["current_class_grades"] == {
            "mathematics": {"collected": 0, "required": 5},
            "literature": {"collected": 0, "required": 5},
        }


class TestCompleteClass:
    async def test_reports_missing_grades_per_subject(self, db_session, alice):
        await give_grades(db_session, alice.id, "prep-class-1", "mathematics", 60, 60)
        with pytest.raises(PreconditionFailedError) as exc_info:
            await complete_class(db_session, alice.id)
        assert exc_info.value.message == "Need 3 more Mathematics grades, 5 more Literature grades"
        assert {c.subject_id: c.missing for c in exc_info.value.unmet} == {"mathematics": 3, "literature": 5}

    async def test_completing_last_class_finishes_location(self, db_session, alice):
        await give_grades(db_session, alice.id, "prep-class-1", "mathematics", *[60] * 5)
        await give_grades(db_session, alice.id, "prep-class-1", "literature", *[60] * 5)

        result = await complete_class(db_session, alice.id)

        assert result["completed_class_id"] == "prep-class-1"
        assert result["next_class_id"] is None
        assert result["location_completion_percent"] == 100.0
        assert result["location_completed"]
        assert alice.current_class_id is None
        assert alice.study_clicks_in_current_class == 0

    async def test_school_class_moves_to_next_and_caches_class_ratio(self, db_session, alice):
        await _move_to(db_session, alice, "school", "school-class-1")
        for subject in ("mathematics", "literature", "physical-education", "art"):
            await give_grades(db_session, alice.id, "school-class-1", subject, *[55] * 5)

        result = await complete_class(db_session, alice.id)

        assert result["next_class_id"] == "school-class-2"
        assert result["location_completion_percent"] == 9.09  # 1 of 11 classes
        assert not result["location_completed"]
        progress = await get_progress(db_session, alice.id)
        school = next(loc for loc in progress["locations"] if loc["location_id"] == "school")
        assert school["completion_percent"] == 9.09

    async def test_preview_shows_level_and_quality_clauses(self, db_session, alice):
        await _move_to(db_session, alice, "school", "school-class-5")
        preview = await class_preview(db_session, alice.id)
        kinds = {c["kind"] for c in preview["clauses"]}
        assert kinds == {"grade_quantity", "subject_level", "grade_quality"}
        assert not preview["can_complete"]
        assert not preview["can_advance"]
        assert preview["next_class_id"] == "school-class-6"


class TestAdvanceLocation:
    async def test_needs_completion_and_subject_levels(self, db_session, alice):
        await give_grades(db_session, alice.id, "prep-class-1", "mathematics", *[60] * 5)
        await give_grades(db_session, alice.id, "prep-class-1", "literature", *[60] * 5)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await advance_location(db_session, alice.id)
        unmet = exc_info.value.unmet
        assert {c.kind for c in unmet} == {"subject_level"}
        assert {c.subject_id: c.required for c in unmet} == {"mathematics": 4, "literature": 5}

        await _set_levels(db_session, alice.id, mathematics=4, literature=5)
        preview = await location_preview(db_session, alice.id)
        assert preview["next_location_id"] == "school"
        assert preview["can_advance"]

        result = await advance_location(db_session, alice.id)
        assert result == {"previous_location_id": "prep-school", "location_id": "school", "class_id": "school-class-1"}

    async def test_uses_fresh_grade_percent_not_cached_value(self, db_session, alice):
        await _set_levels(db_session, alice.id, mathematics=10, literature=10)
        await db_session.execute(
            update(LocationProgress)
            .where(LocationProgress.character_id == alice.id, LocationProgress.location_id == "prep-school")
            .values(completion_percent=100, is_completed=True)
        )
        await db_session.commit()

        with pytest.raises(PreconditionFailedError) as exc_info:
            await advance_location(db_session, alice.id)
        percent = exc_info.value.unmet[0]
        assert percent.kind == "completion_percent"
        assert percent.current == 0.0

    async def test_end_of_path(self, db_session, alice):
        await _move_to(db_session, alice, "university", None)
        with pytest.raises(NotFoundError):
            await advance_location(db_session, alice.id)
        preview = await location_preview(db_session, alice.id)
        assert preview["next_location_id"] is None
        assert not preview["can_advance"]


class TestSpecialization:
    async def _qualify_for_arts(self, db: AsyncSession, character: Character, cash: int) -> None:
        await _set_levels(db, character.id, art=20, literature=15)
        await give_grades(db, character.id, "school-class-1", "art", 80, 70)
        character.cash = cash
        await _move_to(db, character, "college", None)

    async def test_only_at_college(self, db_session, alice):
        with pytest.raises(PreconditionFailedError):
            await select_specialization(db_session, alice.id, "spec-arts-design")

    async def test_select_debits_cost_once(self, db_session, alice):
        await self._qualify_for_arts(db_session, alice, cash=2000)

        listing = {s["id"]: s for s in await list_specializations(db_session, alice.id)}
        assert listing["spec-arts-design"]["can_select"]
        assert not listing["spec-computer-science"]["can_select"]

        result = await select_specialization(db_session, alice.id, "spec-arts-design")
        assert result == {"specialization_id": "spec-arts-design", "cost": 1500, "cash": 500}
        assert alice.current_specialization_id == "spec-arts-design"

        with pytest.raises(ConflictError):
            await select_specialization(db_session, alice.id, "spec-business")

    async def test_unmet_requirements_listed(self, db_session, alice):
        await self._qualify_for_arts(db_session, alice, cash=100)
        with pytest.raises(PreconditionFailedError) as exc_info:
            await select_specialization(db_session, alice.id, "spec-arts-design")
        assert [c.kind for c in exc_info.value.unmet] == ["balance"]
        assert exc_info.value.unmet[0].missing == 1400
        await db_session.refresh(alice)
        assert alice.cash == 100
        assert alice.current_specialization_id is None

    async def test_unknown_specialization(self, db_session, alice):
        await _move_to(db_session, alice, "college", None)
        with pytest.raises(NotFoundError):
            await select_specialization(db_session, alice.id, "spec-astrology")
