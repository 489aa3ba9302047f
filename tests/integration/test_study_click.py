"""Integration tests for the study click."""

from __future__ import annotations

import random
from datetime import timedelta

import pytest
from sqlalchemy import select

from eduville.admin.flags import DebugFlags
from eduville.characters.inventory_service import equip_item
from eduville.db.models import Grade
from eduville.errors import PreconditionFailedError
from eduville.progression.study_service import study
from tests.helpers import NOW, give_item, make_character

PREP_SUBJECTS = {"mathematics", "literature"}


class TestStudy:
    async def test_single_click(self, db_session, alice):
        result = await study(db_session, alice.id, now=NOW + timedelta(seconds=1), rng=random.Random(1))

        assert 3 <= result["character_xp_gained"] <= 8
        assert alice.total_xp == result["character_xp_gained"]
        assert result["study_energy"] == 99
        assert result["study_clicks_in_current_class"] == 1
        assert result["clicks_until_next_grade"] == 9
        assert result["grade"] is None
        assert {g["subject_id"] for g in result["subject_xp_gains"]} <= PREP_SUBJECTS
        assert result["subject_xp_gains"]
        assert result["cooldown_until"] == NOW + timedelta(seconds=4)

    async def test_cooldown_blocks_rapid_clicks(self, db_session, alice):
        await study(db_session, alice.id, now=NOW, rng=random.Random(2))
        with pytest.raises(PreconditionFailedError) as exc_info:
            await study(db_session, alice.id, now=NOW + timedelta(seconds=1), rng=random.Random(2))
        assert exc_info.value.unmet[0].kind == "cooldown"

        result = await study(db_session, alice.id, now=NOW + timedelta(seconds=3), rng=random.Random(2))
        assert result["study_clicks_in_current_class"] == 2

    async def test_debug_flag_disables_cooldown(self, db_session, alice):
        flags = DebugFlags(cooldown_disabled=True)
        await study(db_session, alice.id, flags=flags, now=NOW, rng=random.Random(3))
        result = await study(db_session, alice.id, flags=flags, now=NOW, rng=random.Random(3))
        assert result["study_clicks_in_current_class"] == 2

    async def test_grade_every_tenth_click(self, db_session, alice):
        rng = random.Random(4)
        results = [
            await study(db_session, alice.id, now=NOW + timedelta(seconds=5 * i), rng=rng)
            for i in range(10)
        ]

        assert all(r["grade"] is None for r in results[:9])
        grade = results[9]["grade"]
        assert grade is not None
        assert grade["subject_id"] in PREP_SUBJECTS
        assert 0 <= grade["score"] <= 100
        assert results[9]["clicks_until_next_grade"] == 10

        rows = (await db_session.execute(select(Grade).where(Grade.character_id == alice.id))).scalars().all()
        assert len(rows) == 1
        assert rows[0].class_id == "prep-class-1"

    async def test_out_of_energy(self, db_session, alice):
        alice.study_energy = 0
        alice.study_energy_last_regen = NOW
        await db_session.commit()

        with pytest.raises(PreconditionFailedError) as exc_info:
            await study(db_session, alice.id, now=NOW + timedelta(minutes=1))
        clause = exc_info.value.unmet[0]
        assert clause.kind == "energy"
        assert clause.current == 0

    async def test_energy_regenerates_between_clicks(self, db_session, alice):
        alice.study_energy = 0
        alice.study_energy_last_regen = NOW
        await db_session.commit()

        result = await study(db_session, alice.id, now=NOW + timedelta(minutes=7), rng=random.Random(5))
        # Two units regenerated, one spent
        assert result["study_energy"] == 1

    async def test_equipment_xp_bonus_applies(self, db_session, alice):
        carol = await make_character(db_session, "carol")
        await give_item(db_session, alice.id, "fountain-pen")
        await equip_item(db_session, alice.id, "fountain-pen")

        # Same seed, same subjects picked; only the +10% xp bonus differs
        boosted = await study(db_session, alice.id, now=NOW, rng=random.Random(6))
        plain = await study(db_session, carol.id, now=NOW, rng=random.Random(6))
        for with_pen, without in zip(boosted["subject_xp_gains"], plain["subject_xp_gains"], strict=True):
            assert with_pen["subject_id"] == without["subject_id"]
            assert with_pen["xp_gained"] == int(without["xp_gained"] * 1.1)
