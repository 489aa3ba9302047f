"""Integration tests for NPC olympiad battles."""

from __future__ import annotations

import random

import pytest

from eduville.errors import NotFoundError, PreconditionFailedError
from eduville.olympiads.battle_service import battle, battle_score, effective_level, list_olympiads
from tests.helpers import NOW, make_character


class TestEffectiveLevel:
    def test_subject_olympiad(self):
        assert effective_level(5, {"mathematics": 8}, "mathematics") == 6

    def test_unstudied_subject_uses_character_level(self):
        assert effective_level(5, {"physics": 8}, "mathematics") == 5

    def test_general_olympiad_averages_subjects(self):
        assert effective_level(4, {"mathematics": 6, "physics": 2}, None) == 4

    def test_score_floor(self):
        assert battle_score(1, -15) == 0


class TestBattle:
    async def test_level_gate(self, db_session, alice):
        with pytest.raises(PreconditionFailedError) as exc_info:
            await battle(db_session, alice.id, "olympiad-national-general", now=NOW)

        [clause] = exc_info.value.unmet
        assert (clause.kind, clause.current, clause.required) == ("character_level", 1, 10)
        assert alice.olympiad_energy == 50

    async def test_energy_spent_win_or_lose(self, db_session, alice):
        result = await battle(db_session, alice.id, "olympiad-school-general", now=NOW, rng=random.Random(3))

        assert result["olympiad_energy"] == 45
        await db_session.refresh(alice)
        assert alice.olympiad_energy == 45

    async def test_insufficient_energy(self, db_session):
        tired = await make_character(db_session, "tired", olympiad_energy=3)

        with pytest.raises(PreconditionFailedError):
            await battle(db_session, tired.id, "olympiad-school-general", now=NOW)
        assert tired.olympiad_energy == 3

    async def test_unknown_olympiad(self, db_session, alice):
        with pytest.raises(NotFoundError):
            await battle(db_session, alice.id, "olympiad-galactic", now=NOW)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    async def test_strong_character_always_wins(self, db_session, seed):
        veteran = await make_character(db_session, "veteran", level=30)
        cash_before = veteran.cash

        result = await battle(db_session, veteran.id, "olympiad-school-general", now=NOW, rng=random.Random(seed))

        assert result["won"]
        assert 20 <= result["rewards"]["cash"] <= 50
        assert 10 <= result["rewards"]["xp"] <= 25
        assert veteran.cash == cash_before + result["rewards"]["cash"]
        assert 1 <= result["npc_level"] <= 3


class TestListOlympiads:
    async def test_flags(self, db_session, alice):
        listing = await list_olympiads(db_session, alice.id, now=NOW)

        by_id = {o["id"]: o for o in listing["olympiads"]}
        assert listing["olympiad_energy"] == 50
        assert by_id["olympiad-school-general"]["is_unlocked"]
        assert not by_id["olympiad-national-general"]["is_unlocked"]
        assert by_id["olympiad-national-general"]["can_afford"]
        # Sorted by required level
        assert [o["required_level"] for o in listing["olympiads"]] == sorted(
            o["required_level"] for o in listing["olympiads"]
        )
