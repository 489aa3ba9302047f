"""Integration tests for item drops from studying and olympiad wins."""

from __future__ import annotations

import random
from datetime import timedelta

from eduville.characters.drops import OLYMPIAD_RARITY_WEIGHTS, drop_random_item
from eduville.characters.inventory_service import get_inventory
from eduville.olympiads.battle_service import battle
from eduville.progression.study_service import study
from tests.helpers import NOW, make_character


class LuckyRandom(random.Random):
    """Every roll comes out at the bottom of its range, so every chance succeeds."""

    def random(self) -> float:
        return 0.0


class UnluckyRandom(random.Random):
    def random(self) -> float:
        return 0.999


async def _owned(db, character_id: int) -> dict[str, int]:
    return {item.id: entry.quantity for entry, item in await get_inventory(db, character_id)}


class TestOlympiadDrops:
    async def test_win_drops_common_item_at_school(self, db_session):
        veteran = await make_character(db_session, "veteran", level=30)

        result = await battle(db_session, veteran.id, "olympiad-school-general", now=NOW, rng=LuckyRandom())

        assert result["won"]
        drop = result["rewards"]["item_drop"]
        assert drop is not None
        assert drop["rarity"] == "common"
        assert await _owned(db_session, veteran.id) == {drop["item_id"]: 1}

    async def test_failed_item_roll_drops_nothing(self, db_session):
        veteran = await make_character(db_session, "veteran", level=30)

        result = await battle(db_session, veteran.id, "olympiad-school-general", now=NOW, rng=UnluckyRandom())

        assert result["won"]
        assert result["rewards"]["item_drop"] is None
        assert await _owned(db_session, veteran.id) == {}

    async def test_rarity_without_items_drops_nothing(self, db_session, alice):
        # National weights top out at legendary, and no legendary item is seeded
        dropped = await drop_random_item(db_session, alice.id, OLYMPIAD_RARITY_WEIGHTS["national"], UnluckyRandom())

        assert dropped is None
        assert await _owned(db_session, alice.id) == {}


class TestStudyDrops:
    async def test_lucky_click_drops_item(self, db_session, alice):
        result = await study(db_session, alice.id, now=NOW + timedelta(seconds=5), rng=LuckyRandom())

        drop = result["item_drop"]
        assert drop is not None
        assert drop["rarity"] == "common"
        assert await _owned(db_session, alice.id) == {drop["item_id"]: 1}

    async def test_unlucky_click_drops_nothing(self, db_session, alice):
        result = await study(db_session, alice.id, now=NOW + timedelta(seconds=5), rng=UnluckyRandom())

        assert result["item_drop"] is None
        assert await _owned(db_session, alice.id) == {}
