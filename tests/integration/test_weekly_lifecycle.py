"""Integration tests for the weekly olympiad: join, rank, finalize, claim."""

from __future__ import annotations

import random
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from eduville.db.models import EventParticipant, RankedEvent
from eduville.errors import ConflictError, ExpiredError, PreconditionFailedError
from eduville.olympiads.weekly_service import (
    claim_rewards,
    create_weekly_event,
    finalize_due_events,
    finalize_event,
    get_active_event,
    get_leaderboard,
    get_my_rank,
    join_event,
    open_weekly_event,
)
from tests.helpers import NOW, make_character

DURING = NOW + timedelta(minutes=10)
AFTER = NOW + timedelta(hours=2)


async def _add_participants(db, event, scores: list[int]) -> list[int]:
    """One character per score, joined in list order. Returns character ids."""
    ids = []
    for i, score in enumerate(scores):
        character = await make_character(db, f"player-{i}")
        db.add(EventParticipant(
            event_id=event.id,
            character_id=character.id,
            score=score,
            joined_at=NOW + timedelta(seconds=i),
        ))
        ids.append(character.id)
    await db.commit()
    return ids


class TestCreate:
    async def test_rotates_subject_by_iso_week(self, db_session):
        event = await create_weekly_event(db_session, now=NOW, duration_minutes=60)
        # ISO week 10 over nine subjects sorted by id
        assert event.subject_id == "biology"
        assert event.ends_at - event.starts_at == timedelta(minutes=60)

    async def test_active_event_visible(self, db_session, alice):
        event = await create_weekly_event(db_session, now=NOW)
        active = await get_active_event(db_session, alice.id, now=DURING)
        assert active["event"]["id"] == event.id
        assert active["event"]["status"] == "active"
        assert active["participation"] is None

    async def test_scheduled_opener_runs_once_per_week(self, db_session):
        sunday_evening = NOW + timedelta(days=6, hours=6)
        first = await open_weekly_event(db_session, now=NOW)
        again = await open_weekly_event(db_session, now=sunday_evening)

        assert again.id == first.id
        count = await db_session.scalar(select(func.count()).select_from(RankedEvent))
        assert count == 1

    async def test_scheduled_opener_creates_next_week_event(self, db_session):
        first = await open_weekly_event(db_session, now=NOW)
        following = await open_weekly_event(db_session, now=NOW + timedelta(weeks=1))

        assert following.id != first.id
        assert following.subject_id != first.subject_id


class TestJoin:
    async def test_join_fixes_score(self, db_session, alice):
        event = await create_weekly_event(db_session, now=NOW, subject_id="mathematics")
        participation = await join_event(db_session, alice.id, event.id, now=DURING, rng=random.Random(0))
        # Level 1 subject and character, no equipment: 100 + 5 + variance
        assert 105 <= participation.score <= 155

        rank = await get_my_rank(db_session, alice.id, event.id)
        assert rank["joined"]
        assert (rank["rank"], rank["total"]) == (1, 1)

    async def test_join_twice(self, db_session, alice):
        event = await create_weekly_event(db_session, now=NOW)
        await join_event(db_session, alice.id, event.id, now=DURING)
        with pytest.raises(ConflictError):
            await join_event(db_session, alice.id, event.id, now=DURING)

    async def test_join_before_start(self, db_session, alice):
        event = await create_weekly_event(db_session, now=NOW)
        with pytest.raises(PreconditionFailedError):
            await join_event(db_session, alice.id, event.id, now=NOW - timedelta(minutes=1))

    async def test_join_after_end(self, db_session, alice):
        event = await create_weekly_event(db_session, now=NOW)
        with pytest.raises(ExpiredError):
            await join_event(db_session, alice.id, event.id, now=AFTER)

    async def test_not_joined(self, db_session, alice):
        event = await create_weekly_event(db_session, now=NOW)
        assert await get_my_rank(db_session, alice.id, event.id) == {"joined": False}


class TestFinalize:
    async def test_ranks_are_a_permutation(self, db_session):
        event = await create_weekly_event(db_session, now=NOW)
        ids = await _add_participants(db_session, event, [300, 500, 300, 100, 500])

        ranked = await finalize_event(db_session, event.id, now=AFTER)

        assert [entry["rank"] for entry in ranked] == [1, 2, 3, 4, 5]
        # Ties broken by join order
        assert [entry["character_id"] for entry in ranked] == [ids[1], ids[4], ids[0], ids[2], ids[3]]

        stored = await db_session.execute(
            select(EventParticipant.character_id, EventParticipant.rank).where(EventParticipant.event_id == event.id)
        )
        assert dict(stored.all()) == {entry["character_id"]: entry["rank"] for entry in ranked}

    async def test_finalize_twice(self, db_session):
        event = await create_weekly_event(db_session, now=NOW)
        await _add_participants(db_session, event, [10])
        await finalize_event(db_session, event.id, now=AFTER)
        with pytest.raises(ConflictError):
            await finalize_event(db_session, event.id, now=AFTER)

    async def test_not_before_end(self, db_session):
        event = await create_weekly_event(db_session, now=NOW)
        with pytest.raises(PreconditionFailedError):
            await finalize_event(db_session, event.id, now=DURING)

    async def test_due_events(self, db_session):
        empty = await create_weekly_event(db_session, now=NOW)
        assert await finalize_due_events(db_session, now=AFTER) is None

        event = await create_weekly_event(db_session, now=NOW)
        await _add_participants(db_session, event, [10, 20])
        finalized = await finalize_due_events(db_session, now=AFTER)
        assert finalized.id == event.id
        await db_session.refresh(empty)
        assert empty.finalized_at is None


class TestClaim:
    async def test_rank_10_of_100_gets_top_tier_once(self, db_session):
        event = await create_weekly_event(db_session, now=NOW)
        ids = await _add_participants(db_session, event, [1000 - i for i in range(100)])
        await finalize_event(db_session, event.id, now=AFTER)

        tenth = ids[9]
        reward = await claim_rewards(db_session, tenth, event.id, now=AFTER)

        assert (reward["tier"], reward["rank"], reward["total"]) == ("top10", 10, 100)
        assert reward["percentile"] == 90.0
        assert (reward["cash"], reward["xp"]) == (5000, 1000)
        assert reward["level"] == 4

        with pytest.raises(ConflictError):
            await claim_rewards(db_session, tenth, event.id, now=AFTER)

    async def test_tiers_by_percentile(self, db_session):
        event = await create_weekly_event(db_session, now=NOW)
        ids = await _add_participants(db_session, event, [40, 30, 20, 10])
        await finalize_event(db_session, event.id, now=AFTER)

        tiers = [(await claim_rewards(db_session, cid, event.id, now=AFTER))["tier"] for cid in ids]
        # Percentiles 75, 50, 25, 0
        assert tiers == ["top25", "top50", "participation", "participation"]

    async def test_claim_before_end(self, db_session, alice):
        event = await create_weekly_event(db_session, now=NOW)
        await join_event(db_session, alice.id, event.id, now=DURING)
        with pytest.raises(PreconditionFailedError):
            await claim_rewards(db_session, alice.id, event.id, now=DURING)

    async def test_claim_without_joining(self, db_session, alice):
        event = await create_weekly_event(db_session, now=NOW)
        with pytest.raises(PreconditionFailedError):
            await claim_rewards(db_session, alice.id, event.id, now=AFTER)

    async def test_leaderboard_pages(self, db_session):
        event = await create_weekly_event(db_session, now=NOW)
        await _add_participants(db_session, event, [50, 40, 30])

        page = await get_leaderboard(db_session, event.id, limit=2)
        assert [e["score"] for e in page["entries"]] == [50, 40]
        assert [e["rank"] for e in page["entries"]] == [1, 2]
        assert page["has_more"]

        rest = await get_leaderboard(db_session, event.id, limit=2, offset=2)
        assert [e["rank"] for e in rest["entries"]] == [3]
        assert not rest["has_more"]
