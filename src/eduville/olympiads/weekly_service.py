"""Weekly olympiad: a time-boxed ranked event with percentile reward tiers.

Lifecycle: created by the scheduler, joined while active (score fixed at
join), finalized after the end (sequential ranks), then each participant
claims exactly once.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import exists, func, select, update
from sqlalchemy.exc import IntegrityError

from eduville.characters.service import (
    announce_level_up,
    credit_cash,
    get_character,
    get_equipment_bonuses,
    grant_character_xp,
)
from eduville.clock import as_utc, get_week_boundaries, resolve_now
from eduville.config import get_settings
from eduville.db.models import Character, CharacterSubject, EventParticipant, RankedEvent, Subject
from eduville.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    PreconditionFailedError,
    conflict_on_stale_write,
)
from eduville.olympiads.ranking import (
    DEFAULT_REWARD_TIERS,
    SCORE_VARIANCE_MAX,
    calculate_percentile,
    determine_reward_tier,
    display_percentile,
    effective_subject_level,
    event_status,
    live_rank,
    rank_participants,
    rotation_subject,
    weekly_score,
)
from eduville.redis_client import publish

if TYPE_CHECKING:
    import redis.asyncio as redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

UPCOMING_LOOKAHEAD = timedelta(days=7)


async def get_event(db: AsyncSession, event_id: int) -> RankedEvent:
    event = await db.get(RankedEvent, event_id)
    if event is None:
        msg = "Event not found"
        raise NotFoundError(msg, event_id=event_id)
    return event


async def _get_participation(db: AsyncSession, event_id: int, character_id: int) -> EventParticipant | None:
    result = await db.execute(
        select(EventParticipant).where(
            EventParticipant.event_id == event_id,
            EventParticipant.character_id == character_id,
        )
    )
    return result.scalar_one_or_none()


async def _count_participants(db: AsyncSession, event_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(EventParticipant).where(EventParticipant.event_id == event_id)
    )
    return result.scalar_one()


async def _current_rank(db: AsyncSession, participation: EventParticipant) -> int:
    """Stored rank once finalized, otherwise the live tie-inclusive rank."""
    if participation.rank is not None:
        return participation.rank
    result = await db.execute(
        select(EventParticipant.score).where(EventParticipant.event_id == participation.event_id)
    )
    return live_rank(participation.score, list(result.scalars().all()))


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


async def create_weekly_event(
    db: AsyncSession,
    now: datetime | None = None,
    duration_minutes: int | None = None,
    subject_id: str | None = None,
    reward_tiers: dict[str, dict[str, int]] | None = None,
) -> RankedEvent:
    """Open a new event starting ``now``.

    Without an explicit subject, the subject rotates through all subjects by
    ISO week number.
    """
    now = resolve_now(now)
    settings = get_settings()
    duration = duration_minutes or settings.weekly_event_duration_minutes

    if subject_id is None:
        subject_ids = list((await db.execute(select(Subject.id).order_by(Subject.id))).scalars().all())
        subject_id = rotation_subject(subject_ids, now.isocalendar()[1])

    event = RankedEvent(
        subject_id=subject_id,
        starts_at=now,
        ends_at=now + timedelta(minutes=duration),
        reward_tiers=reward_tiers or DEFAULT_REWARD_TIERS,
        created_at=now,
    )
    db.add(event)
    await db.commit()

    logger.info("Created weekly olympiad %d (%s), ends at %s", event.id, subject_id, event.ends_at.isoformat())
    return event


async def open_weekly_event(db: AsyncSession, now: datetime | None = None) -> RankedEvent:
    """Scheduled opener: creates at most one event per ISO week.

    A repeated run in the same week (retry, second worker) returns the event
    already opened instead of starting a parallel one.
    """
    now = resolve_now(now)
    week_start, week_end = get_week_boundaries(now)

    result = await db.execute(
        select(RankedEvent)
        .where(RankedEvent.starts_at >= week_start, RankedEvent.starts_at < week_end)
        .order_by(RankedEvent.id)
        .limit(1)
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        logger.info("Weekly olympiad %d already open for week of %s", existing.id, week_start.date().isoformat())
        return existing

    return await create_weekly_event(db, now=now)


async def get_active_event(db: AsyncSession, character_id: int, now: datetime | None = None) -> dict[str, Any] | None:
    """The most recent event that is running, upcoming within a week, or still claimable."""
    now = resolve_now(now)
    settings = get_settings()
    claim_window = timedelta(hours=settings.weekly_event_claim_window_hours)

    result = await db.execute(
        select(RankedEvent)
        .where(
            RankedEvent.starts_at <= now + UPCOMING_LOOKAHEAD,
            RankedEvent.ends_at > now - claim_window,
        )
        .order_by(RankedEvent.starts_at.desc(), RankedEvent.id.desc())
        .limit(1)
    )
    event = result.scalar_one_or_none()
    if event is None:
        return None

    participation = await _get_participation(db, event.id, character_id)
    return {
        "event": event_to_dict(event, now, await _count_participants(db, event.id)),
        "participation": (
            {
                "score": participation.score,
                "rank": participation.rank,
                "rewards_claimed": participation.rewards_claimed,
            }
            if participation
            else None
        ),
    }


def event_to_dict(event: RankedEvent, now: datetime, total_participants: int) -> dict[str, Any]:
    return {
        "id": event.id,
        "subject_id": event.subject_id,
        "starts_at": event.starts_at,
        "ends_at": event.ends_at,
        "reward_tiers": event.reward_tiers,
        "status": event_status(event.starts_at, event.ends_at, now, event.finalized_at),
        "finalized_at": event.finalized_at,
        "total_participants": total_participants,
    }


# ---------------------------------------------------------------------------
# Participation
# ---------------------------------------------------------------------------


@conflict_on_stale_write
async def join_event(
    db: AsyncSession,
    character_id: int,
    event_id: int,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> EventParticipant:
    """Enter an active event. The score is computed once, here.

    Raises:
        PreconditionFailedError: Event has not started.
        ExpiredError: Event has ended.
        ConflictError: Already joined.
    """
    now = resolve_now(now)
    rng = rng or random.Random()

    character = await get_character(db, character_id)
    event = await get_event(db, event_id)

    status = event_status(event.starts_at, event.ends_at, now, event.finalized_at)
    if status == "upcoming":
        msg = "Event has not started yet"
        raise PreconditionFailedError(msg, event_id=event_id, starts_at=event.starts_at.isoformat())
    if status != "active":
        msg = "Event has ended"
        raise ExpiredError(msg, event_id=event_id)

    if await _get_participation(db, event.id, character.id) is not None:
        msg = "Already joined this event"
        raise ConflictError(msg, event_id=event_id)

    levels = await db.execute(
        select(CharacterSubject.subject_id, CharacterSubject.level).where(
            CharacterSubject.character_id == character.id
        )
    )
    subject_level = effective_subject_level({row.subject_id: row.level for row in levels}, event.subject_id)
    bonuses = await get_equipment_bonuses(db, character.id)
    score = weekly_score(
        subject_level,
        character.level,
        bonuses.xp_bonus + bonuses.grade_bonus,
        rng.randint(0, SCORE_VARIANCE_MAX),
    )

    participation = EventParticipant(
        event_id=event.id,
        character_id=character.id,
        score=score,
        joined_at=now,
    )
    db.add(participation)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        msg = "Already joined this event"
        raise ConflictError(msg, event_id=event_id) from exc

    logger.info("Character %d joined event %d with score %d", character.id, event.id, score)
    return participation


async def get_my_rank(db: AsyncSession, character_id: int, event_id: int) -> dict[str, Any]:
    await get_character(db, character_id)
    await get_event(db, event_id)
    participation = await _get_participation(db, event_id, character_id)
    if participation is None:
        return {"joined": False}

    total = await _count_participants(db, event_id)
    rank = await _current_rank(db, participation)
    return {
        "joined": True,
        "score": participation.score,
        "rank": rank,
        "total": total,
        "percentile": display_percentile(calculate_percentile(rank, total)),
        "rewards_claimed": participation.rewards_claimed,
    }


async def get_leaderboard(db: AsyncSession, event_id: int, limit: int = 50, offset: int = 0) -> dict[str, Any]:
    """Participants by score; stored rank when finalized, position otherwise."""
    await get_event(db, event_id)
    result = await db.execute(
        select(EventParticipant, Character.name, Character.level)
        .join(Character, Character.id == EventParticipant.character_id)
        .where(EventParticipant.event_id == event_id)
        .order_by(EventParticipant.score.desc(), EventParticipant.joined_at.asc(), EventParticipant.id.asc())
        .offset(offset)
        .limit(limit)
    )
    rows = result.all()
    total = await _count_participants(db, event_id)

    entries = [
        {
            "rank": participant.rank or offset + idx + 1,
            "character_id": participant.character_id,
            "character_name": name,
            "character_level": level,
            "score": participant.score,
        }
        for idx, (participant, name, level) in enumerate(rows)
    ]
    return {"entries": entries, "total": total, "has_more": offset + len(entries) < total}


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------


async def finalize_event(
    db: AsyncSession,
    event_id: int,
    redis_client: redis.Redis | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Assign final ranks 1..N to every participant of an ended event.

    Raises:
        PreconditionFailedError: Event still running.
        ConflictError: Event already finalized.
    """
    now = resolve_now(now)
    event = await get_event(db, event_id)
    if event.finalized_at is not None:
        msg = "Event already finalized"
        raise ConflictError(msg, event_id=event_id)
    if now < as_utc(event.ends_at):
        msg = "Event has not ended yet"
        raise PreconditionFailedError(msg, event_id=event_id)

    participants = (
        await db.execute(select(EventParticipant).where(EventParticipant.event_id == event.id))
    ).scalars().all()
    by_id = {p.id: p for p in participants}

    ranked = rank_participants([
        {"id": p.id, "character_id": p.character_id, "score": p.score, "joined_at": p.joined_at}
        for p in participants
    ])
    for entry in ranked:
        by_id[entry["id"]].rank = entry["rank"]

    claimed = await db.execute(
        update(RankedEvent)
        .where(RankedEvent.id == event.id, RankedEvent.finalized_at.is_(None))
        .values(finalized_at=now)
        .execution_options(synchronize_session="fetch")
    )
    if claimed.rowcount == 0:
        await db.rollback()
        msg = "Event already finalized"
        raise ConflictError(msg, event_id=event_id)
    await db.commit()

    logger.info("Finalized event %d with %d participants", event.id, len(ranked))
    await publish(
        redis_client,
        "pubsub:event_finalized",
        {
            "event_id": event.id,
            "total_participants": len(ranked),
            "winner_character_id": ranked[0]["character_id"] if ranked else None,
        },
    )
    return ranked


async def finalize_due_events(
    db: AsyncSession,
    redis_client: redis.Redis | None = None,
    now: datetime | None = None,
) -> RankedEvent | None:
    """Finalize the most recently ended unfinalized event that has participants.

    Returns None, changing nothing, when there is no such event.
    """
    now = resolve_now(now)
    has_participants = exists().where(EventParticipant.event_id == RankedEvent.id)
    result = await db.execute(
        select(RankedEvent)
        .where(RankedEvent.ends_at <= now, RankedEvent.finalized_at.is_(None), has_participants)
        .order_by(RankedEvent.ends_at.desc())
        .limit(1)
    )
    event = result.scalar_one_or_none()
    if event is None:
        logger.info("No weekly olympiad to finalize")
        return None

    await finalize_event(db, event.id, redis_client, now)
    return event


@conflict_on_stale_write
async def claim_rewards(
    db: AsyncSession,
    character_id: int,
    event_id: int,
    redis_client: redis.Redis | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Pay out the participant's tier exactly once.

    The claim flag flips through a conditional UPDATE, so concurrent claims
    cannot both pay.

    Raises:
        PreconditionFailedError: Event not ended, or character did not take part.
        ConflictError: Already claimed.
    """
    now = resolve_now(now)
    character = await get_character(db, character_id)
    event = await get_event(db, event_id)
    if now < as_utc(event.ends_at):
        msg = "Event has not ended yet"
        raise PreconditionFailedError(msg, event_id=event_id)

    participation = await _get_participation(db, event.id, character.id)
    if participation is None:
        msg = "You did not participate in this event"
        raise PreconditionFailedError(msg, event_id=event_id)
    if participation.rewards_claimed:
        msg = "Rewards already claimed"
        raise ConflictError(msg, event_id=event_id)

    rank = await _current_rank(db, participation)
    total = await _count_participants(db, event.id)
    percentile = calculate_percentile(rank, total)
    tier = determine_reward_tier(percentile)
    reward = event.reward_tiers.get(tier) or DEFAULT_REWARD_TIERS[tier]

    flipped = await db.execute(
        update(EventParticipant)
        .where(EventParticipant.id == participation.id, EventParticipant.rewards_claimed.is_(False))
        .values(rewards_claimed=True, rank=rank)
        .execution_options(synchronize_session="fetch")
    )
    if flipped.rowcount == 0:
        await db.rollback()
        msg = "Rewards already claimed"
        raise ConflictError(msg, event_id=event_id)

    credit_cash(character, reward["cash"])
    level_up = grant_character_xp(character, reward["xp"])
    await db.commit()
    await announce_level_up(redis_client, character, level_up.levels_gained)

    logger.info("Character %d claimed %s on event %d (rank %d/%d)", character.id, tier, event.id, rank, total)
    return {
        "tier": tier,
        "rank": rank,
        "total": total,
        "percentile": display_percentile(percentile),
        "cash": reward["cash"],
        "xp": reward["xp"],
        "level": character.level,
    }
