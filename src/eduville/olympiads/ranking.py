"""Weekly olympiad ranking, percentile tiers and scoring. No I/O.

Two ranking rules coexist. While an event is running, a participant's rank is
``1 + number of strictly higher scores`` so ties share a rank. Finalization
assigns sequential ranks 1..N (ties broken by join order), and once stored
those ranks win.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from eduville.clock import as_utc
from eduville.progression.rounding import round_half_up

TIER_ORDER = ("top10", "top25", "top50", "participation")

DEFAULT_REWARD_TIERS: dict[str, dict[str, int]] = {
    "top10": {"cash": 5000, "xp": 1000},
    "top25": {"cash": 2500, "xp": 500},
    "top50": {"cash": 1000, "xp": 250},
    "participation": {"cash": 100, "xp": 50},
}

SCORE_SUBJECT_WEIGHT = 100
SCORE_LEVEL_WEIGHT = 5
SCORE_EQUIPMENT_WEIGHT = 10
SCORE_VARIANCE_MAX = 50

_FAR_FUTURE = datetime(2099, 12, 31, 23, 59, 59, tzinfo=timezone.utc)


def event_status(
    starts_at: datetime,
    ends_at: datetime,
    now: datetime,
    finalized_at: datetime | None = None,
) -> str:
    """upcoming -> active -> ended -> finalized."""
    if finalized_at is not None:
        return "finalized"
    now = as_utc(now)
    if now < as_utc(starts_at):
        return "upcoming"
    if now < as_utc(ends_at):
        return "active"
    return "ended"


def live_rank(score: int, scores: list[int]) -> int:
    """Tie-inclusive rank: equal scores share the better rank."""
    return sum(1 for other in scores if other > score) + 1


def calculate_percentile(rank: int, total: int) -> float:
    """Share of the field ranked below ``rank``. Rank 10 of 100 -> 90.0."""
    if total <= 0:
        return 0.0
    return (total - rank) / total * 100


def display_percentile(percentile: float) -> float:
    return round_half_up(percentile, 1)


def determine_reward_tier(percentile: float) -> str:
    """Map a percentile onto a reward tier.

    >= 90 -> top10, >= 75 -> top25, >= 50 -> top50, else participation.
    """
    if percentile >= 90:
        return "top10"
    elif percentile >= 75:
        return "top25"
    elif percentile >= 50:
        return "top50"
    else:
        return "participation"


def rank_participants(participants: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Assign final sequential ranks.

    Input: dicts with ``score`` and a join-order key ``joined_at`` (ties go
    to whoever joined first), plus ``id`` as the last resort.

    Output: the same dicts sorted best-first and augmented with ``rank``
    (1..N, no gaps, no repeats) and ``percentile``.
    """
    if not participants:
        return []

    def sort_key(p: dict[str, Any]) -> tuple[int, datetime, int]:
        joined_at = p.get("joined_at")
        return (-p["score"], as_utc(joined_at) if joined_at else _FAR_FUTURE, p.get("id", 0))

    ranked = sorted(participants, key=sort_key)
    total = len(ranked)
    for idx, p in enumerate(ranked):
        p["rank"] = idx + 1
        p["percentile"] = calculate_percentile(idx + 1, total)
    return ranked


def effective_subject_level(subject_levels: dict[str, int], subject_id: str | None) -> float:
    """The event subject's level (missing = 1), or the mean over all subjects (none = 0)."""
    if subject_id is not None:
        return subject_levels.get(subject_id, 1)
    if not subject_levels:
        return 0
    return sum(subject_levels.values()) / len(subject_levels)


def weekly_score(avg_subject_level: float, character_level: int, equipment_bonus: int, variance: int) -> int:
    """Entry score fixed at join time; ``variance`` is drawn from 0..50."""
    return (
        math.floor(avg_subject_level * SCORE_SUBJECT_WEIGHT)
        + character_level * SCORE_LEVEL_WEIGHT
        + equipment_bonus * SCORE_EQUIPMENT_WEIGHT
        + variance
    )


def rotation_subject(subject_ids: list[str], week_number: int) -> str | None:
    """Pick the week's subject by cycling through ``subject_ids`` in order."""
    if not subject_ids:
        return None
    return subject_ids[week_number % len(subject_ids)]
