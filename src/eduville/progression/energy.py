"""Time-windowed regeneration of capped energy pools.

A pool recovers one unit per fixed interval. ``last_regen`` only ever moves
forward by whole intervals, so partial progress toward the next unit survives
a read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from eduville.clock import as_utc
from eduville.errors import PreconditionFailedError
from eduville.progression.requirements import ClauseResult

if TYPE_CHECKING:
    from eduville.config import Settings
    from eduville.db.models import Character


@dataclass(frozen=True)
class PoolSpec:
    """Static description of a pool stored on the character row."""

    name: str
    interval: timedelta

    @property
    def value_attr(self) -> str:
        return f"{self.name}_energy"

    @property
    def max_attr(self) -> str:
        return f"{self.name}_energy_max"

    @property
    def last_regen_attr(self) -> str:
        return f"{self.name}_energy_last_regen"


def study_pool(settings: Settings) -> PoolSpec:
    return PoolSpec("study", timedelta(minutes=settings.study_energy_regen_minutes))


def olympiad_pool(settings: Settings) -> PoolSpec:
    return PoolSpec("olympiad", timedelta(minutes=settings.olympiad_energy_regen_minutes))


@dataclass(frozen=True)
class RegenResult:
    value: int
    last_regen: datetime


def regen(value: int, max_value: int, last_regen: datetime, interval: timedelta, now: datetime) -> RegenResult:
    """Apply elapsed whole intervals to a pool.

    Ten energy, a three-minute interval and seven elapsed minutes give 12
    energy with last_regen advanced by six minutes; one minute carries over.
    """
    last_regen = as_utc(last_regen)
    elapsed_intervals = (as_utc(now) - last_regen) // interval
    if elapsed_intervals <= 0:
        return RegenResult(value=value, last_regen=last_regen)

    new_value = min(max_value, value + elapsed_intervals)
    return RegenResult(value=new_value, last_regen=last_regen + elapsed_intervals * interval)


def regen_pool(character: Character, pool: PoolSpec, now: datetime) -> int:
    """Regenerate a pool on the character row in place. Returns the new value."""
    result = regen(
        getattr(character, pool.value_attr),
        getattr(character, pool.max_attr),
        getattr(character, pool.last_regen_attr),
        pool.interval,
        now,
    )
    setattr(character, pool.value_attr, result.value)
    setattr(character, pool.last_regen_attr, result.last_regen)
    return result.value


def spend_pool(character: Character, pool: PoolSpec, amount: int, now: datetime) -> int:
    """Regenerate, check sufficiency, then debit. Returns the remaining value.

    Raises PreconditionFailedError without touching the debit when the pool is short;
    the regenerated value is still written so a retry sees the same state.
    """
    if amount < 0:
        raise ValueError("Energy cost cannot be negative")

    current = regen_pool(character, pool, now)
    if current < amount:
        raise PreconditionFailedError(
            f"Not enough {pool.name} energy",
            unmet=[
                ClauseResult(
                    kind="energy",
                    met=False,
                    current=current,
                    required=amount,
                    label=f"{pool.name} energy",
                )
            ],
        )

    remaining = current - amount
    setattr(character, pool.value_attr, remaining)
    return remaining


def refill_pool(character: Character, pool: PoolSpec, now: datetime) -> int:
    """Set a pool to its maximum and restart its regen window (support tooling)."""
    max_value = getattr(character, pool.max_attr)
    setattr(character, pool.value_attr, max_value)
    setattr(character, pool.last_regen_attr, as_utc(now))
    return max_value
