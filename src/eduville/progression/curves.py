"""XP curves and the level-up reduction loop."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class XPCurve:
    """``xp_to_next(level) = floor(base * level ** exponent)``."""

    name: str
    base: int
    exponent: float

    def xp_to_next(self, level: int) -> int:
        if level < 1:
            raise ValueError(f"Level must be >= 1, got {level}")
        return math.floor(self.base * level**self.exponent)


CHARACTER_CURVE = XPCurve(name="character", base=100, exponent=1.5)
SUBJECT_CURVE = XPCurve(name="subject", base=50, exponent=1.8)


@dataclass(frozen=True)
class LevelUpResult:
    level: int
    xp: int
    levels_gained: int

    @property
    def leveled_up(self) -> bool:
        return self.levels_gained > 0


def apply_xp_gain(level: int, xp: int, gain: int, curve: XPCurve) -> LevelUpResult:
    """Add ``gain`` once, then drain the carry-over across as many levels as it covers."""
    if gain < 0:
        raise ValueError("XP gain cannot be negative")

    start_level = level
    xp += gain
    threshold = curve.xp_to_next(level)
    while xp >= threshold:
        xp -= threshold
        level += 1
        threshold = curve.xp_to_next(level)

    return LevelUpResult(level=level, xp=xp, levels_gained=level - start_level)


def apply_bonus(amount: int | float, *bonus_percents: int | float) -> int:
    """Scale a flat gain by additive percentage bonuses.

    Bonuses from several sources are summed before the multiplication, so two
    +10% items give +20%, not +21%.
    """
    total_bonus = sum(bonus_percents)
    return math.floor(amount * (1 + total_bonus / 100))
