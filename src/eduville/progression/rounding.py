"""Half-up rounding, matching what players see in the client."""

from __future__ import annotations

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round to ``digits`` decimals with ties going up (2.5 -> 3, not 2)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def round_half_up_int(value: float) -> int:
    return int(math.floor(value + 0.5))
