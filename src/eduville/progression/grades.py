"""Grade generation and display formatting."""

from __future__ import annotations

import random

from eduville.progression.rounding import round_half_up_int

GRADE_BASE_MIN = 30
GRADE_BASE_MAX = 85
GRADE_LEVEL_BONUS_PER_LEVEL = 0.3
MAX_SCORE = 100

GRADE_DISPLAY_SYSTEMS = ("letter", "five_point", "twelve_point")

# (minimum score, label), highest first
_LETTER_SCALE = [(90, "A"), (75, "B"), (60, "C"), (40, "D"), (0, "F")]
_FIVE_POINT_SCALE = [(90, "5"), (75, "4"), (60, "3"), (40, "2"), (0, "1")]
_TWELVE_POINT_SCALE = [
    (97, "12"), (93, "11"), (90, "10"), (85, "9"), (80, "8"), (75, "7"),
    (68, "6"), (60, "5"), (52, "4"), (44, "3"), (36, "2"), (0, "1"),
]


def grade_score(base_roll: int, subject_level: int, equipment_bonus: int | float = 0) -> int:
    """Deterministic score for a given base roll.

    Level 10, bonus 5, roll 85 -> min(100, 85 + 3 + 5) = 93.
    """
    raw = base_roll + subject_level * GRADE_LEVEL_BONUS_PER_LEVEL + equipment_bonus
    return max(0, round_half_up_int(min(MAX_SCORE, raw)))


def generate_grade(
    subject_level: int,
    equipment_bonus: int | float = 0,
    rng: random.Random | None = None,
) -> int:
    """Roll a grade in [0, 100] for a subject at ``subject_level``."""
    rng = rng or random.Random()
    base_roll = rng.randint(GRADE_BASE_MIN, GRADE_BASE_MAX)
    return grade_score(base_roll, subject_level, equipment_bonus)


def format_grade(score: int, system: str = "letter") -> str:
    """Render a 0-100 score in the player's grade display system."""
    if system == "five_point":
        scale = _FIVE_POINT_SCALE
    elif system == "twelve_point":
        scale = _TWELVE_POINT_SCALE
    else:
        scale = _LETTER_SCALE

    for floor_score, label in scale:
        if score >= floor_score:
            return label
    return scale[-1][1]
