"""World seed data: subjects, the Eduville education path, specializations, items, olympiads.

Seeding is idempotent; rows are merged by their slug primary keys so content
edits here overwrite what is stored.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from eduville.db.models import Item, Location, OlympiadType, SchoolClass, Specialization, Subject

logger = logging.getLogger(__name__)

SUBJECT_SEED_DATA: list[dict[str, str]] = [
    {"id": "mathematics", "name": "Mathematics", "category": "exact"},
    {"id": "physics", "name": "Physics", "category": "natural"},
    {"id": "chemistry", "name": "Chemistry", "category": "natural"},
    {"id": "biology", "name": "Biology", "category": "natural"},
    {"id": "literature", "name": "Literature", "category": "humanitarian"},
    {"id": "history", "name": "History", "category": "humanitarian"},
    {"id": "foreign-language", "name": "Foreign Language", "category": "humanitarian"},
    {"id": "physical-education", "name": "Physical Education", "category": "physical"},
    {"id": "art", "name": "Art", "category": "creative"},
]

SCHOOL_GRADES = 11

LOCATION_SEED_DATA: list[dict[str, Any]] = [
    {
        "id": "prep-school",
        "name": "Prep School",
        "type": "prep_school",
        "order_index": 0,
        # Numbers and letters only
        "allowed_subjects": ["mathematics", "literature"],
        "unlock_requirement": None,
    },
    {
        "id": "school",
        "name": "School",
        "type": "school",
        "order_index": 1,
        "allowed_subjects": [],
        "unlock_requirement": {
            "previous_location_id": "prep-school",
            "previous_location_percent": 100,
            "required_subject_levels": [
                {"subject_id": "mathematics", "min_level": 4},
                {"subject_id": "literature", "min_level": 5},
            ],
        },
    },
    {
        "id": "college",
        "name": "College",
        "type": "college",
        "order_index": 2,
        "allowed_subjects": [],
        "unlock_requirement": {"previous_location_id": "school", "previous_location_percent": 60},
    },
    {
        "id": "university",
        "name": "University",
        "type": "university",
        "order_index": 3,
        "allowed_subjects": [],
        "unlock_requirement": {"previous_location_id": "school", "previous_location_percent": 85},
    },
]

_BASIC_SUBJECTS = ["mathematics", "literature", "physical-education", "art"]


def _school_class_subjects(grade_number: int) -> list[str]:
    if grade_number <= 2:
        return list(_BASIC_SUBJECTS)
    if grade_number <= 4:
        return [*_BASIC_SUBJECTS, "history", "foreign-language"]
    return []  # every subject


def _quality(subject_id: str, min_grade: int, count: int) -> dict[str, Any]:
    return {"subject_id": subject_id, "min_grade": min_grade, "count": count}


def _school_class_requirements(grade_number: int) -> dict[str, Any]:
    if grade_number <= 4:
        return {"min_subject_level": 3 + grade_number * 2}
    if grade_number == 5:
        return {"min_subject_level": 13, "min_grade_quality": [_quality("mathematics", 70, 2)]}
    if grade_number == 6:
        return {
            "min_subject_level": 15,
            "min_grade_quality": [_quality("mathematics", 70, 2), _quality("physics", 70, 2)],
        }
    if grade_number == 7:
        return {
            "min_subject_level": 17,
            "min_grade_quality": [_quality("mathematics", 75, 3), _quality("physics", 70, 2)],
        }
    return {
        "min_subject_level": 17 + (grade_number - 7) * 2,
        "min_grade_quality": [_quality("mathematics", 75, 3), _quality("literature", 70, 2)],
    }


def class_seed_data() -> list[dict[str, Any]]:
    classes: list[dict[str, Any]] = [
        {
            "id": "prep-class-1",
            "location_id": "prep-school",
            "grade_number": 0,
            "required_grades_per_subject": 5,
            "allowed_subjects": [],
            "requirements": None,
        }
    ]
    for grade in range(1, SCHOOL_GRADES + 1):
        classes.append({
            "id": f"school-class-{grade}",
            "location_id": "school",
            "grade_number": grade,
            "required_grades_per_subject": 5,
            "allowed_subjects": _school_class_subjects(grade),
            "requirements": _school_class_requirements(grade),
        })
    return classes


def _levels(**levels: int) -> list[dict[str, Any]]:
    return [{"subject_id": subject.replace("_", "-"), "min_level": lvl} for subject, lvl in levels.items()]


SPECIALIZATION_SEED_DATA: list[dict[str, Any]] = [
    {
        "id": "spec-computer-science",
        "name": "Computer Science",
        "requirements": {"required_subject_levels": _levels(mathematics=20, physics=15), "min_grade_average": 70},
        "unlock_cost": 2000,
    },
    {
        "id": "spec-engineering",
        "name": "Engineering",
        "requirements": {
            "required_subject_levels": _levels(mathematics=18, physics=18, chemistry=12),
            "min_grade_average": 65,
        },
        "unlock_cost": 2500,
    },
    {
        "id": "spec-natural-sciences",
        "name": "Natural Sciences",
        "requirements": {"required_subject_levels": _levels(biology=20, chemistry=18), "min_grade_average": 70},
        "unlock_cost": 2000,
    },
    {
        "id": "spec-literature-languages",
        "name": "Literature & Languages",
        "requirements": {
            "required_subject_levels": _levels(literature=20, foreign_language=18, history=12),
            "min_grade_average": 65,
        },
        "unlock_cost": 1800,
    },
    {
        "id": "spec-business",
        "name": "Business Administration",
        "requirements": {
            "required_subject_levels": _levels(mathematics=15, history=15, foreign_language=12),
            "min_grade_average": 60,
        },
        "unlock_cost": 2200,
    },
    {
        "id": "spec-arts-design",
        "name": "Arts & Design",
        "requirements": {"required_subject_levels": _levels(art=20, literature=15), "min_grade_average": 60},
        "unlock_cost": 1500,
    },
]

# (name, slot, rarity, stats, npc_sell_price, npc_buy_price)
_ITEM_ROWS: list[tuple[str, str, str, dict[str, int], int, int | None]] = [
    ("Ballpoint Pen", "pen", "common", {"xp_bonus": 1}, 10, 25),
    ("Gel Pen", "pen", "uncommon", {"xp_bonus": 3}, 35, 80),
    ("Parker Pen", "pen", "rare", {"xp_bonus": 6, "grade_bonus": 2}, 150, 350),
    ("Fountain Pen", "pen", "epic", {"xp_bonus": 10, "grade_bonus": 4}, 750, 1500),
    ("Basic Notebook", "notebook", "common", {"xp_bonus": 1}, 10, 25),
    ("Spiral Notebook", "notebook", "uncommon", {"xp_bonus": 3}, 35, 80),
    ("Moleskine", "notebook", "rare", {"xp_bonus": 7, "cash_bonus": 3}, 150, 350),
    ("School Bag", "backpack", "common", {"cash_bonus": 2}, 10, 25),
    ("Sports Backpack", "backpack", "uncommon", {"cash_bonus": 4}, 35, 80),
    ("Leather Satchel", "backpack", "rare", {"cash_bonus": 8, "xp_bonus": 3}, 150, 350),
    ("Basic Calculator", "calculator", "common", {"grade_bonus": 1}, 10, 25),
    ("Scientific Calculator", "calculator", "uncommon", {"grade_bonus": 3}, 35, 80),
    ("Graphing Calculator", "calculator", "rare", {"grade_bonus": 6, "xp_bonus": 2}, 150, 350),
    ("Reading Glasses", "glasses", "common", {"xp_bonus": 1}, 10, 25),
    ("Designer Glasses", "glasses", "uncommon", {"xp_bonus": 4}, 35, 80),
    ("Smart Glasses", "glasses", "rare", {"xp_bonus": 8, "grade_bonus": 3}, 150, 350),
]


def _slugify(name: str) -> str:
    return name.lower().replace(" ", "-")


ITEM_SEED_DATA: list[dict[str, Any]] = [
    {
        "id": _slugify(name),
        "name": name,
        "description": f"A {rarity} {slot}",
        "slot": slot,
        "rarity": rarity,
        "stats": stats,
        "is_tradeable": True,
        "npc_sell_price": sell,
        "npc_buy_price": buy,
    }
    for name, slot, rarity, stats, sell, buy in _ITEM_ROWS
]

OLYMPIAD_SEED_DATA: list[dict[str, Any]] = [
    {
        "id": "olympiad-school-general",
        "name": "School Olympiad",
        "difficulty": "school",
        "subject_id": None,
        "energy_cost": 5,
        "npc_level_min": 1,
        "npc_level_max": 3,
        "rewards": {"cash_min": 20, "cash_max": 50, "xp_min": 10, "xp_max": 25, "item_chance": 0.05},
        "required_character_level": 1,
    },
    {
        "id": "olympiad-school-math",
        "name": "School Math Competition",
        "difficulty": "school",
        "subject_id": "mathematics",
        "energy_cost": 5,
        "npc_level_min": 1,
        "npc_level_max": 3,
        "rewards": {"cash_min": 25, "cash_max": 60, "xp_min": 15, "xp_max": 30, "item_chance": 0.06},
        "required_character_level": 1,
    },
    {
        "id": "olympiad-district-general",
        "name": "District Olympiad",
        "difficulty": "district",
        "subject_id": None,
        "energy_cost": 10,
        "npc_level_min": 3,
        "npc_level_max": 6,
        "rewards": {"cash_min": 50, "cash_max": 120, "xp_min": 25, "xp_max": 50, "item_chance": 0.10},
        "required_character_level": 3,
    },
    {
        "id": "olympiad-district-lit",
        "name": "District Literature Contest",
        "difficulty": "district",
        "subject_id": "literature",
        "energy_cost": 10,
        "npc_level_min": 3,
        "npc_level_max": 6,
        "rewards": {"cash_min": 60, "cash_max": 140, "xp_min": 30, "xp_max": 55, "item_chance": 0.12},
        "required_character_level": 3,
    },
    {
        "id": "olympiad-city-general",
        "name": "City Olympiad",
        "difficulty": "city",
        "subject_id": None,
        "energy_cost": 15,
        "npc_level_min": 6,
        "npc_level_max": 10,
        "rewards": {"cash_min": 100, "cash_max": 250, "xp_min": 50, "xp_max": 100, "item_chance": 0.15},
        "required_character_level": 6,
    },
    {
        "id": "olympiad-national-general",
        "name": "National Olympiad",
        "difficulty": "national",
        "subject_id": None,
        "energy_cost": 25,
        "npc_level_min": 10,
        "npc_level_max": 15,
        "rewards": {"cash_min": 200, "cash_max": 500, "xp_min": 100, "xp_max": 200, "item_chance": 0.25},
        "required_character_level": 10,
    },
]


async def seed_world(db: AsyncSession) -> None:
    """Insert or update all static world content. Idempotent."""
    for data in SUBJECT_SEED_DATA:
        await db.merge(Subject(**data))
    # Locations before the classes and specializations that reference them
    for data in LOCATION_SEED_DATA:
        await db.merge(Location(**data))
    await db.flush()
    for data in class_seed_data():
        await db.merge(SchoolClass(**data))
    for data in SPECIALIZATION_SEED_DATA:
        await db.merge(Specialization(location_id="college", **data))
    for data in ITEM_SEED_DATA:
        await db.merge(Item(**data))
    for data in OLYMPIAD_SEED_DATA:
        await db.merge(OlympiadType(**data))
    await db.commit()

    logger.info(
        "Seeded %d subjects, %d locations, %d items, %d olympiad types",
        len(SUBJECT_SEED_DATA), len(LOCATION_SEED_DATA), len(ITEM_SEED_DATA), len(OLYMPIAD_SEED_DATA),
    )
