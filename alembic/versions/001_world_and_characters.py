"""World content and character tables.

Creates subjects, locations, classes, specializations, items and
olympiad_types (static content keyed by slug) plus the character-owned
tables: characters, character_subjects, grades, location_progress,
inventory and equipment.

Revision ID: 001_world_and_characters
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_world_and_characters"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- World content ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS subjects (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            category VARCHAR(32) NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS locations (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(64) NOT NULL,
            type VARCHAR(32) NOT NULL,
            order_index INTEGER UNIQUE NOT NULL,
            allowed_subjects JSON NOT NULL DEFAULT '[]',
            unlock_requirement JSON
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS classes (
            id VARCHAR(64) PRIMARY KEY,
            location_id VARCHAR(64) NOT NULL REFERENCES locations(id),
            grade_number INTEGER NOT NULL,
            required_grades_per_subject INTEGER NOT NULL DEFAULT 5,
            allowed_subjects JSON NOT NULL DEFAULT '[]',
            requirements JSON,
            CONSTRAINT classes_location_grade_key UNIQUE (location_id, grade_number)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS specializations (
            id VARCHAR(64) PRIMARY KEY,
            location_id VARCHAR(64) NOT NULL REFERENCES locations(id),
            name VARCHAR(64) NOT NULL,
            requirements JSON NOT NULL DEFAULT '{}',
            unlock_cost BIGINT NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS items (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            slot VARCHAR(32) NOT NULL,
            rarity VARCHAR(16) NOT NULL,
            stats JSON NOT NULL DEFAULT '{}',
            is_tradeable BOOLEAN NOT NULL DEFAULT true,
            npc_sell_price INTEGER,
            npc_buy_price INTEGER
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS olympiad_types (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(64) NOT NULL,
            difficulty VARCHAR(16) NOT NULL,
            subject_id VARCHAR(64) REFERENCES subjects(id),
            energy_cost INTEGER NOT NULL,
            npc_level_min INTEGER NOT NULL,
            npc_level_max INTEGER NOT NULL,
            rewards JSON NOT NULL DEFAULT '{}',
            required_character_level INTEGER NOT NULL DEFAULT 1
        )
    """)

    # --- Characters ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS characters (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            level INTEGER NOT NULL DEFAULT 1,
            xp BIGINT NOT NULL DEFAULT 0,
            total_xp BIGINT NOT NULL DEFAULT 0,
            cash BIGINT NOT NULL DEFAULT 0 CHECK (cash >= 0),
            study_energy INTEGER NOT NULL DEFAULT 100,
            study_energy_max INTEGER NOT NULL DEFAULT 100,
            study_energy_last_regen TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            olympiad_energy INTEGER NOT NULL DEFAULT 50,
            olympiad_energy_max INTEGER NOT NULL DEFAULT 50,
            olympiad_energy_last_regen TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            current_location_id VARCHAR(64) NOT NULL REFERENCES locations(id),
            current_class_id VARCHAR(64) REFERENCES classes(id),
            current_specialization_id VARCHAR(64) REFERENCES specializations(id),
            total_study_clicks BIGINT NOT NULL DEFAULT 0,
            study_clicks_in_current_class INTEGER NOT NULL DEFAULT 0,
            last_study_at TIMESTAMPTZ,
            grade_display_system VARCHAR(16) NOT NULL DEFAULT 'letter',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS character_subjects (
            id SERIAL PRIMARY KEY,
            character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
            subject_id VARCHAR(64) NOT NULL REFERENCES subjects(id),
            level INTEGER NOT NULL DEFAULT 1,
            current_xp BIGINT NOT NULL DEFAULT 0,
            CONSTRAINT character_subjects_char_subject_key UNIQUE (character_id, subject_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS grades (
            id SERIAL PRIMARY KEY,
            character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
            class_id VARCHAR(64) NOT NULL REFERENCES classes(id),
            subject_id VARCHAR(64) NOT NULL REFERENCES subjects(id),
            score INTEGER NOT NULL CHECK (score BETWEEN 0 AND 100),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_grades_character_class_subject
        ON grades(character_id, class_id, subject_id)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS location_progress (
            id SERIAL PRIMARY KEY,
            character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
            location_id VARCHAR(64) NOT NULL REFERENCES locations(id),
            completion_percent NUMERIC(5,2) NOT NULL DEFAULT 0,
            is_completed BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT location_progress_char_location_key UNIQUE (character_id, location_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS inventory (
            id SERIAL PRIMARY KEY,
            character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
            item_id VARCHAR(64) NOT NULL REFERENCES items(id),
            quantity INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
            CONSTRAINT inventory_char_item_key UNIQUE (character_id, item_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS equipment (
            id SERIAL PRIMARY KEY,
            character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
            slot VARCHAR(32) NOT NULL,
            item_id VARCHAR(64) NOT NULL REFERENCES items(id),
            CONSTRAINT equipment_char_slot_key UNIQUE (character_id, slot)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS equipment CASCADE")
    op.execute("DROP TABLE IF EXISTS inventory CASCADE")
    op.execute("DROP TABLE IF EXISTS location_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS grades CASCADE")
    op.execute("DROP TABLE IF EXISTS character_subjects CASCADE")
    op.execute("DROP TABLE IF EXISTS characters CASCADE")
    op.execute("DROP TABLE IF EXISTS olympiad_types CASCADE")
    op.execute("DROP TABLE IF EXISTS items CASCADE")
    op.execute("DROP TABLE IF EXISTS specializations CASCADE")
    op.execute("DROP TABLE IF EXISTS classes CASCADE")
    op.execute("DROP TABLE IF EXISTS locations CASCADE")
    op.execute("DROP TABLE IF EXISTS subjects CASCADE")
