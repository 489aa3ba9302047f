"""Optimistic-lock version column on characters.

Every write to a character row bumps ``version``; a write that still carries
the old value matches no row and is rejected.

Revision ID: 003_character_version
Revises: 002_market_and_weekly_tables
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "003_character_version"
down_revision: str | None = "002_market_and_weekly_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("ALTER TABLE characters ADD COLUMN IF NOT EXISTS version INTEGER NOT NULL DEFAULT 1")


def downgrade() -> None:
    op.execute("ALTER TABLE characters DROP COLUMN IF EXISTS version")
