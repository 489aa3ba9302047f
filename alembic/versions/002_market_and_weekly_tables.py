"""Market and weekly olympiad tables.

Creates market_listings and market_transactions for the player market, and
weekly_events / weekly_event_participants for the ranked weekly olympiad.

Revision ID: 002_market_and_weekly_tables
Revises: 001_world_and_characters
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_market_and_weekly_tables"
down_revision: str | None = "001_world_and_characters"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Market ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS market_listings (
            id SERIAL PRIMARY KEY,
            seller_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
            item_id VARCHAR(64) NOT NULL REFERENCES items(id),
            quantity INTEGER NOT NULL CHECK (quantity >= 0),
            price_per_unit BIGINT NOT NULL CHECK (price_per_unit > 0),
            expires_at TIMESTAMPTZ NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_market_listings_active_expiry
        ON market_listings(is_active, expires_at)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS market_transactions (
            id SERIAL PRIMARY KEY,
            listing_id INTEGER NOT NULL REFERENCES market_listings(id),
            buyer_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
            quantity INTEGER NOT NULL,
            total_price BIGINT NOT NULL,
            fee BIGINT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_market_transactions_buyer
        ON market_transactions(buyer_id)
    """)

    # --- Weekly olympiad ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS weekly_events (
            id SERIAL PRIMARY KEY,
            subject_id VARCHAR(64) REFERENCES subjects(id),
            starts_at TIMESTAMPTZ NOT NULL,
            ends_at TIMESTAMPTZ NOT NULL,
            reward_tiers JSON NOT NULL,
            finalized_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (ends_at > starts_at)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_weekly_events_ends
        ON weekly_events(ends_at)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS weekly_event_participants (
            id SERIAL PRIMARY KEY,
            event_id INTEGER NOT NULL REFERENCES weekly_events(id) ON DELETE CASCADE,
            character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
            score INTEGER NOT NULL,
            rank INTEGER,
            rewards_claimed BOOLEAN NOT NULL DEFAULT false,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT weekly_event_participants_event_char_key UNIQUE (event_id, character_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_weekly_event_participants_score
        ON weekly_event_participants(event_id, score DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS weekly_event_participants CASCADE")
    op.execute("DROP TABLE IF EXISTS weekly_events CASCADE")
    op.execute("DROP TABLE IF EXISTS market_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS market_listings CASCADE")
