"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database with the world seeded.
Redis is disabled, so broadcasts are skipped.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime

os.environ["EDUVILLE_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["EDUVILLE_REDIS_ENABLED"] = "false"
os.environ["EDUVILLE_SEED_ON_STARTUP"] = "false"
os.environ["EDUVILLE_ADMIN_ENABLED"] = "true"
os.environ["EDUVILLE_LOG_FORMAT"] = "console"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from eduville.config import get_settings  # noqa: E402
from eduville.database import close_db, create_tables, get_session, init_db  # noqa: E402
from eduville.db.models import Character  # noqa: E402
from eduville.main import create_app  # noqa: E402
from eduville.seed import seed_world  # noqa: E402
from tests.helpers import NOW, make_character  # noqa: E402

get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    """A fixed clock shared by a test and the rows it creates."""
    return NOW


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Direct session on a freshly created and seeded database."""
    get_settings.cache_clear()
    await init_db(get_settings().database_url)
    await create_tables()
    async for session in get_session():
        await seed_world(session)
        yield session
        break
    await close_db()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app, sharing the test database."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def alice(db_session: AsyncSession) -> Character:
    return await make_character(db_session, "alice")


@pytest_asyncio.fixture
async def bob(db_session: AsyncSession) -> Character:
    return await make_character(db_session, "bob")
