"""Weekly olympiad arq worker: opens the Sunday event and finalizes ended ones.

Run with ``arq eduville.olympiads.worker.OlympiadWorkerSettings``.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings
from sqlalchemy.ext.asyncio import AsyncSession

from eduville.config import get_settings
from eduville.database import close_db, get_session, init_db
from eduville.olympiads.weekly_service import finalize_due_events, open_weekly_event

logger = logging.getLogger(__name__)


async def _get_db_session() -> AsyncSession:
    """Get a database session for the worker."""
    async for session in get_session():
        return session
    raise RuntimeError("Failed to get database session")


async def olympiad_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize Redis + DB connections on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    logger.info("Olympiad worker started")


async def olympiad_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Olympiad worker shut down")


async def open_weekly_olympiad(ctx: dict) -> None:  # type: ignore[type-arg]
    """Scheduled: Sundays 18:00 UTC."""
    db = await _get_db_session()
    try:
        event = await open_weekly_event(db)
        logger.info("Weekly olympiad %d opened for %s", event.id, event.subject_id)
    except Exception:
        logger.exception("Failed to open weekly olympiad")
    finally:
        await db.close()


async def finalize_weekly_olympiads(ctx: dict) -> None:  # type: ignore[type-arg]
    """Scheduled every 15 minutes; a no-op when nothing has ended."""
    db = await _get_db_session()
    try:
        event = await finalize_due_events(db, ctx.get("redis"))
        if event is not None:
            logger.info("Weekly olympiad %d finalized", event.id)
    except Exception:
        logger.exception("Failed to finalize weekly olympiad")
    finally:
        await db.close()


class OlympiadWorkerSettings:
    """arq worker settings for the weekly olympiad scheduler."""

    functions = [open_weekly_olympiad, finalize_weekly_olympiads]
    cron_jobs = [
        cron(open_weekly_olympiad, weekday="sun", hour=18, minute=0),
        cron(finalize_weekly_olympiads, minute={0, 15, 30, 45}),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    on_startup = olympiad_startup
    on_shutdown = olympiad_shutdown
    max_jobs = 4
    job_timeout = 300
