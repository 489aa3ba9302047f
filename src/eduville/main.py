"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from eduville.admin.flags import DebugFlags
from eduville.admin.router import router as admin_router
from eduville.characters.router import router as characters_router
from eduville.config import get_settings
from eduville.database import close_db, get_session, init_db
from eduville.health.router import router as health_router
from eduville.market.router import router as market_router
from eduville.middleware import setup_middleware
from eduville.olympiads.router import router as olympiads_router
from eduville.progression.router import router as progression_router
from eduville.redis_client import close_redis, init_redis
from eduville.seed import seed_world

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_enabled:
        await init_redis(settings.redis_url)

    if settings.seed_on_startup:
        try:
            async for db in get_session():
                await seed_world(db)
                break
        except Exception:
            logger.warning("World seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Eduville Engine API",
        description="Progression and economy backend for the Eduville study game",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.debug_flags = DebugFlags()

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(characters_router)
    app.include_router(progression_router)
    app.include_router(market_router)
    app.include_router(olympiads_router)
    app.include_router(admin_router)

    return app


app = create_app()
