"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from heroes.auth.router import router as auth_router
from heroes.children.router import router as children_router
from heroes.config import get_settings
from heroes.database import close_db, create_all, get_session_factory, init_db
from heroes.family.router import router as family_router
from heroes.habits.approval_router import router as habit_review_router
from heroes.habits.router import router as habits_router
from heroes.health.router import router as health_router
from heroes.middleware import setup_middleware
from heroes.redis_client import close_redis, init_redis
from heroes.rewards.router import router as rewards_router
from heroes.rewards.seed import seed_shop
from heroes.sync.router import router as sync_router
from heroes.workers.jobs import build_jobs

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings)
    if settings.database_url.startswith("sqlite"):
        await create_all()

    # Seed the avatar and gear catalogue (idempotent)
    try:
        async with get_session_factory()() as db:
            await seed_shop(db)
    except Exception:
        logger.warning("Shop seeding failed (tables may not exist yet)", exc_info=True)

    jobs = build_jobs(settings) if settings.enable_background_jobs else []
    for job in jobs:
        job.start()

    yield

    for job in jobs:
        await job.stop()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Habit Heroes API",
        description="Backend API for Habit Heroes, a family habit tracker with parent-approved rewards",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(children_router)
    app.include_router(habits_router)
    app.include_router(habit_review_router)
    app.include_router(rewards_router)
    app.include_router(family_router)
    app.include_router(sync_router)

    return app


app = create_app()
