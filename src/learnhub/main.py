"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from learnhub.config import get_settings
from learnhub.database import close_db, get_session_factory, init_db
from learnhub.gamification.point_values import PointValuesStore
from learnhub.gamification.points import PointValues
from learnhub.gamification.router import router as rewards_router
from learnhub.gamification.seed import seed_rewards
from learnhub.health.router import router as health_router
from learnhub.middleware import setup_middleware
from learnhub.redis_client import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url, create_tables=settings.create_tables)

    if settings.redis_url:
        await init_redis(settings.redis_url)

    store = PointValuesStore(PointValues.from_settings(settings))
    async with get_session_factory()() as db:
        await seed_rewards(db)
        await store.load(db)
    app.state.point_values = store
    logger.info("startup_complete", environment=settings.environment, point_values=store.current.model_dump())

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="LearnHub Rewards API",
        description="Points, levels, streaks, achievements and leaderboards for the LearnHub learning platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(rewards_router)

    return app


app = create_app()
