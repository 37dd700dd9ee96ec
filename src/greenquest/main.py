"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from greenquest.actions.router import router as actions_router
from greenquest.challenges.router import router as challenges_router
from greenquest.config import get_settings
from greenquest.database import close_db, get_session, init_db
from greenquest.goals.router import router as goals_router
from greenquest.health.router import router as health_router
from greenquest.middleware import setup_middleware
from greenquest.ranking.router import router as ranking_router
from greenquest.redis_client import close_redis, init_redis
from greenquest.rewards.router import router as rewards_router
from greenquest.rewards.seed import seed_challenges, seed_rewards
from greenquest.users.router import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed catalog and system challenges (idempotent)
    if settings.seed_on_startup:
        try:
            async for db in get_session():
                await seed_rewards(db)
                await seed_challenges(db)
                break
        except Exception:
            logger.warning("Seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="GreenQuest API",
        description="Sustainability challenges, rewards and rankings",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(actions_router)
    app.include_router(challenges_router)
    app.include_router(goals_router)
    app.include_router(rewards_router)
    app.include_router(ranking_router)
    app.include_router(users_router)

    return app


app = create_app()
