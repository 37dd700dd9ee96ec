"""Scheduled maintenance jobs as an arq worker.

Import path for arq CLI: arq greenquest.workers.scheduler.SchedulerWorkerSettings

Cadence (UTC):
- Daily challenge reset: every day 00:00
- Weekly challenge reset: Sunday 00:00
- Challenge expiry and overdue goals: hourly
- Ranking recomputation: hourly
- Challenge stats healing: daily 03:00
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from arq import cron
from arq.connections import RedisSettings
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.challenges.reset import expire_challenges, reset_recurring_challenges
from greenquest.challenges.service import recompute_all_challenge_stats
from greenquest.config import get_settings
from greenquest.database import close_db, get_session, init_db
from greenquest.goals.service import fail_overdue_goals
from greenquest.notifications import Notifier
from greenquest.ranking.service import recompute_all_rankings

logger = logging.getLogger(__name__)

SUNDAY = 6


async def _get_db_session() -> AsyncSession:
    """Get a database session for the worker."""
    async for session in get_session():
        return session
    raise RuntimeError("Failed to get database session")


def _notifier(ctx: dict) -> Notifier:  # type: ignore[type-arg]
    return Notifier(ctx.get("redis"), get_settings().notification_channel)


async def scheduler_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize the database for scheduled jobs."""
    settings = get_settings()
    await init_db(settings.database_url)
    logger.info("Scheduler worker started")


async def scheduler_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Dispose of the database engine."""
    await close_db()
    logger.info("Scheduler worker stopped")


async def daily_challenge_reset(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: reset daily challenges at 00:00 UTC."""
    db = await _get_db_session()
    try:
        return await reset_recurring_challenges(db, "daily", datetime.now(timezone.utc))
    finally:
        await db.close()


async def weekly_challenge_reset(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: reset weekly challenges Sunday 00:00 UTC."""
    db = await _get_db_session()
    try:
        return await reset_recurring_challenges(db, "weekly", datetime.now(timezone.utc))
    finally:
        await db.close()


async def expire_elapsed_challenges(ctx: dict) -> dict[str, int]:  # type: ignore[type-arg]
    """Periodic task: close elapsed challenges and fail overdue goals."""
    db = await _get_db_session()
    try:
        now = datetime.now(timezone.utc)
        return {
            "challenges": await expire_challenges(db, now),
            "goals": await fail_overdue_goals(db, now),
        }
    finally:
        await db.close()


async def refresh_rankings(ctx: dict) -> dict[str, int]:  # type: ignore[type-arg]
    """Periodic task: recompute every ranking category."""
    db = await _get_db_session()
    try:
        return await recompute_all_rankings(db, _notifier(ctx))
    finally:
        await db.close()


async def heal_challenge_stats(ctx: dict) -> int:  # type: ignore[type-arg]
    db = await _get_db_session()
    try:
        healed = await recompute_all_challenge_stats(db)
        if healed:
            logger.info("Healed stats on %d challenge(s)", healed)
        return healed
    finally:
        await db.close()


class SchedulerWorkerSettings:
    """arq worker settings for the maintenance scheduler."""

    functions = [
        daily_challenge_reset,
        weekly_challenge_reset,
        expire_elapsed_challenges,
        refresh_rankings,
        heal_challenge_stats,
    ]
    cron_jobs = [
        cron(daily_challenge_reset, hour=0, minute=0, unique=True),
        cron(weekly_challenge_reset, weekday=SUNDAY, hour=0, minute=0, unique=True),
        cron(expire_elapsed_challenges, minute=0, unique=True),
        cron(refresh_rankings, minute=0, unique=True),
        cron(heal_challenge_stats, hour=3, minute=0, unique=True),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    on_startup = scheduler_startup
    on_shutdown = scheduler_shutdown
    max_jobs = 4
    job_timeout = 600
