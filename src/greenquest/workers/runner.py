"""Standalone runner for the maintenance schedulers without arq.

Drives the same jobs as the arq scheduler with PeriodicTask timers in a
single process.

Usage: python -m greenquest.workers.runner
"""

from __future__ import annotations

import asyncio
import logging
import signal
from datetime import datetime, timezone

import redis.asyncio as aioredis

from greenquest.challenges.reset import expire_challenges, reset_recurring_challenges
from greenquest.challenges.service import recompute_all_challenge_stats
from greenquest.config import get_settings
from greenquest.database import close_db, get_session_factory, init_db
from greenquest.goals.service import fail_overdue_goals
from greenquest.notifications import Notifier
from greenquest.ranking.service import recompute_all_rankings
from greenquest.scheduling.periodic import SECONDS_PER_DAY, PeriodicTask, seconds_until_next_run

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

SUNDAY = 6
HEAL_STATS_HOUR = 3


def build_tasks(notifier: Notifier) -> list[PeriodicTask]:
    settings = get_settings()
    session_factory = get_session_factory()

    async def daily_reset() -> None:
        async with session_factory() as db:
            await reset_recurring_challenges(db, "daily", datetime.now(timezone.utc))

    async def weekly_reset() -> None:
        async with session_factory() as db:
            await reset_recurring_challenges(db, "weekly", datetime.now(timezone.utc))

    async def expiry() -> None:
        async with session_factory() as db:
            now = datetime.now(timezone.utc)
            await expire_challenges(db, now)
            await fail_overdue_goals(db, now)

    async def rankings() -> None:
        async with session_factory() as db:
            await recompute_all_rankings(db, notifier)

    async def heal_stats() -> None:
        async with session_factory() as db:
            healed = await recompute_all_challenge_stats(db)
            if healed:
                logger.info("Healed stats on %d challenge(s)", healed)

    now = datetime.now(timezone.utc)
    return [
        PeriodicTask(
            "daily-reset", SECONDS_PER_DAY, daily_reset,
            initial_delay=seconds_until_next_run(now),
        ),
        PeriodicTask(
            "weekly-reset", 7 * SECONDS_PER_DAY, weekly_reset,
            initial_delay=seconds_until_next_run(now, weekday=SUNDAY),
        ),
        PeriodicTask("expiry", settings.expiry_interval_seconds, expiry, initial_delay=0),
        PeriodicTask("rankings", settings.ranking_interval_seconds, rankings, initial_delay=0),
        PeriodicTask(
            "heal-stats", SECONDS_PER_DAY, heal_stats,
            initial_delay=seconds_until_next_run(now, hour=HEAL_STATS_HOUR),
        ),
    ]


async def main() -> None:
    """Run all maintenance timers until SIGINT/SIGTERM."""
    settings = get_settings()
    await init_db(settings.database_url)

    redis_client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    notifier = Notifier(redis_client, settings.notification_channel)
    tasks = build_tasks(notifier)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    for task in tasks:
        task.start()
    logger.info("Scheduler runner started with %d task(s)", len(tasks))

    try:
        await stop_event.wait()
    finally:
        for task in tasks:
            await task.stop()
        await redis_client.aclose()
        await close_db()
        logger.info("Scheduler runner stopped")


if __name__ == "__main__":
    asyncio.run(main())
