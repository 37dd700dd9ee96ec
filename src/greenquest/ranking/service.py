"""Ranking recomputation and leaderboard reads."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.config import get_settings
from greenquest.db.models import Action, Ranking, User, UserGamification
from greenquest.errors import SchedulerError, ValidationError
from greenquest.notifications import RANK_ACHIEVEMENT, Notifier, PendingNotification
from greenquest.ranking.scoring import (
    RANKING_CATEGORIES,
    RankedEntry,
    UserCounters,
    classify_rank_change,
    entered_top,
    rank_entries,
)

logger = logging.getLogger(__name__)


async def snapshot_counters(db: AsyncSession) -> list[UserCounters]:
    """Current ranking inputs for every active user."""
    action_counts = (
        select(Action.user_id, func.count(Action.id).label("actions"))
        .group_by(Action.user_id)
        .subquery()
    )
    result = await db.execute(
        select(
            User.id,
            UserGamification.goals_completed,
            UserGamification.challenges_completed,
            UserGamification.current_streak,
            UserGamification.co2_saved,
            action_counts.c.actions,
        )
        .outerjoin(UserGamification, UserGamification.user_id == User.id)
        .outerjoin(action_counts, action_counts.c.user_id == User.id)
        .where(User.is_active.is_(True))
    )
    return [
        UserCounters(
            user_id=row.id,
            goals_completed=row.goals_completed or 0,
            actions_completed=row.actions or 0,
            challenges_completed=row.challenges_completed or 0,
            streak_days=row.current_streak or 0,
            co2_saved=row.co2_saved or 0.0,
        )
        for row in result.all()
    ]


async def _store_entry(
    db: AsyncSession,
    category: str,
    entry: RankedEntry,
    now: datetime,
) -> Ranking:
    counters = entry.counters
    row = await db.get(Ranking, (counters.user_id, category))
    if row is None:
        row = Ranking(user_id=counters.user_id, category=category, rank=0)
        db.add(row)

    old_rank = row.rank or 0
    row.previous_rank = old_rank
    row.rank = entry.rank
    row.rank_change = classify_rank_change(old_rank, entry.rank)
    row.score = entry.score
    row.goals_completed = counters.goals_completed
    row.actions_completed = counters.actions_completed
    row.challenges_completed = counters.challenges_completed
    row.streak_days = counters.streak_days
    row.co2_saved = counters.co2_saved
    row.last_updated = now
    await db.flush()
    return row


async def recompute_rankings(
    db: AsyncSession,
    notifier: Notifier | None,
    category: str,
    now: datetime | None = None,
    top_n: int | None = None,
) -> int:
    """Recompute one category. Returns the number of users ranked.

    Each user's row is written inside its own savepoint, so one bad record
    is logged and skipped without aborting the run. The stored rows are then
    renumbered 1..N and rows for users outside this run are dropped, so the
    category always holds one position per ranked user.
    """
    if category not in RANKING_CATEGORIES:
        raise ValidationError(f"Unknown ranking category: {category}")
    if now is None:
        now = datetime.now(timezone.utc)
    if top_n is None:
        top_n = get_settings().rank_achievement_top_n

    snapshot = await snapshot_counters(db)
    ranked = rank_entries(category, snapshot)

    stored: list[Ranking] = []
    for entry in ranked:
        user_id = entry.counters.user_id
        try:
            async with db.begin_nested():
                row = await _store_entry(db, category, entry, now)
        except Exception as exc:
            err = SchedulerError(f"Ranking {category} failed for user {user_id}: {exc}")
            logger.error("%s: %s", err.code, err.message, exc_info=True)
            continue
        stored.append(row)

    # A skipped user must not leave a gap in the positions
    for position, row in enumerate(stored, start=1):
        if row.rank != position:
            row.rank = position
            row.rank_change = classify_rank_change(row.previous_rank, position)
    await db.flush()

    removed = await _drop_unranked(db, category, [row.user_id for row in stored])
    await db.commit()
    logger.info(
        "Rankings recomputed for %s: %d/%d users, %d stale row(s) removed",
        category, len(stored), len(ranked), removed,
    )

    pending = [
        PendingNotification(row.user_id, RANK_ACHIEVEMENT, {
            "category": category,
            "rank": row.rank,
            "previous_rank": row.previous_rank,
        })
        for row in stored
        if entered_top(row.previous_rank, row.rank, top_n)
    ]
    if notifier is not None:
        await notifier.notify_all(pending)
    return len(stored)


async def _drop_unranked(db: AsyncSession, category: str, kept_user_ids: list[int]) -> int:
    """Delete category rows for users who were not ranked in this run."""
    result = await db.execute(
        delete(Ranking)
        .where(Ranking.category == category, Ranking.user_id.not_in(kept_user_ids))
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


async def recompute_all_rankings(
    db: AsyncSession,
    notifier: Notifier | None,
    now: datetime | None = None,
) -> dict[str, int]:
    if now is None:
        now = datetime.now(timezone.utc)
    return {
        category: await recompute_rankings(db, notifier, category, now)
        for category in RANKING_CATEGORIES
    }


def _entry_dict(row: Ranking, username: str | None) -> dict:
    return {
        "user_id": row.user_id,
        "username": username,
        "rank": row.rank,
        "previous_rank": row.previous_rank,
        "rank_change": row.rank_change,
        "score": row.score,
        "goals_completed": row.goals_completed,
        "actions_completed": row.actions_completed,
        "challenges_completed": row.challenges_completed,
        "streak_days": row.streak_days,
        "co2_saved": row.co2_saved,
        "last_updated": row.last_updated,
    }


async def get_leaderboard(
    db: AsyncSession,
    category: str = "overall",
    page: int = 1,
    per_page: int | None = None,
    current_user_id: int | None = None,
) -> dict:
    """One page of a category leaderboard plus the caller's own entry."""
    if category not in RANKING_CATEGORIES:
        raise ValidationError(f"Unknown ranking category: {category}")
    settings = get_settings()
    if per_page is None:
        per_page = settings.leaderboard_default_page_size
    per_page = max(1, min(per_page, settings.leaderboard_max_page_size))
    page = max(page, 1)

    total = (await db.execute(
        select(func.count()).select_from(Ranking).where(Ranking.category == category)
    )).scalar_one()

    result = await db.execute(
        select(Ranking, User.username)
        .join(User, User.id == Ranking.user_id)
        .where(Ranking.category == category)
        .order_by(Ranking.rank, Ranking.user_id)
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    rankings = [_entry_dict(row, username) for row, username in result.all()]

    current_user_entry = None
    if current_user_id is not None:
        mine = await db.execute(
            select(Ranking, User.username)
            .join(User, User.id == Ranking.user_id)
            .where(Ranking.category == category, Ranking.user_id == current_user_id)
        )
        found = mine.first()
        if found is not None:
            current_user_entry = _entry_dict(found[0], found[1])

    return {
        "category": category,
        "rankings": rankings,
        "current_user_entry": current_user_entry,
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": math.ceil(total / per_page) if total else 0,
        },
    }


def list_categories() -> list[dict[str, str]]:
    return [{"id": key, **meta} for key, meta in RANKING_CATEGORIES.items()]
