"""Consecutive-day activity streaks, recomputed from the action log."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.db.models import Action
from greenquest.users.service import get_or_create_gamification


@dataclass
class StreakResult:
    current: int
    longest: int


def compute_streak(
    action_dates: Iterable[date],
    reference_date: date,
    longest: int = 0,
) -> StreakResult:
    """Count consecutive days with activity, walking back from ``reference_date``.

    Stops at the first day without an action; a reference day with no
    action yields a current streak of 0.
    """
    days = set(action_dates)
    current = 0
    day = reference_date
    while day in days:
        current += 1
        day -= timedelta(days=1)
    return StreakResult(current=current, longest=max(longest, current))


async def get_action_dates(db: AsyncSession, user_id: int) -> set[date]:
    """Distinct UTC calendar days on which the user logged an action."""
    result = await db.execute(select(Action.performed_at).where(Action.user_id == user_id))
    return {performed_at.astimezone(timezone.utc).date() for performed_at in result.scalars()}


async def refresh_streak(db: AsyncSession, user_id: int, today: date | None = None) -> StreakResult:
    """Recompute and store the user's streak from the full action history."""
    if today is None:
        today = datetime.now(timezone.utc).date()

    dates = await get_action_dates(db, user_id)
    gam = await get_or_create_gamification(db, user_id)
    streak = compute_streak(dates, today, gam.longest_streak)

    gam.current_streak = streak.current
    gam.longest_streak = streak.longest
    gam.last_action_date = max(dates) if dates else None
    gam.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return streak
