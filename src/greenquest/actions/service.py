"""Action log intake.

A logged action updates the user's counters, refreshes the streak, is
routed through the progress engine and re-evaluates the user's active
goals, all in one transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.challenges.progress import ProgressResult, advance_matching_challenges
from greenquest.challenges.service import CATEGORIES, GENERAL_CATEGORY
from greenquest.db.models import Action
from greenquest.errors import ValidationError
from greenquest.gamification.streaks import StreakResult, refresh_streak
from greenquest.goals.service import GoalUpdate, refresh_goals
from greenquest.notifications import Notifier
from greenquest.users.service import get_or_create_gamification, get_user

logger = logging.getLogger(__name__)

ACTION_TYPES = CATEGORIES - {GENERAL_CATEGORY}

# (kg CO2, liters of water) saved per unit of quantity
IMPACT_FACTORS: dict[str, tuple[float, float]] = {
    "biking": (0.21, 0.0),
    "walking": (0.17, 0.0),
    "public_transport": (0.10, 0.0),
    "recycling": (0.50, 0.0),
    "reusable_bag": (0.04, 0.0),
    "energy_saving": (0.40, 0.0),
    "water_conservation": (0.0, 10.0),
    "waste_reduction": (0.30, 0.0),
}


@dataclass
class LoggedAction:
    action: Action
    streak: StreakResult
    progress: list[ProgressResult] = field(default_factory=list)
    goals: list[GoalUpdate] = field(default_factory=list)


def compute_impact(action_type: str, quantity: float) -> tuple[float, float]:
    co2, water = IMPACT_FACTORS.get(action_type, (0.0, 0.0))
    return round(co2 * quantity, 3), round(water * quantity, 3)


async def log_action(
    db: AsyncSession,
    notifier: Notifier | None,
    user_id: int,
    action_type: str,
    quantity: float = 1,
    unit: str = "times",
    performed_at: datetime | None = None,
) -> LoggedAction:
    """Record an action and apply it to counters, streak and challenges."""
    if action_type not in ACTION_TYPES:
        raise ValidationError(f"Action type must be one of: {', '.join(sorted(ACTION_TYPES))}")
    if quantity <= 0:
        raise ValidationError("Action quantity must be positive")

    now = datetime.now(timezone.utc)
    if performed_at is None:
        performed_at = now
    elif performed_at.tzinfo is None:
        performed_at = performed_at.replace(tzinfo=timezone.utc)
    if performed_at > now:
        raise ValidationError("Actions cannot be logged in the future")

    await get_user(db, user_id)

    co2, water = compute_impact(action_type, quantity)
    action = Action(
        user_id=user_id,
        action_type=action_type,
        quantity=float(quantity),
        unit=unit,
        co2_saved=co2,
        water_saved=water,
        performed_at=performed_at,
    )
    db.add(action)

    gam = await get_or_create_gamification(db, user_id)
    gam.total_actions += 1
    gam.co2_saved += co2
    gam.water_saved += water
    gam.updated_at = now
    await db.flush()

    streak = await refresh_streak(db, user_id, now.date())
    batch = await advance_matching_challenges(db, user_id, action_type, quantity, now)
    goals = await refresh_goals(db, user_id, now)
    await db.commit()

    logger.info(
        "User %d logged %s x%s %s (streak %d, %d challenge(s), %d goal(s) touched)",
        user_id, action_type, quantity, unit, streak.current, len(batch.results), len(goals.updates),
    )

    if notifier is not None:
        await notifier.notify_all(batch.notifications + goals.notifications)
    return LoggedAction(action=action, streak=streak, progress=batch.results, goals=goals.updates)
