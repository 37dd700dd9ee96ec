"""Personal goals.

A goal's progress is not incremented in place: it is recomputed from the
actions logged inside the goal's window each time the user logs an action.
Reaching the target completes the goal once, bumps the user's
goals-completed counter (a ranking input) and issues the goal's reward.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.challenges.service import CATEGORIES, GENERAL_CATEGORY
from greenquest.db.models import Action, Goal
from greenquest.errors import GoalClosed, GoalNotFound, ValidationError
from greenquest.gamification.streaks import compute_streak
from greenquest.notifications import GOAL_COMPLETED, REWARD_ISSUED, Notifier, PendingNotification
from greenquest.rewards.service import RewardSpec, issue_reward, level_up_notification
from greenquest.users.service import get_or_create_gamification, get_user

logger = logging.getLogger(__name__)

GOAL_TYPES = {"daily", "weekly", "monthly", "yearly", "custom"}
GOAL_CATEGORIES = {"actions", "co2_reduction", "water_saving", "streak", "specific_action"}
GOAL_STATUSES = {"active", "completed", "failed", "paused"}
PRIORITIES = {"low", "medium", "high", "critical"}

DEFAULT_DURATION_DAYS = {"daily": 1, "weekly": 7, "monthly": 30, "yearly": 365}


@dataclass
class GoalUpdate:
    goal_id: int
    title: str
    progress: float
    target: float
    percentage: float
    status: str
    just_completed: bool = False


@dataclass
class GoalBatch:
    updates: list[GoalUpdate] = field(default_factory=list)
    notifications: list[PendingNotification] = field(default_factory=list)


def validate_goal_payload(payload: dict[str, Any]) -> None:
    if not (payload.get("title") or "").strip():
        raise ValidationError("Goal title is required")
    if payload.get("type") not in GOAL_TYPES:
        raise ValidationError(f"Goal type must be one of: {', '.join(sorted(GOAL_TYPES))}")
    category = payload.get("category")
    if category not in GOAL_CATEGORIES:
        raise ValidationError(f"Goal category must be one of: {', '.join(sorted(GOAL_CATEGORIES))}")

    target = payload.get("target") or {}
    try:
        value = float(target.get("value"))
    except (TypeError, ValueError):
        raise ValidationError("Goal target value must be a number") from None
    if value <= 0:
        raise ValidationError("Goal target value must be positive")
    if not target.get("unit"):
        raise ValidationError("Goal target unit is required")

    if category == "specific_action":
        action_type = target.get("action_type")
        if action_type not in CATEGORIES - {GENERAL_CATEGORY}:
            raise ValidationError("Specific-action goals need a known target action_type")

    if payload.get("priority", "medium") not in PRIORITIES:
        raise ValidationError(f"Priority must be one of: {', '.join(sorted(PRIORITIES))}")

    reward = payload.get("reward") or {}
    if reward.get("points") is not None and int(reward["points"]) < 0:
        raise ValidationError("Reward points must not be negative")


def resolve_window(payload: dict[str, Any], now: datetime) -> tuple[datetime, datetime]:
    """Start and end of a goal. Custom goals need an end date or a duration."""
    start = payload.get("start_date") or now
    end = payload.get("end_date")
    if end is None:
        days = payload.get("duration_days") or DEFAULT_DURATION_DAYS.get(payload["type"])
        if not days:
            raise ValidationError("Custom goals need an end date or a duration")
        end = start + timedelta(days=int(days))
    if end <= start:
        raise ValidationError("Goal end date must be after its start date")
    if start > now:
        raise ValidationError("Goals cannot start in the future")
    return start, end


async def compute_goal_progress(db: AsyncSession, goal: Goal, now: datetime) -> float:
    """Progress toward the goal from actions logged inside its window."""
    window_end = min(goal.end_date, now)
    conditions = [
        Action.user_id == goal.user_id,
        Action.performed_at >= goal.start_date,
        Action.performed_at <= window_end,
    ]

    if goal.category == "streak":
        result = await db.execute(select(Action.performed_at).where(*conditions))
        days = {ts.astimezone(timezone.utc).date() for ts in result.scalars()}
        return float(compute_streak(days, window_end.date()).current)

    if goal.category == "co2_reduction":
        column = func.coalesce(func.sum(Action.co2_saved), 0.0)
    elif goal.category == "water_saving":
        column = func.coalesce(func.sum(Action.water_saved), 0.0)
    elif goal.category == "specific_action":
        conditions.append(Action.action_type == goal.action_type)
        column = func.coalesce(func.sum(Action.quantity), 0.0)
    else:
        column = func.count(Action.id)

    result = await db.execute(select(column).where(*conditions))
    return round(float(result.scalar_one()), 3)


def reward_spec_for(goal: Goal) -> RewardSpec:
    return RewardSpec(points=goal.reward_points or 0, badge=goal.reward_badge, title=goal.reward_title)


async def _complete(db: AsyncSession, goal: Goal, now: datetime, batch: GoalBatch) -> None:
    goal.status = "completed"
    goal.completed_at = now

    gam = await get_or_create_gamification(db, goal.user_id)
    gam.goals_completed += 1
    gam.updated_at = now

    spec = reward_spec_for(goal)
    issued = await issue_reward(db, goal.user_id, spec, source="goal")
    await db.flush()

    logger.info("User %d completed goal %d (%s)", goal.user_id, goal.id, goal.title)

    batch.notifications.append(PendingNotification(goal.user_id, GOAL_COMPLETED, {
        "goal_id": goal.id,
        "title": goal.title,
    }))
    if spec.points or spec.badge or spec.title:
        batch.notifications.append(PendingNotification(goal.user_id, REWARD_ISSUED, {
            "goal_id": goal.id,
            **spec.as_dict(),
        }))
    if issued.level.leveled_up:
        batch.notifications.append(level_up_notification(goal.user_id, issued.level))


async def _evaluate(db: AsyncSession, goal: Goal, now: datetime, batch: GoalBatch) -> None:
    goal.progress = await compute_goal_progress(db, goal, now)
    goal.updated_at = now

    just_completed = False
    if goal.progress >= goal.target_value:
        await _complete(db, goal, now, batch)
        just_completed = True
    elif goal.end_date <= now:
        goal.status = "failed"
        logger.info("Goal %d of user %d failed at %.1f%%", goal.id, goal.user_id, goal.percentage)

    batch.updates.append(GoalUpdate(
        goal_id=goal.id,
        title=goal.title,
        progress=goal.progress,
        target=goal.target_value,
        percentage=goal.percentage,
        status=goal.status,
        just_completed=just_completed,
    ))


async def refresh_goals(db: AsyncSession, user_id: int, now: datetime) -> GoalBatch:
    """Re-evaluate every active goal of a user. Does not commit."""
    result = await db.execute(
        select(Goal)
        .where(Goal.user_id == user_id, Goal.status == "active")
        .order_by(Goal.id)
        .with_for_update()
    )
    batch = GoalBatch()
    for goal in result.scalars().all():
        await _evaluate(db, goal, now, batch)
    return batch


async def create_goal(
    db: AsyncSession,
    notifier: Notifier | None,
    user_id: int,
    payload: dict[str, Any],
    now: datetime | None = None,
) -> Goal:
    """Create a goal; actions already inside its window count immediately."""
    if now is None:
        now = datetime.now(timezone.utc)
    validate_goal_payload(payload)
    await get_user(db, user_id)
    start, end = resolve_window(payload, now)

    target = payload["target"]
    reward = payload.get("reward") or {}
    goal = Goal(
        user_id=user_id,
        title=payload["title"].strip(),
        description=payload.get("description") or "",
        type=payload["type"],
        category=payload["category"],
        target_value=float(target["value"]),
        target_unit=target["unit"],
        action_type=target.get("action_type"),
        start_date=start,
        end_date=end,
        progress=0.0,
        status="active",
        priority=payload.get("priority", "medium"),
        reward_points=int(reward.get("points") or 0),
        reward_badge=reward.get("badge"),
        reward_title=reward.get("title"),
        created_at=now,
        updated_at=now,
    )
    db.add(goal)
    await db.flush()

    batch = GoalBatch()
    await _evaluate(db, goal, now, batch)
    await db.commit()
    logger.info("User %d created %s goal %d (%s)", user_id, goal.category, goal.id, goal.title)

    if notifier is not None:
        await notifier.notify_all(batch.notifications)
    return goal


async def get_goal(db: AsyncSession, user_id: int, goal_id: int) -> Goal:
    """Fetch one of the user's goals. Other users' goals are reported as missing."""
    goal = await db.get(Goal, goal_id)
    if goal is None or goal.user_id != user_id:
        raise GoalNotFound(f"Goal {goal_id} not found")
    return goal


async def list_goals(db: AsyncSession, user_id: int, status: str | None = None) -> list[Goal]:
    query = select(Goal).where(Goal.user_id == user_id)
    if status is not None:
        if status not in GOAL_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(sorted(GOAL_STATUSES))}")
        query = query.where(Goal.status == status)
    result = await db.execute(query.order_by(Goal.created_at.desc(), Goal.id.desc()))
    return list(result.scalars())


async def set_goal_paused(
    db: AsyncSession,
    user_id: int,
    goal_id: int,
    paused: bool,
    now: datetime | None = None,
) -> Goal:
    """Pause or resume a goal. Completed and failed goals are closed."""
    if now is None:
        now = datetime.now(timezone.utc)
    goal = await get_goal(db, user_id, goal_id)
    if goal.status in ("completed", "failed"):
        raise GoalClosed(f'Goal "{goal.title}" is {goal.status} and can no longer change')
    goal.status = "paused" if paused else "active"
    goal.updated_at = now
    await db.flush()
    return goal


async def delete_goal(db: AsyncSession, user_id: int, goal_id: int) -> None:
    """Remove a goal. A completed goal keeps counting toward the user's total."""
    goal = await get_goal(db, user_id, goal_id)
    await db.delete(goal)
    await db.flush()


async def fail_overdue_goals(db: AsyncSession, now: datetime | None = None) -> int:
    """Mark active goals past their end date as failed. Returns how many."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        update(Goal)
        .where(Goal.status == "active", Goal.end_date <= now)
        .values(status="failed", updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    failed = result.rowcount or 0
    if failed:
        logger.info("Marked %d overdue goal(s) failed", failed)
    return failed


async def goal_stats(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Goal counts by status and category with the overall completion rate."""
    by_status = dict((await db.execute(
        select(Goal.status, func.count(Goal.id)).where(Goal.user_id == user_id).group_by(Goal.status)
    )).all())
    by_category = dict((await db.execute(
        select(Goal.category, func.count(Goal.id)).where(Goal.user_id == user_id).group_by(Goal.category)
    )).all())

    total = sum(by_status.values())
    completed = by_status.get("completed", 0)
    return {
        "total": total,
        "active": by_status.get("active", 0),
        "completed": completed,
        "failed": by_status.get("failed", 0),
        "paused": by_status.get("paused", 0),
        "completion_rate": round(completed / total * 100, 1) if total else 0.0,
        "by_category": by_category,
    }
