"""Reward ledger: inline challenge rewards and catalog redemptions.

Redemption is strictly validate -> debit -> award, committed as one unit.
Any failure before commit rolls back, so points are never lost without
the reward being granted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.db.models import Reward, RewardRedemption, UserBadge, UserGamification, UserTitle
from greenquest.errors import (
    AlreadyRedeemed,
    CapacityExceeded,
    InsufficientPoints,
    NotEligible,
    RewardExpired,
    RewardNotFound,
    ValidationError,
)
from greenquest.gamification.leveling import LevelUpResult, add_experience
from greenquest.notifications import LEVEL_UP, REWARD_REDEEMED, Notifier, PendingNotification
from greenquest.rewards.criteria import Qualification, evaluate_criteria
from greenquest.users.service import get_or_create_gamification

logger = logging.getLogger(__name__)


@dataclass
class RewardSpec:
    """Inline reward attached to a challenge."""

    points: int = 0
    badge: dict[str, Any] | None = None
    title: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"points": self.points, "badge": self.badge, "title": self.title}


@dataclass
class IssueResult:
    spec: RewardSpec
    badge_awarded: bool
    title_awarded: bool
    level: LevelUpResult


@dataclass
class RedemptionResult:
    reward_id: int
    reward_type: str
    value: str
    points_spent: int
    remaining_points: int
    redeemed_at: datetime
    notifications: list[PendingNotification] = field(default_factory=list)


def user_snapshot(gam: UserGamification) -> dict[str, float]:
    """Counters that reward criteria are evaluated against."""
    return {
        "total_actions": gam.total_actions,
        "co2_saved": gam.co2_saved,
        "current_streak": gam.current_streak,
        "level": gam.level,
    }


def is_available(reward: Reward, now: datetime) -> bool:
    if not reward.is_active:
        return False
    return reward.available_until is None or reward.available_until > now


async def grant_badge(
    db: AsyncSession,
    user_id: int,
    name: str,
    source: str,
    description: str | None = None,
    icon: str | None = None,
) -> bool:
    """Add a badge unless the user already holds one with this name."""
    existing = await db.execute(
        select(UserBadge.id).where(UserBadge.user_id == user_id, UserBadge.name == name)
    )
    if existing.scalar_one_or_none() is not None:
        return False
    db.add(UserBadge(
        user_id=user_id,
        name=name,
        description=description,
        icon=icon,
        source=source,
        earned_at=datetime.now(timezone.utc),
    ))
    await db.flush()
    return True


async def grant_title(db: AsyncSession, user_id: int, title: str) -> bool:
    """Unlock a display title unless already unlocked."""
    existing = await db.execute(
        select(UserTitle.id).where(UserTitle.user_id == user_id, UserTitle.title == title)
    )
    if existing.scalar_one_or_none() is not None:
        return False
    db.add(UserTitle(user_id=user_id, title=title, earned_at=datetime.now(timezone.utc)))
    await db.flush()
    return True


async def issue_reward(
    db: AsyncSession,
    user_id: int,
    spec: RewardSpec,
    source: str = "challenge",
) -> IssueResult:
    """Apply an inline reward. Eligibility was established by the caller.

    Points go through add_experience, which credits experience and the
    point balance once each.
    """
    badge_awarded = False
    if spec.badge and spec.badge.get("name"):
        badge_awarded = await grant_badge(
            db, user_id, spec.badge["name"], source,
            description=spec.badge.get("description"),
            icon=spec.badge.get("icon"),
        )

    title_awarded = False
    if spec.title:
        title_awarded = await grant_title(db, user_id, spec.title)

    level = await add_experience(db, user_id, max(spec.points, 0))
    return IssueResult(spec=spec, badge_awarded=badge_awarded, title_awarded=title_awarded, level=level)


async def count_recipients(db: AsyncSession, reward_id: int) -> int:
    """Recipient count, always derived from the redemption ledger."""
    result = await db.execute(
        select(func.count(RewardRedemption.id)).where(RewardRedemption.reward_id == reward_id)
    )
    return int(result.scalar_one())


async def has_redeemed(db: AsyncSession, user_id: int, reward_id: int) -> bool:
    result = await db.execute(
        select(RewardRedemption.id)
        .where(RewardRedemption.user_id == user_id, RewardRedemption.reward_id == reward_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _lock_gamification(db: AsyncSession, user_id: int) -> UserGamification:
    result = await db.execute(
        select(UserGamification).where(UserGamification.user_id == user_id).with_for_update()
    )
    gam = result.scalar_one_or_none()
    if gam is None:
        gam = await get_or_create_gamification(db, user_id)
    return gam


async def _validate_redemption(
    db: AsyncSession,
    reward: Reward,
    gam: UserGamification,
    now: datetime,
) -> Qualification:
    if not is_available(reward, now):
        raise RewardExpired(f'Reward "{reward.name}" is no longer available')

    if not reward.is_repeatable and await has_redeemed(db, gam.user_id, reward.id):
        raise AlreadyRedeemed(f'You have already redeemed "{reward.name}"')

    if reward.max_recipients is not None:
        recipients = await count_recipients(db, reward.id)
        if recipients >= reward.max_recipients:
            raise CapacityExceeded(f'Reward "{reward.name}" redemption limit reached')

    qualification = evaluate_criteria(reward.criteria, user_snapshot(gam))
    if not qualification.qualified:
        unmet = ", ".join(c.requirement for c in qualification.checks if not c.met)
        raise NotEligible(f"You are not eligible for this reward (requires {unmet})")

    if gam.points < reward.points_cost:
        raise InsufficientPoints(
            f"Insufficient points. You need {reward.points_cost} points but have {gam.points}"
        )

    if reward.type == "points":
        try:
            int(reward.value)
        except ValueError:
            raise ValidationError(f'Reward "{reward.slug}" has a non-numeric points value') from None

    return qualification


async def _apply_effect(db: AsyncSession, reward: Reward, gam: UserGamification) -> None:
    if reward.type == "badge":
        await grant_badge(db, gam.user_id, reward.value or reward.name, "reward", description=reward.description)
    elif reward.type == "points":
        gam.points += int(reward.value)
    elif reward.type == "title":
        await grant_title(db, gam.user_id, reward.value or reward.name)
    # discount / item / experience are opaque values for the caller


async def redeem_reward(
    db: AsyncSession,
    notifier: Notifier | None,
    user_id: int,
    reward_id: int,
    now: datetime | None = None,
) -> RedemptionResult:
    """Redeem a catalog reward for a user."""
    if now is None:
        now = datetime.now(timezone.utc)

    result = await db.execute(select(Reward).where(Reward.id == reward_id).with_for_update())
    reward = result.scalar_one_or_none()
    if reward is None:
        raise RewardNotFound(f"Reward {reward_id} not found")

    try:
        gam = await _lock_gamification(db, user_id)
        await _validate_redemption(db, reward, gam, now)

        # Debit
        gam.points -= reward.points_cost
        db.add(RewardRedemption(
            user_id=user_id,
            reward_id=reward.id,
            points_cost=reward.points_cost,
            redeemed_at=now,
        ))
        gam.updated_at = now
        await db.flush()

        # Award
        await _apply_effect(db, reward, gam)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("User %d redeemed reward %s for %d points", user_id, reward.slug, reward.points_cost)

    pending = [PendingNotification(user_id, REWARD_REDEEMED, {
        "reward_id": reward.id,
        "reward_name": reward.name,
        "type": reward.type,
        "value": reward.value,
        "points_spent": reward.points_cost,
    })]
    if notifier is not None:
        await notifier.notify_all(pending)

    return RedemptionResult(
        reward_id=reward.id,
        reward_type=reward.type,
        value=reward.value,
        points_spent=reward.points_cost,
        remaining_points=gam.points,
        redeemed_at=now,
        notifications=pending,
    )


async def list_catalog(db: AsyncSession, user_id: int, now: datetime | None = None) -> list[dict]:
    """Available rewards annotated with the user's eligibility and affordability."""
    if now is None:
        now = datetime.now(timezone.utc)

    result = await db.execute(
        select(Reward).where(Reward.is_active.is_(True)).order_by(Reward.points_cost, Reward.id)
    )
    rewards = [r for r in result.scalars() if is_available(r, now)]

    gam = await get_or_create_gamification(db, user_id)
    snapshot = user_snapshot(gam)

    counts_result = await db.execute(
        select(RewardRedemption.reward_id, func.count(RewardRedemption.id))
        .group_by(RewardRedemption.reward_id)
    )
    recipient_counts = {reward_id: count for reward_id, count in counts_result}

    mine_result = await db.execute(
        select(RewardRedemption.reward_id).where(RewardRedemption.user_id == user_id)
    )
    redeemed_ids = set(mine_result.scalars())

    items = []
    for reward in rewards:
        qualification = evaluate_criteria(reward.criteria, snapshot)
        recipients = recipient_counts.get(reward.id, 0)
        remaining = None if reward.max_recipients is None else max(reward.max_recipients - recipients, 0)
        items.append({
            "id": reward.id,
            "slug": reward.slug,
            "name": reward.name,
            "description": reward.description,
            "type": reward.type,
            "value": reward.value,
            "points_cost": reward.points_cost,
            "rarity": reward.rarity,
            "category": reward.category,
            "is_repeatable": reward.is_repeatable,
            "available_until": reward.available_until,
            "max_recipients": reward.max_recipients,
            "current_recipients": recipients,
            "remaining_capacity": remaining,
            "eligible": qualification.qualified,
            "eligibility_progress": qualification.progress,
            "can_afford": gam.points >= reward.points_cost,
            "already_redeemed": reward.id in redeemed_ids,
        })
    return items


async def list_redemptions(db: AsyncSession, user_id: int) -> dict:
    """A user's redemption history, newest first."""
    result = await db.execute(
        select(RewardRedemption)
        .where(RewardRedemption.user_id == user_id)
        .order_by(RewardRedemption.redeemed_at.desc(), RewardRedemption.id.desc())
    )
    rows = result.scalars().all()
    return {
        "redemptions": [
            {
                "reward_id": row.reward_id,
                "name": row.reward.name,
                "type": row.reward.type,
                "value": row.reward.value,
                "points_cost": row.points_cost,
                "redeemed_at": row.redeemed_at,
            }
            for row in rows
        ],
        "total_redeemed": len(rows),
        "total_points_spent": sum(row.points_cost for row in rows),
    }


def level_up_notification(user_id: int, level: LevelUpResult) -> PendingNotification:
    return PendingNotification(user_id, LEVEL_UP, {
        "old_level": level.old_level,
        "new_level": level.level,
        "experience": level.experience,
    })
