"""Progress engine: applies logged actions to challenge participations.

Every matching participation gets exactly one increment per action. When
progress reaches the target, the participation completes (false -> true,
once), the challenge's inline reward is issued and the user's challenge
reference moves from the active set to the completed set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.challenges.service import (
    GENERAL_CATEGORY,
    active_predicate,
    get_challenge,
    get_participation,
    get_user_challenge,
    is_challenge_active,
)
from greenquest.db.models import Challenge, ChallengeParticipation, UserChallenge
from greenquest.errors import ChallengeInactive, NotParticipating
from greenquest.notifications import (
    CHALLENGE_COMPLETED,
    REWARD_ISSUED,
    Notifier,
    PendingNotification,
)
from greenquest.rewards.service import RewardSpec, issue_reward, level_up_notification
from greenquest.users.service import get_or_create_gamification

logger = logging.getLogger(__name__)

# Units where the logged quantity is the progress amount
PHYSICAL_UNITS = {
    # distance
    "km", "m", "miles", "mi",
    # mass
    "kg", "g", "lbs", "lb",
    # volume
    "liters", "l", "gallons",
    # time
    "hours", "minutes",
}


@dataclass
class ProgressResult:
    challenge_id: int
    title: str
    matched: bool
    progress: float
    target: float
    unit: str
    completed: bool
    just_completed: bool = False
    reward: dict[str, Any] | None = None
    leveled_up: bool = False
    level: int | None = None


@dataclass
class ProgressBatch:
    results: list[ProgressResult] = field(default_factory=list)
    notifications: list[PendingNotification] = field(default_factory=list)


def compute_increment(unit: str, quantity: float) -> float:
    """Progress increment for one action against a target expressed in ``unit``."""
    normalized = (unit or "").strip().lower()
    if normalized in PHYSICAL_UNITS:
        return max(float(quantity), 0.0)
    return 1.0


def action_matches(challenge: Challenge, action_type: str) -> bool:
    return challenge.category in (GENERAL_CATEGORY, action_type)


def reward_spec_for(challenge: Challenge) -> RewardSpec:
    return RewardSpec(
        points=challenge.reward_points or 0,
        badge=challenge.reward_badge,
        title=challenge.reward_title,
    )


async def _complete(
    db: AsyncSession,
    challenge: Challenge,
    participation: ChallengeParticipation,
    now: datetime,
    batch: ProgressBatch,
) -> ProgressResult:
    user_id = participation.user_id

    participation.completed = True
    participation.progress = challenge.target_value
    participation.completed_at = now
    participation.times_completed += 1
    if not participation.ever_completed:
        participation.ever_completed = True
        challenge.completed_count += 1
    challenge.updated_at = now

    spec = reward_spec_for(challenge)
    issued = await issue_reward(db, user_id, spec, source="challenge")

    ref = await get_user_challenge(db, user_id, challenge.id)
    if ref is None:
        ref = UserChallenge(
            user_id=user_id,
            challenge_id=challenge.id,
            times_completed=0,
            joined_at=participation.joined_at,
        )
        db.add(ref)
    ref.status = "completed"
    ref.times_completed = (ref.times_completed or 0) + 1
    ref.last_completed_at = now

    gam = await get_or_create_gamification(db, user_id)
    gam.challenges_completed += 1
    gam.updated_at = now
    await db.flush()

    logger.info("User %d completed challenge %d (%s)", user_id, challenge.id, challenge.title)

    batch.notifications.append(PendingNotification(user_id, CHALLENGE_COMPLETED, {
        "challenge_id": challenge.id,
        "title": challenge.title,
    }))
    batch.notifications.append(PendingNotification(user_id, REWARD_ISSUED, {
        "challenge_id": challenge.id,
        **spec.as_dict(),
    }))
    if issued.level.leveled_up:
        batch.notifications.append(level_up_notification(user_id, issued.level))

    return ProgressResult(
        challenge_id=challenge.id,
        title=challenge.title,
        matched=True,
        progress=participation.progress,
        target=challenge.target_value,
        unit=challenge.target_unit,
        completed=True,
        just_completed=True,
        reward=spec.as_dict(),
        leveled_up=issued.level.leveled_up,
        level=issued.level.level,
    )


async def _advance(
    db: AsyncSession,
    challenge: Challenge,
    participation: ChallengeParticipation,
    quantity: float,
    now: datetime,
    batch: ProgressBatch,
) -> ProgressResult:
    if participation.completed:
        # Finalized until the next recurring reset
        return ProgressResult(
            challenge_id=challenge.id,
            title=challenge.title,
            matched=True,
            progress=participation.progress,
            target=challenge.target_value,
            unit=challenge.target_unit,
            completed=True,
        )

    participation.progress += compute_increment(challenge.target_unit, quantity)
    if participation.progress >= challenge.target_value:
        return await _complete(db, challenge, participation, now, batch)

    await db.flush()
    return ProgressResult(
        challenge_id=challenge.id,
        title=challenge.title,
        matched=True,
        progress=participation.progress,
        target=challenge.target_value,
        unit=challenge.target_unit,
        completed=False,
    )


async def advance_matching_challenges(
    db: AsyncSession,
    user_id: int,
    action_type: str,
    quantity: float,
    now: datetime,
) -> ProgressBatch:
    """Apply one action to every active, matching challenge the user is in. Does not commit."""
    result = await db.execute(
        select(Challenge, ChallengeParticipation)
        .join(ChallengeParticipation, ChallengeParticipation.challenge_id == Challenge.id)
        .where(
            ChallengeParticipation.user_id == user_id,
            active_predicate(now),
            or_(Challenge.category == action_type, Challenge.category == GENERAL_CATEGORY),
        )
        .order_by(Challenge.id)
        .with_for_update()
    )
    batch = ProgressBatch()
    for challenge, participation in result.all():
        batch.results.append(await _advance(db, challenge, participation, quantity, now, batch))
    return batch


async def apply_action(
    db: AsyncSession,
    notifier: Notifier | None,
    user_id: int,
    action_type: str,
    quantity: float = 1,
    now: datetime | None = None,
) -> list[ProgressResult]:
    """Apply an action to all of the user's matching active challenges and commit."""
    if now is None:
        now = datetime.now(timezone.utc)
    batch = await advance_matching_challenges(db, user_id, action_type, quantity, now)
    await db.commit()
    if notifier is not None:
        await notifier.notify_all(batch.notifications)
    return batch.results


async def apply_action_to_challenge(
    db: AsyncSession,
    notifier: Notifier | None,
    user_id: int,
    challenge_id: int,
    action_type: str,
    quantity: float = 1,
    now: datetime | None = None,
) -> ProgressResult:
    """Apply an action to one challenge.

    Raises NotParticipating or ChallengeInactive. An action whose type does
    not match the challenge category is reported with ``matched=False``
    and leaves progress untouched.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    challenge = await get_challenge(db, challenge_id)
    participation = await get_participation(db, challenge_id, user_id)
    if participation is None:
        raise NotParticipating(f'Not participating in "{challenge.title}"')
    if not is_challenge_active(challenge, now):
        raise ChallengeInactive(f'Challenge "{challenge.title}" is not active')

    if not action_matches(challenge, action_type):
        return ProgressResult(
            challenge_id=challenge.id,
            title=challenge.title,
            matched=False,
            progress=participation.progress,
            target=challenge.target_value,
            unit=challenge.target_unit,
            completed=participation.completed,
        )

    batch = ProgressBatch()
    result = await _advance(db, challenge, participation, quantity, now, batch)
    await db.commit()
    if notifier is not None:
        await notifier.notify_all(batch.notifications)
    return result
