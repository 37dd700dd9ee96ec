"""Challenge store: definitions, rosters and cached roster stats."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from greenquest.challenges.creator import Creator, SystemCreator, can_manage
from greenquest.db.models import Challenge, ChallengeParticipation, UserChallenge
from greenquest.errors import (
    AlreadyParticipating,
    ChallengeInactive,
    ChallengeNotFound,
    ConsistencyError,
    LevelTooLow,
    NotChallengeCreator,
    NotParticipating,
    ValidationError,
)
from greenquest.users.service import get_or_create_gamification

logger = logging.getLogger(__name__)

GENERAL_CATEGORY = "general"

RECURRENCES = {"daily", "weekly", "monthly", "milestone"}
DIFFICULTIES = {"easy", "medium", "hard", "extreme"}
CATEGORIES = {
    "biking",
    "recycling",
    "walking",
    "public_transport",
    "reusable_bag",
    "energy_saving",
    "water_conservation",
    "waste_reduction",
    GENERAL_CATEGORY,
}

DEFAULT_POINTS_BY_DIFFICULTY = {"easy": 50, "medium": 100, "hard": 200, "extreme": 400}
RECURRENCE_POINT_MULTIPLIER = {"daily": 1.0, "weekly": 1.5, "monthly": 3.0, "milestone": 1.0}


def default_reward_points(difficulty: str, recurrence: str) -> int:
    base = DEFAULT_POINTS_BY_DIFFICULTY.get(difficulty, 100)
    return int(base * RECURRENCE_POINT_MULTIPLIER.get(recurrence, 1.0))


def active_predicate(now: datetime) -> ColumnElement[bool]:
    """The one definition of an active challenge: flagged active and inside its window."""
    return and_(
        Challenge.is_active.is_(True),
        Challenge.start_date <= now,
        or_(Challenge.end_date.is_(None), Challenge.end_date > now),
    )


def is_challenge_active(challenge: Challenge, now: datetime) -> bool:
    if not challenge.is_active or challenge.start_date > now:
        return False
    return challenge.end_date is None or challenge.end_date > now


def validate_challenge_payload(payload: dict[str, Any]) -> None:
    """Reject malformed challenge definitions before anything is stored."""
    title = (payload.get("title") or "").strip()
    if not title:
        raise ValidationError("Challenge title is required")

    target = payload.get("target")
    if not target or target.get("value") is None or not target.get("unit"):
        raise ValidationError("Challenge target with value and unit is required")
    try:
        value = float(target["value"])
    except (TypeError, ValueError):
        raise ValidationError("Challenge target value must be a number") from None
    if value <= 0:
        raise ValidationError("Challenge target value must be positive")

    if payload.get("recurrence") not in RECURRENCES:
        raise ValidationError(f"Recurrence must be one of: {', '.join(sorted(RECURRENCES))}")
    if payload.get("category") not in CATEGORIES:
        raise ValidationError(f"Category must be one of: {', '.join(sorted(CATEGORIES))}")
    if payload.get("difficulty", "medium") not in DIFFICULTIES:
        raise ValidationError(f"Difficulty must be one of: {', '.join(sorted(DIFFICULTIES))}")

    start, end = payload.get("start_date"), payload.get("end_date")
    if start is not None and end is not None and end <= start:
        raise ValidationError("Challenge end date must be after its start date")

    if int(payload.get("min_level", 1)) < 1:
        raise ValidationError("Minimum level must be at least 1")

    reward = payload.get("reward") or {}
    if reward.get("points") is not None and int(reward["points"]) < 0:
        raise ValidationError("Reward points must not be negative")


async def create_challenge(
    db: AsyncSession,
    payload: dict[str, Any],
    creator: Creator,
    now: datetime | None = None,
) -> Challenge:
    """Validate and store a new challenge definition."""
    if now is None:
        now = datetime.now(timezone.utc)
    validate_challenge_payload(payload)

    target = payload["target"]
    reward = payload.get("reward") or {}
    difficulty = payload.get("difficulty", "medium")
    points = reward.get("points")
    if points is None:
        points = default_reward_points(difficulty, payload["recurrence"])

    challenge = Challenge(
        title=payload["title"].strip(),
        description=payload.get("description") or "",
        recurrence=payload["recurrence"],
        category=payload["category"],
        target_value=float(target["value"]),
        target_unit=target["unit"],
        target_description=target.get("description") or f"Complete {target['value']} {target['unit']}",
        reward_points=int(points),
        reward_badge=reward.get("badge"),
        reward_title=reward.get("title"),
        difficulty=difficulty,
        start_date=payload.get("start_date") or now,
        end_date=payload.get("end_date"),
        is_active=True,
        min_level=int(payload.get("min_level", 1)),
        total_participants=0,
        completed_count=0,
        created_at=now,
        updated_at=now,
    )
    challenge.creator = creator
    db.add(challenge)
    await db.flush()
    logger.info("Created challenge %d (%s) by %s", challenge.id, challenge.title, creator.kind)
    return challenge


async def get_challenge(db: AsyncSession, challenge_id: int) -> Challenge:
    challenge = await db.get(Challenge, challenge_id)
    if challenge is None:
        raise ChallengeNotFound(f"Challenge {challenge_id} not found")
    return challenge


async def list_active_challenges(
    db: AsyncSession,
    category: str | None = None,
    recurrence: str | None = None,
    now: datetime | None = None,
) -> list[Challenge]:
    if now is None:
        now = datetime.now(timezone.utc)
    stmt = select(Challenge).where(active_predicate(now))
    if category:
        stmt = stmt.where(Challenge.category == category)
    if recurrence:
        stmt = stmt.where(Challenge.recurrence == recurrence)
    result = await db.execute(stmt.order_by(Challenge.created_at.desc(), Challenge.id.desc()))
    return list(result.scalars())


async def get_participation(
    db: AsyncSession, challenge_id: int, user_id: int
) -> ChallengeParticipation | None:
    return await db.get(ChallengeParticipation, (challenge_id, user_id))


async def get_user_challenge(db: AsyncSession, user_id: int, challenge_id: int) -> UserChallenge | None:
    result = await db.execute(
        select(UserChallenge).where(
            UserChallenge.user_id == user_id,
            UserChallenge.challenge_id == challenge_id,
        )
    )
    return result.scalar_one_or_none()


async def join_challenge(
    db: AsyncSession,
    user_id: int,
    challenge_id: int,
    now: datetime | None = None,
) -> ChallengeParticipation:
    """Add a user to a challenge roster and their active set."""
    if now is None:
        now = datetime.now(timezone.utc)

    challenge = await get_challenge(db, challenge_id)
    if not is_challenge_active(challenge, now):
        raise ChallengeInactive(f'Challenge "{challenge.title}" is not active')

    gam = await get_or_create_gamification(db, user_id)
    if gam.level < challenge.min_level:
        raise LevelTooLow(f"Challenge requires level {challenge.min_level}, you are level {gam.level}")

    if await get_participation(db, challenge_id, user_id) is not None:
        raise AlreadyParticipating(f'Already participating in "{challenge.title}"')

    participation = ChallengeParticipation(
        challenge_id=challenge_id,
        user_id=user_id,
        progress=0.0,
        completed=False,
        joined_at=now,
        ever_completed=False,
        times_completed=0,
    )
    db.add(participation)

    ref = await get_user_challenge(db, user_id, challenge_id)
    if ref is None:
        db.add(UserChallenge(
            user_id=user_id,
            challenge_id=challenge_id,
            status="active",
            times_completed=0,
            joined_at=now,
        ))
    else:
        ref.status = "active"
        ref.joined_at = now

    challenge.total_participants += 1
    challenge.updated_at = now
    await db.flush()
    return participation


async def leave_challenge(db: AsyncSession, user_id: int, challenge_id: int) -> None:
    """Remove a participation. The completed-set reference, if any, is kept as history."""
    challenge = await get_challenge(db, challenge_id)
    participation = await get_participation(db, challenge_id, user_id)
    if participation is None:
        raise NotParticipating(f'Not participating in "{challenge.title}"')

    was_completed = participation.ever_completed
    await db.delete(participation)
    await db.execute(
        delete(UserChallenge).where(
            UserChallenge.user_id == user_id,
            UserChallenge.challenge_id == challenge_id,
            UserChallenge.status == "active",
        )
    )
    challenge.total_participants = max(challenge.total_participants - 1, 0)
    if was_completed:
        challenge.completed_count = max(challenge.completed_count - 1, 0)
    challenge.updated_at = datetime.now(timezone.utc)
    await db.flush()


def _require_manager(challenge: Challenge, actor: Creator) -> None:
    if not can_manage(challenge.creator, actor):
        raise NotChallengeCreator("Only the challenge creator can modify this challenge")


async def deactivate_challenge(
    db: AsyncSession,
    challenge_id: int,
    actor: Creator = SystemCreator(),
) -> Challenge:
    challenge = await get_challenge(db, challenge_id)
    _require_manager(challenge, actor)
    challenge.is_active = False
    challenge.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return challenge


async def delete_challenge(
    db: AsyncSession,
    challenge_id: int,
    actor: Creator = SystemCreator(),
) -> None:
    """Delete a challenge and every roster entry and user reference to it."""
    challenge = await get_challenge(db, challenge_id)
    _require_manager(challenge, actor)

    await db.execute(delete(UserChallenge).where(UserChallenge.challenge_id == challenge_id))
    await db.execute(
        delete(ChallengeParticipation).where(ChallengeParticipation.challenge_id == challenge_id)
    )
    await db.delete(challenge)
    await db.flush()
    logger.info("Deleted challenge %d", challenge_id)


async def count_roster(db: AsyncSession, challenge_id: int) -> tuple[int, int]:
    """(participants, participants who ever completed) counted fresh from the roster."""
    result = await db.execute(
        select(
            func.count(),
            func.coalesce(
                func.sum(case((ChallengeParticipation.ever_completed.is_(True), 1), else_=0)), 0
            ),
        ).where(ChallengeParticipation.challenge_id == challenge_id)
    )
    total, completed = result.one()
    return int(total), int(completed)


async def recompute_challenge_stats(db: AsyncSession, challenge: Challenge) -> bool:
    """Heal participant counters from the roster. Returns True if they had drifted."""
    total, completed = await count_roster(db, challenge.id)

    drifted = challenge.total_participants != total or challenge.completed_count != completed
    if drifted:
        err = ConsistencyError(
            f"Challenge {challenge.id} stats drifted: "
            f"participants {challenge.total_participants}->{total}, "
            f"completed {challenge.completed_count}->{completed}"
        )
        logger.warning("%s: %s", err.code, err.message)
        challenge.total_participants = total
        challenge.completed_count = completed
        await db.flush()
    return drifted


async def recompute_all_challenge_stats(db: AsyncSession) -> int:
    """Heal every challenge's counters. Returns how many had drifted."""
    result = await db.execute(select(Challenge))
    healed = 0
    for challenge in result.scalars().all():
        if await recompute_challenge_stats(db, challenge):
            healed += 1
    await db.commit()
    return healed


async def get_challenge_leaderboard(db: AsyncSession, challenge_id: int) -> list[dict]:
    """Participants ordered completed-first, then by progress."""
    challenge = await get_challenge(db, challenge_id)
    result = await db.execute(
        select(ChallengeParticipation)
        .where(ChallengeParticipation.challenge_id == challenge_id)
        .order_by(
            ChallengeParticipation.completed.desc(),
            ChallengeParticipation.progress.desc(),
            ChallengeParticipation.joined_at,
        )
    )
    return [
        {
            "user_id": p.user_id,
            "progress": p.progress,
            "completed": p.completed,
            "completed_at": p.completed_at,
            "progress_percentage": progress_percentage(p.progress, challenge.target_value),
        }
        for p in result.scalars()
    ]


def progress_percentage(progress: float, target: float) -> float:
    if target <= 0:
        return 0.0
    return round(min(100.0, progress / target * 100), 1)
