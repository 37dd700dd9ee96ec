"""Recurring challenge resets and expiry sweeps."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.db.models import Challenge, ChallengeParticipation, UserChallenge

logger = logging.getLogger(__name__)

RESETTABLE = {"daily", "weekly"}


async def reset_recurring_challenges(
    db: AsyncSession,
    recurrence: str,
    now: datetime | None = None,
) -> int:
    """Start a new period for every live challenge of the given recurrence.

    Progress and completion are cleared; roster membership and
    ``completed_count`` are untouched. Challenges whose end date has passed
    are switched off instead of reset. Returns the number of challenges reset.
    """
    if recurrence not in RESETTABLE:
        raise ValueError(f"Unsupported recurrence for reset: {recurrence}")
    if now is None:
        now = datetime.now(timezone.utc)

    result = await db.execute(
        select(Challenge).where(
            Challenge.recurrence == recurrence,
            Challenge.is_active.is_(True),
        )
    )
    reset_ids: list[int] = []
    expired = 0
    for challenge in result.scalars().all():
        if challenge.end_date is not None and challenge.end_date <= now:
            challenge.is_active = False
            challenge.updated_at = now
            expired += 1
            continue
        reset_ids.append(challenge.id)

    if reset_ids:
        await db.execute(
            update(ChallengeParticipation)
            .where(ChallengeParticipation.challenge_id.in_(reset_ids))
            .values(progress=0.0, completed=False, completed_at=None)
        )
        # The challenge is open again for users who finished the last period
        await db.execute(
            update(UserChallenge)
            .where(
                UserChallenge.challenge_id.in_(reset_ids),
                UserChallenge.status == "completed",
            )
            .values(status="active")
        )

    await db.commit()
    logger.info(
        "Reset %d %s challenge(s), deactivated %d elapsed", len(reset_ids), recurrence, expired,
    )
    return len(reset_ids)


async def expire_challenges(db: AsyncSession, now: datetime | None = None) -> int:
    """Flag every elapsed challenge inactive. Returns how many were switched off."""
    if now is None:
        now = datetime.now(timezone.utc)

    result = await db.execute(
        select(Challenge).where(
            Challenge.is_active.is_(True),
            Challenge.end_date.is_not(None),
            Challenge.end_date <= now,
        )
    )
    expired = result.scalars().all()
    for challenge in expired:
        challenge.is_active = False
        challenge.updated_at = now
    await db.commit()

    if expired:
        logger.info("Expired %d challenge(s)", len(expired))
    return len(expired)
