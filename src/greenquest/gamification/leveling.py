"""Level computation and experience grants.

Level is a pure function of total experience::

    level = floor(sqrt(experience / 100)) + 1

so 0-99 XP is level 1, 100-399 level 2, 400-899 level 3, and the XP
needed to reach level ``n`` is ``100 * (n - 1) ** 2``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.errors import ValidationError
from greenquest.users.service import get_or_create_gamification

logger = logging.getLogger(__name__)

XP_PER_LEVEL_UNIT = 100


@dataclass
class LevelUpResult:
    """Outcome of an experience grant."""

    experience: int
    points: int
    old_level: int
    level: int
    leveled_up: bool


def compute_level(experience: int) -> int:
    """Level for a total experience amount. Integer math, no float rounding."""
    if experience <= 0:
        return 1
    return math.isqrt(experience // XP_PER_LEVEL_UNIT) + 1


def xp_for_level(level: int) -> int:
    """Cumulative experience required to reach ``level``."""
    return XP_PER_LEVEL_UNIT * (max(level, 1) - 1) ** 2


def level_progress(experience: int) -> dict:
    """Level info for display: current level and distance to the next one."""
    level = compute_level(experience)
    floor_xp = xp_for_level(level)
    next_xp = xp_for_level(level + 1)
    return {
        "level": level,
        "experience": experience,
        "xp_into_level": experience - floor_xp,
        "xp_for_level": next_xp - floor_xp,
        "next_level": level + 1,
        "next_level_xp": next_xp,
    }


async def add_experience(db: AsyncSession, user_id: int, points: int) -> LevelUpResult:
    """Grant experience; the same amount is credited to the point balance.

    Level only ever moves up. Performs no notification itself: callers
    check ``leveled_up`` and notify after commit.
    """
    if points < 0:
        raise ValidationError("Experience grants must be non-negative")

    gam = await get_or_create_gamification(db, user_id)
    old_level = gam.level
    gam.experience += points
    gam.points += points

    new_level = compute_level(gam.experience)
    leveled_up = new_level > gam.level
    if leveled_up:
        gam.level = new_level
        logger.info("User %d leveled up: %d -> %d", user_id, old_level, new_level)
    gam.updated_at = datetime.now(timezone.utc)
    await db.flush()

    return LevelUpResult(
        experience=gam.experience,
        points=gam.points,
        old_level=old_level,
        level=gam.level,
        leveled_up=leveled_up,
    )
