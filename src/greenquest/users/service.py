"""User lookup and the denormalized gamification row."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.db.models import User, UserBadge, UserGamification, UserTitle
from greenquest.errors import UserNotFound


async def get_user(db: AsyncSession, user_id: int) -> User:
    """Fetch a user or raise UserNotFound."""
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFound(f"User {user_id} not found")
    return user


async def get_or_create_user(db: AsyncSession, username: str) -> tuple[User, bool]:
    """Get a user by username, creating one if needed. Returns (user, created)."""
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is not None:
        return user, False

    user = User(username=username, created_at=datetime.now(timezone.utc), is_active=True)
    db.add(user)
    await db.flush()
    return user, True


async def get_or_create_gamification(db: AsyncSession, user_id: int) -> UserGamification:
    """Get or create the denormalized gamification row for a user."""
    gam = await db.get(UserGamification, user_id)
    if gam is None:
        gam = UserGamification(
            user_id=user_id,
            experience=0,
            points=0,
            level=1,
            current_streak=0,
            longest_streak=0,
            total_actions=0,
            co2_saved=0.0,
            water_saved=0.0,
            goals_completed=0,
            challenges_completed=0,
            updated_at=datetime.now(timezone.utc),
        )
        db.add(gam)
        await db.flush()
    return gam


async def get_badge_names(db: AsyncSession, user_id: int) -> list[str]:
    result = await db.execute(
        select(UserBadge.name).where(UserBadge.user_id == user_id).order_by(UserBadge.earned_at)
    )
    return list(result.scalars())


async def get_titles(db: AsyncSession, user_id: int) -> list[str]:
    result = await db.execute(
        select(UserTitle.title).where(UserTitle.user_id == user_id).order_by(UserTitle.earned_at)
    )
    return list(result.scalars())
