"""Caller profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.database import get_session
from greenquest.db.models import User
from greenquest.dependencies import get_current_user
from greenquest.gamification.leveling import level_progress
from greenquest.users.schemas import GamificationProfileResponse, LevelInfo, StreakInfo
from greenquest.users.service import get_badge_names, get_or_create_gamification, get_titles

router = APIRouter(prefix="/api/v1/me", tags=["Me"])


@router.get("/gamification", response_model=GamificationProfileResponse)
async def my_gamification(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    gam = await get_or_create_gamification(db, user.id)
    badges = await get_badge_names(db, user.id)
    titles = await get_titles(db, user.id)
    await db.commit()
    return GamificationProfileResponse(
        user_id=user.id,
        username=user.username,
        points=gam.points,
        level=LevelInfo(**level_progress(gam.experience)),
        streak=StreakInfo(
            current=gam.current_streak,
            longest=gam.longest_streak,
            last_action_date=gam.last_action_date,
        ),
        badges=badges,
        titles=titles,
        total_actions=gam.total_actions,
        co2_saved=gam.co2_saved,
        water_saved=gam.water_saved,
        goals_completed=gam.goals_completed,
        challenges_completed=gam.challenges_completed,
    )
