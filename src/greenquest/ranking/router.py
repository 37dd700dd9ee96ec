"""Leaderboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.database import get_session
from greenquest.db.models import User
from greenquest.dependencies import get_current_user
from greenquest.ranking.schemas import LeaderboardResponse, RankingCategoriesResponse
from greenquest.ranking.service import get_leaderboard, list_categories

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Leaderboard"])


@router.get("", response_model=LeaderboardResponse)
async def leaderboard(
    category: str = Query("overall"),
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """One page of a ranking category, as of the last scheduled recompute."""
    return await get_leaderboard(db, category, page, per_page, current_user_id=user.id)


@router.get("/categories", response_model=RankingCategoriesResponse)
async def categories():
    return {"categories": list_categories()}
