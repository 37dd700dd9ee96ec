"""Reward catalog and redemption endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.database import get_session
from greenquest.db.models import User
from greenquest.dependencies import get_current_user, get_notifier
from greenquest.notifications import Notifier
from greenquest.rewards.schemas import (
    CatalogItem,
    CatalogResponse,
    RedeemResponse,
    RedemptionEntry,
    RedemptionHistoryResponse,
)
from greenquest.rewards.service import list_catalog, list_redemptions, redeem_reward
from greenquest.users.service import get_or_create_gamification

router = APIRouter(prefix="/api/v1/rewards", tags=["Rewards"])


@router.get("", response_model=CatalogResponse)
async def get_catalog(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Available rewards annotated with the caller's eligibility and balance."""
    items = await list_catalog(db, user.id)
    gam = await get_or_create_gamification(db, user.id)
    await db.commit()
    return CatalogResponse(rewards=[CatalogItem(**item) for item in items], user_points=gam.points)


@router.get("/mine", response_model=RedemptionHistoryResponse)
async def my_redemptions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    history = await list_redemptions(db, user.id)
    return RedemptionHistoryResponse(
        redemptions=[RedemptionEntry(**r) for r in history["redemptions"]],
        total_redeemed=history["total_redeemed"],
        total_points_spent=history["total_points_spent"],
    )


@router.post("/{reward_id}/redeem", response_model=RedeemResponse)
async def redeem(
    reward_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    result = await redeem_reward(db, notifier, user.id, reward_id)
    return RedeemResponse(
        reward_id=result.reward_id,
        reward_type=result.reward_type,
        value=result.value,
        points_spent=result.points_spent,
        remaining_points=result.remaining_points,
        redeemed_at=result.redeemed_at,
        message="Reward redeemed successfully",
    )
