"""Personal goal endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.database import get_session
from greenquest.db.models import Goal, User
from greenquest.dependencies import get_current_user, get_notifier
from greenquest.goals import service
from greenquest.goals.schemas import (
    GoalCreateRequest,
    GoalListResponse,
    GoalResponse,
    GoalRewardModel,
    GoalStatsResponse,
    GoalTargetModel,
)
from greenquest.notifications import Notifier

router = APIRouter(prefix="/api/v1/goals", tags=["Goals"])


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_response(goal: Goal) -> GoalResponse:
    return GoalResponse(
        id=goal.id,
        title=goal.title,
        description=goal.description,
        type=goal.type,
        category=goal.category,
        target=GoalTargetModel(value=goal.target_value, unit=goal.target_unit, action_type=goal.action_type),
        start_date=goal.start_date,
        end_date=goal.end_date,
        progress=goal.progress,
        percentage=goal.percentage,
        status=goal.status,
        priority=goal.priority,
        reward=GoalRewardModel(points=goal.reward_points, badge=goal.reward_badge, title=goal.reward_title),
        completed_at=goal.completed_at,
        created_at=goal.created_at,
    )


@router.get("", response_model=GoalListResponse)
async def list_goals(
    status: str | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    goals = await service.list_goals(db, user.id, status)
    return GoalListResponse(goals=[_to_response(g) for g in goals], total=len(goals))


@router.post("", response_model=GoalResponse, status_code=201)
async def create_goal(
    body: GoalCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Create a goal; progress counts actions already inside its window."""
    payload = body.model_dump()
    payload["start_date"] = _aware(body.start_date)
    payload["end_date"] = _aware(body.end_date)
    goal = await service.create_goal(db, notifier, user.id, payload)
    return _to_response(goal)


@router.get("/stats", response_model=GoalStatsResponse)
async def goal_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await service.goal_stats(db, user.id)


@router.get("/{goal_id}", response_model=GoalResponse)
async def get_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return _to_response(await service.get_goal(db, user.id, goal_id))


@router.post("/{goal_id}/pause", response_model=GoalResponse)
async def pause_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    goal = await service.set_goal_paused(db, user.id, goal_id, paused=True)
    await db.commit()
    return _to_response(goal)


@router.post("/{goal_id}/resume", response_model=GoalResponse)
async def resume_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    goal = await service.set_goal_paused(db, user.id, goal_id, paused=False)
    await db.commit()
    return _to_response(goal)


@router.delete("/{goal_id}", status_code=204)
async def delete_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await service.delete_goal(db, user.id, goal_id)
    await db.commit()
    return Response(status_code=204)
