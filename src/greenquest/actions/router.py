"""Action logging endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.actions.schemas import (
    ActionResponse,
    ChallengeProgressEntry,
    GoalProgressEntry,
    LogActionRequest,
    LogActionResponse,
)
from greenquest.actions.service import log_action
from greenquest.database import get_session
from greenquest.db.models import User
from greenquest.dependencies import get_current_user, get_notifier
from greenquest.notifications import Notifier

router = APIRouter(prefix="/api/v1/actions", tags=["Actions"])


@router.post("", response_model=LogActionResponse, status_code=201)
async def create_action(
    body: LogActionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Log a sustainable action and apply it to the caller's challenges and goals."""
    logged = await log_action(
        db, notifier, user.id, body.action_type, body.quantity, body.unit, body.performed_at,
    )
    action = logged.action
    return LogActionResponse(
        action=ActionResponse(
            id=action.id,
            action_type=action.action_type,
            quantity=action.quantity,
            unit=action.unit,
            co2_saved=action.co2_saved,
            water_saved=action.water_saved,
            performed_at=action.performed_at,
        ),
        current_streak=logged.streak.current,
        longest_streak=logged.streak.longest,
        challenges=[
            ChallengeProgressEntry(
                challenge_id=r.challenge_id,
                title=r.title,
                progress=r.progress,
                target=r.target,
                unit=r.unit,
                completed=r.completed,
                just_completed=r.just_completed,
                reward=r.reward,
            )
            for r in logged.progress
        ],
        goals=[
            GoalProgressEntry(
                goal_id=g.goal_id,
                title=g.title,
                progress=g.progress,
                target=g.target,
                percentage=g.percentage,
                status=g.status,
                just_completed=g.just_completed,
            )
            for g in logged.goals
        ],
    )
