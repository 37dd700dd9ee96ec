"""Challenge API endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.challenges import service
from greenquest.challenges.creator import UserCreator
from greenquest.challenges.progress import apply_action_to_challenge
from greenquest.challenges.schemas import (
    ChallengeCreateRequest,
    ChallengeLeaderboardEntry,
    ChallengeLeaderboardResponse,
    ChallengeListResponse,
    ChallengeResponse,
    CreatorModel,
    InlineRewardModel,
    ParticipationModel,
    ProgressRequest,
    ProgressResponse,
    TargetModel,
)
from greenquest.database import get_session
from greenquest.db.models import Challenge, ChallengeParticipation, User
from greenquest.dependencies import get_current_user, get_notifier
from greenquest.notifications import Notifier

router = APIRouter(prefix="/api/v1/challenges", tags=["Challenges"])


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_response(
    challenge: Challenge,
    participation: ChallengeParticipation | None = None,
) -> ChallengeResponse:
    creator = challenge.creator
    return ChallengeResponse(
        id=challenge.id,
        title=challenge.title,
        description=challenge.description,
        recurrence=challenge.recurrence,
        category=challenge.category,
        difficulty=challenge.difficulty,
        target=TargetModel(
            value=challenge.target_value,
            unit=challenge.target_unit,
            description=challenge.target_description,
        ),
        reward=InlineRewardModel(
            points=challenge.reward_points,
            badge=challenge.reward_badge,
            title=challenge.reward_title,
        ),
        start_date=challenge.start_date,
        end_date=challenge.end_date,
        is_active=challenge.is_active,
        min_level=challenge.min_level,
        creator=CreatorModel(kind=creator.kind, user_id=getattr(creator, "user_id", None)),
        total_participants=challenge.total_participants,
        completed_count=challenge.completed_count,
        completion_rate=challenge.completion_rate,
        created_at=challenge.created_at,
        participation=None if participation is None else ParticipationModel(
            progress=participation.progress,
            completed=participation.completed,
            progress_percentage=service.progress_percentage(participation.progress, challenge.target_value),
            joined_at=participation.joined_at,
            completed_at=participation.completed_at,
        ),
    )


@router.get("", response_model=ChallengeListResponse)
async def list_challenges(
    category: str | None = Query(None),
    recurrence: str | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Active challenges, each with the caller's participation if any."""
    challenges = await service.list_active_challenges(db, category, recurrence)
    items = []
    for challenge in challenges:
        participation = await service.get_participation(db, challenge.id, user.id)
        items.append(_to_response(challenge, participation))
    return ChallengeListResponse(challenges=items, total=len(items))


@router.get("/{challenge_id}", response_model=ChallengeResponse)
async def get_challenge(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    challenge = await service.get_challenge(db, challenge_id)
    participation = await service.get_participation(db, challenge_id, user.id)
    return _to_response(challenge, participation)


@router.post("", response_model=ChallengeResponse, status_code=201)
async def create_challenge(
    body: ChallengeCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create a user-owned challenge."""
    payload = body.model_dump()
    payload["start_date"] = _aware(body.start_date)
    payload["end_date"] = _aware(body.end_date)
    challenge = await service.create_challenge(db, payload, UserCreator(user.id))
    await db.commit()
    return _to_response(challenge)


@router.post("/{challenge_id}/join", response_model=ChallengeResponse)
async def join_challenge(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    participation = await service.join_challenge(db, user.id, challenge_id)
    await db.commit()
    challenge = await service.get_challenge(db, challenge_id)
    return _to_response(challenge, participation)


@router.post("/{challenge_id}/leave", response_model=ChallengeResponse)
async def leave_challenge(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await service.leave_challenge(db, user.id, challenge_id)
    await db.commit()
    return _to_response(await service.get_challenge(db, challenge_id))


@router.post("/{challenge_id}/progress", response_model=ProgressResponse)
async def record_progress(
    challenge_id: int,
    body: ProgressRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Apply one action to a single challenge."""
    result = await apply_action_to_challenge(
        db, notifier, user.id, challenge_id, body.action_type, body.quantity,
    )
    return ProgressResponse(
        challenge_id=result.challenge_id,
        matched=result.matched,
        progress=result.progress,
        target=result.target,
        completed=result.completed,
        just_completed=result.just_completed,
        reward=InlineRewardModel(**result.reward) if result.reward else None,
        leveled_up=result.leveled_up,
        level=result.level,
    )


@router.post("/{challenge_id}/deactivate", response_model=ChallengeResponse)
async def deactivate_challenge(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    challenge = await service.deactivate_challenge(db, challenge_id, UserCreator(user.id))
    await db.commit()
    return _to_response(challenge)


@router.delete("/{challenge_id}", status_code=204)
async def delete_challenge(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await service.delete_challenge(db, challenge_id, UserCreator(user.id))
    await db.commit()
    return Response(status_code=204)


@router.get("/{challenge_id}/leaderboard", response_model=ChallengeLeaderboardResponse)
async def challenge_leaderboard(
    challenge_id: int,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    entries = await service.get_challenge_leaderboard(db, challenge_id)
    return ChallengeLeaderboardResponse(
        challenge_id=challenge_id,
        entries=[ChallengeLeaderboardEntry(**e) for e in entries],
    )
