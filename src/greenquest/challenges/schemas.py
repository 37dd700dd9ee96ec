"""Pydantic request/response models for challenge endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class TargetModel(BaseModel):
    value: float
    unit: str
    description: str | None = None


class InlineRewardModel(BaseModel):
    points: int | None = None
    badge: dict | None = None
    title: str | None = None


class ChallengeCreateRequest(BaseModel):
    title: str
    description: str = ""
    recurrence: str
    category: str
    difficulty: str = "medium"
    target: TargetModel
    reward: InlineRewardModel | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_level: int = 1


class CreatorModel(BaseModel):
    kind: str
    user_id: int | None = None


class ParticipationModel(BaseModel):
    progress: float
    completed: bool
    progress_percentage: float
    joined_at: datetime
    completed_at: datetime | None = None


class ChallengeResponse(BaseModel):
    id: int
    title: str
    description: str
    recurrence: str
    category: str
    difficulty: str
    target: TargetModel
    reward: InlineRewardModel
    start_date: datetime
    end_date: datetime | None = None
    is_active: bool
    min_level: int
    creator: CreatorModel
    total_participants: int
    completed_count: int
    completion_rate: float
    created_at: datetime | None = None
    participation: ParticipationModel | None = None


class ChallengeListResponse(BaseModel):
    challenges: list[ChallengeResponse]
    total: int


class ProgressRequest(BaseModel):
    action_type: str
    quantity: float = Field(default=1, gt=0)


class ProgressResponse(BaseModel):
    challenge_id: int
    matched: bool
    progress: float
    target: float
    completed: bool
    just_completed: bool = False
    reward: InlineRewardModel | None = None
    leveled_up: bool = False
    level: int | None = None


class ChallengeLeaderboardEntry(BaseModel):
    user_id: int
    progress: float
    completed: bool
    completed_at: datetime | None = None
    progress_percentage: float


class ChallengeLeaderboardResponse(BaseModel):
    challenge_id: int
    entries: list[ChallengeLeaderboardEntry]
