"""Pydantic request/response models for goal endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class GoalTargetModel(BaseModel):
    value: float
    unit: str
    action_type: str | None = None


class GoalRewardModel(BaseModel):
    points: int | None = None
    badge: dict | None = None
    title: str | None = None


class GoalCreateRequest(BaseModel):
    title: str
    description: str = ""
    type: str
    category: str
    target: GoalTargetModel
    start_date: datetime | None = None
    end_date: datetime | None = None
    duration_days: int | None = Field(default=None, gt=0)
    priority: str = "medium"
    reward: GoalRewardModel | None = None


class GoalResponse(BaseModel):
    id: int
    title: str
    description: str
    type: str
    category: str
    target: GoalTargetModel
    start_date: datetime
    end_date: datetime
    progress: float
    percentage: float
    status: str
    priority: str
    reward: GoalRewardModel
    completed_at: datetime | None = None
    created_at: datetime | None = None


class GoalListResponse(BaseModel):
    goals: list[GoalResponse]
    total: int


class GoalStatsResponse(BaseModel):
    total: int
    active: int
    completed: int
    failed: int
    paused: int
    completion_rate: float
    by_category: dict[str, int]
