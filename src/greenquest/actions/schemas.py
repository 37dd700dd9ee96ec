"""Pydantic request/response models for action logging."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class LogActionRequest(BaseModel):
    action_type: str
    quantity: float = Field(default=1, gt=0)
    unit: str = "times"
    performed_at: datetime | None = None


class ActionResponse(BaseModel):
    id: int
    action_type: str
    quantity: float
    unit: str
    co2_saved: float
    water_saved: float
    performed_at: datetime


class ChallengeProgressEntry(BaseModel):
    challenge_id: int
    title: str
    progress: float
    target: float
    unit: str
    completed: bool
    just_completed: bool
    reward: dict | None = None


class GoalProgressEntry(BaseModel):
    goal_id: int
    title: str
    progress: float
    target: float
    percentage: float
    status: str
    just_completed: bool


class LogActionResponse(BaseModel):
    action: ActionResponse
    current_streak: int
    longest_streak: int
    challenges: list[ChallengeProgressEntry]
    goals: list[GoalProgressEntry] = []
