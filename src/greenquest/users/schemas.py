"""Pydantic response models for the caller's gamification profile."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel


class LevelInfo(BaseModel):
    level: int
    experience: int
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_level_xp: int


class StreakInfo(BaseModel):
    current: int
    longest: int
    last_action_date: date | None = None


class GamificationProfileResponse(BaseModel):
    user_id: int
    username: str
    points: int
    level: LevelInfo
    streak: StreakInfo
    badges: list[str]
    titles: list[str]
    total_actions: int
    co2_saved: float
    water_saved: float
    goals_completed: int
    challenges_completed: int
