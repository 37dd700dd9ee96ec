"""Pydantic response models for leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RankingEntry(BaseModel):
    user_id: int
    username: str | None = None
    rank: int
    previous_rank: int
    rank_change: str
    score: float
    goals_completed: int
    actions_completed: int
    challenges_completed: int
    streak_days: int
    co2_saved: float
    last_updated: datetime | None = None


class Pagination(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class LeaderboardResponse(BaseModel):
    category: str
    rankings: list[RankingEntry]
    current_user_entry: RankingEntry | None = None
    pagination: Pagination


class RankingCategory(BaseModel):
    id: str
    name: str
    description: str


class RankingCategoriesResponse(BaseModel):
    categories: list[RankingCategory]
