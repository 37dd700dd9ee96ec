"""Pydantic response models for reward endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CatalogItem(BaseModel):
    id: int
    slug: str
    name: str
    description: str
    type: str
    value: str
    points_cost: int
    rarity: str
    category: str
    is_repeatable: bool
    available_until: datetime | None = None
    max_recipients: int | None = None
    current_recipients: int
    remaining_capacity: int | None = None
    eligible: bool
    eligibility_progress: float
    can_afford: bool
    already_redeemed: bool


class CatalogResponse(BaseModel):
    rewards: list[CatalogItem]
    user_points: int


class RedeemResponse(BaseModel):
    reward_id: int
    reward_type: str
    value: str
    points_spent: int
    remaining_points: int
    redeemed_at: datetime
    message: str


class RedemptionEntry(BaseModel):
    reward_id: int
    name: str
    type: str
    value: str
    points_cost: int
    redeemed_at: datetime


class RedemptionHistoryResponse(BaseModel):
    redemptions: list[RedemptionEntry]
    total_redeemed: int
    total_points_spent: int
