"""Reward catalog and system challenge seed data."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.challenges.creator import SystemCreator
from greenquest.challenges.service import create_challenge
from greenquest.db.models import Challenge, Reward

logger = logging.getLogger(__name__)

REWARD_SEED_DATA: list[dict] = [
    {
        "slug": "eco_warrior_badge",
        "name": "Eco Warrior Badge",
        "description": "Show off your commitment to sustainability with this exclusive badge",
        "type": "badge",
        "value": "Eco Warrior",
        "points_cost": 100,
        "rarity": "common",
        "category": "environmental_impact",
        "criteria": {"level": 5, "action_count": 50},
    },
    {
        "slug": "green_champion_badge",
        "name": "Green Champion Badge",
        "description": "Unlock the prestigious Green Champion badge for dedicated environmental action",
        "type": "badge",
        "value": "Green Champion",
        "points_cost": 250,
        "rarity": "rare",
        "category": "environmental_impact",
        "criteria": {"level": 10, "action_count": 100, "streak_days": 7},
    },
    {
        "slug": "streak_master_title",
        "name": "Consistency Master",
        "description": "Awarded for maintaining a strong daily habit streak",
        "type": "title",
        "value": "Streak Master",
        "points_cost": 300,
        "rarity": "uncommon",
        "category": "consistency",
        "criteria": {"streak_days": 30},
    },
    {
        "slug": "impact_hero_title",
        "name": "Environmental Impact Hero",
        "description": "Recognized for significant CO2 savings through sustainable actions",
        "type": "title",
        "value": "Impact Hero",
        "points_cost": 500,
        "rarity": "epic",
        "category": "environmental_impact",
        "criteria": {"co2_saved": 100, "action_count": 200},
    },
    {
        "slug": "bonus_points_pack",
        "name": "Bonus Points Pack",
        "description": "Trade in for a bundle of bonus points",
        "type": "points",
        "value": "150",
        "points_cost": 100,
        "rarity": "common",
        "category": "milestones",
        "criteria": {"level": 3},
        "is_repeatable": True,
    },
    {
        "slug": "transit_discount",
        "name": "Public Transport Discount",
        "description": "10% off a monthly public transport pass",
        "type": "discount",
        "value": "TRANSIT10",
        "points_cost": 400,
        "rarity": "rare",
        "category": "partner",
        "criteria": {"action_count": 25},
        "max_recipients": 100,
    },
    {
        "slug": "reusable_bottle",
        "name": "Reusable Water Bottle",
        "description": "A stainless steel bottle shipped to your door",
        "type": "item",
        "value": "steel-bottle-750ml",
        "points_cost": 800,
        "rarity": "epic",
        "category": "partner",
        "criteria": {"level": 5},
        "max_recipients": 50,
    },
]

CHALLENGE_SEED_DATA: list[dict] = [
    {
        "title": "Daily Eco Warrior",
        "description": "Log 10 sustainable actions of any kind",
        "recurrence": "weekly",
        "category": "general",
        "difficulty": "easy",
        "target": {"value": 10, "unit": "actions", "description": "Complete 10 eco-friendly actions"},
        "reward": {"points": 100, "badge": {"name": "Eco Warrior", "icon": "leaf"}},
    },
    {
        "title": "Bike to Work Challenge",
        "description": "Leave the car at home and bike to work",
        "recurrence": "monthly",
        "category": "biking",
        "difficulty": "medium",
        "target": {"value": 5, "unit": "times", "description": "Bike to work 5 times"},
        "reward": {"points": 200, "title": "Pedal Pusher"},
        "duration_days": 30,
    },
    {
        "title": "Water Conservation Hero",
        "description": "Save water with shorter showers and smarter habits",
        "recurrence": "weekly",
        "category": "water_conservation",
        "difficulty": "medium",
        "target": {"value": 100, "unit": "liters", "description": "Save 100 liters of water"},
        "reward": {"points": 150, "badge": {"name": "Water Hero", "icon": "droplet"}},
    },
    {
        "title": "Daily Walk",
        "description": "Walk instead of driving for short trips",
        "recurrence": "daily",
        "category": "walking",
        "difficulty": "easy",
        "target": {"value": 2, "unit": "km", "description": "Walk 2 km today"},
        "reward": {"points": 25},
    },
]


async def seed_rewards(db: AsyncSession) -> int:
    """Insert or refresh catalog rewards by slug. Returns number of rewards seeded."""
    now = datetime.now(timezone.utc)
    existing = {r.slug: r for r in (await db.execute(select(Reward))).scalars()}

    seeded = 0
    for data in REWARD_SEED_DATA:
        reward = existing.get(data["slug"])
        if reward is None:
            reward = Reward(
                slug=data["slug"],
                is_active=True,
                is_repeatable=False,
                created_at=now,
            )
            db.add(reward)
        reward.name = data["name"]
        reward.description = data["description"]
        reward.type = data["type"]
        reward.value = data["value"]
        reward.points_cost = data["points_cost"]
        reward.rarity = data["rarity"]
        reward.category = data["category"]
        reward.criteria = data["criteria"]
        reward.is_repeatable = data.get("is_repeatable", False)
        reward.max_recipients = data.get("max_recipients")
        seeded += 1

    await db.commit()
    logger.info("Seeded %d rewards", seeded)
    return seeded


async def seed_challenges(db: AsyncSession, now: datetime | None = None) -> int:
    """Create missing system challenges, matched by title. Returns number created."""
    if now is None:
        now = datetime.now(timezone.utc)

    result = await db.execute(
        select(Challenge.title).where(Challenge.created_by_system.is_(True))
    )
    existing = set(result.scalars())

    created = 0
    for data in CHALLENGE_SEED_DATA:
        if data["title"] in existing:
            continue
        payload = {k: v for k, v in data.items() if k != "duration_days"}
        payload["start_date"] = now
        if "duration_days" in data:
            payload["end_date"] = now + timedelta(days=data["duration_days"])
        await create_challenge(db, payload, SystemCreator(), now)
        created += 1

    await db.commit()
    if created:
        logger.info("Seeded %d system challenges", created)
    return created
