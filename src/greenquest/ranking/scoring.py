"""Deterministic ranking.

Users are ranked by score DESC, then goals completed DESC, then user id
ASC, so two runs over the same counters always produce the same order.
Ranks are positions 1..N with no duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass

GOAL_WEIGHT = 10
ACTION_WEIGHT = 2
CHALLENGE_WEIGHT = 5

RANKING_CATEGORIES: dict[str, dict[str, str]] = {
    "overall": {
        "name": "Overall",
        "description": "Goals x10 + actions x2 + challenges x5",
    },
    "goals": {"name": "Goals", "description": "Goals completed"},
    "actions": {"name": "Actions", "description": "Sustainable actions logged"},
    "challenges": {"name": "Challenges", "description": "Challenges completed"},
    "sustainability": {"name": "Sustainability", "description": "CO2 saved (kg)"},
    "streaks": {"name": "Streaks", "description": "Current daily streak"},
}


@dataclass
class UserCounters:
    """Snapshot of one user's ranking inputs."""

    user_id: int
    goals_completed: int = 0
    actions_completed: int = 0
    challenges_completed: int = 0
    streak_days: int = 0
    co2_saved: float = 0.0


@dataclass
class RankedEntry:
    counters: UserCounters
    score: float
    rank: int


def compute_score(category: str, counters: UserCounters) -> float:
    """Score for one category. Unknown categories raise ValueError."""
    if category == "overall":
        return float(
            counters.goals_completed * GOAL_WEIGHT
            + counters.actions_completed * ACTION_WEIGHT
            + counters.challenges_completed * CHALLENGE_WEIGHT
        )
    if category == "goals":
        return float(counters.goals_completed)
    if category == "actions":
        return float(counters.actions_completed)
    if category == "challenges":
        return float(counters.challenges_completed)
    if category == "sustainability":
        return round(counters.co2_saved, 3)
    if category == "streaks":
        return float(counters.streak_days)
    raise ValueError(f"Unknown ranking category: {category}")


def rank_entries(category: str, snapshot: list[UserCounters]) -> list[RankedEntry]:
    """Score and order a snapshot, assigning positions 1..N."""
    scored = [(compute_score(category, c), c) for c in snapshot]
    scored.sort(key=lambda item: (-item[0], -item[1].goals_completed, item[1].user_id))
    return [
        RankedEntry(counters=counters, score=score, rank=idx + 1)
        for idx, (score, counters) in enumerate(scored)
    ]


def classify_rank_change(previous_rank: int, rank: int) -> str:
    """``new`` for a first ranking, otherwise the direction of movement."""
    if previous_rank == 0:
        return "new"
    if rank < previous_rank:
        return "up"
    if rank > previous_rank:
        return "down"
    return "same"


def entered_top(previous_rank: int, rank: int, top_n: int) -> bool:
    """True when a user moves into the top ``top_n`` from outside it."""
    if rank > top_n:
        return False
    return previous_rank == 0 or previous_rank > top_n
