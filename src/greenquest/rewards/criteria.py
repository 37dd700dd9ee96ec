"""Reward eligibility criteria, evaluated all-or-nothing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# criteria key -> (snapshot key, human label)
CRITERIA_FIELDS: dict[str, tuple[str, str]] = {
    "action_count": ("total_actions", "{} total actions"),
    "co2_saved": ("co2_saved", "{}kg CO2 saved"),
    "streak_days": ("current_streak", "{} day streak"),
    "level": ("level", "Level {}"),
}


@dataclass
class CriterionCheck:
    criterion: str
    required: float
    current: float
    met: bool
    requirement: str


@dataclass
class Qualification:
    qualified: bool
    checks: list[CriterionCheck]
    progress: float


def evaluate_criteria(criteria: dict[str, Any] | None, snapshot: dict[str, float]) -> Qualification:
    """Check a user snapshot against every criterion listed on a reward.

    Unknown or empty criteria are ignored; a reward with no criteria
    qualifies everyone. ``progress`` is the weakest criterion's completion
    percentage, capped at 100.
    """
    checks: list[CriterionCheck] = []
    for key, (snapshot_key, label) in CRITERIA_FIELDS.items():
        required = (criteria or {}).get(key)
        if not required:
            continue
        current = float(snapshot.get(snapshot_key, 0) or 0)
        checks.append(CriterionCheck(
            criterion=key,
            required=float(required),
            current=current,
            met=current >= float(required),
            requirement=label.format(required),
        ))

    qualified = all(c.met for c in checks)
    if qualified:
        progress = 100.0
    else:
        progress = min(min(c.current / c.required * 100, 100.0) for c in checks)
    return Qualification(qualified=qualified, checks=checks, progress=round(progress, 1))
