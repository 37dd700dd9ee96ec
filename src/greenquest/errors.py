"""Domain error taxonomy.

Services raise these; the HTTP layer renders them as
``{"detail": ..., "code": ...}`` with the class's status code.
"""

from __future__ import annotations


class GreenQuestError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        self.message = message or (self.__class__.__doc__ or self.code).strip()
        super().__init__(self.message)


# --- Validation ---


class ValidationError(GreenQuestError):
    """Malformed input."""

    code = "validation_error"
    status_code = 422


# --- Not found ---


class NotFoundError(GreenQuestError):
    """Entity not found."""

    code = "not_found"
    status_code = 404


class ChallengeNotFound(NotFoundError):
    """Challenge not found."""

    code = "challenge_not_found"


class RewardNotFound(NotFoundError):
    """Reward not found."""

    code = "reward_not_found"


class UserNotFound(NotFoundError):
    """User not found."""

    code = "user_not_found"


class GoalNotFound(NotFoundError):
    """Goal not found."""

    code = "goal_not_found"


# --- State / precondition failures ---


class StateError(GreenQuestError):
    """Precondition failed for the current state."""

    code = "state_error"
    status_code = 409


class AlreadyParticipating(StateError):
    """User is already participating in this challenge."""

    code = "already_participating"


class NotParticipating(StateError):
    """User is not participating in this challenge."""

    code = "not_participating"


class ChallengeInactive(StateError):
    """Challenge is not active."""

    code = "challenge_inactive"


class LevelTooLow(StateError):
    """User level is below the challenge requirement."""

    code = "level_too_low"


class NotChallengeCreator(StateError):
    """Only the challenge creator can do this."""

    code = "not_challenge_creator"
    status_code = 403


class RewardExpired(StateError):
    """Reward is no longer available."""

    code = "reward_expired"


class AlreadyRedeemed(StateError):
    """Reward has already been redeemed."""

    code = "already_redeemed"


class CapacityExceeded(StateError):
    """Reward redemption limit reached."""

    code = "capacity_exceeded"


class NotEligible(StateError):
    """User is not eligible for this reward."""

    code = "not_eligible"
    status_code = 403


class GoalClosed(StateError):
    """Goal is already completed or failed."""

    code = "goal_closed"


class InsufficientPoints(StateError):
    """Not enough points."""

    code = "insufficient_points"


# --- Background / maintenance ---


class ConsistencyError(GreenQuestError):
    """Cached counters drifted from their source of truth."""

    code = "consistency_error"


class SchedulerError(GreenQuestError):
    """A record failed processing inside a batch job."""

    code = "scheduler_error"
    status_code = 500
