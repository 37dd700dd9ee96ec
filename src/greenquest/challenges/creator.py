"""Challenge creator as a tagged variant: system-seeded or user-created."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class SystemCreator:
    """Challenge seeded by the platform."""

    kind: str = "system"


@dataclass(frozen=True)
class UserCreator:
    """Challenge created by a user."""

    user_id: int
    kind: str = "user"


Creator = Union[SystemCreator, UserCreator]


def can_manage(creator: Creator, actor: Creator) -> bool:
    """Return True if ``actor`` may deactivate or delete a challenge made by ``creator``."""
    if isinstance(creator, SystemCreator):
        return isinstance(actor, SystemCreator)
    return isinstance(actor, UserCreator) and actor.user_id == creator.user_id
