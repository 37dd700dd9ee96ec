"""Fire-and-forget notification publishing.

Delivery is owned by another service; this side only publishes JSON to a
Redis pub/sub channel. Publishing happens after the triggering state change
is committed and a failure is logged, never raised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

# Notification types
REWARD_ISSUED = "reward_issued"
REWARD_REDEEMED = "reward_redeemed"
LEVEL_UP = "level_up"
CHALLENGE_COMPLETED = "challenge_completed"
GOAL_COMPLETED = "goal_completed"
RANK_ACHIEVEMENT = "rank_achievement"


@dataclass
class PendingNotification:
    recipient: int
    type: str
    payload: dict[str, Any] = field(default_factory=dict)


class Notifier:
    """Publishes notifications to Redis pub/sub."""

    def __init__(self, redis: object | None, channel: str = "pubsub:notifications") -> None:
        self.redis = redis
        self.channel = channel

    async def notify(self, recipient: int, type_: str, payload: dict[str, Any]) -> None:
        if self.redis is None:
            logger.debug("No Redis client, dropping %s notification for user %d", type_, recipient)
            return
        message = json.dumps({
            "recipient": recipient,
            "type": type_,
            "payload": payload,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }, default=str)
        try:
            await self.redis.publish(self.channel, message)  # type: ignore[union-attr]
        except Exception:
            logger.warning("Failed to publish %s notification for user %d", type_, recipient, exc_info=True)

    async def notify_all(self, pending: list[PendingNotification]) -> None:
        for item in pending:
            await self.notify(item.recipient, item.type, item.payload)
