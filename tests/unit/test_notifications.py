"""Notifier publishing tests."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock

import pytest

from greenquest.notifications import LEVEL_UP, Notifier, PendingNotification


class TestNotifier:

    @pytest.mark.asyncio
    async def test_publishes_json_to_channel(self):
        redis = AsyncMock()
        notifier = Notifier(redis, "pubsub:test")

        await notifier.notify(7, LEVEL_UP, {"level": 3})

        channel, message = redis.publish.call_args.args
        assert channel == "pubsub:test"
        body = json.loads(message)
        assert body["recipient"] == 7
        assert body["type"] == LEVEL_UP
        assert body["payload"] == {"level": 3}

    @pytest.mark.asyncio
    async def test_publish_failure_is_logged_not_raised(self, caplog):
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        notifier = Notifier(redis)

        with caplog.at_level(logging.WARNING, logger="greenquest.notifications"):
            await notifier.notify(1, LEVEL_UP, {})

        assert "Failed to publish level_up" in caplog.text

    @pytest.mark.asyncio
    async def test_without_redis_is_noop(self):
        await Notifier(None).notify(1, LEVEL_UP, {})

    @pytest.mark.asyncio
    async def test_notify_all_keeps_order(self):
        redis = AsyncMock()
        notifier = Notifier(redis)
        await notifier.notify_all([
            PendingNotification(1, "a"),
            PendingNotification(2, "b"),
        ])
        types = [json.loads(call.args[1])["type"] for call in redis.publish.call_args_list]
        assert types == ["a", "b"]
