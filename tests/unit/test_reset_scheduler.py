"""Recurring reset and expiry tests."""

from __future__ import annotations

from datetime import timedelta

import pytest

from greenquest.challenges.progress import apply_action
from greenquest.challenges.reset import expire_challenges, reset_recurring_challenges
from greenquest.challenges.service import (
    count_roster,
    get_participation,
    get_user_challenge,
    join_challenge,
    recompute_challenge_stats,
)


class TestResetRecurring:

    @pytest.mark.asyncio
    async def test_daily_reset_clears_progress_keeps_stats(
        self, db_session, make_user, make_challenge, notifier, now
    ):
        user = await make_user("alice")
        challenge = await make_challenge(recurrence="daily", target={"value": 2, "unit": "times"})
        await join_challenge(db_session, user.id, challenge.id, now)
        await db_session.commit()
        await apply_action(db_session, notifier, user.id, "biking", 1, now)
        await apply_action(db_session, notifier, user.id, "biking", 1, now)
        assert challenge.completed_count == 1

        reset = await reset_recurring_challenges(db_session, "daily", now + timedelta(hours=12))
        assert reset == 1

        participation = await get_participation(db_session, challenge.id, user.id)
        await db_session.refresh(participation)
        await db_session.refresh(challenge)
        assert participation.progress == 0
        assert participation.completed is False
        assert participation.completed_at is None
        assert challenge.total_participants == 1
        assert challenge.completed_count == 1
        assert await count_roster(db_session, challenge.id) == (1, 1)
        assert not await recompute_challenge_stats(db_session, challenge)

        ref = await get_user_challenge(db_session, user.id, challenge.id)
        await db_session.refresh(ref)
        assert ref.status == "active"

    @pytest.mark.asyncio
    async def test_can_complete_again_after_reset(self, db_session, make_user, make_challenge, notifier, now):
        user = await make_user("alice")
        challenge = await make_challenge(recurrence="daily", target={"value": 1, "unit": "times"})
        await join_challenge(db_session, user.id, challenge.id, now)
        await db_session.commit()

        await apply_action(db_session, notifier, user.id, "biking", 1, now)
        await reset_recurring_challenges(db_session, "daily", now + timedelta(hours=12))
        results = await apply_action(db_session, notifier, user.id, "biking", 1, now + timedelta(days=1))

        assert results[0].just_completed
        participation = await get_participation(db_session, challenge.id, user.id)
        await db_session.refresh(challenge)
        assert participation.times_completed == 2
        assert challenge.completed_count == 1

    @pytest.mark.asyncio
    async def test_other_recurrences_untouched(self, db_session, make_user, make_challenge, notifier, now):
        user = await make_user("alice")
        weekly = await make_challenge(recurrence="weekly")
        await join_challenge(db_session, user.id, weekly.id, now)
        await db_session.commit()
        await apply_action(db_session, notifier, user.id, "biking", 1, now)

        assert await reset_recurring_challenges(db_session, "daily", now) == 0
        participation = await get_participation(db_session, weekly.id, user.id)
        await db_session.refresh(participation)
        assert participation.progress == 1

    @pytest.mark.asyncio
    async def test_elapsed_challenge_deactivated_not_reset(
        self, db_session, make_user, make_challenge, notifier, now
    ):
        user = await make_user("alice")
        challenge = await make_challenge(recurrence="daily", end_date=now + timedelta(hours=1))
        await join_challenge(db_session, user.id, challenge.id, now)
        await db_session.commit()
        await apply_action(db_session, notifier, user.id, "biking", 1, now)

        assert await reset_recurring_challenges(db_session, "daily", now + timedelta(hours=2)) == 0

        await db_session.refresh(challenge)
        participation = await get_participation(db_session, challenge.id, user.id)
        await db_session.refresh(participation)
        assert challenge.is_active is False
        assert participation.progress == 1

    @pytest.mark.asyncio
    async def test_unsupported_recurrence(self, db_session, now):
        with pytest.raises(ValueError):
            await reset_recurring_challenges(db_session, "milestone", now)


class TestExpireChallenges:

    @pytest.mark.asyncio
    async def test_flags_elapsed(self, db_session, make_challenge, now):
        elapsed = await make_challenge(title="Old", end_date=now + timedelta(minutes=5))
        ongoing = await make_challenge(title="Ongoing")
        later = await make_challenge(title="Later", end_date=now + timedelta(days=3))

        expired = await expire_challenges(db_session, now + timedelta(hours=1))

        assert expired == 1
        assert elapsed.is_active is False
        assert ongoing.is_active is True
        assert later.is_active is True

    @pytest.mark.asyncio
    async def test_idempotent(self, db_session, make_challenge, now):
        await make_challenge(end_date=now + timedelta(minutes=5))
        assert await expire_challenges(db_session, now + timedelta(hours=1)) == 1
        assert await expire_challenges(db_session, now + timedelta(hours=1)) == 0
