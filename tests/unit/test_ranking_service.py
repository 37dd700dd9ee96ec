"""Ranking recomputation and leaderboard reads against the database."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from greenquest.db.models import Ranking, UserGamification
from greenquest.errors import ValidationError
from greenquest.notifications import RANK_ACHIEVEMENT
from greenquest.ranking import service as ranking_service
from greenquest.ranking.service import (
    get_leaderboard,
    list_categories,
    recompute_all_rankings,
    recompute_rankings,
    snapshot_counters,
)


async def _rows(db_session, category):
    result = await db_session.execute(
        select(Ranking).where(Ranking.category == category).order_by(Ranking.rank)
    )
    return list(result.scalars())


class TestRecompute:

    @pytest.mark.asyncio
    async def test_overall_order_and_positions(self, db_session, make_user, notifier, now):
        low = await make_user("low", goals_completed=1)
        high = await make_user("high", goals_completed=3, challenges_completed=2)
        mid = await make_user("mid", challenges_completed=4)

        ranked = await recompute_rankings(db_session, notifier, "overall", now)

        assert ranked == 3
        rows = await _rows(db_session, "overall")
        assert [r.user_id for r in rows] == [high.id, mid.id, low.id]
        assert [r.rank for r in rows] == [1, 2, 3]
        assert rows[0].score == 40
        assert all(r.rank_change == "new" for r in rows)

    @pytest.mark.asyncio
    async def test_ties_broken_by_goals_then_user_id(self, db_session, make_user, notifier, now):
        # Both score 80 on overall; goals decide, then id
        by_goals = await make_user("goals", goals_completed=8)
        by_challenges = await make_user("challenges", challenges_completed=16)
        twin = await make_user("twin", goals_completed=8)

        await recompute_rankings(db_session, notifier, "overall", now)

        rows = await _rows(db_session, "overall")
        assert [r.user_id for r in rows] == [by_goals.id, twin.id, by_challenges.id]

    @pytest.mark.asyncio
    async def test_rank_change_on_second_run(self, db_session, make_user, notifier, now):
        first = await make_user("first", goals_completed=5)
        second = await make_user("second", goals_completed=2)
        await recompute_rankings(db_session, notifier, "goals", now)

        gam = await db_session.get(UserGamification, second.id)
        gam.goals_completed = 9
        await db_session.commit()
        await recompute_rankings(db_session, notifier, "goals", now)

        rows = {r.user_id: r for r in await _rows(db_session, "goals")}
        assert rows[second.id].rank == 1
        assert rows[second.id].previous_rank == 2
        assert rows[second.id].rank_change == "up"
        assert rows[first.id].rank_change == "down"

    @pytest.mark.asyncio
    async def test_unchanged_order_is_same(self, db_session, make_user, notifier, now):
        await make_user("solo", goals_completed=1)
        await recompute_rankings(db_session, notifier, "goals", now)
        await recompute_rankings(db_session, notifier, "goals", now)
        rows = await _rows(db_session, "goals")
        assert rows[0].rank_change == "same"

    @pytest.mark.asyncio
    async def test_rank_achievement_when_entering_top(self, db_session, make_user, notifier, now):
        users = [await make_user(f"user{i}", goals_completed=10 - i) for i in range(4)]
        await recompute_rankings(db_session, notifier, "goals", now, top_n=3)

        # First run: everyone new, the top three are notified
        notified = {n.recipient for n in notifier.sent if n.type == RANK_ACHIEVEMENT}
        assert notified == {u.id for u in users[:3]}

        notifier.sent.clear()
        gam = await db_session.get(UserGamification, users[3].id)
        gam.goals_completed = 50
        await db_session.commit()
        await recompute_rankings(db_session, notifier, "goals", now, top_n=3)

        assert [(n.recipient, n.payload["rank"]) for n in notifier.sent] == [(users[3].id, 1)]

    @pytest.mark.asyncio
    async def test_deactivated_user_leaves_the_board(self, db_session, make_user, notifier, now):
        leader = await make_user("a", challenges_completed=9)
        runner_up = await make_user("b", challenges_completed=1)
        await recompute_rankings(db_session, notifier, "challenges", now)

        leader.is_active = False
        await db_session.commit()
        assert await recompute_rankings(db_session, notifier, "challenges", now) == 1

        board = await get_leaderboard(db_session, "challenges")
        assert [(e["user_id"], e["rank"]) for e in board["rankings"]] == [(runner_up.id, 1)]
        assert board["pagination"]["total"] == 1
        assert board["rankings"][0]["rank_change"] == "up"

    @pytest.mark.asyncio
    async def test_returning_user_ranked_as_new(self, db_session, make_user, notifier, now):
        user = await make_user("a", challenges_completed=3)
        await make_user("b", challenges_completed=1)
        await recompute_rankings(db_session, notifier, "challenges", now)

        user.is_active = False
        await db_session.commit()
        await recompute_rankings(db_session, notifier, "challenges", now)
        user.is_active = True
        await db_session.commit()
        await recompute_rankings(db_session, notifier, "challenges", now)

        board = await get_leaderboard(db_session, "challenges")
        assert [e["rank"] for e in board["rankings"]] == [1, 2]
        assert board["rankings"][0]["rank_change"] == "new"

    @pytest.mark.asyncio
    async def test_failed_user_leaves_no_gap_or_duplicate(
        self, db_session, make_user, notifier, now, monkeypatch, caplog,
    ):
        users = [await make_user(f"user{i}", goals_completed=10 - i) for i in range(3)]
        await recompute_rankings(db_session, notifier, "goals", now)

        original = ranking_service._store_entry

        async def store_or_fail(db, category, entry, when):
            if entry.counters.user_id == users[0].id:
                raise RuntimeError("corrupt record")
            return await original(db, category, entry, when)

        monkeypatch.setattr(ranking_service, "_store_entry", store_or_fail)
        stored = await recompute_rankings(db_session, notifier, "goals", now)

        assert stored == 2
        assert "scheduler_error" in caplog.text
        board = await get_leaderboard(db_session, "goals")
        assert [(e["user_id"], e["rank"]) for e in board["rankings"]] == [
            (users[1].id, 1),
            (users[2].id, 2),
        ]

    @pytest.mark.asyncio
    async def test_user_without_counters_ranked_at_zero(self, db_session, notifier, now):
        from greenquest.users.service import get_or_create_user

        await get_or_create_user(db_session, "bare")
        await db_session.commit()
        snapshot = await snapshot_counters(db_session)
        assert snapshot[0].goals_completed == 0
        assert await recompute_rankings(db_session, notifier, "overall", now) == 1

    @pytest.mark.asyncio
    async def test_unknown_category(self, db_session, notifier, now):
        with pytest.raises(ValidationError):
            await recompute_rankings(db_session, notifier, "karma", now)

    @pytest.mark.asyncio
    async def test_all_categories(self, db_session, make_user, notifier, now):
        await make_user("alice", goals_completed=1)
        counts = await recompute_all_rankings(db_session, notifier, now)
        assert set(counts) == {c["id"] for c in list_categories()}
        assert all(v == 1 for v in counts.values())


class TestLeaderboard:

    @pytest.mark.asyncio
    async def test_pagination_and_current_user(self, db_session, make_user, notifier, now):
        users = [await make_user(f"user{i}", goals_completed=i) for i in range(5)]
        await recompute_rankings(db_session, notifier, "goals", now)

        board = await get_leaderboard(
            db_session, "goals", page=2, per_page=2, current_user_id=users[0].id,
        )

        assert board["pagination"] == {"page": 2, "per_page": 2, "total": 5, "total_pages": 3}
        assert [e["rank"] for e in board["rankings"]] == [3, 4]
        assert board["rankings"][0]["username"] == "user2"
        assert board["current_user_entry"]["rank"] == 5

    @pytest.mark.asyncio
    async def test_empty_category(self, db_session):
        board = await get_leaderboard(db_session, "streaks")
        assert board["rankings"] == []
        assert board["current_user_entry"] is None
        assert board["pagination"]["total_pages"] == 0

    @pytest.mark.asyncio
    async def test_page_size_clamped(self, db_session):
        board = await get_leaderboard(db_session, "overall", per_page=10_000)
        assert board["pagination"]["per_page"] == 100

    @pytest.mark.asyncio
    async def test_unknown_category(self, db_session):
        with pytest.raises(ValidationError):
            await get_leaderboard(db_session, "karma")
