"""HTTP surface tests through the ASGI app."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from greenquest.database import get_session_factory
from greenquest.db.models import Reward
from greenquest.notifications import CHALLENGE_COMPLETED, GOAL_COMPLETED
from greenquest.ranking.service import recompute_rankings
from greenquest.users.service import get_or_create_gamification, get_or_create_user


def _headers(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


async def _create_user(username: str, points: int = 0) -> int:
    async with get_session_factory()() as session:
        user, _ = await get_or_create_user(session, username)
        gam = await get_or_create_gamification(session, user.id)
        gam.points = points
        await session.commit()
        return user.id


@pytest_asyncio.fixture
async def reward_id(database) -> int:
    async with get_session_factory()() as session:
        reward = Reward(
            slug="eco_badge",
            name="Eco Badge",
            description="",
            type="badge",
            value="Eco",
            points_cost=100,
            rarity="common",
            category="milestones",
            criteria={},
            is_active=True,
            is_repeatable=False,
            max_recipients=1,
            created_at=datetime.now(timezone.utc),
        )
        session.add(reward)
        await session.commit()
        return reward.id


CHALLENGE_BODY = {
    "title": "Cycle Week",
    "recurrence": "weekly",
    "category": "biking",
    "target": {"value": 2, "unit": "times"},
    "reward": {"points": 120},
}


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "x-request-id" in response.headers

    @pytest.mark.asyncio
    async def test_ready_reports_database(self, client):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "ok"


class TestIdentity:

    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        response = await client.get("/api/v1/me/gamification")
        assert response.status_code == 401
        assert response.json()["code"] == "http_error"

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, database):
        response = await client.get("/api/v1/me/gamification", headers=_headers(999))
        assert response.status_code == 403


class TestChallengeEndpoints:

    @pytest.mark.asyncio
    async def test_create_join_progress_complete(self, client, api_user, notifier):
        headers = _headers(api_user.id)
        created = await client.post("/api/v1/challenges", json=CHALLENGE_BODY, headers=headers)
        assert created.status_code == 201
        body = created.json()
        assert body["creator"] == {"kind": "user", "user_id": api_user.id}
        challenge_id = body["id"]

        joined = await client.post(f"/api/v1/challenges/{challenge_id}/join", headers=headers)
        assert joined.status_code == 200
        assert joined.json()["total_participants"] == 1
        assert joined.json()["participation"]["progress"] == 0

        first = await client.post(
            f"/api/v1/challenges/{challenge_id}/progress",
            json={"action_type": "biking"},
            headers=headers,
        )
        assert first.json()["progress"] == 1
        assert not first.json()["completed"]

        second = await client.post(
            f"/api/v1/challenges/{challenge_id}/progress",
            json={"action_type": "biking"},
            headers=headers,
        )
        result = second.json()
        assert result["just_completed"]
        assert result["reward"]["points"] == 120
        assert CHALLENGE_COMPLETED in notifier.types_for(api_user.id)

        profile = await client.get("/api/v1/me/gamification", headers=headers)
        assert profile.json()["points"] == 120
        assert profile.json()["challenges_completed"] == 1

        fetched = await client.get(f"/api/v1/challenges/{challenge_id}", headers=headers)
        assert fetched.json()["completed_count"] == 1
        assert fetched.json()["completion_rate"] == 100.0

    @pytest.mark.asyncio
    async def test_mismatched_action_not_applied(self, client, api_user):
        headers = _headers(api_user.id)
        challenge_id = (await client.post("/api/v1/challenges", json=CHALLENGE_BODY, headers=headers)).json()["id"]
        await client.post(f"/api/v1/challenges/{challenge_id}/join", headers=headers)

        response = await client.post(
            f"/api/v1/challenges/{challenge_id}/progress",
            json={"action_type": "recycling"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["matched"] is False
        assert response.json()["progress"] == 0

    @pytest.mark.asyncio
    async def test_double_join_conflict(self, client, api_user):
        headers = _headers(api_user.id)
        challenge_id = (await client.post("/api/v1/challenges", json=CHALLENGE_BODY, headers=headers)).json()["id"]
        await client.post(f"/api/v1/challenges/{challenge_id}/join", headers=headers)

        again = await client.post(f"/api/v1/challenges/{challenge_id}/join", headers=headers)
        assert again.status_code == 409
        assert again.json()["code"] == "already_participating"

    @pytest.mark.asyncio
    async def test_progress_without_joining(self, client, api_user):
        headers = _headers(api_user.id)
        challenge_id = (await client.post("/api/v1/challenges", json=CHALLENGE_BODY, headers=headers)).json()["id"]
        response = await client.post(
            f"/api/v1/challenges/{challenge_id}/progress",
            json={"action_type": "biking"},
            headers=headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "not_participating"

    @pytest.mark.asyncio
    async def test_leave(self, client, api_user):
        headers = _headers(api_user.id)
        challenge_id = (await client.post("/api/v1/challenges", json=CHALLENGE_BODY, headers=headers)).json()["id"]
        await client.post(f"/api/v1/challenges/{challenge_id}/join", headers=headers)

        left = await client.post(f"/api/v1/challenges/{challenge_id}/leave", headers=headers)
        assert left.status_code == 200
        assert left.json()["total_participants"] == 0

    @pytest.mark.asyncio
    async def test_only_creator_may_delete(self, client, api_user):
        other_id = await _create_user("bob")
        headers = _headers(api_user.id)
        challenge_id = (await client.post("/api/v1/challenges", json=CHALLENGE_BODY, headers=headers)).json()["id"]

        denied = await client.delete(f"/api/v1/challenges/{challenge_id}", headers=_headers(other_id))
        assert denied.status_code == 403
        assert denied.json()["code"] == "not_challenge_creator"

        deleted = await client.delete(f"/api/v1/challenges/{challenge_id}", headers=headers)
        assert deleted.status_code == 204
        missing = await client.get(f"/api/v1/challenges/{challenge_id}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["code"] == "challenge_not_found"

    @pytest.mark.asyncio
    async def test_invalid_definition(self, client, api_user):
        body = {**CHALLENGE_BODY, "category": "juggling"}
        response = await client.post("/api/v1/challenges", json=body, headers=_headers(api_user.id))
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_list_active(self, client, api_user):
        headers = _headers(api_user.id)
        await client.post("/api/v1/challenges", json=CHALLENGE_BODY, headers=headers)
        response = await client.get("/api/v1/challenges", headers=headers)
        assert response.json()["total"] == 1


class TestActionEndpoint:

    @pytest.mark.asyncio
    async def test_log_action(self, client, api_user):
        response = await client.post(
            "/api/v1/actions",
            json={"action_type": "walking", "quantity": 3, "unit": "km"},
            headers=_headers(api_user.id),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["current_streak"] == 1
        assert body["action"]["co2_saved"] == pytest.approx(0.51)

    @pytest.mark.asyncio
    async def test_invalid_type(self, client, api_user):
        response = await client.post(
            "/api/v1/actions", json={"action_type": "general"}, headers=_headers(api_user.id),
        )
        assert response.status_code == 422


class TestGoalEndpoints:

    @pytest.mark.asyncio
    async def test_goal_completed_by_logged_action(self, client, api_user, notifier):
        headers = _headers(api_user.id)
        created = await client.post("/api/v1/goals", json={
            "title": "Bike twice this week",
            "type": "weekly",
            "category": "specific_action",
            "target": {"value": 2, "unit": "times", "action_type": "biking"},
            "reward": {"points": 30},
        }, headers=headers)
        assert created.status_code == 201
        goal_id = created.json()["id"]
        assert created.json()["status"] == "active"

        logged = await client.post(
            "/api/v1/actions", json={"action_type": "biking", "quantity": 2}, headers=headers,
        )
        [entry] = logged.json()["goals"]
        assert entry["goal_id"] == goal_id
        assert entry["just_completed"] is True
        assert GOAL_COMPLETED in notifier.types_for(api_user.id)

        profile = await client.get("/api/v1/me/gamification", headers=headers)
        assert profile.json()["goals_completed"] == 1
        assert profile.json()["points"] == 30

        stats = await client.get("/api/v1/goals/stats", headers=headers)
        assert stats.json()["completed"] == 1
        assert stats.json()["completion_rate"] == 100.0

        closed = await client.post(f"/api/v1/goals/{goal_id}/pause", headers=headers)
        assert closed.status_code == 409
        assert closed.json()["code"] == "goal_closed"

    @pytest.mark.asyncio
    async def test_custom_goal_needs_an_end(self, client, api_user):
        response = await client.post("/api/v1/goals", json={
            "title": "Someday",
            "type": "custom",
            "category": "actions",
            "target": {"value": 3, "unit": "actions"},
        }, headers=_headers(api_user.id))
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_other_users_goal_not_found(self, client, api_user):
        other_id = await _create_user("bob")
        goal_id = (await client.post("/api/v1/goals", json={
            "title": "Recycle",
            "type": "daily",
            "category": "actions",
            "target": {"value": 1, "unit": "actions"},
        }, headers=_headers(api_user.id))).json()["id"]

        response = await client.get(f"/api/v1/goals/{goal_id}", headers=_headers(other_id))
        assert response.status_code == 404
        assert response.json()["code"] == "goal_not_found"

        deleted = await client.delete(f"/api/v1/goals/{goal_id}", headers=_headers(api_user.id))
        assert deleted.status_code == 204


class TestRewardEndpoints:

    @pytest.mark.asyncio
    async def test_catalog_and_redeem(self, client, reward_id):
        user_id = await _create_user("carol", points=150)
        headers = _headers(user_id)

        catalog = await client.get("/api/v1/rewards", headers=headers)
        assert catalog.json()["user_points"] == 150
        assert catalog.json()["rewards"][0]["can_afford"]

        redeemed = await client.post(f"/api/v1/rewards/{reward_id}/redeem", headers=headers)
        assert redeemed.status_code == 200
        assert redeemed.json()["remaining_points"] == 50

        mine = await client.get("/api/v1/rewards/mine", headers=headers)
        assert mine.json()["total_redeemed"] == 1

    @pytest.mark.asyncio
    async def test_insufficient_points_error_body(self, client, reward_id):
        user_id = await _create_user("dave", points=10)
        response = await client.post(f"/api/v1/rewards/{reward_id}/redeem", headers=_headers(user_id))
        assert response.status_code == 409
        assert response.json() == {
            "detail": "Insufficient points. You need 100 points but have 10",
            "code": "insufficient_points",
        }

    @pytest.mark.asyncio
    async def test_capacity_reached(self, client, reward_id):
        first = await _create_user("erin", points=500)
        second = await _create_user("frank", points=500)
        await client.post(f"/api/v1/rewards/{reward_id}/redeem", headers=_headers(first))

        response = await client.post(f"/api/v1/rewards/{reward_id}/redeem", headers=_headers(second))
        assert response.status_code == 409
        assert response.json()["code"] == "capacity_exceeded"

    @pytest.mark.asyncio
    async def test_unknown_reward(self, client, api_user):
        response = await client.post("/api/v1/rewards/999/redeem", headers=_headers(api_user.id))
        assert response.status_code == 404


class TestLeaderboardEndpoints:

    @pytest.mark.asyncio
    async def test_leaderboard(self, client, api_user):
        async with get_session_factory()() as session:
            await recompute_rankings(session, None, "overall")

        response = await client.get(
            "/api/v1/leaderboard", params={"category": "overall"}, headers=_headers(api_user.id),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["pagination"]["total"] == 1
        assert body["current_user_entry"]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_unknown_category(self, client, api_user):
        response = await client.get(
            "/api/v1/leaderboard", params={"category": "karma"}, headers=_headers(api_user.id),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_categories(self, client):
        response = await client.get("/api/v1/leaderboard/categories")
        assert len(response.json()["categories"]) == 6
