"""HTTP API tests (in-memory database, no lifespan)."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient

from commstats.config import Settings
from commstats.stats.service import run_aggregation_cycle

pytestmark = pytest.mark.asyncio

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def members(make_member):
    await make_member(
        "alice",
        display_name="Alice",
        total_messages=1200,
        tweet=100,
        art=20,
        general_chat=1000,
        roles=["Magnitude 1.0", "Magnitude 5.0", "Verified"],
        region="EU",
    )
    await make_member("bob", total_messages=10, tweet=200, roles=["Magnitude 1.0", "Leader"], region="EU")
    await make_member("relay", is_bot=True, total_messages=50_000)


class TestHealth:
    """Liveness, readiness and version endpoints."""

    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_readiness(self, client: AsyncClient) -> None:
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "ok"
        assert response.json()["checks"]["snapshot"] == "pending"
        assert response.json()["snapshot_at"] is None

    async def test_readiness_after_first_cycle(self, client: AsyncClient, session_factory, members) -> None:
        await run_aggregation_cycle(session_factory, Settings(), now=NOW)
        response = await client.get("/ready")
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"]["snapshot"] == "ok"
        assert body["snapshot_at"].startswith("2025-03-01T12:00")

    async def test_version(self, client: AsyncClient) -> None:
        response = await client.get("/version")
        assert response.status_code == 200
        assert response.json()["version"] == "0.1.0"

    async def test_request_id_echoed(self, client: AsyncClient) -> None:
        response = await client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"


class TestStatsEndpoints:
    """Snapshot read endpoints."""

    async def test_latest_before_first_cycle(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/stats/latest")
        assert response.status_code == 404

    async def test_latest_and_roles(self, client: AsyncClient, session_factory, members) -> None:
        await run_aggregation_cycle(session_factory, Settings(scan_batch_size=2), now=NOW)

        response = await client.get("/api/v1/stats/latest")
        assert response.status_code == 200
        data = response.json()
        assert data["total_users"] == 3
        assert data["human_users"] == 2
        assert data["bot_users"] == 1
        assert data["region_stats"] == [{"region": "EU", "user_count": 2, "total_contributions": 1210}]

        response = await client.get("/api/v1/stats/roles")
        assert response.status_code == 200
        roles = response.json()
        assert [r["role"] for r in roles] == ["Leader", "Verified", "Magnitude 5.0", "Magnitude 1.0"]
        assert roles[2]["color"] == "#8BA411"
        assert roles[2]["icon_path"] == "/icon_role/mag5.webp"


class TestUserEndpoints:
    """Per-member endpoints and member lists."""

    async def test_ranks(self, client: AsyncClient, members) -> None:
        response = await client.get("/api/v1/users/alice/ranks")
        assert response.status_code == 200
        data = response.json()
        assert data["population"] == 2
        assert data["ranks"]["total"]["rank"] == 1
        assert data["ranks"]["tweet"]["rank"] == 2
        assert data["ranks"]["total"]["percentile"] == 50.0

    async def test_ranks_unknown_user(self, client: AsyncClient, members) -> None:
        response = await client.get("/api/v1/users/nobody/ranks")
        assert response.status_code == 404
        assert "detail" in response.json()

    async def test_badges(self, client: AsyncClient, members) -> None:
        response = await client.get("/api/v1/users/alice/badges")
        assert response.status_code == 200
        data = response.json()
        tiers = {b["id"]: b["achieved"] for b in data["tiers"]}
        assert tiers["gen-bronze"] is True
        assert tiers["gen-silver"] is False
        achievements = {b["id"]: b["achieved"] for b in data["achievements"]}
        assert achievements["diamond"] is True
        # Rank 1 of 2 is 50% of the population: no rank badge.
        assert achievements["top-1-percent"] is False
        assert achievements["top-10-percent"] is False
        assert data["achieved_count"] == sum(1 for b in data["tiers"] + data["achievements"] if b["achieved"])

    async def test_compare(self, client: AsyncClient, members) -> None:
        response = await client.get("/api/v1/users/compare", params={"user1": "alice", "user2": "bob"})
        assert response.status_code == 200
        data = response.json()
        winners = {m["metric"]: m["winner"] for m in data["metrics"]}
        assert winners == {"total": "user1", "tweet": "user2", "art": "user1"}
        assert data["winner"] == "user1"

    async def test_compare_missing_param(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/users/compare", params={"user1": "alice"})
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"

    async def test_search(self, client: AsyncClient, members) -> None:
        response = await client.get("/api/v1/users/search", params={"q": "ali"})
        assert response.status_code == 200
        results = response.json()
        assert [r["username"] for r in results] == ["alice"]
        assert results[0]["magnitude"] == 5.0

    async def test_recent(self, client: AsyncClient, make_member) -> None:
        await make_member("alice", last_message_date=datetime(2025, 2, 1, tzinfo=timezone.utc))
        await make_member("bob", last_message_date=datetime(2025, 2, 20, tzinfo=timezone.utc))
        await make_member("relay", is_bot=True, last_message_date=NOW)
        response = await client.get("/api/v1/users/recent", params={"limit": 1})
        assert response.status_code == 200
        assert [m["username"] for m in response.json()] == ["bob"]

    async def test_role_members(self, client: AsyncClient, members) -> None:
        response = await client.get("/api/v1/roles/Verified/members")
        assert response.status_code == 200
        assert [m["username"] for m in response.json()] == ["alice"]

    async def test_magnitude_role_members(self, client: AsyncClient, members) -> None:
        top = await client.get("/api/v1/roles/Magnitude%205.0/members")
        base = await client.get("/api/v1/roles/Magnitude%201.0/members")
        assert [m["username"] for m in top.json()] == ["alice"]
        assert top.json()[0]["magnitude"] == 5.0
        assert [m["username"] for m in base.json()] == ["bob"]

    async def test_member_list_limit_validated(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/users/recent", params={"limit": 0})
        assert response.status_code == 422


class TestLeaderboards:
    """Metric and badge leaderboards."""

    async def test_metric_leaderboard(self, client: AsyncClient, members) -> None:
        response = await client.get("/api/v1/leaderboard/tweet")
        assert response.status_code == 200
        assert [e["username"] for e in response.json()] == ["bob", "alice"]

    async def test_unknown_metric(self, client: AsyncClient, members) -> None:
        response = await client.get("/api/v1/leaderboard/karma")
        assert response.status_code == 404

    async def test_badge_leaderboard(self, client: AsyncClient, members) -> None:
        response = await client.get("/api/v1/leaderboard/badges")
        assert response.status_code == 200
        entries = response.json()
        assert [e["username"] for e in entries] == ["alice", "bob"]
        assert [e["rank"] for e in entries] == [1, 2]
        assert "gen-bronze" in entries[0]["badge_ids"]
