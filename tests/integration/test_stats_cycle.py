"""Aggregation cycle and snapshot persistence tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from commstats.config import Settings
from commstats.db.models import StatsSnapshot
from commstats.stats import service as stats_service
from commstats.stats import snapshot_store
from commstats.stats.scanner import ScanError
from commstats.stats.schemas import MetricsSnapshot, RegionStat
from commstats.stats.service import run_aggregation_cycle
from commstats.stats.snapshot_store import SnapshotPersistError, get_latest, persist

pytestmark = pytest.mark.asyncio

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _settings() -> Settings:
    return Settings(scan_batch_size=2, fetch_timeout_seconds=0)


async def _snapshot_count(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(StatsSnapshot))).scalar_one()


class TestSnapshotStore:
    """The single current snapshot row."""

    async def test_no_snapshot_yet(self, db_session) -> None:
        assert await get_latest(db_session) is None

    async def test_persist_overwrites_single_row(self, db_session) -> None:
        first_id = await persist(db_session, MetricsSnapshot(total_users=1, created_at=NOW))
        second_id = await persist(
            db_session,
            MetricsSnapshot(
                total_users=2,
                region_stats=[RegionStat(region="EU", user_count=2, total_contributions=9)],
                role_stats={"Verified": 1},
                created_at=NOW,
            ),
        )
        assert first_id == second_id
        assert await _snapshot_count(db_session) == 1

        latest = await get_latest(db_session)
        assert latest is not None
        assert latest.id == first_id
        assert latest.total_users == 2
        assert latest.region_stats == [RegionStat(region="EU", user_count=2, total_contributions=9)]
        assert latest.role_stats == {"Verified": 1}

    async def test_same_snapshot_twice_is_stable(self, db_session) -> None:
        snapshot = MetricsSnapshot(
            total_users=3,
            human_users=2,
            bot_users=1,
            region_stats=[RegionStat(region="EU", user_count=3, total_contributions=12)],
            role_stats={"Magnitude 1.0": 2},
            created_at=NOW,
        )
        first_id = await persist(db_session, snapshot)
        first = await get_latest(db_session)
        second_id = await persist(db_session, snapshot)
        second = await get_latest(db_session)

        assert first_id == second_id
        assert await _snapshot_count(db_session) == 1
        assert first == second

    async def test_database_error_rolls_back(self, db_session, monkeypatch) -> None:
        await persist(db_session, MetricsSnapshot(total_users=1, created_at=NOW))

        async def unavailable(*_args, **_kwargs):
            raise OperationalError("SELECT", {}, ConnectionError("connection reset"))

        monkeypatch.setattr(snapshot_store, "get_latest_row", unavailable)
        with pytest.raises(SnapshotPersistError):
            await persist(db_session, MetricsSnapshot(total_users=7, created_at=NOW))
        monkeypatch.undo()

        latest = await get_latest(db_session)
        assert latest is not None
        assert latest.total_users == 1


class TestRunAggregationCycle:
    """End-to-end cycles, including abandoned ones."""

    async def test_cycle_persists_snapshot(self, session_factory, db_session, make_member) -> None:
        await make_member("alice", roles=["Magnitude 1.0", "Magnitude 3", "Verified"], region="EU",
                          total_messages=40, tweet=10, art=5, general_chat=25,
                          last_message_date=NOW - timedelta(days=2))
        await make_member("bob", roles=["Magnitude 1.0"], region="EU", total_messages=20,
                          last_message_date=NOW - timedelta(days=20))
        await make_member("carol", roles=["Magnitude 2.0"], region="US", total_messages=0)
        await make_member("relay", is_bot=True, roles=["Magnitude 1.0"], region="EU", total_messages=100,
                          last_message_date=NOW)
        await make_member("dave")

        snapshot = await run_aggregation_cycle(session_factory, _settings(), now=NOW)

        assert snapshot is not None
        assert snapshot.total_users == 5
        assert snapshot.bot_users == 1
        assert snapshot.human_users == 2
        assert snapshot.total_contributions == 160
        assert snapshot.tweet_messages == 10
        assert snapshot.total_chat_messages == 25
        assert snapshot.active_users_7d == 2
        assert snapshot.active_users_30d == 3
        assert snapshot.avg_messages_per_active_user == pytest.approx(160 / 3)
        assert snapshot.region_stats == [
            RegionStat(region="EU", user_count=2, total_contributions=60),
            RegionStat(region="US", user_count=1, total_contributions=0),
        ]
        assert snapshot.role_stats == {
            "Magnitude 3.0": 1,
            "Magnitude 1.0": 1,
            "Magnitude 2.0": 1,
            "Verified": 1,
        }

        latest = await get_latest(db_session)
        assert latest is not None
        assert latest.total_users == 5

    async def test_repeated_cycles_keep_one_row(self, session_factory, db_session, make_member) -> None:
        await make_member("alice", total_messages=1)
        await run_aggregation_cycle(session_factory, _settings(), now=NOW)
        await make_member("bob", total_messages=2)
        await run_aggregation_cycle(session_factory, _settings(), now=NOW)

        assert await _snapshot_count(db_session) == 1
        latest = await get_latest(db_session)
        assert latest is not None
        assert latest.total_users == 2

    async def test_fetch_failure_keeps_previous_snapshot(
        self, session_factory, db_session, make_member, monkeypatch,
    ) -> None:
        await make_member("alice", total_messages=1)
        await run_aggregation_cycle(session_factory, _settings(), now=NOW)

        async def broken(*_args, **_kwargs):
            raise ScanError(0, ConnectionError("row store unavailable"))

        monkeypatch.setattr(stats_service, "compute_snapshot", broken)
        await make_member("bob", total_messages=2)

        assert await run_aggregation_cycle(session_factory, _settings(), now=NOW) is None
        latest = await get_latest(db_session)
        assert latest is not None
        assert latest.total_users == 1

    async def test_persist_failure_keeps_previous_snapshot(
        self, session_factory, db_session, make_member, monkeypatch,
    ) -> None:
        await make_member("alice", total_messages=1)
        await run_aggregation_cycle(session_factory, _settings(), now=NOW)

        async def unavailable(*_args, **_kwargs):
            raise OperationalError("SELECT", {}, ConnectionError("connection reset"))

        monkeypatch.setattr(snapshot_store, "get_latest_row", unavailable)
        await make_member("bob", total_messages=2)

        assert await run_aggregation_cycle(session_factory, _settings(), now=NOW) is None
        monkeypatch.undo()
        latest = await get_latest(db_session)
        assert latest is not None
        assert latest.total_users == 1
        assert await _snapshot_count(db_session) == 1
