"""One aggregation cycle: scan every member row, fold, persist the snapshot."""

from __future__ import annotations

import time
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from commstats.config import Settings, get_settings
from commstats.stats.accumulator import SnapshotAccumulator
from commstats.stats.records import AGGREGATION_COLUMNS, UserRecord
from commstats.stats.scanner import ScanError, scan_table
from commstats.stats.schemas import MetricsSnapshot
from commstats.stats.snapshot_store import SnapshotPersistError, persist

logger = structlog.get_logger()

PROGRESS_LOG_EVERY = 10_000  # rows


async def compute_snapshot(
    session: AsyncSession,
    *,
    batch_size: int,
    timeout: float | None = None,
    now: datetime | None = None,
) -> MetricsSnapshot:
    """Scan community_users to completion and fold it into a snapshot.

    Raises:
        ScanError: if any batch fetch fails.
    """
    acc = SnapshotAccumulator(now or datetime.now(timezone.utc))
    processed = 0

    async for batch in scan_table(
        session,
        AGGREGATION_COLUMNS,
        batch_size=batch_size,
        timeout=timeout,
    ):
        acc.add_batch(UserRecord.from_mapping(row) for row in batch)
        previous = processed
        processed += len(batch)
        if processed // PROGRESS_LOG_EVERY > previous // PROGRESS_LOG_EVERY:
            logger.info("stats_scan_progress", rows=processed)

    return acc.finalize()


async def run_aggregation_cycle(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
    now: datetime | None = None,
) -> MetricsSnapshot | None:
    """Compute and persist a fresh snapshot.

    Returns the persisted snapshot, or None if the cycle was abandoned. A failed
    cycle leaves the previous snapshot untouched.
    """
    settings = settings or get_settings()
    started = time.monotonic()
    logger.info("stats_cycle_started")

    async with session_factory() as session:
        try:
            snapshot = await compute_snapshot(
                session,
                batch_size=settings.scan_batch_size,
                timeout=settings.fetch_timeout_seconds or None,
                now=now,
            )
        except ScanError as exc:
            logger.error("stats_cycle_fetch_failed", offset=exc.offset, error=str(exc.cause))
            return None

        try:
            snapshot_id = await persist(session, snapshot)
        except SnapshotPersistError as exc:
            logger.error("stats_cycle_persist_failed", error=str(exc))
            return None

    logger.info(
        "stats_cycle_completed",
        snapshot_id=snapshot_id,
        duration_s=round(time.monotonic() - started, 2),
        users=snapshot.total_users,
        humans=snapshot.human_users,
        contributions=snapshot.total_contributions,
        regions=len(snapshot.region_stats),
    )
    return snapshot
