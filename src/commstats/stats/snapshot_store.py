"""Persistence of the single current stats snapshot.

The current snapshot is the stats_snapshots row with the highest id. A
persist overwrites that row in place, or inserts the first one; history is
never appended.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from commstats.db.models import StatsSnapshot
from commstats.stats.schemas import MetricsSnapshot, RegionStat, SnapshotResponse

logger = structlog.get_logger()


class SnapshotPersistError(Exception):
    """Reading or writing the snapshot row failed; nothing was committed."""


def _snapshot_values(snapshot: MetricsSnapshot) -> dict:
    values = snapshot.model_dump(exclude={"created_at"}, mode="json")
    if snapshot.created_at is not None:
        values["created_at"] = snapshot.created_at
    return values


async def get_latest_row(session: AsyncSession) -> StatsSnapshot | None:
    """Most recent snapshot row by insertion order."""
    result = await session.execute(
        select(StatsSnapshot).order_by(StatsSnapshot.id.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def persist(session: AsyncSession, snapshot: MetricsSnapshot) -> int:
    """Overwrite the current snapshot row, or insert the first one.

    Returns the id of the current row.

    Raises:
        SnapshotPersistError: on any database error (the transaction is rolled back).
    """
    values = _snapshot_values(snapshot)
    try:
        row = await get_latest_row(session)
        if row is not None:
            logger.info("snapshot_update", snapshot_id=row.id)
            for key, value in values.items():
                setattr(row, key, value)
        else:
            logger.info("snapshot_insert")
            row = StatsSnapshot(**values)
            session.add(row)
        await session.flush()
        row_id = row.id
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise SnapshotPersistError(str(exc)) from exc
    return row_id


async def get_latest(session: AsyncSession) -> SnapshotResponse | None:
    """Current snapshot as a schema object, or None before the first cycle."""
    row = await get_latest_row(session)
    if row is None:
        return None
    return SnapshotResponse(
        id=row.id,
        total_users=row.total_users,
        human_users=row.human_users,
        bot_users=row.bot_users,
        total_contributions=row.total_contributions,
        tweet_messages=row.tweet_messages,
        art_messages=row.art_messages,
        total_chat_messages=row.total_chat_messages,
        active_users_7d=row.active_users_7d,
        active_users_30d=row.active_users_30d,
        avg_messages_per_active_user=row.avg_messages_per_active_user,
        region_stats=[RegionStat(**r) for r in row.region_stats or []],
        role_stats=dict(row.role_stats or {}),
        created_at=row.created_at,
    )
