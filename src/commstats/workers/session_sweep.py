"""Stale dashboard login sweep.

Runs after each scheduled stats cycle. Sessions whose last sign-in is older
than the configured age (or missing) are deleted one by one; a failed delete
is logged and the sweep moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from commstats.db.models import AuthSession
from commstats.stats.records import as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionInfo:
    id: str
    last_sign_in_at: datetime | None


class SessionDirectory:
    """List/delete access to the auth_sessions table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_sessions(self, limit: int) -> list[SessionInfo]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AuthSession.id, AuthSession.last_sign_in_at)
                .order_by(AuthSession.created_at.asc(), AuthSession.id.asc())
                .limit(limit)
            )
            return [SessionInfo(id=row.id, last_sign_in_at=as_utc(row.last_sign_in_at)) for row in result]

    async def delete(self, session_id: str) -> None:
        async with self._session_factory() as db:
            await db.execute(delete(AuthSession).where(AuthSession.id == session_id))
            await db.commit()


def is_stale(info: SessionInfo, now: datetime, max_age: timedelta) -> bool:
    """A session with no recorded sign-in counts as stale."""
    if info.last_sign_in_at is None:
        return True
    return now - info.last_sign_in_at > max_age


async def sweep_stale_sessions(
    directory: SessionDirectory,
    *,
    max_age: timedelta = timedelta(hours=24),
    page_size: int = 1000,
    now: datetime | None = None,
) -> int:
    """Delete stale sessions. Returns how many were removed."""
    now = now or datetime.now(timezone.utc)

    try:
        sessions = await directory.list_sessions(page_size)
    except SQLAlchemyError:
        logger.exception("Failed to list auth sessions")
        return 0

    deleted = 0
    for info in sessions:
        if not is_stale(info, now, max_age):
            continue
        try:
            await directory.delete(info.id)
        except SQLAlchemyError as e:
            logger.error("Failed to delete auth session %s: %s", info.id, e)
            continue
        deleted += 1

    if deleted:
        logger.info("Security sweep: removed %d stale login sessions", deleted)
    return deleted
