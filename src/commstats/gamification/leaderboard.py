"""Badge leaderboard: members ordered by achieved badge count.

Sort: badge count DESC, total contributions DESC, id ASC. The displayed rank
is the 1-based position in that order. It is unrelated to the peer-comparison
rank from ``commstats.ranking``; that rank only feeds the Top 1% / Top 10%
badges.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from commstats.gamification.badge_engine import evaluate_badges
from commstats.gamification.schemas import BadgeLeaderboardEntry
from commstats.ranking.rank_service import RankContext, competition_ranks
from commstats.stats.records import BADGE_COLUMNS, UserRecord
from commstats.stats.scanner import HUMANS_ONLY, scan_table

logger = structlog.get_logger()


def badge_sort_key(badge_count: int, total_messages: int, user_id: int) -> tuple[int, int, int]:
    return (-badge_count, -total_messages, user_id)


def rank_by_badges(
    users: Sequence[UserRecord],
    rank_contexts: Sequence[RankContext | None] | None = None,
    now: datetime | None = None,
) -> list[BadgeLeaderboardEntry]:
    """Evaluate every member's badges and order them for the leaderboard."""
    now = now or datetime.now(timezone.utc)
    contexts = rank_contexts if rank_contexts is not None else [None] * len(users)
    if len(contexts) != len(users):
        msg = "rank_contexts must align with users"
        raise ValueError(msg)

    scored = []
    for user, ctx in zip(users, contexts):
        achieved = [b.id for b in evaluate_badges(user, ctx, now) if b.achieved]
        scored.append((user, achieved))

    scored.sort(key=lambda item: badge_sort_key(len(item[1]), item[0].total_messages, item[0].id or 0))

    return [
        BadgeLeaderboardEntry(
            rank=position,
            id=user.id or 0,
            username=user.username,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
            badge_count=len(achieved),
            total_messages=user.total_messages,
            badge_ids=achieved,
        )
        for position, (user, achieved) in enumerate(scored, start=1)
    ]


async def build_badge_leaderboard(
    session: AsyncSession,
    *,
    limit: int = 50,
    batch_size: int = 1000,
    timeout: float | None = None,
    now: datetime | None = None,
) -> list[BadgeLeaderboardEntry]:
    """Scan all non-bot members and return the top ``limit`` by badges.

    Each member's Top 1% / Top 10% context is derived from the scanned
    population itself, using the same strictly-greater rule as the COUNT queries.
    """
    users: list[UserRecord] = []
    async for batch in scan_table(
        session,
        BADGE_COLUMNS,
        batch_size=batch_size,
        filters=HUMANS_ONLY,
        timeout=timeout,
    ):
        users.extend(UserRecord.from_mapping(row) for row in batch)

    population = len(users)
    ranks = competition_ranks([u.total_messages for u in users])
    contexts = [RankContext(rank=r, total_users=population) for r in ranks]

    entries = rank_by_badges(users, contexts, now)
    logger.info("badge_leaderboard_built", population=population, returned=min(limit, population))
    return entries[:limit]
