"""Peer-comparison ranks and percentiles.

Rank on a metric = (number of peers with a strictly greater value) + 1, so
tied members share a rank and the next distinct value skips ahead
(standard competition ranking). Every metric is one independent COUNT query
against the live table; the default population is non-bot members.

Rank 1 out of 100 → percentile 99.0
Rank 50 out of 100 → percentile 50.0
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from commstats.db.models import CommunityUser
from commstats.ranking.schemas import (
    ComparisonResponse,
    LeaderboardEntry,
    MetricComparison,
    MetricRank,
    RankResult,
    Winner,
)
from commstats.stats.magnitude import resolve_magnitude
from commstats.stats.records import UserRecord
from commstats.stats.scanner import HUMANS_ONLY, RowFilter, apply_filters

# Public metric name -> community_users column.
RANKED_METRICS: dict[str, str] = {
    "total": "total_messages",
    "tweet": "tweet",
    "art": "art",
}


class UnknownMetricError(ValueError):
    """Requested metric is not one of RANKED_METRICS."""


@dataclass(frozen=True)
class RankContext:
    """Position of a member within a population, as consumed by rank badges."""

    rank: int
    total_users: int

    @property
    def fraction(self) -> float:
        """Rank as a fraction of the population (smaller is better)."""
        if self.total_users <= 0:
            return 1.0
        return self.rank / self.total_users


def metric_column(metric: str) -> str:
    try:
        return RANKED_METRICS[metric]
    except KeyError:
        msg = f"Unknown metric: {metric}"
        raise UnknownMetricError(msg) from None


def calculate_percentile(rank: int, population: int) -> float:
    """Percentile from rank: (population - rank) / population * 100, clamped to [0, 100]."""
    if population <= 0:
        return 0.0
    return max(0.0, min(100.0, (population - rank) / population * 100))


def competition_ranks(values: Sequence[int]) -> list[int]:
    """In-memory ranks for a value list, same rule as the COUNT queries.

    >>> competition_ranks([10, 30, 30, 5])
    [3, 1, 1, 4]
    """
    ordered = sorted(values, reverse=True)
    first_position: dict[int, int] = {}
    for idx, value in enumerate(ordered):
        first_position.setdefault(value, idx + 1)
    return [first_position[v] for v in values]


async def count_population(
    session: AsyncSession,
    filters: Sequence[RowFilter] = HUMANS_ONLY,
) -> int:
    """Number of rows in the filtered population."""
    query = apply_filters(select(func.count()).select_from(CommunityUser), filters)
    result = await session.execute(query)
    return int(result.scalar() or 0)


async def count_greater(
    session: AsyncSession,
    column: str,
    value: int,
    filters: Sequence[RowFilter] = HUMANS_ONLY,
) -> int:
    """Number of rows in the filtered population with ``column > value``."""
    return await count_population(session, [*filters, RowFilter.gt(column, value)])


async def rank_for(
    session: AsyncSession,
    metric: str,
    value: int,
    filters: Sequence[RowFilter] = HUMANS_ONLY,
) -> int:
    """Rank of ``value`` on ``metric`` within the filtered population."""
    return await count_greater(session, metric_column(metric), value, filters) + 1


async def compute_ranks(
    session: AsyncSession,
    user: UserRecord,
    metrics: Sequence[str] = tuple(RANKED_METRICS),
    filters: Sequence[RowFilter] = HUMANS_ONLY,
) -> RankResult:
    """Rank a member on each metric independently."""
    population = await count_population(session, filters)
    ranks: dict[str, MetricRank] = {}
    for metric in metrics:
        value = getattr(user, metric_column(metric))
        rank = await rank_for(session, metric, value, filters)
        ranks[metric] = MetricRank(
            metric=metric,
            value=value,
            rank=rank,
            percentile=calculate_percentile(rank, population),
        )
    return RankResult(population=population, ranks=ranks)


def rank_context(result: RankResult, metric: str = "total") -> RankContext:
    """Badge rank context from a RankResult (total contributions by default)."""
    return RankContext(rank=result.rank_of(metric), total_users=result.population)


async def metric_leaderboard(
    session: AsyncSession,
    metric: str,
    page: int = 1,
    limit: int = 50,
) -> list[LeaderboardEntry]:
    """One page of non-bot members with a non-zero metric, highest first.

    Displayed rank is the 1-based position across pages.
    """
    column = CommunityUser.__table__.c[metric_column(metric)]
    offset = (page - 1) * limit
    query = apply_filters(
        select(CommunityUser),
        [*HUMANS_ONLY, RowFilter.gt(column.name, 0)],
    ).order_by(column.desc(), CommunityUser.id.asc()).offset(offset).limit(limit)

    result = await session.execute(query)
    return [
        LeaderboardEntry(
            rank=offset + idx + 1,
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
            value=getattr(user, column.name) or 0,
            magnitude=resolve_magnitude(user.roles),
        )
        for idx, user in enumerate(result.scalars())
    ]


def _winner(value1: int, value2: int) -> Winner:
    if value1 > value2:
        return "user1"
    if value2 > value1:
        return "user2"
    return "tie"


async def compare_users(
    session: AsyncSession,
    user1: UserRecord,
    user2: UserRecord,
) -> ComparisonResponse:
    """Head-to-head: both members' ranks on every metric plus per-metric winners."""
    ranks1 = await compute_ranks(session, user1)
    ranks2 = await compute_ranks(session, user2)

    metrics = []
    for metric in RANKED_METRICS:
        r1, r2 = ranks1.ranks[metric], ranks2.ranks[metric]
        metrics.append(
            MetricComparison(
                metric=metric,
                user1_value=r1.value,
                user2_value=r2.value,
                user1_rank=r1.rank,
                user2_rank=r2.rank,
                winner=_winner(r1.value, r2.value),
            )
        )

    wins1 = sum(1 for m in metrics if m.winner == "user1")
    wins2 = sum(1 for m in metrics if m.winner == "user2")
    return ComparisonResponse(
        user1=user1.username,
        user2=user2.username,
        population=ranks1.population,
        metrics=metrics,
        winner=_winner(wins1, wins2),
    )
