"""Ranking Pydantic schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

Winner = Literal["user1", "user2", "tie"]


class MetricRank(BaseModel):
    """A member's standing on one metric."""

    metric: str
    value: int
    rank: int
    percentile: float


class RankResult(BaseModel):
    """Ranks on every requested metric against one population."""

    population: int
    ranks: dict[str, MetricRank]

    def rank_of(self, metric: str) -> int:
        return self.ranks[metric].rank


class UserRanksResponse(RankResult):
    username: str


class LeaderboardEntry(BaseModel):
    """One row of a metric leaderboard page."""

    rank: int
    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    value: int
    magnitude: float | None = None


class MetricComparison(BaseModel):
    metric: str
    user1_value: int
    user2_value: int
    user1_rank: int
    user2_rank: int
    winner: Winner


class ComparisonResponse(BaseModel):
    """Head-to-head comparison of two members."""

    user1: str
    user2: str
    population: int
    metrics: list[MetricComparison]
    winner: Winner
