"""Ranking endpoints: per-user ranks, comparison and metric leaderboards."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from commstats.config import get_settings
from commstats.database import get_session
from commstats.ranking.rank_service import (
    UnknownMetricError,
    compare_users,
    compute_ranks,
    metric_leaderboard,
)
from commstats.ranking.schemas import ComparisonResponse, LeaderboardEntry, UserRanksResponse
from commstats.users.service import UserNotFoundError, get_user_by_username

router = APIRouter(prefix="/api/v1", tags=["Ranking"])


@router.get("/users/compare", response_model=ComparisonResponse)
async def compare(
    user1: str = Query(..., min_length=1),
    user2: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ComparisonResponse:
    """Head-to-head comparison on total, tweet and art contributions."""
    try:
        first = await get_user_by_username(db, user1)
        second = await get_user_by_username(db, user2)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return await compare_users(db, first, second)


@router.get("/users/{username}/ranks", response_model=UserRanksResponse)
async def user_ranks(
    username: str,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> UserRanksResponse:
    """Rank and percentile of a member on every metric among non-bot members."""
    try:
        user = await get_user_by_username(db, username)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    result = await compute_ranks(db, user)
    return UserRanksResponse(username=user.username, population=result.population, ranks=result.ranks)


@router.get("/leaderboard/{metric}", response_model=list[LeaderboardEntry])
async def leaderboard(
    metric: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[LeaderboardEntry]:
    """Paged leaderboard for one metric (total, tweet or art)."""
    limit = min(limit, get_settings().leaderboard_max_limit)
    try:
        return await metric_leaderboard(db, metric, page=page, limit=limit)
    except UnknownMetricError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
