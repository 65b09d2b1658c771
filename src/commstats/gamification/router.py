"""Badge endpoints: per-user badges and the badge leaderboard."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from commstats.config import get_settings
from commstats.database import get_session
from commstats.gamification.badge_engine import evaluate_achievements, evaluate_tier_badges
from commstats.gamification.leaderboard import build_badge_leaderboard
from commstats.gamification.schemas import BadgeLeaderboardEntry, UserBadgesResponse
from commstats.ranking.rank_service import compute_ranks, rank_context
from commstats.users.service import UserNotFoundError, get_user_by_username

router = APIRouter(prefix="/api/v1", tags=["Badges"])


@router.get("/users/{username}/badges", response_model=UserBadgesResponse)
async def user_badges(
    username: str,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> UserBadgesResponse:
    """Tier badges and achievements for a member, with rank context on total contributions."""
    try:
        user = await get_user_by_username(db, username)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    ranks = await compute_ranks(db, user, metrics=("total",))
    tiers = evaluate_tier_badges(user)
    achievements = evaluate_achievements(user, rank_context(ranks))
    return UserBadgesResponse(
        username=user.username,
        tiers=tiers,
        achievements=achievements,
        achieved_count=sum(1 for b in (*tiers, *achievements) if b.achieved),
    )


@router.get("/leaderboard/badges", response_model=list[BadgeLeaderboardEntry])
async def badge_leaderboard(
    limit: int = Query(50, ge=1),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[BadgeLeaderboardEntry]:
    """Members ordered by achieved badges, then total contributions."""
    settings = get_settings()
    return await build_badge_leaderboard(
        db,
        limit=min(limit, settings.leaderboard_max_limit),
        batch_size=settings.scan_batch_size,
        timeout=settings.fetch_timeout_seconds or None,
    )
