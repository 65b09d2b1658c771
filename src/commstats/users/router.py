"""Member endpoints: search, recent activity and role membership."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from commstats.config import get_settings
from commstats.database import get_session
from commstats.users.schemas import MemberSummary, UserSearchResult
from commstats.users.service import recent_activity, role_members, search_users

router = APIRouter(prefix="/api/v1/users", tags=["Users"])
roles_router = APIRouter(prefix="/api/v1/roles", tags=["Users"])


@router.get("/search", response_model=list[UserSearchResult])
async def user_search(
    q: str = Query(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[UserSearchResult]:
    """Find members by handle (substring, case-insensitive)."""
    return await search_users(db, q, limit=get_settings().search_max_results)


@router.get("/recent", response_model=list[MemberSummary])
async def recent_members(
    limit: int = Query(20, ge=1),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[MemberSummary]:
    """Most recently active members."""
    return await recent_activity(db, limit=min(limit, get_settings().member_list_max_results))


@roles_router.get("/{role}/members", response_model=list[MemberSummary])
async def members_with_role(
    role: str,
    limit: int = Query(20, ge=1),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[MemberSummary]:
    """Most active members holding a role; magnitude roles list only members at that tier."""
    settings = get_settings()
    return await role_members(
        db,
        role,
        limit=min(limit, settings.member_list_max_results),
        batch_size=settings.scan_batch_size,
    )
