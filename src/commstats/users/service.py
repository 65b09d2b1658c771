"""Member lookup, search, role membership and recent activity."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select

from commstats.db.models import CommunityUser
from commstats.stats.magnitude import magnitude_label, parse_magnitude, resolve_magnitude
from commstats.stats.records import UserRecord
from commstats.stats.scanner import HUMANS_ONLY, RowFilter, apply_filters, dialect_name, scan_table
from commstats.users.schemas import MemberSummary, UserSearchResult

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class UserNotFoundError(LookupError):
    """No member with the requested handle."""


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def get_user_by_username(db: AsyncSession, username: str) -> UserRecord:
    """Resolve a member by handle (case-insensitive).

    Raises:
        UserNotFoundError: if nobody has that handle.
    """
    result = await db.execute(
        select(CommunityUser)
        .where(func.lower(CommunityUser.username) == username.strip().lower())
        .order_by(CommunityUser.is_bot.asc(), CommunityUser.id.asc())
        .limit(1)
    )
    user = result.scalar_one_or_none()
    if user is None:
        msg = f"User not found: {username}"
        raise UserNotFoundError(msg)
    return UserRecord.from_model(user)


async def search_users(db: AsyncSession, query: str, limit: int = 10) -> list[UserSearchResult]:
    """Non-bot members whose handle or X handle contains ``query``, most active first."""
    cleaned = query.strip().lstrip("@").lower()
    if not cleaned:
        return []

    pattern = f"%{_escape_like(cleaned)}%"
    result = await db.execute(
        select(CommunityUser)
        .where(CommunityUser.is_bot.is_(False))
        .where(
            or_(
                func.lower(CommunityUser.username).like(pattern, escape="\\"),
                func.lower(CommunityUser.x_username).like(pattern, escape="\\"),
            )
        )
        .order_by(CommunityUser.total_messages.desc(), CommunityUser.id.asc())
        .limit(limit)
    )
    return [
        UserSearchResult(
            id=user.id,
            username=user.username,
            x_username=user.x_username,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
            total_messages=user.total_messages or 0,
            magnitude=resolve_magnitude(user.roles),
        )
        for user in result.scalars()
    ]


# Projection for member cards (role explorer, recent activity).
MEMBER_COLUMNS: tuple[str, ...] = (
    "id",
    "username",
    "display_name",
    "avatar_url",
    "roles",
    "total_messages",
    "tweet",
    "art",
    "last_message_date",
)


def _member_summary(row: Any) -> MemberSummary:
    record = row if isinstance(row, UserRecord) else UserRecord.from_model(row)
    return MemberSummary(
        id=record.id or 0,
        username=record.username,
        display_name=record.display_name,
        avatar_url=record.avatar_url,
        total_messages=record.total_messages,
        tweet=record.tweet,
        art=record.art,
        magnitude=resolve_magnitude(record.roles),
        last_message_date=record.last_message_date,
    )


def magnitude_spellings(value: float) -> set[str]:
    """Tag spellings that parse to ``value`` ("Magnitude 7", "Magnitude 7.0")."""
    spellings = {magnitude_label(value)}
    if value.is_integer():
        spellings.add(f"Magnitude {int(value)}")
    return spellings


async def _members_at_magnitude(db: AsyncSession, value: float, batch_size: int) -> list[UserRecord]:
    """Non-bot members whose highest magnitude is exactly ``value``."""
    found: dict[int, UserRecord] = {}
    for tag in sorted(magnitude_spellings(value)):
        async for batch in scan_table(
            db,
            MEMBER_COLUMNS,
            batch_size=batch_size,
            filters=[*HUMANS_ONLY, RowFilter.contains("roles", tag)],
        ):
            for row in batch:
                record = UserRecord.from_mapping(row)
                if resolve_magnitude(record.roles) == value:
                    found[record.id or 0] = record
    return list(found.values())


async def role_members(
    db: AsyncSession,
    role: str,
    limit: int = 20,
    batch_size: int = 1000,
) -> list[MemberSummary]:
    """Most active non-bot members holding ``role``.

    A magnitude role only lists members for whom it is the highest tier, so a
    member tagged both Magnitude 3 and Magnitude 7.0 shows up under 7.0 alone.
    """
    value = parse_magnitude(role)
    if value is not None:
        members = await _members_at_magnitude(db, value, batch_size)
        members.sort(key=lambda m: (-m.total_messages, m.id or 0))
        return [_member_summary(m) for m in members[:limit]]

    query = apply_filters(
        select(CommunityUser),
        [*HUMANS_ONLY, RowFilter.contains("roles", role)],
        dialect_name(db),
    ).order_by(CommunityUser.total_messages.desc(), CommunityUser.id.asc()).limit(limit)
    result = await db.execute(query)
    return [_member_summary(user) for user in result.scalars()]


async def recent_activity(db: AsyncSession, limit: int = 20) -> list[MemberSummary]:
    """Non-bot members ordered by their latest message, newest first."""
    query = apply_filters(
        select(CommunityUser),
        [*HUMANS_ONLY, RowFilter.not_null("last_message_date")],
    ).order_by(CommunityUser.last_message_date.desc(), CommunityUser.id.asc()).limit(limit)
    result = await db.execute(query)
    return [_member_summary(user) for user in result.scalars()]
