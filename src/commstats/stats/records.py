"""Read-only view of a community member row."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

# Columns the aggregation cycle projects from community_users.
AGGREGATION_COLUMNS: tuple[str, ...] = (
    "id",
    "is_bot",
    "total_messages",
    "tweet",
    "art",
    "general_chat",
    "devnet_chat",
    "report_chat",
    "last_message_date",
    "region",
    "roles",
)

# Columns needed to evaluate every badge rule.
BADGE_COLUMNS: tuple[str, ...] = (
    "id",
    "username",
    "display_name",
    "avatar_url",
    "roles",
    "total_messages",
    "tweet",
    "art",
    "general_chat",
    "devnet_chat",
    "report_chat",
    "joined_at",
    "first_message_date",
    "last_message_date",
)


def as_utc(value: datetime | str | None) -> datetime | None:
    """Normalize a timestamp to an aware UTC datetime. Naive values are taken as UTC.

    Unparseable strings read as None so one bad row never aborts a scan.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _count(value: Any) -> int:
    """Counters are non-negative; NULL or garbage reads as 0."""
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class UserRecord:
    """Immutable snapshot of one member's counters, timestamps and roles."""

    id: int | None = None
    username: str = ""
    display_name: str | None = None
    avatar_url: str | None = None
    roles: tuple[str, ...] | None = None
    total_messages: int = 0
    tweet: int = 0
    art: int = 0
    general_chat: int = 0
    devnet_chat: int = 0
    report_chat: int = 0
    account_created: datetime | None = None
    joined_at: datetime | None = None
    first_message_date: datetime | None = None
    last_message_date: datetime | None = None
    region: str | None = None
    is_bot: bool = False

    @property
    def total_chat(self) -> int:
        return self.general_chat + self.devnet_chat + self.report_chat

    def has_role(self, tag: str) -> bool:
        return bool(self.roles) and tag in self.roles

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> UserRecord:
        """Build a record from a projected row; missing columns take defaults."""
        roles = row.get("roles")
        if roles is not None and not isinstance(roles, (list, tuple)):
            roles = None
        return cls(
            id=row.get("id"),
            username=row.get("username") or "",
            display_name=row.get("display_name"),
            avatar_url=row.get("avatar_url"),
            roles=tuple(r for r in roles if isinstance(r, str)) if roles is not None else None,
            total_messages=_count(row.get("total_messages")),
            tweet=_count(row.get("tweet")),
            art=_count(row.get("art")),
            general_chat=_count(row.get("general_chat")),
            devnet_chat=_count(row.get("devnet_chat")),
            report_chat=_count(row.get("report_chat")),
            account_created=as_utc(row.get("account_created")),
            joined_at=as_utc(row.get("joined_at")),
            first_message_date=as_utc(row.get("first_message_date")),
            last_message_date=as_utc(row.get("last_message_date")),
            region=row.get("region") or None,
            is_bot=bool(row.get("is_bot")),
        )

    @classmethod
    def from_model(cls, user: Any) -> UserRecord:
        """Build a record from a CommunityUser ORM instance."""
        return cls.from_mapping({name: getattr(user, name, None) for name in _ALL_FIELDS})


_ALL_FIELDS = tuple(UserRecord.__dataclass_fields__)
