"""User lookup Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class UserSearchResult(BaseModel):
    """Compact member row for search suggestions."""

    id: int
    username: str
    x_username: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    total_messages: int
    magnitude: float | None = None


class MemberSummary(BaseModel):
    """Member card used by the role explorer and the recent activity feed."""

    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    total_messages: int
    tweet: int
    art: int
    magnitude: float | None = None
    last_message_date: datetime | None = None
