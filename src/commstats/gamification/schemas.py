"""Gamification Pydantic schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class Badge(BaseModel):
    """A catalogue badge evaluated for one member."""

    id: str
    label: str
    description: str
    color: str
    tier: Literal["bronze", "silver", "gold", "achievement"]
    achieved: bool


class UserBadgesResponse(BaseModel):
    """All badges for a member, split the way the profile page shows them."""

    username: str
    tiers: list[Badge]
    achievements: list[Badge]
    achieved_count: int


class BadgeLeaderboardEntry(BaseModel):
    """One row of the badge leaderboard."""

    rank: int
    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    badge_count: int
    total_messages: int
    badge_ids: list[str]
