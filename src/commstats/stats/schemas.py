"""Stats snapshot Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RegionStat(BaseModel):
    """Member count and contribution total for one region."""

    model_config = ConfigDict(frozen=True)

    region: str
    user_count: int
    total_contributions: int


class MetricsSnapshot(BaseModel):
    """Community-wide statistics computed by one aggregation cycle."""

    model_config = ConfigDict(frozen=True)

    total_users: int = 0
    human_users: int = 0
    bot_users: int = 0
    total_contributions: int = 0
    tweet_messages: int = 0
    art_messages: int = 0
    total_chat_messages: int = 0
    active_users_7d: int = 0
    active_users_30d: int = 0
    avg_messages_per_active_user: float = 0.0
    region_stats: list[RegionStat] = Field(default_factory=list)
    role_stats: dict[str, int] = Field(default_factory=dict)
    created_at: datetime | None = None


class SnapshotResponse(MetricsSnapshot):
    """Latest snapshot as served to the dashboard."""

    id: int


class RoleDistributionEntry(BaseModel):
    """One row of the role explorer: a named role or a magnitude tier."""

    role: str
    count: int
    magnitude: float | None = None
    color: str | None = None
    icon_path: str | None = None
