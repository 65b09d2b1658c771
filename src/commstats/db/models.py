"""ORM models for the community dataset, the stats snapshot and auth sessions.

``community_users`` is written by the ingestion bot and is read-only here.
``stats_snapshots`` holds exactly one current row, maintained by the stats worker.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from commstats.db.base import Base

# SQLite only autoincrements INTEGER primary keys.
_BigIntId = BigInteger().with_variant(Integer(), "sqlite")


# ---------------------------------------------------------------------------
# Community members
# ---------------------------------------------------------------------------


class CommunityUser(Base):
    """Maps to the 'community_users' table (one row per community member)."""

    __tablename__ = "community_users"

    id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    x_username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    roles: Mapped[list[str] | None] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    # --- Activity counters ---
    total_messages: Mapped[int] = mapped_column(Integer, default=0, server_default="0", index=True)
    tweet: Mapped[int] = mapped_column(Integer, default=0, server_default="0", index=True)
    art: Mapped[int] = mapped_column(Integer, default=0, server_default="0", index=True)
    general_chat: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    magnitude_chat: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    devnet_chat: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    report_chat: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    # --- Timestamps ---
    account_created: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    first_message_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_message_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    region: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_bot: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")


# ---------------------------------------------------------------------------
# Stats snapshot
# ---------------------------------------------------------------------------


class StatsSnapshot(Base):
    """Maps to the 'stats_snapshots' table. The row with the highest id is current."""

    __tablename__ = "stats_snapshots"

    id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    total_users: Mapped[int] = mapped_column(Integer, default=0)
    human_users: Mapped[int] = mapped_column(Integer, default=0)
    bot_users: Mapped[int] = mapped_column(Integer, default=0)
    total_contributions: Mapped[int] = mapped_column(BigInteger, default=0)
    tweet_messages: Mapped[int] = mapped_column(BigInteger, default=0)
    art_messages: Mapped[int] = mapped_column(BigInteger, default=0)
    total_chat_messages: Mapped[int] = mapped_column(BigInteger, default=0)
    active_users_7d: Mapped[int] = mapped_column(Integer, default=0)
    active_users_30d: Mapped[int] = mapped_column(Integer, default=0)
    avg_messages_per_active_user: Mapped[float] = mapped_column(Float, default=0.0)
    region_stats: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    role_stats: Mapped[dict[str, int]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ---------------------------------------------------------------------------
# Dashboard auth sessions (swept by the stats worker)
# ---------------------------------------------------------------------------


class AuthSession(Base):
    """Maps to the 'auth_sessions' table (dashboard logins, managed externally)."""

    __tablename__ = "auth_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
