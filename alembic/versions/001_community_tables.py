"""Community dataset, stats snapshot and auth session tables.

Revision ID: 001_community_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_community_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create community_users, stats_snapshots and auth_sessions."""
    # --- community_users (written by the ingestion bot) ---
    op.create_table(
        "community_users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(32), nullable=False, unique=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("x_username", sa.String(64), nullable=True),
        sa.Column("display_name", sa.String(128), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("roles", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=True),
        sa.Column("total_messages", sa.Integer(), server_default="0", nullable=False),
        sa.Column("tweet", sa.Integer(), server_default="0", nullable=False),
        sa.Column("art", sa.Integer(), server_default="0", nullable=False),
        sa.Column("general_chat", sa.Integer(), server_default="0", nullable=False),
        sa.Column("magnitude_chat", sa.Integer(), server_default="0", nullable=False),
        sa.Column("devnet_chat", sa.Integer(), server_default="0", nullable=False),
        sa.Column("report_chat", sa.Integer(), server_default="0", nullable=False),
        sa.Column("account_created", sa.DateTime(timezone=True), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_message_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_message_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("region", sa.String(64), nullable=True),
        sa.Column("is_bot", sa.Boolean(), server_default="false", nullable=False),
    )
    op.create_index("ix_community_users_username", "community_users", ["username"])
    op.create_index("ix_community_users_total_messages", "community_users", ["total_messages"])
    op.create_index("ix_community_users_tweet", "community_users", ["tweet"])
    op.create_index("ix_community_users_art", "community_users", ["art"])
    if op.get_bind().dialect.name == "postgresql":
        # Role membership queries use JSONB containment (@>).
        op.create_index("ix_community_users_roles", "community_users", ["roles"], postgresql_using="gin")

    # --- stats_snapshots (single current row) ---
    op.create_table(
        "stats_snapshots",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("total_users", sa.Integer(), server_default="0", nullable=False),
        sa.Column("human_users", sa.Integer(), server_default="0", nullable=False),
        sa.Column("bot_users", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_contributions", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("tweet_messages", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("art_messages", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("total_chat_messages", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("active_users_7d", sa.Integer(), server_default="0", nullable=False),
        sa.Column("active_users_30d", sa.Integer(), server_default="0", nullable=False),
        sa.Column("avg_messages_per_active_user", sa.Float(), server_default="0", nullable=False),
        sa.Column("region_stats", sa.JSON(), nullable=True),
        sa.Column("role_stats", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    # --- auth_sessions (dashboard logins) ---
    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("user_ref", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("last_sign_in_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_auth_sessions_last_sign_in_at", "auth_sessions", ["last_sign_in_at"])


def downgrade() -> None:
    """Drop all community tables."""
    op.drop_index("ix_auth_sessions_last_sign_in_at", table_name="auth_sessions")
    op.drop_table("auth_sessions")
    op.drop_table("stats_snapshots")
    if op.get_bind().dialect.name == "postgresql":
        op.drop_index("ix_community_users_roles", table_name="community_users")
    op.drop_index("ix_community_users_art", table_name="community_users")
    op.drop_index("ix_community_users_tweet", table_name="community_users")
    op.drop_index("ix_community_users_total_messages", table_name="community_users")
    op.drop_index("ix_community_users_username", table_name="community_users")
    op.drop_table("community_users")
