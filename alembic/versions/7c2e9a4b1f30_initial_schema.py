"""Initial schema: stats, settings, achievements, sessions, Telegram links

Revision ID: 7c2e9a4b1f30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c2e9a4b1f30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _now() -> sa.sql.elements.ColumnElement:
    return sa.func.now()


def upgrade() -> None:
    op.create_table(
        "user_settings",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("dm_notifications", sa.Boolean(), nullable=True),
        sa.Column("afk_timeout", sa.Integer(), nullable=True),
        sa.Column("achievement_notifications", sa.Boolean(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_now()),
    )

    op.create_table(
        "user_stats",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("total_sessions", sa.Integer(), nullable=True),
        sa.Column("total_voice_time", sa.Integer(), nullable=True),
        sa.Column("longest_session", sa.Integer(), nullable=True),
        sa.Column("longest_session_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_mute_toggles", sa.Integer(), nullable=True),
        sa.Column("stream_channel_time", sa.Integer(), nullable=True),
        sa.Column("total_streams", sa.Integer(), nullable=True),
        sa.Column("total_afk_moves", sa.Integer(), nullable=True),
        sa.Column("total_afk_time", sa.Integer(), nullable=True),
        sa.Column("messages_sent", sa.Integer(), nullable=True),
        sa.Column("mentions_responded", sa.Integer(), nullable=True),
        sa.Column("settings_changes", sa.Integer(), nullable=True),
        sa.Column("web_visits", sa.Integer(), nullable=True),
        sa.Column("rank_points", sa.Integer(), nullable=True),
        sa.Column("last_activity", sa.DateTime(timezone=True), server_default=_now()),
    )
    op.create_index("ix_user_stats_rank", "user_stats", ["rank_points", "total_voice_time"])

    op.create_table(
        "user_achievements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("achievement_id", sa.String(100), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), server_default=_now()),
        sa.Column("manually_deleted", sa.Boolean(), nullable=True),
        sa.UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),
    )
    op.create_index("ix_user_achievements_user", "user_achievements", ["user_id"])

    op.create_table(
        "voice_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("channel_name", sa.String(100), nullable=True),
        sa.Column("join_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("leave_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("was_afk_moved", sa.Boolean(), nullable=True),
    )
    op.create_index(
        "ix_voice_sessions_user_time", "voice_sessions", ["user_id", "join_time"]
    )

    op.create_table(
        "special_achievements",
        sa.Column("achievement_id", sa.String(100), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("emoji", sa.String(32), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=True),
        sa.Column("color", sa.String(16), nullable=True),
        sa.Column("special_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notifications_sent", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
    )
    op.create_index(
        "ix_special_achievements_pending",
        "special_achievements",
        ["notifications_sent", "special_date"],
    )

    op.create_table(
        "oauth_states",
        sa.Column("state", sa.String(128), primary_key=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()
        ),
    )
    op.create_index("ix_oauth_states_created_at", "oauth_states", ["created_at"])

    op.create_table(
        "telegram_users",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("telegram_chat_id", sa.String(64), nullable=False),
        sa.Column("started_bot", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
    )
    op.create_index("ix_telegram_users_chat", "telegram_users", ["telegram_chat_id"])

    op.create_table(
        "telegram_link_codes",
        sa.Column("code", sa.String(16), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()
        ),
    )


def downgrade() -> None:
    op.drop_table("telegram_link_codes")
    op.drop_index("ix_telegram_users_chat", table_name="telegram_users")
    op.drop_table("telegram_users")
    op.drop_index("ix_oauth_states_created_at", table_name="oauth_states")
    op.drop_table("oauth_states")
    op.drop_index("ix_special_achievements_pending", table_name="special_achievements")
    op.drop_table("special_achievements")
    op.drop_index("ix_voice_sessions_user_time", table_name="voice_sessions")
    op.drop_table("voice_sessions")
    op.drop_index("ix_user_achievements_user", table_name="user_achievements")
    op.drop_table("user_achievements")
    op.drop_index("ix_user_stats_rank", table_name="user_stats")
    op.drop_table("user_stats")
    op.drop_table("user_settings")
