"""
afkbot.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- user_settings        — Per-user DM / achievement notification flags + AFK timeout
- user_stats           — Lifetime voice, AFK, chat and dashboard counters
- user_achievements    — Unlocked achievements (soft-deletable)
- voice_sessions       — One row per finished voice session
- special_achievements — Admin-created one-off achievements
- oauth_states         — One-time CSRF tokens for the dashboard login
- telegram_users       — Telegram chats that pressed /start
- telegram_link_codes  — Short-lived codes that bind a Telegram chat to a Discord user
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all AFK bot ORM models."""


# ---------------------------------------------------------------------------
# UserSettings: per-user bot preferences
# ---------------------------------------------------------------------------
class UserSettings(Base):
    __tablename__ = "user_settings"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    dm_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    afk_timeout: Mapped[int] = mapped_column(Integer, default=15)
    achievement_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserSettings user={self.user_id} timeout={self.afk_timeout}>"


# ---------------------------------------------------------------------------
# UserStats: lifetime counters, one row per Discord member
# ---------------------------------------------------------------------------
class UserStats(Base):
    __tablename__ = "user_stats"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    username: Mapped[str | None] = mapped_column(String(100), default=None)

    # Voice (durations in seconds)
    total_sessions: Mapped[int] = mapped_column(Integer, default=0)
    total_voice_time: Mapped[int] = mapped_column(Integer, default=0)
    longest_session: Mapped[int] = mapped_column(Integer, default=0)
    longest_session_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    total_mute_toggles: Mapped[int] = mapped_column(Integer, default=0)
    stream_channel_time: Mapped[int] = mapped_column(Integer, default=0)
    total_streams: Mapped[int] = mapped_column(Integer, default=0)

    # AFK
    total_afk_moves: Mapped[int] = mapped_column(Integer, default=0)
    total_afk_time: Mapped[int] = mapped_column(Integer, default=0)

    # Chat / dashboard
    messages_sent: Mapped[int] = mapped_column(Integer, default=0)
    mentions_responded: Mapped[int] = mapped_column(Integer, default=0)
    settings_changes: Mapped[int] = mapped_column(Integer, default=0)
    web_visits: Mapped[int] = mapped_column(Integer, default=0)

    rank_points: Mapped[int] = mapped_column(Integer, default=0)
    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_user_stats_rank", "rank_points", "total_voice_time"),
    )

    def __repr__(self) -> str:
        return f"<UserStats user={self.user_id} points={self.rank_points}>"


# ---------------------------------------------------------------------------
# UserAchievement: unlocked achievements
# ---------------------------------------------------------------------------
class UserAchievement(Base):
    """An unlocked achievement.

    Admin deletions only set ``manually_deleted`` so the row can be
    restored (with a fresh ``unlocked_at``) when the user earns it again.
    """
    __tablename__ = "user_achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(100), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    manually_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),
        Index("ix_user_achievements_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<UserAchievement user={self.user_id} achievement={self.achievement_id!r}>"


# ---------------------------------------------------------------------------
# VoiceSession: finished voice sessions
# ---------------------------------------------------------------------------
class VoiceSession(Base):
    __tablename__ = "voice_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    channel_name: Mapped[str | None] = mapped_column(String(100), default=None)
    join_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    leave_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, default=0)
    was_afk_moved: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("ix_voice_sessions_user_time", "user_id", "join_time"),
    )

    def __repr__(self) -> str:
        return f"<VoiceSession user={self.user_id} duration={self.duration}s>"


# ---------------------------------------------------------------------------
# SpecialAchievement: admin-created one-off achievements
# ---------------------------------------------------------------------------
class SpecialAchievement(Base):
    """A one-off achievement created from the dashboard for one user.

    ``special_date`` may lie in the future; the periodic task announces
    the achievement once the date passes and flips ``notifications_sent``.
    """
    __tablename__ = "special_achievements"

    achievement_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    emoji: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0)
    color: Mapped[str] = mapped_column(String(16), default="#FFD700")
    special_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    notifications_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_special_achievements_pending", "notifications_sent", "special_date"),
    )

    def __repr__(self) -> str:
        return f"<SpecialAchievement id={self.achievement_id!r} user={self.user_id}>"


# ---------------------------------------------------------------------------
# OAuthState: one-time CSRF tokens for OAuth callback validation
# ---------------------------------------------------------------------------
class OAuthState(Base):
    __tablename__ = "oauth_states"

    state: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_oauth_states_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<OAuthState state={self.state[:8]!r}...>"


# ---------------------------------------------------------------------------
# TelegramUser: chats that started the Telegram bot
# ---------------------------------------------------------------------------
class TelegramUser(Base):
    """A Telegram chat known to the bot.

    ``user_id`` is the Discord user id once linked, or
    ``telegram_<chat_id>`` for chats that only pressed /start.
    """
    __tablename__ = "telegram_users"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    telegram_chat_id: Mapped[str] = mapped_column(String(64), nullable=False)
    started_bot: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_telegram_users_chat", "telegram_chat_id"),
    )

    def __repr__(self) -> str:
        return f"<TelegramUser user={self.user_id!r} chat={self.telegram_chat_id!r}>"


# ---------------------------------------------------------------------------
# TelegramLinkCode: dashboard-issued codes consumed by /link
# ---------------------------------------------------------------------------
class TelegramLinkCode(Base):
    __tablename__ = "telegram_link_codes"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<TelegramLinkCode code={self.code!r} user={self.user_id}>"
