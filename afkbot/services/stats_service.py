"""
afkbot.services.stats_service — User Statistics
=================================================

Reads and writes the ``user_stats`` counters.  All functions are
synchronous and take the engine first; cogs call them via ``run_db()``
and the API calls them directly from its sync route handlers.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from afkbot.constants import LEADERBOARD_SIZE, utcnow
from afkbot.database.engine import get_session
from afkbot.database.models import (
    SpecialAchievement,
    TelegramLinkCode,
    TelegramUser,
    UserAchievement,
    UserSettings,
    UserStats,
    VoiceSession,
)
from afkbot.engine.achievements import VALID_STAT_FIELDS

logger = logging.getLogger(__name__)

# Columns that may be incremented through increment_stats()
COUNTER_FIELDS: frozenset[str] = frozenset(VALID_STAT_FIELDS | {"rank_points"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def stats_to_dict(row: UserStats) -> dict:
    """Serialise a stats row; ids become strings (snowflakes overflow JS numbers)."""
    return {
        "user_id": str(row.user_id),
        "username": row.username,
        "total_sessions": row.total_sessions or 0,
        "total_voice_time": row.total_voice_time or 0,
        "longest_session": row.longest_session or 0,
        "longest_session_date": (
            row.longest_session_date.isoformat() if row.longest_session_date else None
        ),
        "total_mute_toggles": row.total_mute_toggles or 0,
        "stream_channel_time": row.stream_channel_time or 0,
        "total_streams": row.total_streams or 0,
        "total_afk_moves": row.total_afk_moves or 0,
        "total_afk_time": row.total_afk_time or 0,
        "messages_sent": row.messages_sent or 0,
        "mentions_responded": row.mentions_responded or 0,
        "settings_changes": row.settings_changes or 0,
        "web_visits": row.web_visits or 0,
        "rank_points": row.rank_points or 0,
        "last_activity": row.last_activity.isoformat() if row.last_activity else None,
    }


def ensure_user(session: Session, user_id: int, username: str | None = None) -> UserStats:
    """Return the stats row for *user_id*, creating it if needed.

    A known *username* always overwrites the stored one so renamed
    members show up correctly on the leaderboard.
    """
    row = session.get(UserStats, user_id)
    if row is None:
        row = UserStats(
            user_id=user_id,
            username=username,
            total_sessions=0,
            total_voice_time=0,
            longest_session=0,
            total_mute_toggles=0,
            stream_channel_time=0,
            total_streams=0,
            total_afk_moves=0,
            total_afk_time=0,
            messages_sent=0,
            mentions_responded=0,
            settings_changes=0,
            web_visits=0,
            rank_points=0,
            last_activity=utcnow(),
        )
        session.add(row)
        session.flush()
    elif username and row.username != username:
        row.username = username
    return row


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def increment_stats(
    engine, user_id: int, username: str | None = None, **deltas: int,
) -> dict:
    """Add *deltas* to the user's counters and return the updated stats.

    Example::

        increment_stats(engine, 42, "drew", total_sessions=1, total_afk_moves=1)

    ``rank_points`` never drops below zero.

    Raises
    ------
    ValueError
        If a delta names a column that is not a counter.
    """
    unknown = set(deltas) - COUNTER_FIELDS
    if unknown:
        raise ValueError(f"Not a stats counter: {', '.join(sorted(unknown))}")

    with get_session(engine) as session:
        row = ensure_user(session, user_id, username)
        for field_name, delta in deltas.items():
            value = (getattr(row, field_name) or 0) + delta
            if field_name == "rank_points":
                value = max(0, value)
            setattr(row, field_name, value)
        row.last_activity = utcnow()
        return stats_to_dict(row)


def delete_user(engine, user_id: int) -> dict[str, int]:
    """Remove every trace of *user_id*.  Returns deleted row counts per table."""
    counts: dict[str, int] = {}
    with get_session(engine) as session:
        for model in (
            UserStats, UserSettings, UserAchievement, VoiceSession,
            SpecialAchievement, TelegramLinkCode,
        ):
            result = session.execute(delete(model).where(model.user_id == user_id))
            counts[model.__tablename__] = result.rowcount or 0
        result = session.execute(
            delete(TelegramUser).where(TelegramUser.user_id == str(user_id))
        )
        counts[TelegramUser.__tablename__] = result.rowcount or 0
    logger.info("Deleted user %s: %s", user_id, counts)
    return counts


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_user_stats(engine, user_id: int) -> dict | None:
    with get_session(engine) as session:
        row = session.get(UserStats, user_id)
        return stats_to_dict(row) if row else None


def get_leaderboard(engine, limit: int = LEADERBOARD_SIZE) -> list[dict]:
    """Top users by rank points, ties broken by total voice time."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(UserStats)
            .order_by(
                UserStats.rank_points.desc(),
                UserStats.total_voice_time.desc(),
                UserStats.user_id,
            )
            .limit(limit)
        ).all()
        return [stats_to_dict(r) for r in rows]
