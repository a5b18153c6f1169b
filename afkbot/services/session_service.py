"""
afkbot.services.session_service — Voice Session History
=========================================================

Persists a finished voice session: one ``voice_sessions`` row plus the
voice/AFK/stream time credited to ``user_stats``, in a single
transaction so the history and the counters never disagree.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select

from afkbot.database.engine import get_session
from afkbot.database.models import VoiceSession
from afkbot.services.stats_service import ensure_user, stats_to_dict

logger = logging.getLogger(__name__)


def finish_session(
    engine,
    user_id: int,
    *,
    channel_name: str | None,
    joined_at: datetime,
    left_at: datetime,
    afk_seconds: int = 0,
    stream_seconds: int = 0,
    was_afk_moved: bool = False,
    username: str | None = None,
) -> dict:
    """Record the session and return the updated stats snapshot."""
    duration = max(0, int((left_at - joined_at).total_seconds()))

    with get_session(engine) as session:
        session.add(VoiceSession(
            user_id=user_id,
            channel_name=channel_name,
            join_time=joined_at,
            leave_time=left_at,
            duration=duration,
            was_afk_moved=was_afk_moved,
        ))

        row = ensure_user(session, user_id, username)
        row.total_voice_time = (row.total_voice_time or 0) + duration
        row.total_afk_time = (row.total_afk_time or 0) + afk_seconds
        row.stream_channel_time = (row.stream_channel_time or 0) + stream_seconds
        if duration > (row.longest_session or 0):
            row.longest_session = duration
            row.longest_session_date = left_at
        row.last_activity = left_at

        logger.debug(
            "Session closed for %s: %ds (afk=%ds, stream=%ds)",
            user_id, duration, afk_seconds, stream_seconds,
        )
        return stats_to_dict(row)


def list_recent_sessions(engine, user_id: int, limit: int = 10) -> list[dict]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(VoiceSession)
            .where(VoiceSession.user_id == user_id)
            .order_by(VoiceSession.join_time.desc())
            .limit(limit)
        ).all()
        return [
            {
                "channel_name": r.channel_name,
                "join_time": r.join_time.isoformat(),
                "leave_time": r.leave_time.isoformat(),
                "duration": r.duration,
                "was_afk_moved": r.was_afk_moved,
            }
            for r in rows
        ]
