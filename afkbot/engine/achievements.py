"""
afkbot.engine.achievements — Achievement Catalogue & Check Pipeline
=====================================================================

Handler-registry implementation for achievement evaluation.  Every
catalogue entry names a trigger type; each trigger type maps to a pure
handler that receives the entry's config and an AchievementContext.

This module is pure calculation — no database I/O, no Discord I/O.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class TriggerType(enum.StrEnum):
    """Defines what condition causes an achievement to unlock."""
    STAT_THRESHOLD = "stat_threshold"
    MANUAL = "manual"


# ---------------------------------------------------------------------------
# Valid stat fields for stat_threshold triggers (user_stats columns)
# ---------------------------------------------------------------------------
VALID_STAT_FIELDS: set[str] = {
    "total_sessions",
    "total_voice_time",
    "longest_session",
    "total_mute_toggles",
    "stream_channel_time",
    "total_streams",
    "total_afk_moves",
    "total_afk_time",
    "messages_sent",
    "mentions_responded",
    "settings_changes",
    "web_visits",
}


@dataclass(frozen=True, slots=True)
class AchievementDef:
    """One entry of the built-in catalogue."""

    id: str
    name: str
    description: str
    points: int
    trigger: TriggerType = TriggerType.STAT_THRESHOLD
    config: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Achievement Context: passed to every trigger handler
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementContext:
    """Snapshot of user state passed to trigger handlers.

    Parameters
    ----------
    stats : Dict of user_stats column values (e.g. {"messages_sent": 105}).
    """

    stats: dict[str, int] = field(default_factory=dict)


def _threshold(
    ach_id: str, name: str, description: str, points: int, stat: str, value: int,
) -> AchievementDef:
    return AchievementDef(
        id=ach_id,
        name=name,
        description=description,
        points=points,
        config={"field": stat, "value": value},
    )


# ---------------------------------------------------------------------------
# Catalogue: order matters: earlier entries are unlocked (and announced) first
# ---------------------------------------------------------------------------
_HOUR = 3600

_CATALOGUE: list[AchievementDef] = [
    # First steps
    _threshold("first_join", "\U0001f3a4 First Steps", "Joined a voice channel for the first time", 10, "total_sessions", 1),
    _threshold("first_afk", "\U0001f634 First Nap", "Got moved to AFK for the first time", 5, "total_afk_moves", 1),
    _threshold("first_message", "✍️ First Words", "Sent your first message", 10, "messages_sent", 1),
    _threshold("first_settings", "⚙️ Tinkerer", "Changed your bot settings for the first time", 10, "settings_changes", 1),
    _threshold("first_web_visit", "\U0001f310 Explorer", "Opened the web dashboard for the first time", 15, "web_visits", 1),
    _threshold("first_stream", "\U0001f4e1 On Air", "Started your first stream", 20, "total_streams", 1),
    # Voice time
    _threshold("voice_starter", "\U0001f399️ Voice Starter", "Spent 50+ hours in voice", 50, "total_voice_time", 50 * _HOUR),
    _threshold("voice_addict", "\U0001f399️ Voice Addict", "Spent 100+ hours in voice", 100, "total_voice_time", 100 * _HOUR),
    _threshold("voice_god", "\U0001f399️ Voice God", "Spent 1000+ hours in voice", 1000, "total_voice_time", 1000 * _HOUR),
    # Messages
    _threshold("chatty_beginner", "\U0001f4ac Chatty Beginner", "Sent 200+ messages", 25, "messages_sent", 200),
    _threshold("chatty_user", "\U0001f4ac Chatterbox", "Sent 500+ messages", 75, "messages_sent", 500),
    _threshold("flooter", "\U0001f4ac Flooder", "Sent 750+ messages", 100, "messages_sent", 750),
    _threshold("linguist", "\U0001f4ac Linguist", "Sent 1000+ messages", 150, "messages_sent", 1000),
    # Sessions
    _threshold("session_beginner", "\U0001f3af Regular", "Took part in 10+ voice sessions", 15, "total_sessions", 10),
    _threshold("session_veteran", "\U0001f3af Veteran", "Took part in 50+ voice sessions", 40, "total_sessions", 50),
    _threshold("session_master", "\U0001f3af Session Master", "Took part in 100+ voice sessions", 75, "total_sessions", 100),
    _threshold("frequent_guest", "\U0001f3af Frequent Guest", "Took part in 200+ voice sessions", 150, "total_sessions", 200),
    _threshold("permanent_resident", "\U0001f3af Permanent Resident", "Took part in 500+ voice sessions", 350, "total_sessions", 500),
    _threshold("session_lord", "\U0001f3af Lord of Sessions", "Took part in 1000+ voice sessions", 1000, "total_sessions", 1000),
    # AFK
    _threshold("afk_beginner", "\U0001f4a4 Dozer", "Got moved to AFK 10+ times", 10, "total_afk_moves", 10),
    _threshold("afk_veteran", "\U0001f4a4 Sleepyhead", "Got moved to AFK 50+ times", 50, "total_afk_moves", 50),
    _threshold("afk_master", "\U0001f4a4 AFK Master", "Got moved to AFK 100+ times", 100, "total_afk_moves", 100),
    _threshold("afk_time_lord", "\U0001f4a4 Lord of Time", "Spent 1000+ hours in AFK", 1000, "total_afk_time", 1000 * _HOUR),
    AchievementDef(
        id="no_afk_week",
        name="\U0001f4aa Wide Awake",
        description="Went a whole week without an AFK move",
        points=50,
        trigger=TriggerType.MANUAL,
    ),
    # Misc
    _threshold("mute_master", "\U0001f507 Mute Master", "Toggled your microphone 100+ times", 25, "total_mute_toggles", 100),
    _threshold("long_session", "⏰ Marathon", "Stayed in one voice session for 12+ hours", 75, "longest_session", 12 * _HOUR),
    _threshold("settings_explorer", "\U0001f527 Settings Explorer", "Changed your settings 20+ times", 30, "settings_changes", 20),
    _threshold("mention_responder", "\U0001f4e2 Responsive", "Replied to 1000+ mentions", 100, "mentions_responded", 1000),
    # Stream channel time
    _threshold("stream_viewer_1", "\U0001f4fa Just a Peek", "Spent 5+ hours in the stream channel", 10, "stream_channel_time", 5 * _HOUR),
    _threshold("stream_viewer_2", "\U0001f4fa Seasoned Viewer", "Spent 50+ hours in the stream channel", 50, "stream_channel_time", 50 * _HOUR),
    _threshold("stream_viewer_3", "\U0001f4fa Top Viewer", "Spent 100+ hours in the stream channel", 100, "stream_channel_time", 100 * _HOUR),
    _threshold("stream_viewer_4", "\U0001f4fa Cyber Fan", "Spent 200+ hours in the stream channel", 200, "stream_channel_time", 200 * _HOUR),
    _threshold("stream_viewer_5", "\U0001f4fa Immortal Viewer", "Spent 500+ hours in the stream channel", 500, "stream_channel_time", 500 * _HOUR),
    _threshold("stream_viewer_6", "\U0001f4fa Stream Legend", "Spent 1000+ hours in the stream channel", 1000, "stream_channel_time", 1000 * _HOUR),
    # Scheduled special
    AchievementDef(
        id="best_admin",
        name="\U0001f451 Best Admin",
        description="The best admin this server has ever had",
        points=0,
        trigger=TriggerType.MANUAL,
    ),
]

ACHIEVEMENTS: dict[str, AchievementDef] = {a.id: a for a in _CATALOGUE}


def get_achievement(achievement_id: str) -> AchievementDef | None:
    return ACHIEVEMENTS.get(achievement_id)


def countable_achievements() -> list[AchievementDef]:
    """Catalogue entries shown in "x / N" progress (everything but best_admin)."""
    return [a for a in _CATALOGUE if a.id != "best_admin"]


# ---------------------------------------------------------------------------
# Trigger handlers: pure functions (config, ctx) → bool
# ---------------------------------------------------------------------------

def _check_stat_threshold(config: dict, ctx: AchievementContext) -> bool:
    """Fires when a user_stats field reaches a threshold value.

    Config: {"field": "messages_sent", "value": 200}
    """
    field_name = config.get("field", "")
    if field_name not in VALID_STAT_FIELDS:
        return False
    value = config.get("value")
    if value is None:
        return False
    return (ctx.stats.get(field_name) or 0) >= value


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------
TRIGGER_HANDLERS: dict[str, Callable[[dict, AchievementContext], bool]] = {
    TriggerType.STAT_THRESHOLD: _check_stat_threshold,
    # TriggerType.MANUAL has no handler; it never auto-fires
}


# ---------------------------------------------------------------------------
# Main check function
# ---------------------------------------------------------------------------
def check_achievements(
    ctx: AchievementContext,
    already_earned: Iterable[str],
    catalogue: Iterable[AchievementDef] | None = None,
) -> list[str]:
    """Return the ids of achievements the user has newly earned.

    Parameters
    ----------
    ctx : AchievementContext with current user state.
    already_earned : Achievement ids the user currently holds (live rows).
    catalogue : Override the built-in catalogue (tests).
    """
    earned = set(already_earned)
    newly_earned: list[str] = []

    for definition in catalogue if catalogue is not None else _CATALOGUE:
        if definition.id in earned:
            continue

        handler = TRIGGER_HANDLERS.get(definition.trigger)
        if handler is None:
            continue

        if handler(definition.config, ctx):
            newly_earned.append(definition.id)
            logger.debug("Achievement triggered: %s", definition.id)

    return newly_earned
