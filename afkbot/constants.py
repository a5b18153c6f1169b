"""
afkbot.constants — Shared Constants & Helpers
===============================================

Single source of truth for timeout rules, duration formatting and the
clock.  Import from here instead of duplicating in cogs, services, and
the API.
"""

from __future__ import annotations

from datetime import UTC, datetime, timezone

# ---------------------------------------------------------------------------
# AFK timeouts
# ---------------------------------------------------------------------------
DEFAULT_AFK_TIMEOUT = 15

# Values the dashboard may store; 10 is a short test value.
ALLOWED_AFK_TIMEOUTS: tuple[int, ...] = (10, 15, 30, 45)

# Values offered by the ".!. time" text command.
COMMAND_AFK_TIMEOUTS: tuple[int, ...] = (15, 30, 45)

# Timeouts below this are read as seconds instead of minutes.
SECONDS_MODE_BELOW = 15


def timeout_to_seconds(timeout: int) -> int:
    """Convert a stored AFK timeout into a timer delay in seconds.

    Values under :data:`SECONDS_MODE_BELOW` are taken literally as
    seconds so admins can exercise the AFK move quickly; everything else
    is minutes.
    """
    if timeout < SECONDS_MODE_BELOW:
        return timeout
    return timeout * 60


def timeout_label(timeout: int) -> str:
    unit = "seconds" if timeout < SECONDS_MODE_BELOW else "minutes"
    return f"{timeout} {unit}"


# ---------------------------------------------------------------------------
# Leaderboard / links
# ---------------------------------------------------------------------------
LEADERBOARD_SIZE = 20
LINK_CODE_TTL_MINUTES = 15
BEST_ADMIN_ID = "best_admin"


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_duration(seconds: int | float | None) -> str:
    """Render *seconds* as ``"3h 25m"`` (or ``"25m"`` under an hour)."""
    total = int(seconds or 0)
    hours, rem = divmod(total, 3600)
    minutes = rem // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_time(value: datetime | None = None, tz: timezone | None = None) -> str:
    """Format a timestamp as ``DD.MM.YYYY, HH:MM:SS`` in *tz* (UTC default)."""
    value = as_utc(value) if value is not None else utcnow()
    return value.astimezone(tz or UTC).strftime("%d.%m.%Y, %H:%M:%S")
