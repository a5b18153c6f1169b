"""
afkbot.services.settings_service — Per-user Bot Settings
==========================================================

Typed read/write access to the ``user_settings`` table.  Users without a
row get the defaults (DMs on, achievement notifications on, the
configured default timeout).  A write bumps the user's
``settings_changes`` counter in the same transaction: the dashboard
counts real changes only, text commands count every invocation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from afkbot.constants import ALLOWED_AFK_TIMEOUTS, DEFAULT_AFK_TIMEOUT
from afkbot.database.engine import get_session
from afkbot.database.models import UserSettings
from afkbot.services.stats_service import ensure_user, stats_to_dict

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SettingsChange:
    """Outcome of :func:`update_user_settings`.

    ``changes`` maps field name → ``(old, new)`` for fields that actually
    changed; ``stats`` is the refreshed stats snapshot whenever
    ``settings_changes`` was bumped.
    """

    settings: dict[str, Any]
    changes: dict[str, tuple[Any, Any]] = field(default_factory=dict)
    stats: dict | None = None

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    @property
    def counted(self) -> bool:
        return self.stats is not None


def _settings_dict(row: UserSettings | None, default_timeout: int) -> dict[str, Any]:
    if row is None:
        return {
            "dm_notifications": True,
            "afk_timeout": default_timeout,
            "achievement_notifications": True,
        }
    return {
        "dm_notifications": bool(row.dm_notifications),
        "afk_timeout": row.afk_timeout,
        "achievement_notifications": bool(row.achievement_notifications),
    }


def settings_to_api(settings: dict[str, Any]) -> dict[str, Any]:
    """camelCase view used by the dashboard."""
    return {
        "dmNotifications": settings["dm_notifications"],
        "afkTimeout": settings["afk_timeout"],
        "achievementNotifications": settings["achievement_notifications"],
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_user_settings(
    engine, user_id: int, default_timeout: int = DEFAULT_AFK_TIMEOUT,
) -> dict[str, Any]:
    with get_session(engine) as session:
        return _settings_dict(session.get(UserSettings, user_id), default_timeout)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def update_user_settings(
    engine,
    user_id: int,
    *,
    dm_notifications: bool | None = None,
    afk_timeout: int | None = None,
    achievement_notifications: bool | None = None,
    username: str | None = None,
    default_timeout: int = DEFAULT_AFK_TIMEOUT,
    count_unchanged: bool = False,
) -> SettingsChange:
    """Apply the given settings; ``None`` leaves a field untouched.

    ``settings_changes`` goes up only when a value changes, unless
    *count_unchanged* is set: text commands count every invocation.

    Raises
    ------
    ValueError
        If *afk_timeout* is not one of :data:`ALLOWED_AFK_TIMEOUTS`.
    """
    if afk_timeout is not None and afk_timeout not in ALLOWED_AFK_TIMEOUTS:
        raise ValueError(
            f"afk_timeout must be one of {ALLOWED_AFK_TIMEOUTS}, got {afk_timeout}"
        )

    requested = {
        "dm_notifications": dm_notifications,
        "afk_timeout": afk_timeout,
        "achievement_notifications": achievement_notifications,
    }

    with get_session(engine) as session:
        row = session.get(UserSettings, user_id)
        current = _settings_dict(row, default_timeout)

        changes = {
            key: (current[key], value)
            for key, value in requested.items()
            if value is not None and value != current[key]
        }
        if not changes:
            if not count_unchanged:
                return SettingsChange(settings=current)
            stats = ensure_user(session, user_id, username)
            stats.settings_changes = (stats.settings_changes or 0) + 1
            return SettingsChange(settings=current, stats=stats_to_dict(stats))

        if row is None:
            row = UserSettings(user_id=user_id, **current)
            session.add(row)
        for key, (_, new) in changes.items():
            setattr(row, key, new)

        stats = ensure_user(session, user_id, username)
        stats.settings_changes = (stats.settings_changes or 0) + 1

        logger.info("Settings changed for %s: %s", user_id, changes)
        return SettingsChange(
            settings={**current, **{k: new for k, (_, new) in changes.items()}},
            changes=changes,
            stats=stats_to_dict(stats),
        )
