"""
afkbot.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for the bot's identity and channel wiring (guild,
AFK channel, stream channel, achievements channel, admin user).  Secrets
(tokens, JWT secret, database URL) never live here; they come from
``.env`` via python-dotenv.

Usage::

    from afkbot.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.afk_channel_id)    # 1424527747413184000
    print(cfg.command_prefix)    # ".!."
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AfkBotConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Per-user tuning (DM notifications, AFK timeout) is stored in the
    ``user_settings`` table; this object only carries server wiring.
    """

    # Discord
    guild_id: int
    afk_channel_id: int
    admin_user_id: int

    # Optional channels
    stream_channel_id: int | None = None
    achievements_channel_id: int | None = None

    # Scheduled special achievement
    special_user_id: int | None = None
    special_achievement_at: datetime | None = None

    # Admin command default target
    default_test_user_id: int | None = None

    # Behaviour
    command_prefix: str = ".!."
    default_afk_timeout: int = 15

    # Dashboard
    dashboard_url: str = "http://localhost:3000"
    dashboard_port: int = 3000

    # Local clock used for display and for naive dates from the dashboard
    utc_offset_hours: int = 3

    @property
    def local_tz(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours))

    def dashboard_link(self, user_id: int | str) -> str:
        """Deep link that opens the dashboard on *user_id*'s profile."""
        return f"{self.dashboard_url.rstrip('/')}/?userId={user_id}&autoLogin=true"


def _optional_int(raw: dict, key: str) -> int | None:
    value = raw.get(key)
    return int(value) if value else None


def _optional_datetime(raw: dict, key: str, tz: timezone) -> datetime | None:
    value = raw.get(key)
    if not value:
        return None
    # PyYAML already parses unquoted timestamps into datetime objects
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> AfkBotConfig:
    """Read *path* and return an :class:`AfkBotConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    utc_offset = int(raw.get("utc_offset_hours", 3))
    tz = timezone(timedelta(hours=utc_offset))

    return AfkBotConfig(
        guild_id=int(raw["guild_id"]),
        afk_channel_id=int(raw["afk_channel_id"]),
        admin_user_id=int(raw["admin_user_id"]),
        stream_channel_id=_optional_int(raw, "stream_channel_id"),
        achievements_channel_id=_optional_int(raw, "achievements_channel_id"),
        special_user_id=_optional_int(raw, "special_user_id"),
        special_achievement_at=_optional_datetime(raw, "special_achievement_at", tz),
        default_test_user_id=_optional_int(raw, "default_test_user_id"),
        command_prefix=str(raw.get("command_prefix", ".!.")),
        default_afk_timeout=int(raw.get("default_afk_timeout", 15)),
        dashboard_url=str(raw.get("dashboard_url", "http://localhost:3000")),
        dashboard_port=int(raw.get("dashboard_port", 3000)),
        utc_offset_hours=utc_offset,
    )
