"""
AFK Bot — Voice Presence, Inactivity & Achievements for Discord
=================================================================
Watches voice channels, moves self-muted members into the AFK channel
once their personal timeout elapses, keeps per-member usage statistics,
unlocks threshold achievements, and reports everything to a web
dashboard and an admin Telegram chat.

Package layout::

    afkbot/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Timeouts, duration formatting, clock helpers
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # All ORM models
    ├── engine/
    │   ├── achievements.py # Achievement catalogue + trigger handlers
    │   ├── presence.py    # Voice transitions + in-memory presence clocks
    │   └── timers.py      # Per-user inactivity timers
    ├── services/
    │   ├── stats_service.py       # Counters, leaderboard, user deletion
    │   ├── settings_service.py    # Per-user bot settings
    │   ├── session_service.py     # Voice session history
    │   ├── achievement_service.py # Unlock / revoke / special achievements
    │   ├── link_service.py        # Telegram ↔ Discord account links
    │   ├── announcement_service.py # DM + channel + Telegram fan-out
    │   └── telegram_service.py    # Telegram Bot API client
    ├── bot/
    │   ├── core.py        # Bot subclass, cog loader
    │   └── cogs/
    │       ├── voice.py     # Voice tracking + AFK moves
    │       ├── activity.py  # Message / mention counters
    │       ├── commands.py  # ".!." user commands
    │       ├── admin.py     # Admin text commands
    │       ├── telegram.py  # Telegram polling bot
    │       └── tasks.py     # Periodic jobs
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Discord OAuth2 → JWT session cookie
        └── routes/        # Public + admin REST endpoints
"""

__version__ = "0.1.0"
