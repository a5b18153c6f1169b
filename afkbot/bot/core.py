"""
afkbot.bot.core — Bot Instance & Cog Loader
=============================================

Defines :class:`AfkBot`, a ``commands.Bot`` subclass that carries the
state every cog shares:

* ``bot.cfg``       — parsed ``config.yaml``
* ``bot.engine``    — SQLAlchemy engine
* ``bot.telegram``  — Telegram Bot API client (reports + polling bot)
* ``bot.timers``    — per-user inactivity timers
* ``bot.presence``  — in-memory voice clocks

On ready it starts the announcement drain task and posts a "started"
report; :meth:`AfkBot.close` posts "stopped" and tears the rest down.
"""

from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands
from sqlalchemy import Engine

from afkbot.config import AfkBotConfig
from afkbot.engine.presence import PresenceTracker
from afkbot.engine.timers import InactivityTimers
from afkbot.services import telegram_messages as tm
from afkbot.services.announcement_service import start_queue, stop_queue
from afkbot.services.telegram_service import TelegramClient

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "afkbot.bot.cogs.voice",
    "afkbot.bot.cogs.activity",
    "afkbot.bot.cogs.commands",
    "afkbot.bot.cogs.admin",
    "afkbot.bot.cogs.telegram",
    "afkbot.bot.cogs.tasks",
]


class AfkBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`AfkBotConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` (SQLite by default).
    telegram:
        Telegram client; a disabled one is created from the environment
        when omitted.
    """

    def __init__(
        self,
        cfg: AfkBotConfig,
        engine: Engine,
        telegram: TelegramClient | None = None,
    ) -> None:
        # Privileged intents (enable in the Developer Portal):
        #   MESSAGE_CONTENT: text commands
        #   GUILD_MEMBERS: member lookups for admin commands
        #   GUILD_PRESENCES: "who's online" for the Telegram bot
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.presences = True
        intents.voice_states = True

        super().__init__(
            command_prefix=f"{cfg.command_prefix} ",
            intents=intents,
            case_insensitive=True,
            strip_after_prefix=True,
            help_command=None,
            description="AFK bot: moves muted members to the AFK channel",
        )

        self.cfg = cfg
        self.engine = engine
        self.telegram = telegram or TelegramClient.from_env()
        self.timers = InactivityTimers()
        self.presence = PresenceTracker()
        self._started_reported = False

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load every cog; a broken one is logged and skipped."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        guild = self.get_guild(self.cfg.guild_id)
        if guild is None:
            logger.warning("Primary guild %d not found", self.cfg.guild_id)
        elif guild.get_channel(self.cfg.afk_channel_id) is None:
            logger.warning(
                "AFK channel %d not found in guild %s", self.cfg.afk_channel_id, guild.name,
            )

        start_queue(asyncio.get_running_loop())

        # on_ready fires again after every reconnect
        if not self._started_reported:
            self._started_reported = True
            await self.telegram.send_report(
                tm.bot_status(True, f"Bot: {self.user.name}", tz=self.cfg.local_tz)
            )

    async def on_command_error(self, ctx: commands.Context, error: Exception) -> None:
        """Ignore unknown commands and failed admin checks; log the rest."""
        if isinstance(error, (commands.CommandNotFound, commands.CheckFailure)):
            return
        if ctx.cog is not None and ctx.cog.has_error_handler():
            return
        logger.error("Command %s failed: %s", ctx.command, error, exc_info=error)

    async def close(self) -> None:
        """Report shutdown, stop background work, then release the HTTP client.

        The Telegram client is closed last, once nothing can poll it.
        """
        logger.info("Bot shutting down…")
        poller = self.get_cog("Telegram")
        if poller is not None:
            poller.poll_loop.cancel()
        await self.telegram.send_report(tm.bot_status(False, tz=self.cfg.local_tz))
        self.timers.cancel_all()
        stop_queue()
        try:
            await super().close()
        finally:
            await self.telegram.close()
