"""
afkbot.bot.cogs.tasks — Periodic Background Tasks
===================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **special_check** — every 60 s, grants ``best_admin`` once the
  configured moment has passed.
- **missed_notifications** — every 30 s, announces special achievements
  whose date has come and marks them sent.  The first pass runs as soon
  as the bot is ready, which catches anything created while it was down.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from afkbot.database.engine import run_db
from afkbot.services.achievement_service import due_special_notifications
from afkbot.services.announcement_service import announce_special, run_best_admin_check

if TYPE_CHECKING:
    from afkbot.bot.core import AfkBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled achievement jobs."""

    def __init__(self, bot: AfkBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.special_check.start()
        self.missed_notifications.start()

    async def cog_unload(self) -> None:
        self.special_check.cancel()
        self.missed_notifications.cancel()

    # -------------------------------------------------------------------
    # Scheduled best_admin grant
    # -------------------------------------------------------------------
    @tasks.loop(seconds=60)
    async def special_check(self) -> None:
        try:
            await run_best_admin_check(self.bot)
        except Exception:
            logger.exception("Special achievement check failed")

    @special_check.before_loop
    async def _wait_special(self) -> None:
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Delayed special achievement announcements
    # -------------------------------------------------------------------
    @tasks.loop(seconds=30)
    async def missed_notifications(self) -> None:
        try:
            due = await run_db(due_special_notifications, self.bot.engine)
        except Exception:
            logger.exception("Loading due special achievements failed")
            return
        if due:
            logger.info("Announcing %d due special achievement(s)", len(due))
        for special in due:
            try:
                await announce_special(self.bot, special)
            except Exception:
                logger.exception("Announcing %s failed", special["achievement_id"])

    @missed_notifications.before_loop
    async def _wait_missed(self) -> None:
        await self.bot.wait_until_ready()


async def setup(bot: AfkBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
