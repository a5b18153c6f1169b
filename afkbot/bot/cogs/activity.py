"""
afkbot.bot.cogs.activity — Message Counters
=============================================

Counts every message a member sends and every reply to a message that
mentioned them, then re-checks achievements.  A bare command prefix
(``.!.`` on its own) answers with the help card.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from afkbot.database.engine import run_db
from afkbot.services import telegram_messages as tm
from afkbot.services.announcement_service import check_and_announce
from afkbot.services.embeds import build_help_embed
from afkbot.services.stats_service import increment_stats

if TYPE_CHECKING:
    from afkbot.bot.core import AfkBot

logger = logging.getLogger(__name__)


def _mentions(message: discord.Message, user_id: int) -> bool:
    if any(user.id == user_id for user in message.mentions):
        return True
    return f"<@{user_id}>" in message.content or f"<@!{user_id}>" in message.content


class Activity(commands.Cog, name="Activity"):
    """Message and mention-reply counters."""

    def __init__(self, bot: AfkBot) -> None:
        self.bot = bot

    async def _replied_to(self, message: discord.Message) -> discord.Message | None:
        ref = message.reference
        if ref is None or ref.message_id is None:
            return None
        if isinstance(ref.resolved, discord.Message):
            return ref.resolved
        try:
            return await message.channel.fetch_message(ref.message_id)
        except discord.HTTPException:
            logger.debug("Could not fetch replied-to message %s", ref.message_id)
            return None

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception(
                "Error processing message %s from user %s", message.id, message.author.id,
            )

    async def _handle_message(self, message: discord.Message) -> None:
        author = message.author
        if author.bot:
            return

        deltas = {"messages_sent": 1}
        original = await self._replied_to(message)
        if original is not None and _mentions(original, author.id):
            deltas["mentions_responded"] = 1

        await run_db(increment_stats, self.bot.engine, author.id, author.name, **deltas)
        await check_and_announce(self.bot, author)

        if message.content.strip().lower() == self.bot.cfg.command_prefix:
            await self._send_help(message)

    async def _send_help(self, message: discord.Message) -> None:
        author = message.author
        embed = build_help_embed(
            author.id, self.bot.cfg.command_prefix, self.bot.cfg.dashboard_link(author.id),
        )
        await message.reply(embed=embed)
        await self.bot.telegram.send_report(
            tm.help_requested(author.name, author.id, tz=self.bot.cfg.local_tz)
        )


async def setup(bot: AfkBot) -> None:
    await bot.add_cog(Activity(bot))
