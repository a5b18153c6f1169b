"""
afkbot.bot.cogs.telegram — Telegram Polling Bot
=================================================

Long-polls the Telegram Bot API (``getUpdates``) from inside the Discord
bot's event loop and answers:

- ``/start``        — registers the chat, replies with a keyboard; the
  admin hears about first-time chats only.
- ``/link CODE``    — binds the chat to the Discord account that
  generated *CODE* on the dashboard.
- "🎤 Who's in voice" / "👥 Who's online" keyboard buttons.

The loop only runs when ``TELEGRAM_BOT_TOKEN`` is set.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord
import httpx
from discord.ext import commands, tasks

from afkbot.database.engine import run_db
from afkbot.services import telegram_messages as tm
from afkbot.services.link_service import consume_link_code, register_telegram_chat

if TYPE_CHECKING:
    from afkbot.bot.core import AfkBot

logger = logging.getLogger(__name__)

VOICE_BUTTON = "🎤 Who's in voice"
ONLINE_BUTTON = "👥 Who's online"

KEYBOARD = {
    "keyboard": [[{"text": VOICE_BUTTON}], [{"text": ONLINE_BUTTON}]],
    "resize_keyboard": True,
    "one_time_keyboard": False,
}

POLL_TIMEOUT = 30
ERROR_BACKOFF = 2


class TelegramBot(commands.Cog, name="Telegram"):
    """Interactive Telegram bot backed by the Discord guild state."""

    def __init__(self, bot: AfkBot) -> None:
        self.bot = bot
        self._offset: int | None = None

    async def cog_load(self) -> None:
        if self.bot.telegram.enabled:
            self.poll_loop.start()
        else:
            logger.info("Telegram bot disabled (no token)")

    async def cog_unload(self) -> None:
        self.poll_loop.cancel()

    # -------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------
    @tasks.loop(seconds=1)
    async def poll_loop(self) -> None:
        try:
            updates = await self.bot.telegram.get_updates(self._offset, POLL_TIMEOUT)
        except (httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Telegram polling error: %s", exc)
            await asyncio.sleep(ERROR_BACKOFF)
            return

        for update in updates:
            self._offset = max(self._offset or 0, update["update_id"] + 1)
            try:
                await self.handle_update(update)
            except Exception:
                logger.exception("Failed to handle Telegram update %s", update.get("update_id"))

    @poll_loop.before_loop
    async def _wait_ready(self) -> None:
        await self.bot.wait_until_ready()

    async def handle_update(self, update: dict) -> None:
        message = update.get("message")
        if not message or "text" not in message:
            return
        text = message["text"].strip()
        chat_id = message["chat"]["id"]
        sender = message.get("from") or {}
        name = sender.get("username") or sender.get("first_name") or "user"

        if text.startswith("/start"):
            await self._on_start(chat_id, sender.get("id", chat_id), name)
        elif text.startswith("/link"):
            await self._on_link(chat_id, name, text.partition(" ")[2].strip())
        elif text == VOICE_BUTTON:
            await self.bot.telegram.send_message(chat_id, tm.voice_occupancy(self.voice_snapshot()))
        elif text == ONLINE_BUTTON:
            online, total = self.online_snapshot()
            await self.bot.telegram.send_message(chat_id, tm.online_members(online, total))

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    async def _on_start(self, chat_id: int, telegram_id: int, name: str) -> None:
        returning = await run_db(register_telegram_chat, self.bot.engine, chat_id)
        logger.info("Telegram /start from %s (chat %s, returning=%s)", name, chat_id, returning)
        await self.bot.telegram.send_message(
            chat_id, tm.welcome(name, returning), reply_markup=KEYBOARD,
        )
        if not returning:
            await self.bot.telegram.send_report(
                tm.new_telegram_user(name, telegram_id, chat_id, tz=self.bot.cfg.local_tz)
            )

    async def _on_link(self, chat_id: int, name: str, code: str) -> None:
        if not code:
            await self.bot.telegram.send_message(chat_id, "Usage: <code>/link 123456</code>")
            return
        result = await run_db(consume_link_code, self.bot.engine, code, chat_id)
        if not result.success:
            logger.info("Telegram link failed for chat %s: %s", chat_id, result.error)
            await self.bot.telegram.send_message(chat_id, tm.link_failed(result.error))
            return
        await self.bot.telegram.send_message(chat_id, tm.account_linked_reply(result.username))
        await self.bot.telegram.send_report(
            tm.account_linked(
                name, chat_id, result.username, result.user_id, code, tz=self.bot.cfg.local_tz,
            )
        )

    # -------------------------------------------------------------------
    # Guild snapshots
    # -------------------------------------------------------------------
    def voice_snapshot(self) -> list[tuple[str, list[str]]]:
        guild = self.bot.get_guild(self.bot.cfg.guild_id)
        if guild is None:
            return []
        snapshot = []
        for channel in guild.voice_channels:
            members = [m.display_name for m in channel.members if not m.bot]
            if members:
                snapshot.append((channel.name, members))
        return snapshot

    def online_snapshot(self) -> tuple[list[str], int]:
        guild = self.bot.get_guild(self.bot.cfg.guild_id)
        if guild is None:
            return [], 0
        humans = [m for m in guild.members if not m.bot]
        online = sorted(
            m.display_name for m in humans if m.status != discord.Status.offline
        )
        return online, len(humans)


async def setup(bot: AfkBot) -> None:
    await bot.add_cog(TelegramBot(bot))
