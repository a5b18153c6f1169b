"""
afkbot.bot.cogs.voice — Voice Tracking & AFK Moves
====================================================

Turns every voice-state update into stats and, when a member stays
self-muted for their configured timeout, moves them to the AFK channel.

Division of labour for AFK moves: the timer callback only remembers the
original channel, performs the move and notifies.  The voice-state update
that the move produces is handled as an ordinary move into the AFK
channel, and that is where ``total_afk_moves`` is counted and the AFK
clock started, so timer moves and manual drags count exactly once.

Sessions survive channel moves; voice time is credited once, on leave.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from afkbot.constants import format_duration, timeout_label, timeout_to_seconds, utcnow
from afkbot.database.engine import run_db
from afkbot.engine.presence import VoiceTransition, classify_voice_update
from afkbot.services import telegram_messages as tm
from afkbot.services.announcement_service import check_and_announce, send_dm
from afkbot.services.session_service import finish_session
from afkbot.services.settings_service import get_user_settings
from afkbot.services.stats_service import increment_stats

if TYPE_CHECKING:
    from afkbot.bot.core import AfkBot

logger = logging.getLogger(__name__)


class Voice(commands.Cog, name="Voice"):
    """Voice presence, inactivity timers and AFK moves."""

    def __init__(self, bot: AfkBot) -> None:
        self.bot = bot
        self._handlers = {
            VoiceTransition.JOIN: self._on_join,
            VoiceTransition.LEAVE: self._on_leave,
            VoiceTransition.MOVE: self._on_move,
            VoiceTransition.MUTE: self._on_mute,
            VoiceTransition.UNMUTE: self._on_unmute,
            VoiceTransition.STREAM_START: self._on_stream_start,
            VoiceTransition.STREAM_STOP: self._on_stream_stop,
        }

    async def cog_unload(self) -> None:
        self.bot.timers.cancel_all()

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------
    def _is_afk(self, channel) -> bool:
        return channel is not None and channel.id == self.bot.cfg.afk_channel_id

    def _is_stream(self, channel) -> bool:
        stream_id = self.bot.cfg.stream_channel_id
        return channel is not None and stream_id is not None and channel.id == stream_id

    async def _settings(self, user_id: int) -> dict:
        return await run_db(
            get_user_settings, self.bot.engine, user_id, self.bot.cfg.default_afk_timeout
        )

    async def _report(self, text: str) -> None:
        await self.bot.telegram.send_report(text)

    async def _start_timer(self, member: discord.Member, timeout: int | None = None) -> int:
        """(Re)start the inactivity timer; returns the timeout used."""
        if timeout is None:
            timeout = (await self._settings(member.id))["afk_timeout"]
        self.bot.timers.start(member.id, timeout_to_seconds(timeout), self._on_timer)
        return timeout

    # -----------------------------------------------------------------------
    # Gateway listeners
    # -----------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_ready(self) -> None:
        """Pick up members who were already in voice when the bot (re)started."""
        guild = self.bot.get_guild(self.bot.cfg.guild_id)
        if guild is None:
            return
        now = utcnow()
        resumed = 0
        for channel in guild.voice_channels:
            for member in channel.members:
                if member.bot or member.id in self.bot.presence:
                    continue
                self.bot.presence.open_session(member.id, channel.name, now)
                if self._is_afk(channel):
                    self.bot.presence.start_afk(member.id, now)
                if self._is_stream(channel):
                    self.bot.presence.start_stream(member.id, now)
                if member.voice and member.voice.self_mute and not self._is_afk(channel):
                    await self._start_timer(member)
                resumed += 1
        if resumed:
            logger.info("Resumed %d voice session(s) already in progress", resumed)

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        try:
            await self._handle_voice_update(member, before, after)
        except Exception:
            logger.exception("Error processing voice state update for user %s", member.id)

    async def _handle_voice_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if member.bot:
            return
        now = utcnow()
        for transition in classify_voice_update(before, after):
            logger.debug("%s: %s", member.name, transition)
            await self._handlers[transition](member, before, after, now)

    # -----------------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------------
    async def _on_join(self, member, before, after, now: datetime) -> None:
        channel = after.channel
        tracker = self.bot.presence
        state = tracker.open_session(member.id, channel.name, now)

        deltas = {"total_sessions": 1}
        if self._is_afk(channel):
            deltas["total_afk_moves"] = 1
            tracker.start_afk(member.id, now)
            state.afk_moved = True
        if self._is_stream(channel):
            tracker.start_stream(member.id, now)

        await run_db(increment_stats, self.bot.engine, member.id, member.name, **deltas)
        await check_and_announce(self.bot, member)
        logger.info("%s joined %s", member.name, channel.name)
        await self._report(
            tm.voice_joined(member.name, member.id, channel.name, tz=self.bot.cfg.local_tz)
        )

        if after.self_mute and not self._is_afk(channel):
            await self._start_timer(member)

    async def _on_leave(self, member, before, after, now: datetime) -> None:
        channel = before.channel
        tracker = self.bot.presence
        self.bot.timers.cancel(member.id)

        state = tracker.peek(member.id)
        afk_seconds = tracker.settle_afk(member.id, now)
        stream_seconds = tracker.settle_stream(member.id, now)
        tracker.close_session(member.id)

        if state is None or state.joined_at is None:
            logger.debug("No open session for %s, nothing to record", member.name)
            return

        stats = await run_db(
            finish_session,
            self.bot.engine,
            member.id,
            channel_name=channel.name,
            joined_at=state.joined_at,
            left_at=now,
            afk_seconds=afk_seconds,
            stream_seconds=stream_seconds,
            was_afk_moved=state.afk_moved,
            username=member.name,
        )
        await check_and_announce(self.bot, member)

        duration = int((now - state.joined_at).total_seconds())
        logger.info(
            "%s left %s after %s (total %s)",
            member.name, channel.name, format_duration(duration),
            format_duration(stats["total_voice_time"]),
        )
        await self._report(
            tm.voice_left(
                member.name, member.id, channel.name, format_duration(duration),
                tz=self.bot.cfg.local_tz,
            )
        )

    async def _on_move(self, member, before, after, now: datetime) -> None:
        source, target = before.channel, after.channel
        tracker = self.bot.presence
        if member.id not in tracker:
            # Joined before the bot noticed; keep timing from here
            tracker.open_session(member.id, target.name, now)
        state = tracker.get(member.id)
        state.channel_name = target.name

        deltas: dict[str, int] = {}
        afk_seconds = tracker.settle_afk(member.id, now)
        if afk_seconds:
            deltas["total_afk_time"] = afk_seconds
        if self._is_afk(source) and not self._is_afk(target):
            # Dragged out by hand: the stored return channel is stale
            tracker.pop_original(member.id)
        if self._is_afk(target):
            deltas["total_afk_moves"] = 1
            tracker.start_afk(member.id, now)
            state.afk_moved = True

        if self._is_stream(source):
            stream_seconds = tracker.settle_stream(member.id, now)
            if stream_seconds:
                deltas["stream_channel_time"] = stream_seconds
        if self._is_stream(target):
            tracker.start_stream(member.id, now)

        if deltas:
            await run_db(increment_stats, self.bot.engine, member.id, member.name, **deltas)
            await check_and_announce(self.bot, member)

        logger.info("%s moved %s → %s", member.name, source.name, target.name)
        await self._report(
            tm.voice_moved(
                member.name, member.id, source.name, target.name, tz=self.bot.cfg.local_tz,
            )
        )

        if after.self_mute and not self._is_afk(target):
            await self._start_timer(member)
        else:
            self.bot.timers.cancel(member.id)

    async def _on_mute(self, member, before, after, now: datetime) -> None:
        settings = await self._settings(member.id)
        timeout = await self._start_timer(member, settings["afk_timeout"])

        await run_db(
            increment_stats, self.bot.engine, member.id, member.name, total_mute_toggles=1,
        )
        await check_and_announce(self.bot, member)

        await self._report(
            tm.voice_muted(
                member.name, member.id, after.channel.name, timeout,
                settings["dm_notifications"], tz=self.bot.cfg.local_tz,
            )
        )
        if settings["dm_notifications"] and not self._is_afk(after.channel):
            await send_dm(
                member,
                f"🎙️ You muted your microphone in **{after.channel.name}**. "
                f"Stay muted for {timeout_label(timeout)} and you will be moved "
                "to the AFK channel.",
            )

    async def _on_unmute(self, member, before, after, now: datetime) -> None:
        self.bot.timers.cancel(member.id)
        await run_db(
            increment_stats, self.bot.engine, member.id, member.name, total_mute_toggles=1,
        )
        await check_and_announce(self.bot, member)
        await self._report(
            tm.voice_unmuted(member.name, member.id, after.channel.name, tz=self.bot.cfg.local_tz)
        )

        if not self._is_afk(after.channel):
            return
        original_id = self.bot.presence.pop_original(member.id)
        if original_id is None:
            return
        original = member.guild.get_channel(original_id)
        if not isinstance(original, discord.VoiceChannel):
            logger.warning("Original channel %s of %s no longer exists", original_id, member.name)
            return
        try:
            await member.move_to(original, reason="Unmuted, returning from AFK")
        except discord.HTTPException:
            logger.exception("Failed to move %s back to %s", member.name, original.name)
            return
        logger.info("%s returned from AFK to %s", member.name, original.name)
        await self._report(
            tm.afk_returned(
                member.name, after.channel.name, original.name, tz=self.bot.cfg.local_tz,
            )
        )

    async def _on_stream_start(self, member, before, after, now: datetime) -> None:
        await run_db(increment_stats, self.bot.engine, member.id, member.name, total_streams=1)
        await check_and_announce(self.bot, member)
        logger.info("%s started streaming in %s", member.name, after.channel.name)
        await self._report(
            tm.stream_changed(
                member.name, member.id, after.channel.name, True, tz=self.bot.cfg.local_tz,
            )
        )

    async def _on_stream_stop(self, member, before, after, now: datetime) -> None:
        logger.info("%s stopped streaming in %s", member.name, after.channel.name)
        await self._report(
            tm.stream_changed(
                member.name, member.id, after.channel.name, False, tz=self.bot.cfg.local_tz,
            )
        )

    # -----------------------------------------------------------------------
    # Timer expiry
    # -----------------------------------------------------------------------
    async def _on_timer(self, user_id: int) -> None:
        """Move a still-muted member to the AFK channel."""
        guild = self.bot.get_guild(self.bot.cfg.guild_id)
        if guild is None:
            return
        member = guild.get_member(user_id)
        voice = member.voice if member is not None else None
        if voice is None or voice.channel is None:
            logger.debug("Timer fired for %s who is no longer in voice", user_id)
            return
        if not voice.self_mute or self._is_afk(voice.channel):
            return

        afk_channel = guild.get_channel(self.bot.cfg.afk_channel_id)
        if not isinstance(afk_channel, discord.VoiceChannel):
            logger.warning("AFK channel %s is missing or not a voice channel", self.bot.cfg.afk_channel_id)
            return

        source = voice.channel
        self.bot.presence.remember_original(user_id, source.id)
        try:
            await member.move_to(afk_channel, reason="Inactive: self-muted too long")
        except discord.HTTPException:
            self.bot.presence.pop_original(user_id)
            logger.exception("Failed to move %s to AFK", member.name)
            return

        settings = await self._settings(user_id)
        logger.info("%s moved to AFK from %s", member.name, source.name)
        await self._report(
            tm.afk_moved(
                member.name, user_id, source.name, afk_channel.name,
                settings["afk_timeout"], tz=self.bot.cfg.local_tz,
            )
        )
        if settings["dm_notifications"]:
            await send_dm(
                member,
                f"😴 You were muted for {timeout_label(settings['afk_timeout'])} "
                f"in **{source.name}** and have been moved to **{afk_channel.name}**. "
                "Unmute to return.",
            )


async def setup(bot: AfkBot) -> None:
    await bot.add_cog(Voice(bot))
