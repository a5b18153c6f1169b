"""
afkbot.bot.cogs.commands — Member Text Commands
=================================================

Prefix commands (``.!. <name>``), each with a Russian alias:

- ``stats`` / ``статистика``            — personal statistics
- ``achievements`` / ``достижения``     — earned list, or ``on``/``off`` toggle
- ``msg`` / ``лс``  ``on|off``          — DM notifications
- ``ach``  ``on|off``                   — achievement notifications
- ``time`` / ``время``  ``15|30|45``    — AFK timeout in minutes
- ``status`` / ``статус``               — current settings
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands

from afkbot.constants import BEST_ADMIN_ID, COMMAND_AFK_TIMEOUTS, timeout_label
from afkbot.database.engine import run_db
from afkbot.engine.achievements import countable_achievements
from afkbot.services import telegram_messages as tm
from afkbot.services.achievement_service import list_user_achievements
from afkbot.services.announcement_service import check_and_announce
from afkbot.services.embeds import (
    build_achievements_list_embed,
    build_stats_embed,
    build_status_embed,
)
from afkbot.services.settings_service import get_user_settings, update_user_settings
from afkbot.services.stats_service import get_user_stats

if TYPE_CHECKING:
    from afkbot.bot.core import AfkBot

logger = logging.getLogger(__name__)

_TOGGLES = {"on": True, "вкл": True, "off": False, "выкл": False}


def parse_toggle(value: str | None) -> bool | None:
    """``on``/``вкл`` → True, ``off``/``выкл`` → False, anything else → None."""
    if value is None:
        return None
    return _TOGGLES.get(value.strip().lower())


def count_earned(achievements: list[dict]) -> int:
    """Catalogue achievements held, excluding ``best_admin``, for "x / N"."""
    return sum(
        1 for a in achievements
        if a.get("type") == "standard" and a["achievement_id"] != BEST_ADMIN_ID
    )


class UserCommands(commands.Cog, name="Commands"):
    """Text commands every member can use."""

    def __init__(self, bot: AfkBot) -> None:
        self.bot = bot

    # -----------------------------------------------------------------------
    # Settings changes
    # -----------------------------------------------------------------------
    async def _apply(self, ctx: commands.Context, reply: str, **changes) -> None:
        author = ctx.author
        result = await run_db(
            update_user_settings,
            self.bot.engine,
            author.id,
            username=author.name,
            default_timeout=self.bot.cfg.default_afk_timeout,
            count_unchanged=True,
            **changes,
        )
        await ctx.reply(reply)
        if not result.counted:
            return
        await check_and_announce(self.bot, author)
        await self.bot.telegram.send_report(
            tm.settings_changed(author.name, author.id, result.settings, tz=self.bot.cfg.local_tz)
        )

    async def _toggle(
        self, ctx: commands.Context, value: str | None, field: str, label: str,
    ) -> None:
        enabled = parse_toggle(value)
        if enabled is None:
            await ctx.reply(f"Usage: `{self.bot.cfg.command_prefix} {ctx.invoked_with} on|off`")
            return
        state = "**on** ✅" if enabled else "**off** ❌"
        await self._apply(ctx, f"{label} {state}", **{field: enabled})

    @commands.command(name="msg", aliases=["лс"])
    async def msg(self, ctx: commands.Context, value: str | None = None) -> None:
        """Turn AFK-move DMs on or off."""
        await self._toggle(ctx, value, "dm_notifications", "📩 DM notifications are")

    @commands.command(name="ach")
    async def ach(self, ctx: commands.Context, value: str | None = None) -> None:
        """Turn achievement notifications on or off."""
        await self._toggle(ctx, value, "achievement_notifications", "🏆 Achievement notifications are")

    @commands.command(name="time", aliases=["время"])
    async def time_(self, ctx: commands.Context, minutes: int | None = None) -> None:
        """Set the AFK timeout."""
        if minutes not in COMMAND_AFK_TIMEOUTS:
            choices = "/".join(str(m) for m in COMMAND_AFK_TIMEOUTS)
            await ctx.reply(f"Usage: `{self.bot.cfg.command_prefix} time {choices}`")
            return
        await self._apply(
            ctx, f"⏰ Time until AFK set to **{timeout_label(minutes)}**", afk_timeout=minutes,
        )

    # -----------------------------------------------------------------------
    # Read-only
    # -----------------------------------------------------------------------
    @commands.command(name="stats", aliases=["статистика"])
    async def stats(self, ctx: commands.Context) -> None:
        """Show your statistics."""
        author = ctx.author
        stats = await run_db(get_user_stats, self.bot.engine, author.id)
        if stats is None:
            await ctx.reply("📊 No statistics yet. Join a voice channel to get started!")
            return
        achievements = await run_db(list_user_achievements, self.bot.engine, author.id)
        embed = build_stats_embed(
            getattr(author, "display_name", author.name),
            author.display_avatar.url,
            stats,
            count_earned(achievements),
            len(countable_achievements()),
            self.bot.cfg.dashboard_link(author.id),
        )
        await ctx.reply(embed=embed)

    @commands.command(name="achievements", aliases=["достижения"])
    async def achievements(self, ctx: commands.Context, value: str | None = None) -> None:
        """List your achievements, or toggle their notifications with on/off."""
        if value is not None:
            await self._toggle(
                ctx, value, "achievement_notifications", "🏆 Achievement notifications are",
            )
            return

        author = ctx.author
        achievements = await run_db(list_user_achievements, self.bot.engine, author.id)
        stats = await run_db(get_user_stats, self.bot.engine, author.id)
        shown = [a for a in achievements if a["achievement_id"] != BEST_ADMIN_ID]
        embed = build_achievements_list_embed(
            getattr(author, "display_name", author.name),
            shown,
            len(countable_achievements()),
            rank_points=stats["rank_points"] if stats else 0,
        )
        await ctx.reply(embed=embed)

    @commands.command(name="status", aliases=["статус"])
    async def status(self, ctx: commands.Context) -> None:
        """Show your current settings."""
        author = ctx.author
        settings = await run_db(
            get_user_settings, self.bot.engine, author.id, self.bot.cfg.default_afk_timeout
        )
        embed = build_status_embed(
            author.id,
            settings,
            self.bot.cfg.command_prefix,
            self.bot.cfg.dashboard_link(author.id),
        )
        await ctx.reply(embed=embed)
        await self.bot.telegram.send_report(
            tm.status_requested(author.name, author.id, settings, tz=self.bot.cfg.local_tz)
        )

    async def cog_command_error(self, ctx: commands.Context, error: Exception) -> None:
        if isinstance(error, commands.BadArgument):
            await ctx.reply(f"Invalid value. Try `{self.bot.cfg.command_prefix}` for help.")
            return
        logger.error("Command %s failed: %s", ctx.command, error)


async def setup(bot: AfkBot) -> None:
    await bot.add_cog(UserCommands(bot))
