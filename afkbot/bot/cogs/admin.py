"""
afkbot.bot.cogs.admin — Admin Text Commands
=============================================

Maintenance commands for the configured ``admin_user_id``:

- ``showachievements [user]``           — list a member's achievements
- ``resetachievements [user]``          — wipe all achievements, zero rank points
- ``resetachievement <id> [user]``      — hard-delete one achievement
- ``checksettings [user]``              — settings and progress to Settings Explorer
- ``checkspecial``                      — run the scheduled best_admin check now

``[user]`` is an id or mention; it defaults to ``default_test_user_id``,
then to the caller.  ``checksettings`` defaults to the caller.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from discord.ext import commands

from afkbot.constants import BEST_ADMIN_ID, timeout_label
from afkbot.database.engine import run_db
from afkbot.engine.achievements import ACHIEVEMENTS, get_achievement
from afkbot.services import telegram_messages as tm
from afkbot.services.achievement_service import (
    list_user_achievements,
    reset_achievement,
    reset_achievements,
)
from afkbot.services.announcement_service import run_best_admin_check
from afkbot.services.settings_service import get_user_settings
from afkbot.services.stats_service import get_user_stats

if TYPE_CHECKING:
    from afkbot.bot.core import AfkBot

logger = logging.getLogger(__name__)

_USER_REF = re.compile(r"^<@!?(\d+)>$|^(\d+)$")

# settings_explorer threshold, shown as remaining progress
SETTINGS_EXPLORER_AT = 20


def is_admin():
    """Check that the author is the configured bot admin."""
    async def predicate(ctx: commands.Context) -> bool:
        bot: AfkBot = ctx.bot  # type: ignore[assignment]
        return ctx.author.id == bot.cfg.admin_user_id
    return commands.check(predicate)


def parse_user_ref(raw: str | None) -> int | None:
    """Accept a raw snowflake or a ``<@id>`` mention."""
    if not raw:
        return None
    match = _USER_REF.match(raw.strip())
    if match is None:
        return None
    return int(match.group(1) or match.group(2))


class Admin(commands.Cog, name="Admin"):
    """Achievement maintenance for the bot admin."""

    def __init__(self, bot: AfkBot) -> None:
        self.bot = bot

    def _target(self, ctx: commands.Context, raw: str | None) -> int | None:
        if raw is None:
            return self.bot.cfg.default_test_user_id or ctx.author.id
        return parse_user_ref(raw)

    @commands.command(name="showachievements")
    @is_admin()
    async def show_achievements(self, ctx: commands.Context, user: str | None = None) -> None:
        target = self._target(ctx, user)
        if target is None:
            await ctx.reply("❌ Give a user id or mention.")
            return
        achievements = await run_db(list_user_achievements, self.bot.engine, target)
        if not achievements:
            await ctx.reply(f"❌ User `{target}` has no achievements")
            return
        stats = await run_db(get_user_stats, self.bot.engine, target)
        lines = [
            f"🏆 **Achievements of** `{target}`",
            f"⭐ **Rank points:** {stats['rank_points'] if stats else 0}",
            "",
        ]
        for ach in achievements:
            date = (ach.get("unlocked_at") or "")[:10]
            lines.append(f"• `{ach['achievement_id']}` {ach['name']} (+{ach['points']}) {date}")
        await ctx.reply("\n".join(lines)[:2000])

    @commands.command(name="resetachievements")
    @is_admin()
    async def reset_all(self, ctx: commands.Context, user: str | None = None) -> None:
        target = self._target(ctx, user)
        if target is None:
            await ctx.reply("❌ Give a user id or mention.")
            return
        deleted = await run_db(reset_achievements, self.bot.engine, target)
        await ctx.reply(
            f"✅ **Achievements reset for** `{target}`\n"
            f"🗑️ Deleted: **{deleted}**\n"
            "⭐ Rank points set to zero"
        )
        await self.bot.telegram.send_report(
            tm.achievements_reset(ctx.author.name, target, deleted, tz=self.bot.cfg.local_tz)
        )

    @commands.command(name="resetachievement")
    @is_admin()
    async def reset_one(
        self, ctx: commands.Context, achievement_id: str | None = None, user: str | None = None,
    ) -> None:
        prefix = self.bot.cfg.command_prefix
        if achievement_id is None:
            await ctx.reply(f"❌ Give an achievement id, e.g. `{prefix} resetachievement first_join`")
            return
        if get_achievement(achievement_id) is None:
            known = "\n".join(f"• `{a}`" for a in ACHIEVEMENTS if a != BEST_ADMIN_ID)
            await ctx.reply(
                f"❌ Achievement `{achievement_id}` does not exist.\n\n"
                f"📋 **Known achievements:**\n{known}"[:2000]
            )
            return
        target = self._target(ctx, user)
        if target is None:
            await ctx.reply("❌ Give a user id or mention.")
            return

        deleted, points = await run_db(reset_achievement, self.bot.engine, target, achievement_id)
        if not deleted:
            await ctx.reply(f"❌ User `{target}` does not have `{achievement_id}`")
            return
        await ctx.reply(
            f"✅ **Achievement reset:** `{achievement_id}`\n"
            f"👤 User: `{target}`\n"
            f"⭐ Points removed: {points}"
        )

    @commands.command(name="checksettings")
    @is_admin()
    async def check_settings(self, ctx: commands.Context, user: str | None = None) -> None:
        target = parse_user_ref(user) if user is not None else ctx.author.id
        if target is None:
            await ctx.reply("❌ Give a user id or mention.")
            return
        stats = await run_db(get_user_stats, self.bot.engine, target)
        if stats is None:
            await ctx.reply(f"❌ User `{target}` has no statistics")
            return
        settings = await run_db(
            get_user_settings, self.bot.engine, target, self.bot.cfg.default_afk_timeout
        )
        remaining = max(0, SETTINGS_EXPLORER_AT - stats["settings_changes"])
        await ctx.reply(
            f"🔧 **Settings of** `{target}`\n"
            f"⚙️ Settings changes: **{stats['settings_changes']}**\n"
            f"📩 DM notifications: **{'on' if settings['dm_notifications'] else 'off'}**\n"
            f"🏆 Achievement notifications: "
            f"**{'on' if settings['achievement_notifications'] else 'off'}**\n"
            f"⏰ AFK timer: **{timeout_label(settings['afk_timeout'])}**\n"
            f"🔍 Changes left for Settings Explorer: **{remaining}**"
        )

    @commands.command(name="checkspecial")
    @is_admin()
    async def check_special(self, ctx: commands.Context) -> None:
        result = await run_best_admin_check(self.bot)
        if result is None:
            await ctx.reply("✅ Special achievement check done, nothing to grant")
        else:
            await ctx.reply(f"👑 Granted **{result.name}** to `{result.user_id}`")

    async def cog_command_error(self, ctx: commands.Context, error: Exception) -> None:
        if isinstance(error, commands.CheckFailure):
            logger.info("%s tried admin command %s", ctx.author, ctx.command)
            return
        logger.error("Admin command %s failed: %s", ctx.command, error)
        await ctx.reply(f"❌ Error: {error}")


async def setup(bot: AfkBot) -> None:
    await bot.add_cog(Admin(bot))
