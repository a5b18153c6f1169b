"""
afkbot.services.announcement_service — Achievement Announcements
==================================================================

Fans every unlock out to three places:

* the member's DMs, when their ``achievement_notifications`` setting is on;
* the achievements channel, through :class:`AnnouncementThrottle`;
* the admin's Telegram chat.

Each leg is best-effort; a closed DM or a Telegram outage never stops
the others.  Embed construction lives in :mod:`afkbot.services.embeds`,
report text in :mod:`afkbot.services.telegram_messages`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord
from discord.abc import Messageable

from afkbot.database.engine import run_db
from afkbot.services import telegram_messages as tm
from afkbot.services.achievement_service import (
    UnlockResult,
    evaluate_achievements,
    grant_best_admin,
    mark_notifications_sent,
)
from afkbot.services.embeds import build_achievement_embed, build_special_embed
from afkbot.services.settings_service import get_user_settings
from afkbot.services.throttle import AnnouncementThrottle

if TYPE_CHECKING:
    from afkbot.bot.core import AfkBot

logger = logging.getLogger(__name__)

# Module-level throttle shared by every cog
_throttle = AnnouncementThrottle()


def start_queue(loop: asyncio.AbstractEventLoop) -> None:
    """Start draining throttled posts.  Called once the bot is ready."""
    _throttle.start(loop)


def stop_queue() -> None:
    _throttle.stop()


# ---------------------------------------------------------------------------
# Delivery helpers
# ---------------------------------------------------------------------------
def resolve_achievements_channel(bot: AfkBot) -> Messageable | None:
    channel_id = bot.cfg.achievements_channel_id
    if not channel_id:
        return None
    channel = bot.get_channel(channel_id)
    if channel is None or not isinstance(channel, Messageable):
        logger.warning("Achievements channel %s not found", channel_id)
        return None
    return channel


async def send_dm(
    user: discord.abc.User,
    content: str | None = None,
    *,
    embed: discord.Embed | None = None,
) -> bool:
    """DM *user*; closed DMs and HTTP errors are logged, not raised."""
    try:
        await user.send(content=content, embed=embed)
        return True
    except discord.Forbidden:
        logger.info("DMs closed for %s", user.id)
    except discord.HTTPException:
        logger.exception("Failed to DM %s", user.id)
    return False


async def _post(bot: AfkBot, embed: discord.Embed) -> None:
    channel = resolve_achievements_channel(bot)
    if channel is not None:
        await _throttle.submit(channel, embed)


def _avatar(user: discord.abc.User | None) -> str | None:
    return user.display_avatar.url if user is not None else None


# ---------------------------------------------------------------------------
# Public API: called by cogs and tasks
# ---------------------------------------------------------------------------
async def announce_unlocks(
    bot: AfkBot,
    user: discord.abc.User,
    unlocked: list[UnlockResult],
) -> None:
    """Announce freshly unlocked catalogue achievements for *user*."""
    if not unlocked:
        return

    settings = await run_db(
        get_user_settings, bot.engine, user.id, bot.cfg.default_afk_timeout
    )
    link = bot.cfg.dashboard_link(user.id)
    tz = bot.cfg.local_tz

    for result in unlocked:
        embed = build_achievement_embed(
            user.id,
            _avatar(user),
            result.name,
            result.description,
            result.points,
            rank_points=result.rank_points,
            dashboard_link=link,
        )
        if settings["achievement_notifications"]:
            await send_dm(user, embed=embed)
        await _post(bot, embed)
        await bot.telegram.send_report(
            tm.achievement_unlocked(
                user.name, result.name, result.description, result.points, tz=tz,
            )
        )


async def check_and_announce(
    bot: AfkBot, user: discord.abc.User,
) -> list[UnlockResult]:
    """Evaluate thresholds for *user* and announce whatever unlocked."""
    unlocked = await run_db(evaluate_achievements, bot.engine, user.id, user.name)
    await announce_unlocks(bot, user, unlocked)
    return unlocked


async def _resolve_user(bot: AfkBot, user_id: int) -> discord.abc.User | None:
    user = bot.get_user(user_id)
    if user is not None:
        return user
    try:
        return await bot.fetch_user(user_id)
    except discord.HTTPException:
        logger.warning("User %s could not be fetched", user_id)
        return None


async def announce_special(bot: AfkBot, special: dict) -> None:
    """Announce a due special achievement and mark it as sent.

    The row is marked even when the user can no longer be resolved so a
    departed member is not retried forever.
    """
    user_id = int(special["user_id"])
    user = await _resolve_user(bot, user_id)
    embed = build_special_embed(
        user_id, _avatar(user), special, dashboard_link=bot.cfg.dashboard_link(user_id),
    )

    if user is not None:
        settings = await run_db(
            get_user_settings, bot.engine, user_id, bot.cfg.default_afk_timeout
        )
        if settings["achievement_notifications"]:
            await send_dm(user, embed=embed)
    await _post(bot, embed)
    await bot.telegram.send_report(
        tm.special_achievement(user.name if user else None, special, tz=bot.cfg.local_tz)
    )

    await run_db(mark_notifications_sent, bot.engine, special["achievement_id"])
    logger.info("Special achievement %s announced", special["achievement_id"])


async def run_best_admin_check(bot: AfkBot) -> UnlockResult | None:
    """Grant and announce ``best_admin`` once its configured moment has passed."""
    cfg = bot.cfg
    if not (cfg.special_user_id and cfg.special_achievement_at):
        return None
    result = await run_db(
        grant_best_admin, bot.engine, cfg.special_user_id, cfg.special_achievement_at,
    )
    if result is None:
        return None

    await bot.telegram.send_report(tm.best_admin_granted(cfg.special_user_id, tz=cfg.local_tz))
    user = await _resolve_user(bot, cfg.special_user_id)
    if user is not None:
        await announce_unlocks(bot, user, [result])
    logger.info("best_admin granted to %s", cfg.special_user_id)
    return result
