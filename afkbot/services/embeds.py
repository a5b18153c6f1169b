"""
afkbot.services.embeds — Discord embed builders
=================================================

Embeds for achievement posts, DMs and the text-command replies.  Cogs
and the announcement service pass plain dicts and never touch layout.
"""

from __future__ import annotations

import discord

from afkbot.constants import format_duration, timeout_label


def _color(hex_value: str | None, fallback: discord.Color) -> discord.Color:
    try:
        return discord.Color(int((hex_value or "").lstrip("#"), 16))
    except ValueError:
        return fallback


def build_achievement_embed(
    user_id: int,
    avatar_url: str | None,
    name: str,
    description: str,
    points: int,
    rank_points: int | None = None,
    dashboard_link: str | None = None,
) -> discord.Embed:
    """Build an achievement celebration embed with @mention."""
    embed = discord.Embed(
        title="\U0001f3c6 Achievement Unlocked!",
        description=f"<@{user_id}> earned **{name}**\n\n*{description}*",
        color=discord.Color.gold(),
    )
    embed.add_field(name="Points", value=f"+{points}", inline=True)
    if rank_points is not None:
        embed.add_field(name="Rank points", value=str(rank_points), inline=True)
    if dashboard_link:
        embed.add_field(name="Dashboard", value=f"[Open profile]({dashboard_link})", inline=False)
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_special_embed(
    user_id: int,
    avatar_url: str | None,
    special: dict,
    dashboard_link: str | None = None,
) -> discord.Embed:
    """Build the embed for an admin-created special achievement."""
    embed = discord.Embed(
        title="✨ Special Achievement!",
        description=(
            f"<@{user_id}> received {special['emoji']} **{special['name']}**\n\n"
            f"*{special['description']}*"
        ),
        color=_color(special.get("color"), discord.Color.gold()),
    )
    if special.get("points"):
        embed.add_field(name="Points", value=f"+{special['points']}", inline=True)
    if dashboard_link:
        embed.add_field(name="Dashboard", value=f"[Open profile]({dashboard_link})", inline=False)
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_stats_embed(
    display_name: str,
    avatar_url: str | None,
    stats: dict,
    earned: int,
    total: int,
    dashboard_link: str | None = None,
) -> discord.Embed:
    """Personal statistics card for ``.!. stats``."""
    embed = discord.Embed(
        title=f"\U0001f4ca Stats for {display_name}",
        color=discord.Color.blurple(),
    )
    embed.add_field(name="⭐ Rank points", value=str(stats.get("rank_points", 0)), inline=True)
    embed.add_field(name="\U0001f3c6 Achievements", value=f"{earned} / {total}", inline=True)
    embed.add_field(name="\U0001f3a4 Sessions", value=str(stats.get("total_sessions", 0)), inline=True)
    embed.add_field(
        name="⏱️ Voice time",
        value=format_duration(stats.get("total_voice_time")),
        inline=True,
    )
    embed.add_field(
        name="⏰ Longest session",
        value=format_duration(stats.get("longest_session")),
        inline=True,
    )
    embed.add_field(
        name="\U0001f634 AFK moves",
        value=f"{stats.get('total_afk_moves', 0)} ({format_duration(stats.get('total_afk_time'))})",
        inline=True,
    )
    embed.add_field(name="\U0001f4ac Messages", value=str(stats.get("messages_sent", 0)), inline=True)
    embed.add_field(
        name="\U0001f507 Mute toggles", value=str(stats.get("total_mute_toggles", 0)), inline=True,
    )
    embed.add_field(
        name="\U0001f4fa Stream channel",
        value=format_duration(stats.get("stream_channel_time")),
        inline=True,
    )
    if dashboard_link:
        embed.add_field(name="Dashboard", value=f"[Open profile]({dashboard_link})", inline=False)
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_achievements_list_embed(
    display_name: str,
    achievements: list[dict],
    total: int,
    rank_points: int = 0,
) -> discord.Embed:
    """List the achievements a member holds, newest first."""
    embed = discord.Embed(
        title=f"\U0001f3c6 Achievements of {display_name}",
        color=discord.Color.gold(),
    )
    if not achievements:
        embed.description = "No achievements yet. Join voice and chat to earn some!"
        return embed

    lines = []
    for ach in achievements:
        prefix = f"{ach['emoji']} " if ach.get("emoji") else ""
        lines.append(f"{prefix}**{ach['name']}** (+{ach.get('points', 0)})")
    # Embed descriptions are capped at 4096 characters
    embed.description = "\n".join(lines)[:4000]
    embed.set_footer(text=f"{len(achievements)} / {total} unlocked • {rank_points} rank points")
    return embed


def build_status_embed(
    user_id: int,
    settings: dict,
    prefix: str,
    dashboard_link: str | None = None,
) -> discord.Embed:
    """Current bot settings for ``.!. status``."""
    dm = "**on** ✅" if settings["dm_notifications"] else "**off** ❌"
    ach = "**on** ✅" if settings["achievement_notifications"] else "**off** ❌"
    embed = discord.Embed(
        title="\U0001f514 Your AFK bot settings",
        description=(
            f"DM notifications: {dm}\n"
            f"Achievement notifications: {ach}\n"
            f"Time until AFK: **{timeout_label(settings['afk_timeout'])}** ⏰"
        ),
        color=discord.Color.blurple(),
    )
    embed.add_field(
        name="Change them with",
        value=(
            f"`{prefix} msg on/off` DM notifications\n"
            f"`{prefix} ach on/off` achievement notifications\n"
            f"`{prefix} time 15/30/45` time until AFK"
        ),
        inline=False,
    )
    embed.add_field(name="Your ID", value=f"`{user_id}`", inline=True)
    if dashboard_link:
        embed.add_field(name="Dashboard", value=f"[Open]({dashboard_link})", inline=True)
    return embed


def build_help_embed(
    user_id: int,
    prefix: str,
    dashboard_link: str | None = None,
) -> discord.Embed:
    """Command reference shown for a bare prefix."""
    embed = discord.Embed(
        title="\U0001f916 AFK bot commands",
        description=(
            f"`{prefix} msg on/off` or `{prefix} лс вкл/выкл`: DM notifications\n"
            f"`{prefix} time 15/30/45` or `{prefix} время 15/30/45`: time until AFK\n"
            f"`{prefix} ach on/off` or `{prefix} достижения вкл/выкл`: achievement notifications\n"
            f"`{prefix} status` or `{prefix} статус`: your settings\n"
            f"`{prefix} stats` or `{prefix} статистика`: your statistics\n"
            f"`{prefix} achievements` or `{prefix} достижения`: your achievements\n"
            f"`{prefix}`: this help"
        ),
        color=discord.Color.blurple(),
    )
    embed.add_field(
        name="How it works",
        value=(
            "• Muting your microphone starts a timer\n"
            "• When it runs out you are moved to the AFK channel\n"
            "• Unmuting brings you back to where you were\n"
            "• Earn rank points and unlock achievements!"
        ),
        inline=False,
    )
    embed.add_field(name="Your ID", value=f"`{user_id}`", inline=True)
    if dashboard_link:
        embed.add_field(name="Dashboard", value=f"[Open]({dashboard_link})", inline=True)
    return embed
