"""
afkbot.services.telegram_messages — Telegram Report Formatters
================================================================

Pure functions that render admin reports and bot replies as Telegram
HTML.  No I/O happens here; callers pass the result to
:meth:`~afkbot.services.telegram_service.TelegramClient.send_report` or
``send_message``.

User-controlled text (usernames, channel names, achievement names) is
always HTML-escaped.
"""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape

from afkbot.constants import as_utc, format_time, timeout_label, utcnow

ON = "✅ on"
OFF = "❌ off"


def _flag(value: bool) -> str:
    return ON if value else OFF


def _stamp(label: str = "Time", at: datetime | None = None, tz: timezone | None = None) -> str:
    return f"📅 {label}: {format_time(at or utcnow(), tz)}"


def _who(username: str | None, user_id: int | str) -> list[str]:
    return [
        f"👤 User: {escape(username or str(user_id))}",
        f"🆔 ID: <code>{user_id}</code>",
    ]


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
def achievement_unlocked(
    username: str | None, name: str, description: str, points: int,
    *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "🏆 <b>New achievement!</b>",
        f"👤 User: {escape(username or 'unknown')}",
        f"🎯 Achievement: {escape(name)}",
        f"📝 Description: {escape(description)}",
        f"⭐ Points: +{points}",
        _stamp(tz=tz),
    ])


def special_achievement(
    username: str | None,
    special: dict,
    *,
    now: datetime | None = None,
    tz: timezone | None = None,
) -> str:
    """Report a special achievement; *special* is a ``_special_dict`` row."""
    lines = [
        "🏆 <b>New special achievement!</b>",
        f"👤 User: {escape(username or special['user_id'])}",
        f"🎯 Achievement: {escape(special['emoji'])} {escape(special['name'])}",
        f"📝 Description: {escape(special['description'])}",
    ]
    if special.get("points"):
        lines.append(f"⭐ Points: +{special['points']}")
    if special.get("color"):
        lines.append(f"🎨 Color: {escape(special['color'])}")
    if special.get("special_date"):
        when = as_utc(datetime.fromisoformat(special["special_date"]))
        label = "⏰ Scheduled for" if when > as_utc(now or utcnow()) else "✅ Available since"
        lines.append(f"{label}: {format_time(when, tz)}")
    lines.append(_stamp("Created", tz=tz))
    return "\n".join(lines)


def best_admin_granted(user_id: int, *, tz: timezone | None = None) -> str:
    return "\n".join([
        "👑 <b>Special achievement granted!</b>",
        "🎯 Achievement: Best admin",
        f"👤 User ID: <code>{user_id}</code>",
        _stamp(tz=tz),
    ])


def achievement_deleted(
    username: str | None, name: str, points: int, *, tz: timezone | None = None,
) -> str:
    lines = [
        "🗑️ <b>Achievement deleted!</b>",
        f"👤 User: {escape(username or 'unknown')}",
        f"🎯 Achievement: {escape(name)}",
        _stamp(tz=tz),
    ]
    if points > 0:
        lines.append(f"⭐ Points removed: -{points}")
    lines.append("✅ The user can earn it again")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Settings / admin
# ---------------------------------------------------------------------------
def settings_changed(
    username: str | None,
    user_id: int,
    settings: dict,
    *,
    source: str = "Discord",
    tz: timezone | None = None,
) -> str:
    """*settings* uses the snake_case keys of ``user_settings``."""
    return "\n".join([
        f"🔔 <b>User changed settings ({escape(source)})</b>",
        *_who(username, user_id),
        f"📩 DM notifications: {_flag(settings['dm_notifications'])}",
        f"⏱️ AFK timer: {timeout_label(settings['afk_timeout'])}",
        f"🏆 Achievement notifications: {_flag(settings['achievement_notifications'])}",
        _stamp(tz=tz),
    ])


def status_requested(
    username: str | None, user_id: int, settings: dict, *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "📊 <b>User checked their settings</b>",
        *_who(username, user_id),
        f"⏱️ Current timer: {timeout_label(settings['afk_timeout'])}",
        f"📩 DM notifications: {_flag(settings['dm_notifications'])}",
        _stamp(tz=tz),
    ])


def help_requested(username: str | None, user_id: int, *, tz: timezone | None = None) -> str:
    return "\n".join([
        "❓ <b>User asked for help</b>",
        *_who(username, user_id),
        _stamp(tz=tz),
    ])


def user_deleted(user_id: int, username: str | None, *, tz: timezone | None = None) -> str:
    return "\n".join([
        "🗑️ <b>USER DELETED FROM THE DATABASE</b>",
        "",
        f"ID: <code>{user_id}</code>",
        f"Name: {escape(username or 'unknown')}",
        _stamp(tz=tz),
    ])


def unauthorized_access(attempted_id: str, timestamp: str) -> str:
    return "\n".join([
        "⚠️ <b>UNAUTHORIZED ACCESS ATTEMPT!</b>",
        "",
        f"Someone opened the dashboard with the admin id: <code>{escape(attempted_id)}</code>",
        f"Time: {escape(timestamp)}",
    ])


def bot_status(started: bool, details: str = "", *, tz: timezone | None = None) -> str:
    header = "🚀 <b>AFK Bot started</b>" if started else "🛑 <b>AFK Bot stopped</b>"
    lines = [header]
    if details:
        lines.append(escape(details))
    lines.append(_stamp(tz=tz))
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Voice
# ---------------------------------------------------------------------------
def voice_joined(
    username: str | None, user_id: int, channel: str, *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "🎤 <b>User joined a voice channel</b>",
        *_who(username, user_id),
        f"📺 Channel: {escape(channel)}",
        _stamp("Joined at", tz=tz),
    ])


def voice_left(
    username: str | None, user_id: int, channel: str, duration: str,
    *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "👋 <b>User left a voice channel</b>",
        *_who(username, user_id),
        f"📺 Channel: {escape(channel)}",
        f"⏱️ Session: {duration}",
        _stamp(tz=tz),
    ])


def voice_moved(
    username: str | None, user_id: int, source: str, target: str,
    *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "🔄 <b>User moved between channels</b>",
        *_who(username, user_id),
        f"📺 From: {escape(source)}",
        f"📺 To: {escape(target)}",
        _stamp(tz=tz),
    ])


def voice_muted(
    username: str | None, user_id: int, channel: str, timeout: int, dm_enabled: bool,
    *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "🎙️❌ <b>User muted their microphone</b>",
        *_who(username, user_id),
        f"📺 Channel: {escape(channel)}",
        f"⏱️ Timer started: {timeout_label(timeout)}",
        f"📩 DM notifications: {_flag(dm_enabled)}",
        _stamp(tz=tz),
    ])


def voice_unmuted(
    username: str | None, user_id: int, channel: str, *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "🎙️✅ <b>User unmuted their microphone</b>",
        *_who(username, user_id),
        f"📺 Channel: {escape(channel)}",
        "🛑 Timer stopped",
        _stamp(tz=tz),
    ])


def afk_moved(
    username: str | None, user_id: int, source: str, target: str, timeout: int,
    *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "😴 <b>User moved to AFK</b>",
        *_who(username, user_id),
        f"📺 From: {escape(source)}",
        f"📺 To: {escape(target)}",
        f"⏱️ Muted for: {timeout_label(timeout)}",
        _stamp(tz=tz),
    ])


def afk_returned(
    username: str | None, source: str, target: str, *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "↩️ <b>User returned from AFK</b>",
        f"👤 User: {escape(username or 'unknown')}",
        f"📺 From: {escape(source)}",
        f"📺 To: {escape(target)}",
        _stamp(tz=tz),
    ])


def stream_changed(
    username: str | None, user_id: int, channel: str, started: bool,
    *, tz: timezone | None = None,
) -> str:
    header = (
        "📡 <b>User started streaming</b>" if started
        else "📡❌ <b>User stopped streaming</b>"
    )
    return "\n".join([
        header,
        *_who(username, user_id),
        f"📺 Channel: {escape(channel)}",
        _stamp(tz=tz),
    ])


# ---------------------------------------------------------------------------
# Telegram bot
# ---------------------------------------------------------------------------
def welcome(name: str, returning: bool) -> str:
    if returning:
        head = f"👋 <b>Welcome back, {escape(name)}!</b>\n\n✅ The bot is active again."
    else:
        head = f"👋 <b>Hi, {escape(name)}!</b>\n\n✅ You have activated the bot."
    return (
        f"{head}\n\n"
        "🔗 To link your Discord account:\n"
        "1️⃣ Open the bot dashboard\n"
        "2️⃣ Go to settings and press \"Link Telegram\"\n"
        "3️⃣ Send <code>/link CODE</code> here\n\n"
        "Use the buttons below to see who is in voice or online. 🔔"
    )


def new_telegram_user(
    telegram_name: str, telegram_id: int, chat_id: int, *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "🆕 <b>New user pressed /start</b>",
        "",
        f"👤 Telegram: @{escape(telegram_name)}",
        f"🆔 Telegram ID: <code>{telegram_id}</code>",
        f"💬 Chat ID: <code>{chat_id}</code>",
        _stamp(tz=tz),
    ])


def account_linked_reply(discord_name: str | None) -> str:
    return (
        "✅ <b>Linked!</b>\n\n"
        "Your Telegram account is now linked to Discord account "
        f"<b>{escape(discord_name or 'Discord user')}</b>.\n\n"
        "🎉 Enjoy!"
    )


def account_linked(
    telegram_name: str, chat_id: int, discord_name: str | None, user_id: int, code: str,
    *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "🔗 <b>Accounts linked with a code</b>",
        "",
        f"👤 Telegram: @{escape(telegram_name)}",
        f"💬 Chat ID: <code>{chat_id}</code>",
        f"🎮 Discord: {escape(discord_name or 'unknown')}",
        f"🆔 Discord ID: <code>{user_id}</code>",
        f"🔢 Code: <code>{escape(code)}</code>",
        _stamp(tz=tz),
    ])


LINK_ERROR_HINTS = {
    "Code not found": "Wrong code. Check it and try again.",
    "Code already used": "This code was already used. Generate a new one on the dashboard.",
    "Code expired": "The code has expired (15 minutes). Generate a new one on the dashboard.",
}


def link_failed(error: str) -> str:
    return (
        "❌ Could not link the account\n\n"
        f"{escape(LINK_ERROR_HINTS.get(error, error))}\n\n"
        "💡 To get a new code open the dashboard, go to settings, press "
        "\"Link Telegram\" and send <code>/link XXXXXX</code>."
    )


def voice_occupancy(channels: list[tuple[str, list[str]]]) -> str:
    """Render ``[(channel_name, [member names])]`` for the "who's in voice" button."""
    if not channels:
        return "🔇 Nobody is in voice right now."
    total = sum(len(members) for _, members in channels)
    lines = [f"🎤 <b>In voice: {total}</b>"]
    for name, members in channels:
        lines.append("")
        lines.append(f"📺 <b>{escape(name)}</b> ({len(members)})")
        lines.extend(f"• {escape(m)}" for m in members)
    return "\n".join(lines)


def online_members(online: list[str], total: int) -> str:
    if not online:
        return f"😴 Nobody is online (0/{total})."
    lines = [f"👥 <b>Online: {len(online)}/{total}</b>", ""]
    lines.extend(f"• {escape(name)}" for name in online)
    return "\n".join(lines)


def achievements_reset(
    admin_name: str, user_id: int, deleted: int, *, tz: timezone | None = None,
) -> str:
    return "\n".join([
        "🗑️ <b>Achievements reset by the admin</b>",
        f"👤 Admin: {escape(admin_name)}",
        f"🎯 User ID: <code>{user_id}</code>",
        f"📊 Achievements deleted: {deleted}",
        _stamp(tz=tz),
    ])
