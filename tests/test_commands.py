"""
tests/test_commands.py — Text Commands & Message Counters
===========================================================
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from afkbot.bot.cogs.activity import Activity, _mentions
from afkbot.bot.cogs.admin import Admin, parse_user_ref
from afkbot.bot.cogs.commands import UserCommands, count_earned, parse_toggle
from afkbot.services.achievement_service import list_user_achievements, unlock_achievement
from afkbot.services.settings_service import get_user_settings
from afkbot.services.stats_service import get_user_stats, increment_stats


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _author(user_id=1, name="drew") -> MagicMock:
    author = MagicMock()
    author.id = user_id
    author.name = name
    author.display_name = name
    author.bot = False
    author.send = AsyncMock()
    author.display_avatar.url = "https://cdn.test/a.png"
    return author


def _ctx(author=None, invoked_with="msg") -> MagicMock:
    ctx = MagicMock()
    ctx.author = author or _author()
    ctx.invoked_with = invoked_with
    ctx.reply = AsyncMock()
    return ctx


@pytest.fixture
def bot(db_engine, cfg, telegram):
    bot = MagicMock()
    bot.engine = db_engine
    bot.cfg = cfg
    bot.telegram = telegram
    bot.get_channel = lambda cid: None
    return bot


# ===========================================================================
# Parsing helpers
# ===========================================================================
class TestParsing:
    @pytest.mark.parametrize("raw,expected", [
        ("on", True), ("ON ", True), ("вкл", True),
        ("off", False), ("выкл", False),
        ("maybe", None), (None, None),
    ])
    def test_parse_toggle(self, raw, expected):
        assert parse_toggle(raw) is expected

    @pytest.mark.parametrize("raw,expected", [
        ("12345", 12345), ("<@12345>", 12345), ("<@!12345>", 12345),
        ("@drew", None), ("", None), (None, None),
    ])
    def test_parse_user_ref(self, raw, expected):
        assert parse_user_ref(raw) == expected

    def test_count_earned_skips_specials_and_best_admin(self):
        achievements = [
            {"achievement_id": "first_join", "type": "standard"},
            {"achievement_id": "best_admin", "type": "standard"},
            {"achievement_id": "special_1", "type": "special"},
        ]
        assert count_earned(achievements) == 1

    def test_mentions(self):
        assert _mentions(SimpleNamespace(mentions=[SimpleNamespace(id=1)], content=""), 1)
        assert _mentions(SimpleNamespace(mentions=[], content="hey <@!1>"), 1)
        assert not _mentions(SimpleNamespace(mentions=[], content="hey <@2>"), 1)


# ===========================================================================
# Member commands
# ===========================================================================
class TestUserCommands:
    def test_toggle_off_changes_and_reports(self, bot, db_engine, telegram):
        cog = UserCommands(bot)
        ctx = _ctx()
        run_async(cog.msg.callback(cog, ctx, "off"))

        assert get_user_settings(db_engine, 1)["dm_notifications"] is False
        assert "off" in ctx.reply.await_args.args[0]
        assert get_user_stats(db_engine, 1)["settings_changes"] == 1
        # first_settings unlock report + settings report
        assert telegram.send_report.await_count == 2

    def test_repeated_toggle_counts_every_time(self, bot, db_engine, telegram):
        cog = UserCommands(bot)
        ctx = _ctx()
        for _ in range(3):
            run_async(cog.msg.callback(cog, ctx, "on"))

        assert ctx.reply.await_count == 3
        assert get_user_stats(db_engine, 1)["settings_changes"] == 3
        assert get_user_settings(db_engine, 1)["dm_notifications"] is True
        # three settings reports + the first_settings unlock
        assert telegram.send_report.await_count == 4

    def test_toggle_bad_value_shows_usage(self, bot, db_engine):
        cog = UserCommands(bot)
        ctx = _ctx()
        run_async(cog.ach.callback(cog, ctx, "sometimes"))
        assert "Usage" in ctx.reply.await_args.args[0]

    def test_time_accepts_minutes(self, bot, db_engine):
        cog = UserCommands(bot)
        run_async(cog.time_.callback(cog, _ctx(), 30))
        assert get_user_settings(db_engine, 1)["afk_timeout"] == 30

    @pytest.mark.parametrize("minutes", [10, 20, None])
    def test_time_rejects_other_values(self, bot, db_engine, minutes):
        cog = UserCommands(bot)
        ctx = _ctx()
        run_async(cog.time_.callback(cog, ctx, minutes))
        assert "Usage" in ctx.reply.await_args.args[0]
        assert get_user_settings(db_engine, 1)["afk_timeout"] == 15

    def test_achievements_with_value_toggles(self, bot, db_engine):
        cog = UserCommands(bot)
        run_async(cog.achievements.callback(cog, _ctx(), "off"))
        assert get_user_settings(db_engine, 1)["achievement_notifications"] is False

    def test_stats_without_data(self, bot):
        cog = UserCommands(bot)
        ctx = _ctx()
        run_async(cog.stats.callback(cog, ctx))
        assert "No statistics" in ctx.reply.await_args.args[0]

    def test_stats_embed(self, bot, db_engine):
        increment_stats(db_engine, 1, "drew", total_sessions=3)
        cog = UserCommands(bot)
        ctx = _ctx()
        run_async(cog.stats.callback(cog, ctx))
        assert isinstance(ctx.reply.await_args.kwargs["embed"], discord.Embed)

    def test_status_reports(self, bot, telegram):
        cog = UserCommands(bot)
        ctx = _ctx()
        run_async(cog.status.callback(cog, ctx))
        assert isinstance(ctx.reply.await_args.kwargs["embed"], discord.Embed)
        telegram.send_report.assert_awaited_once()


# ===========================================================================
# Admin commands
# ===========================================================================
class TestAdminCommands:
    def test_reset_all(self, bot, db_engine, telegram):
        unlock_achievement(db_engine, 5, "first_join")
        cog = Admin(bot)
        ctx = _ctx(_author(99999, "boss"))
        run_async(cog.reset_all.callback(cog, ctx, "<@5>"))
        assert list_user_achievements(db_engine, 5) == []
        assert get_user_stats(db_engine, 5)["rank_points"] == 0
        telegram.send_report.assert_awaited_once()

    def test_reset_one_unknown_id(self, bot):
        cog = Admin(bot)
        ctx = _ctx(_author(99999, "boss"))
        run_async(cog.reset_one.callback(cog, ctx, "no_such_thing", "5"))
        assert "does not exist" in ctx.reply.await_args.args[0]

    def test_reset_one(self, bot, db_engine):
        unlock_achievement(db_engine, 5, "first_join")
        cog = Admin(bot)
        ctx = _ctx(_author(99999, "boss"))
        run_async(cog.reset_one.callback(cog, ctx, "first_join", "5"))
        assert "Points removed: 10" in ctx.reply.await_args.args[0]

    def test_show_defaults_to_caller(self, bot):
        cog = Admin(bot)
        ctx = _ctx(_author(99999, "boss"))
        run_async(cog.show_achievements.callback(cog, ctx))
        assert "`99999` has no achievements" in ctx.reply.await_args.args[0]

    def test_check_settings_progress(self, bot, db_engine):
        increment_stats(db_engine, 5, "drew", settings_changes=4)
        cog = Admin(bot)
        ctx = _ctx(_author(99999, "boss"))
        run_async(cog.check_settings.callback(cog, ctx, "5"))
        assert "Settings Explorer: **16**" in ctx.reply.await_args.args[0]

    def test_check_settings_defaults_to_caller(self, bot, db_engine, cfg):
        from dataclasses import replace

        bot.cfg = replace(cfg, default_test_user_id=5)
        increment_stats(db_engine, 5, "drew", settings_changes=4)
        increment_stats(db_engine, 99999, "boss", settings_changes=1)
        cog = Admin(bot)
        ctx = _ctx(_author(99999, "boss"))
        run_async(cog.check_settings.callback(cog, ctx))
        assert "`99999`" in ctx.reply.await_args.args[0]
        assert "Settings Explorer: **19**" in ctx.reply.await_args.args[0]


# ===========================================================================
# Activity counters
# ===========================================================================
def _message(content="hello", author=None, reference=None) -> MagicMock:
    message = MagicMock()
    message.author = author or _author()
    message.content = content
    message.reference = reference
    message.reply = AsyncMock()
    return message


class TestActivity:
    def test_message_counted(self, bot, db_engine):
        run_async(Activity(bot).on_message(_message()))
        stats = get_user_stats(db_engine, 1)
        assert stats["messages_sent"] == 1
        assert stats["mentions_responded"] == 0

    def test_bot_messages_ignored(self, bot, db_engine):
        author = _author()
        author.bot = True
        run_async(Activity(bot).on_message(_message(author=author)))
        assert get_user_stats(db_engine, 1) is None

    def test_reply_to_mention_counted(self, bot, db_engine):
        original = MagicMock(spec=discord.Message)
        original.mentions = [SimpleNamespace(id=1)]
        original.content = "ping <@1>"
        reference = SimpleNamespace(message_id=77, resolved=original)

        run_async(Activity(bot).on_message(_message(reference=reference)))

        assert get_user_stats(db_engine, 1)["mentions_responded"] == 1

    def test_reply_to_other_message_not_counted(self, bot, db_engine):
        original = MagicMock(spec=discord.Message)
        original.mentions = []
        original.content = "just chatting"
        reference = SimpleNamespace(message_id=77, resolved=original)

        run_async(Activity(bot).on_message(_message(reference=reference)))

        assert get_user_stats(db_engine, 1)["mentions_responded"] == 0

    def test_bare_prefix_sends_help(self, bot, telegram):
        message = _message(".!.")
        run_async(Activity(bot).on_message(message))
        assert isinstance(message.reply.await_args.kwargs["embed"], discord.Embed)
        assert telegram.send_report.await_count >= 1
