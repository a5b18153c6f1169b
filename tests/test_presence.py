"""
tests/test_presence.py — Voice Transitions, Presence Clocks & Timers
======================================================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

from afkbot.engine.presence import PresenceTracker, VoiceTransition, classify_voice_update
from afkbot.engine.timers import InactivityTimers


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _state(channel_id=None, *, mute=False, stream=False):
    channel = SimpleNamespace(id=channel_id) if channel_id is not None else None
    return SimpleNamespace(channel=channel, self_mute=mute, self_stream=stream)


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


# ===========================================================================
# classify_voice_update
# ===========================================================================
class TestClassifyVoiceUpdate:
    def test_join(self):
        assert classify_voice_update(_state(), _state(1)) == [VoiceTransition.JOIN]

    def test_leave(self):
        assert classify_voice_update(_state(1), _state()) == [VoiceTransition.LEAVE]

    def test_move_swallows_mute_flag(self):
        result = classify_voice_update(_state(1), _state(2, mute=True))
        assert result == [VoiceTransition.MOVE]

    def test_mute_and_unmute(self):
        assert classify_voice_update(_state(1), _state(1, mute=True)) == [VoiceTransition.MUTE]
        assert classify_voice_update(_state(1, mute=True), _state(1)) == [VoiceTransition.UNMUTE]

    def test_mute_and_stream_together(self):
        result = classify_voice_update(_state(1), _state(1, mute=True, stream=True))
        assert result == [VoiceTransition.MUTE, VoiceTransition.STREAM_START]

    def test_stream_stop(self):
        assert classify_voice_update(_state(1, stream=True), _state(1)) == [
            VoiceTransition.STREAM_STOP
        ]

    def test_deafen_only_is_nothing(self):
        before = _state(1)
        after = _state(1)
        after.self_deaf = True
        assert classify_voice_update(before, after) == []

    def test_no_channel_either_side(self):
        assert classify_voice_update(_state(), _state()) == []


# ===========================================================================
# PresenceTracker
# ===========================================================================
class TestPresenceTracker:
    def test_afk_clock_settles_once(self):
        tracker = PresenceTracker()
        tracker.open_session(1, "General", T0)
        tracker.start_afk(1, T0)
        assert tracker.settle_afk(1, T0 + timedelta(seconds=90)) == 90
        assert tracker.settle_afk(1, T0 + timedelta(seconds=120)) == 0

    def test_stream_clock(self):
        tracker = PresenceTracker()
        tracker.start_stream(1, T0)
        assert tracker.settle_stream(1, T0 + timedelta(hours=1)) == 3600

    def test_clock_never_negative(self):
        tracker = PresenceTracker()
        tracker.start_afk(1, T0)
        assert tracker.settle_afk(1, T0 - timedelta(seconds=10)) == 0

    def test_original_channel_roundtrip(self):
        tracker = PresenceTracker()
        tracker.open_session(1, "General", T0)
        tracker.remember_original(1, 777)
        assert tracker.get(1).afk_moved is True
        assert tracker.pop_original(1) == 777
        assert tracker.pop_original(1) is None

    def test_close_session_drops_state(self):
        tracker = PresenceTracker()
        tracker.open_session(1, "General", T0)
        final = tracker.close_session(1)
        assert final is not None and final.channel_name == "General"
        assert 1 not in tracker
        assert len(tracker) == 0


# ===========================================================================
# InactivityTimers
# ===========================================================================
class TestInactivityTimers:
    def test_fires_callback_with_user_id(self):
        fired = []

        async def callback(user_id):
            fired.append(user_id)

        async def scenario():
            timers = InactivityTimers()
            timers.start(7, 0.01, callback)
            assert timers.is_active(7)
            await asyncio.sleep(0.05)
            return timers

        timers = run_async(scenario())
        assert fired == [7]
        assert len(timers) == 0

    def test_restart_replaces_pending_timer(self):
        fired = []

        async def callback(user_id):
            fired.append(user_id)

        async def scenario():
            timers = InactivityTimers()
            timers.start(7, 0.02, callback)
            timers.start(7, 0.02, callback)
            assert len(timers) == 1
            await asyncio.sleep(0.06)

        run_async(scenario())
        assert fired == [7]

    def test_cancel(self):
        fired = []

        async def callback(user_id):
            fired.append(user_id)

        async def scenario():
            timers = InactivityTimers()
            timers.start(7, 0.01, callback)
            assert timers.cancel(7) is True
            assert timers.cancel(7) is False
            await asyncio.sleep(0.03)

        run_async(scenario())
        assert fired == []

    def test_callback_error_is_contained(self):
        async def callback(user_id):
            raise RuntimeError("boom")

        async def scenario():
            timers = InactivityTimers()
            task = timers.start(7, 0, callback)
            await task
            return task

        task = run_async(scenario())
        assert task.exception() is None

    def test_cancel_all(self):
        async def callback(user_id):
            pass

        async def scenario():
            timers = InactivityTimers()
            timers.start(1, 10, callback)
            timers.start(2, 10, callback)
            timers.cancel_all()
            return timers

        assert len(run_async(scenario())) == 0
