"""
afkbot.engine.presence — Voice Transitions & Presence Clocks
==============================================================

Two pure building blocks used by the voice cog:

* :func:`classify_voice_update` turns a ``(before, after)`` voice-state
  pair into the transitions it represents (join, leave, move, mute,
  unmute, stream start/stop).
* :class:`PresenceTracker` keeps the in-memory clocks for everyone in
  voice: when the session started, when the user entered the AFK or
  stream channel, and which channel to return them to after an AFK move.

No Discord or database I/O happens here, so both are unit-testable with
plain namespaces standing in for ``discord.VoiceState``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any


class VoiceTransition(enum.StrEnum):
    JOIN = "JOIN"
    LEAVE = "LEAVE"
    MOVE = "MOVE"
    MUTE = "MUTE"
    UNMUTE = "UNMUTE"
    STREAM_START = "STREAM_START"
    STREAM_STOP = "STREAM_STOP"


def _channel_id(state: Any) -> int | None:
    channel = getattr(state, "channel", None)
    return channel.id if channel is not None else None


def classify_voice_update(before: Any, after: Any) -> list[VoiceTransition]:
    """Return the transitions between two voice states, in handling order.

    Join, leave and move are exclusive; a channel change swallows any
    mute or stream flag that flipped with it.  Within one channel a mute
    change and a stream change may arrive together.
    """
    before_id = _channel_id(before)
    after_id = _channel_id(after)

    if before_id is None and after_id is not None:
        return [VoiceTransition.JOIN]
    if before_id is not None and after_id is None:
        return [VoiceTransition.LEAVE]
    if before_id is None and after_id is None:
        return []
    if before_id != after_id:
        return [VoiceTransition.MOVE]

    transitions: list[VoiceTransition] = []
    was_muted = bool(getattr(before, "self_mute", False))
    is_muted = bool(getattr(after, "self_mute", False))
    if is_muted and not was_muted:
        transitions.append(VoiceTransition.MUTE)
    elif was_muted and not is_muted:
        transitions.append(VoiceTransition.UNMUTE)

    was_streaming = bool(getattr(before, "self_stream", False))
    is_streaming = bool(getattr(after, "self_stream", False))
    if is_streaming and not was_streaming:
        transitions.append(VoiceTransition.STREAM_START)
    elif was_streaming and not is_streaming:
        transitions.append(VoiceTransition.STREAM_STOP)

    return transitions


# ---------------------------------------------------------------------------
# Presence clocks
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class PresenceState:
    """In-memory state for one member currently in voice."""

    joined_at: datetime | None = None
    channel_name: str | None = None
    afk_since: datetime | None = None
    stream_since: datetime | None = None
    original_channel_id: int | None = None
    afk_moved: bool = False


def _elapsed(start: datetime | None, now: datetime) -> int:
    if start is None:
        return 0
    return max(0, int((now - start).total_seconds()))


class PresenceTracker:
    """Per-user presence clocks keyed by Discord user id."""

    def __init__(self) -> None:
        self._states: dict[int, PresenceState] = {}

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def get(self, user_id: int) -> PresenceState:
        """Return the state for *user_id*, creating an empty one if needed."""
        state = self._states.get(user_id)
        if state is None:
            state = PresenceState()
            self._states[user_id] = state
        return state

    def peek(self, user_id: int) -> PresenceState | None:
        return self._states.get(user_id)

    # -- sessions ----------------------------------------------------------
    def open_session(self, user_id: int, channel_name: str | None, now: datetime) -> PresenceState:
        state = PresenceState(joined_at=now, channel_name=channel_name)
        self._states[user_id] = state
        return state

    def close_session(self, user_id: int) -> PresenceState | None:
        """Drop all clocks for *user_id* and return the final state."""
        return self._states.pop(user_id, None)

    # -- AFK clock ---------------------------------------------------------
    def start_afk(self, user_id: int, now: datetime) -> None:
        self.get(user_id).afk_since = now

    def settle_afk(self, user_id: int, now: datetime) -> int:
        """Stop the AFK clock and return its elapsed whole seconds."""
        state = self._states.get(user_id)
        if state is None or state.afk_since is None:
            return 0
        seconds = _elapsed(state.afk_since, now)
        state.afk_since = None
        return seconds

    # -- stream-channel clock ----------------------------------------------
    def start_stream(self, user_id: int, now: datetime) -> None:
        self.get(user_id).stream_since = now

    def settle_stream(self, user_id: int, now: datetime) -> int:
        state = self._states.get(user_id)
        if state is None or state.stream_since is None:
            return 0
        seconds = _elapsed(state.stream_since, now)
        state.stream_since = None
        return seconds

    # -- AFK return channel ------------------------------------------------
    def remember_original(self, user_id: int, channel_id: int) -> None:
        state = self.get(user_id)
        state.original_channel_id = channel_id
        state.afk_moved = True

    def pop_original(self, user_id: int) -> int | None:
        state = self._states.get(user_id)
        if state is None:
            return None
        channel_id, state.original_channel_id = state.original_channel_id, None
        return channel_id
