"""
afkbot.services.throttle — Per-channel post throttle
======================================================

Keeps achievement posts from flooding a channel when several members
unlock at once (e.g. right after a restart).  At most ``limit`` posts
per channel per ``window`` seconds go out immediately; the rest wait in
a FIFO that a background task drains every ``drain_interval`` seconds.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict, deque

import discord
from discord.abc import Messageable

logger = logging.getLogger(__name__)


class AnnouncementThrottle:
    """Sliding-window limiter plus overflow queue for channel embeds."""

    def __init__(
        self, limit: int = 3, window: float = 60.0, drain_interval: float = 10.0,
    ) -> None:
        self.limit = limit
        self.window = window
        self.drain_interval = drain_interval
        self._sent: dict[int, deque[float]] = defaultdict(deque)
        self._backlog: dict[int, deque[tuple[Messageable, discord.Embed]]] = defaultdict(deque)
        self._task: asyncio.Task | None = None

    def pending(self, channel_id: int | None = None) -> int:
        if channel_id is not None:
            return len(self._backlog.get(channel_id, ()))
        return sum(len(q) for q in self._backlog.values())

    def try_acquire(self, channel_id: int, now: float | None = None) -> bool:
        """Claim a slot in *channel_id*'s window; False means the window is full."""
        now = time.monotonic() if now is None else now
        sent = self._sent[channel_id]
        while sent and sent[0] <= now - self.window:
            sent.popleft()
        if len(sent) >= self.limit:
            return False
        sent.append(now)
        return True

    def enqueue(self, channel: Messageable, embed: discord.Embed) -> None:
        channel_id = getattr(channel, "id", 0)
        self._backlog[channel_id].append((channel, embed))
        logger.debug(
            "Channel %s throttled, %d embed(s) queued", channel_id, len(self._backlog[channel_id])
        )

    async def submit(self, channel: Messageable, embed: discord.Embed) -> bool:
        """Send now if the window allows, otherwise queue.  Returns True if sent now."""
        channel_id = getattr(channel, "id", 0)
        # Queued posts keep their order ahead of new ones
        if self._backlog.get(channel_id) or not self.try_acquire(channel_id):
            self.enqueue(channel, embed)
            return False
        await self._deliver(channel_id, channel, embed)
        return True

    async def drain_once(self) -> int:
        """Send queued embeds whose channel window has reopened.  Returns the count."""
        delivered = 0
        for channel_id, backlog in list(self._backlog.items()):
            while backlog and self.try_acquire(channel_id):
                channel, embed = backlog.popleft()
                await self._deliver(channel_id, channel, embed)
                delivered += 1
            if not backlog:
                del self._backlog[channel_id]
        return delivered

    @staticmethod
    async def _deliver(channel_id: int, channel: Messageable, embed: discord.Embed) -> None:
        try:
            await channel.send(embed=embed)
        except discord.HTTPException:
            logger.exception("Failed to post embed to channel %s", channel_id)

    # -----------------------------------------------------------------------
    # Background drain
    # -----------------------------------------------------------------------
    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._task is not None:
            return

        async def _drain_forever() -> None:
            while True:
                await asyncio.sleep(self.drain_interval)
                try:
                    await self.drain_once()
                except Exception:
                    logger.exception("Announcement drain failed")

        self._task = loop.create_task(_drain_forever(), name="announcement-drain")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
