"""
afkbot.engine.timers — Per-user Inactivity Timers
===================================================

One pending asyncio task per user.  Starting a timer for a user who
already has one replaces it, so activity simply calls :meth:`start`
again (or :meth:`cancel`) and there is never more than one AFK move in
flight for the same member.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

TimerCallback = Callable[[int], Awaitable[None]]


class InactivityTimers:
    """Registry of delayed callbacks keyed by Discord user id."""

    def __init__(self) -> None:
        self._tasks: dict[int, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def start(self, user_id: int, delay: float, callback: TimerCallback) -> asyncio.Task:
        """Schedule ``callback(user_id)`` after *delay* seconds.

        Must be called from inside a running event loop.
        """
        self.cancel(user_id)

        async def _fire() -> None:
            await asyncio.sleep(delay)
            # The timer has fired; drop the handle before running so the
            # callback may start a new timer for the same user.
            if self._tasks.get(user_id) is task:
                del self._tasks[user_id]
            try:
                await callback(user_id)
            except Exception:
                logger.exception("Inactivity callback failed for user %s", user_id)

        task = asyncio.get_running_loop().create_task(
            _fire(), name=f"afk-timer-{user_id}"
        )
        self._tasks[user_id] = task
        logger.debug("Inactivity timer started for %s (%.0fs)", user_id, delay)
        return task

    def cancel(self, user_id: int) -> bool:
        """Cancel the pending timer for *user_id*.  Returns True if one existed."""
        task = self._tasks.pop(user_id, None)
        if task is None:
            return False
        task.cancel()
        logger.debug("Inactivity timer cleared for %s", user_id)
        return True

    def is_active(self, user_id: int) -> bool:
        task = self._tasks.get(user_id)
        return task is not None and not task.done()

    def cancel_all(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
