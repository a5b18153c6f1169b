"""
afkbot.services.telegram_service — Telegram Bot API Client
============================================================

Thin async wrapper over ``https://api.telegram.org/bot<TOKEN>/<method>``
built on httpx.  Used for two things:

* admin reports — every notable bot event is posted (HTML formatted) to
  ``TELEGRAM_CHAT_ID``;
* the interactive Telegram bot — long-polling ``getUpdates`` and
  replying with ``sendMessage``.

Delivery is best-effort: HTTP failures are logged and swallowed so a
Telegram outage never disturbs Discord handling.  Without a token the
client is disabled and every call is a no-op.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"

# Telegram rejects messages above 4096 characters
MAX_MESSAGE_LENGTH = 4096


class TelegramClient:
    """Async Telegram Bot API client.

    Parameters
    ----------
    token:
        Bot token from @BotFather.  ``None`` disables the client.
    admin_chat_id:
        Chat that receives :meth:`send_report` messages.
    """

    def __init__(
        self,
        token: str | None,
        admin_chat_id: str | None = None,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token or None
        self.admin_chat_id = admin_chat_id or None
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_env(cls) -> TelegramClient:
        client = cls(os.getenv("TELEGRAM_BOT_TOKEN"), os.getenv("TELEGRAM_CHAT_ID"))
        if not client.enabled:
            logger.warning("TELEGRAM_BOT_TOKEN is not set — Telegram reports disabled")
        return client

    @property
    def enabled(self) -> bool:
        return self.token is not None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{TELEGRAM_API}/bot{self.token}",
                timeout=self._timeout,
                transport=self._transport or httpx.AsyncHTTPTransport(retries=1),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -----------------------------------------------------------------------
    # Raw call
    # -----------------------------------------------------------------------
    async def call(
        self, method: str, payload: dict[str, Any] | None = None, *, timeout: float | None = None,
    ) -> Any:
        """POST a Bot API method and return its ``result`` field.

        Raises
        ------
        httpx.HTTPError
            On transport errors or a non-2xx response.
        RuntimeError
            When Telegram answers ``ok: false``.
        """
        kwargs: dict[str, Any] = {"json": payload or {}}
        if timeout is not None:
            kwargs["timeout"] = timeout
        resp = await self._http().post(f"/{method}", **kwargs)
        resp.raise_for_status()
        body = resp.json()
        if not body.get("ok"):
            raise RuntimeError(f"Telegram {method} failed: {body.get('description')}")
        return body.get("result")

    # -----------------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------------
    async def send_message(
        self,
        chat_id: int | str,
        text: str,
        *,
        reply_markup: dict | None = None,
        parse_mode: str | None = "HTML",
    ) -> bool:
        """Send *text* to *chat_id*.  Returns False (and logs) on failure."""
        if not self.enabled:
            return False
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text[:MAX_MESSAGE_LENGTH],
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        try:
            await self.call("sendMessage", payload)
            return True
        except (httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Telegram sendMessage to %s failed: %s", chat_id, exc)
            return False

    async def send_report(self, text: str) -> bool:
        """Post an admin report to the configured chat."""
        if not self.admin_chat_id:
            logger.debug("Telegram report skipped (no chat id): %s", text.splitlines()[0])
            return False
        return await self.send_message(self.admin_chat_id, text)

    # -----------------------------------------------------------------------
    # Long polling
    # -----------------------------------------------------------------------
    async def get_updates(self, offset: int | None = None, poll_timeout: int = 30) -> list[dict]:
        """Long-poll for new updates.  Errors propagate to the polling loop."""
        payload: dict[str, Any] = {
            "timeout": poll_timeout,
            "allowed_updates": ["message"],
        }
        if offset is not None:
            payload["offset"] = offset
        result = await self.call("getUpdates", payload, timeout=poll_timeout + 10)
        return result or []
