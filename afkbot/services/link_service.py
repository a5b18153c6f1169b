"""
afkbot.services.link_service — Telegram ↔ Discord Account Links
=================================================================

The dashboard hands a signed-in user a short numeric code; the user
sends ``/link <code>`` to the Telegram bot, which binds that chat to the
Discord account.  Codes are single-use and expire after
:data:`~afkbot.constants.LINK_CODE_TTL_MINUTES` minutes.
"""

from __future__ import annotations

import enum
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select

from afkbot.constants import LINK_CODE_TTL_MINUTES, as_utc, utcnow
from afkbot.database.engine import get_session
from afkbot.database.models import TelegramLinkCode, TelegramUser, UserStats

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


class LinkError(enum.StrEnum):
    NOT_FOUND = "Code not found"
    ALREADY_USED = "Code already used"
    EXPIRED = "Code expired"


@dataclass(frozen=True, slots=True)
class LinkResult:
    success: bool
    user_id: int | None = None
    username: str | None = None
    error: LinkError | None = None


# ---------------------------------------------------------------------------
# /start registration
# ---------------------------------------------------------------------------
def register_telegram_chat(engine, chat_id: int | str) -> bool:
    """Record that *chat_id* started the bot.  Returns True if it was known before."""
    chat = str(chat_id)
    with get_session(engine) as session:
        existing = session.scalars(
            select(TelegramUser).where(TelegramUser.telegram_chat_id == chat)
        ).all()
        if existing:
            for row in existing:
                row.started_bot = True
            return True
        session.add(TelegramUser(
            user_id=f"telegram_{chat}",
            telegram_chat_id=chat,
            started_bot=True,
            created_at=utcnow(),
        ))
        return False


def get_linked_chat(engine, user_id: int) -> str | None:
    with get_session(engine) as session:
        row = session.get(TelegramUser, str(user_id))
        return row.telegram_chat_id if row else None


# ---------------------------------------------------------------------------
# Link codes
# ---------------------------------------------------------------------------
def create_link_code(engine, user_id: int, now: datetime | None = None) -> str:
    """Issue a fresh code for *user_id*, dropping any unused older ones."""
    now = now or utcnow()
    with get_session(engine) as session:
        session.execute(
            delete(TelegramLinkCode).where(
                TelegramLinkCode.user_id == user_id,
                TelegramLinkCode.used.is_(False),
            )
        )
        while True:
            code = "".join(secrets.choice("0123456789") for _ in range(CODE_LENGTH))
            if session.get(TelegramLinkCode, code) is None:
                break
        session.add(TelegramLinkCode(code=code, user_id=user_id, used=False, created_at=now))
    logger.info("Telegram link code issued for user %s", user_id)
    return code


def consume_link_code(
    engine, code: str, chat_id: int | str, now: datetime | None = None,
) -> LinkResult:
    """Bind *chat_id* to the Discord user that owns *code*."""
    now = now or utcnow()
    chat = str(chat_id)
    with get_session(engine) as session:
        row = session.get(TelegramLinkCode, code.strip())
        if row is None:
            return LinkResult(success=False, error=LinkError.NOT_FOUND)
        if row.used:
            return LinkResult(success=False, error=LinkError.ALREADY_USED)
        if as_utc(now) - as_utc(row.created_at) > timedelta(minutes=LINK_CODE_TTL_MINUTES):
            return LinkResult(success=False, error=LinkError.EXPIRED)

        row.used = True
        link = session.get(TelegramUser, str(row.user_id))
        if link is None:
            session.add(TelegramUser(
                user_id=str(row.user_id),
                telegram_chat_id=chat,
                started_bot=True,
                created_at=now,
            ))
        else:
            link.telegram_chat_id = chat
            link.started_bot = True

        stats = session.get(UserStats, row.user_id)
        username = stats.username if stats else None
        user_id = row.user_id

    logger.info("Telegram chat %s linked to Discord user %s", chat, user_id)
    return LinkResult(success=True, user_id=user_id, username=username)
