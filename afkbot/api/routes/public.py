"""
afkbot.api.routes.public — Dashboard endpoints
================================================

Profile, leaderboard and settings endpoints used by the dashboard page.
Unlocks triggered here (settings changes, page visits) are reported to
the admin's Telegram chat; the Discord-side announcement happens the
next time the bot evaluates the user.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from afkbot.api.deps import (
    get_config,
    get_current_user,
    get_engine,
    get_telegram,
    require_user,
)
from afkbot.config import AfkBotConfig
from afkbot.constants import ALLOWED_AFK_TIMEOUTS
from afkbot.database.engine import run_db
from afkbot.services import telegram_messages as tm
from afkbot.services.achievement_service import (
    UnlockResult,
    evaluate_achievements,
    list_special_achievements,
    list_user_achievements,
)
from afkbot.services.link_service import create_link_code, get_linked_chat
from afkbot.services.session_service import list_recent_sessions
from afkbot.services.settings_service import (
    get_user_settings,
    settings_to_api,
    update_user_settings,
)
from afkbot.services.stats_service import get_leaderboard, get_user_stats, increment_stats
from afkbot.services.telegram_service import TelegramClient

logger = logging.getLogger(__name__)
router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SettingsUpdate(BaseModel):
    dm_notifications: bool | None = Field(default=None, alias="dmNotifications")
    afk_timeout: int | None = Field(default=None, alias="afkTimeout")
    achievement_notifications: bool | None = Field(
        default=None, alias="achievementNotifications"
    )


class UnauthorizedAccess(BaseModel):
    attempted_id: str = Field(alias="attemptedId")
    timestamp: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
async def _report_unlocks(
    telegram: TelegramClient, cfg: AfkBotConfig, username: str | None,
    unlocked: list[UnlockResult],
) -> None:
    for result in unlocked:
        await telegram.send_report(
            tm.achievement_unlocked(
                username, result.name, result.description, result.points, tz=cfg.local_tz,
            )
        )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("/config")
def get_public_config(cfg: AfkBotConfig = Depends(get_config)):
    return {
        "admin_user_id": str(cfg.admin_user_id),
        "dashboard_url": cfg.dashboard_url,
    }


@router.get("/stats/{user_id}")
async def get_stats(
    user_id: int,
    engine=Depends(get_engine),
    cfg: AfkBotConfig = Depends(get_config),
):
    """Stats, visible achievements and settings for one profile."""
    stats = await run_db(get_user_stats, engine, user_id)
    achievements = await run_db(list_user_achievements, engine, user_id)
    settings = await run_db(get_user_settings, engine, user_id, cfg.default_afk_timeout)
    return {
        "stats": stats or {},
        "achievements": achievements,
        "settings": settings_to_api(settings),
    }


@router.get("/sessions/{user_id}")
async def recent_sessions(user_id: int, limit: int = 10, engine=Depends(get_engine)):
    """Newest voice sessions first, at most 50."""
    return await run_db(list_recent_sessions, engine, user_id, max(1, min(limit, 50)))


@router.get("/leaderboard")
async def leaderboard(engine=Depends(get_engine)):
    return await run_db(get_leaderboard, engine)


@router.get("/special-achievements")
async def special_achievements(engine=Depends(get_engine)):
    return await run_db(list_special_achievements, engine)


@router.get("/session")
def session_info(
    user: dict | None = Depends(get_current_user),
    cfg: AfkBotConfig = Depends(get_config),
):
    if user is None:
        return {"authenticated": False, "isAdmin": False}
    return {
        "authenticated": True,
        "userId": user["sub"],
        "username": user.get("username"),
        "isAdmin": user["sub"] == str(cfg.admin_user_id),
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
@router.post("/settings/{user_id}")
async def save_settings(
    user_id: int,
    body: SettingsUpdate,
    engine=Depends(get_engine),
    cfg: AfkBotConfig = Depends(get_config),
    telegram: TelegramClient = Depends(get_telegram),
):
    """Apply dashboard settings; an unsupported timeout is ignored."""
    afk_timeout = body.afk_timeout
    if afk_timeout is not None and afk_timeout not in ALLOWED_AFK_TIMEOUTS:
        logger.info("Ignoring unsupported AFK timeout %s for %s", afk_timeout, user_id)
        afk_timeout = None

    change = await run_db(
        update_user_settings,
        engine,
        user_id,
        dm_notifications=body.dm_notifications,
        afk_timeout=afk_timeout,
        achievement_notifications=body.achievement_notifications,
        default_timeout=cfg.default_afk_timeout,
    )

    if change.changed:
        username = change.stats.get("username") if change.stats else None
        await telegram.send_report(
            tm.settings_changed(
                username, user_id, change.settings, source="dashboard", tz=cfg.local_tz,
            )
        )
        unlocked = await run_db(evaluate_achievements, engine, user_id)
        await _report_unlocks(telegram, cfg, username, unlocked)

    return {"success": True, "settingsChanged": change.changed}


@router.post("/visit/{user_id}")
async def record_visit(
    user_id: int,
    engine=Depends(get_engine),
    cfg: AfkBotConfig = Depends(get_config),
    telegram: TelegramClient = Depends(get_telegram),
):
    stats = await run_db(increment_stats, engine, user_id, web_visits=1)
    unlocked = await run_db(evaluate_achievements, engine, user_id)
    await _report_unlocks(telegram, cfg, stats.get("username"), unlocked)
    return {"success": True, "webVisits": stats["web_visits"]}


@router.post("/unauthorized-access")
async def unauthorized_access(
    body: UnauthorizedAccess,
    telegram: TelegramClient = Depends(get_telegram),
):
    logger.warning("Unauthorized dashboard access with id %s", body.attempted_id)
    sent = await telegram.send_report(tm.unauthorized_access(body.attempted_id, body.timestamp))
    return {"success": sent}


@router.post("/telegram/link-code")
async def telegram_link_code(
    user: dict = Depends(require_user),
    engine=Depends(get_engine),
):
    """Fresh one-time code for ``/link`` in the Telegram bot."""
    code = await run_db(create_link_code, engine, int(user["sub"]))
    return {"success": True, "code": code}


@router.get("/telegram/status")
async def telegram_status(
    user: dict = Depends(require_user),
    engine=Depends(get_engine),
):
    chat_id = await run_db(get_linked_chat, engine, int(user["sub"]))
    return {"linked": chat_id is not None}
