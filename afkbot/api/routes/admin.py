"""
afkbot.api.routes.admin — Admin endpoints (JWT-protected)
===========================================================

Every route requires a session belonging to ``admin_user_id``.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from afkbot.api.deps import get_config, get_current_admin, get_engine, get_telegram
from afkbot.config import AfkBotConfig
from afkbot.constants import utcnow
from afkbot.database.engine import run_db
from afkbot.services import telegram_messages as tm
from afkbot.services.achievement_service import create_special_achievement, revoke_achievement
from afkbot.services.stats_service import delete_user, get_user_stats
from afkbot.services.telegram_service import TelegramClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_current_admin)])

BACKUP_DIR = Path("backups")


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AchievementCreate(BaseModel):
    # Required fields are checked by hand so a missing one is a 400
    emoji: str | None = None
    name: str | None = None
    description: str | None = None
    type: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    points: int = 0
    color: str | None = None
    special_date: datetime | None = Field(default=None, alias="specialDate")


class AchievementDelete(BaseModel):
    user_id: str = Field(alias="userId")
    achievement_id: str = Field(alias="achievementId")


class UserDelete(BaseModel):
    user_id: str = Field(alias="userId")


def _user_id(raw: str | None) -> int:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        raise HTTPException(400, "userId must be a Discord user id")


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
@router.post("/create-achievement")
async def create_achievement(
    body: AchievementCreate,
    engine=Depends(get_engine),
    cfg: AfkBotConfig = Depends(get_config),
):
    missing = [
        field for field in ("emoji", "name", "description", "type", "user_id")
        if not getattr(body, field)
    ]
    if missing:
        raise HTTPException(400, "Missing required fields: " + ", ".join(missing))
    if body.type != "special":
        raise HTTPException(400, "Only special achievements can be created")

    special_date = body.special_date
    if special_date is not None and special_date.tzinfo is None:
        special_date = special_date.replace(tzinfo=cfg.local_tz)

    try:
        created = await run_db(
            create_special_achievement,
            engine,
            user_id=_user_id(body.user_id),
            emoji=body.emoji,
            name=body.name,
            description=body.description,
            points=body.points,
            color=body.color,
            special_date=special_date,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))

    # Announced by the bot's periodic task once the date has passed
    return {"success": True, "achievementId": created["achievement_id"]}


@router.post("/delete-achievement")
async def delete_achievement(
    body: AchievementDelete,
    engine=Depends(get_engine),
    cfg: AfkBotConfig = Depends(get_config),
    telegram: TelegramClient = Depends(get_telegram),
):
    user_id = _user_id(body.user_id)
    try:
        result = await run_db(revoke_achievement, engine, user_id, body.achievement_id)
    except LookupError:
        raise HTTPException(404, "Achievement not found for this user")

    stats = await run_db(get_user_stats, engine, user_id)
    await telegram.send_report(
        tm.achievement_deleted(
            stats["username"] if stats else None,
            result.name,
            result.points_removed,
            tz=cfg.local_tz,
        )
    )
    return {
        "success": True,
        "pointsRemoved": result.points_removed,
        "rankPoints": result.rank_points,
    }


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
@router.post("/delete-user")
async def remove_user(
    body: UserDelete,
    engine=Depends(get_engine),
    cfg: AfkBotConfig = Depends(get_config),
    telegram: TelegramClient = Depends(get_telegram),
):
    user_id = _user_id(body.user_id)
    stats = await run_db(get_user_stats, engine, user_id)
    counts = await run_db(delete_user, engine, user_id)
    await telegram.send_report(
        tm.user_deleted(user_id, stats["username"] if stats else None, tz=cfg.local_tz)
    )
    return {"success": True, "deleted": counts}


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
def _backup_sqlite(database: str) -> str:
    BACKUP_DIR.mkdir(parents=True, exist_ok=True)
    filename = f"afkbot-{utcnow().strftime('%Y%m%d-%H%M%S')}.db"
    shutil.copy2(database, BACKUP_DIR / filename)
    return filename


@router.post("/backup-database")
async def backup_database(engine=Depends(get_engine)):
    url = engine.url
    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        raise HTTPException(400, "Backups are only supported for SQLite files")
    filename = await run_db(_backup_sqlite, url.database)
    logger.info("Database backed up to %s", filename)
    return {"success": True, "filename": filename}
