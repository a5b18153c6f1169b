"""
afkbot.services.achievement_service — Achievement Awarding
============================================================

Shared service module callable by both the bot and the dashboard.
Owns every write to ``user_achievements`` and ``special_achievements``:

* threshold evaluation + unlocking (with restore of soft-deleted rows),
* admin revocation (soft delete) and hard resets,
* admin-created special achievements and their delayed notifications,
* the scheduled ``best_admin`` grant.

Rank points always move together with the achievement row in the same
transaction and never drop below zero.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from afkbot.constants import BEST_ADMIN_ID, as_utc, utcnow
from afkbot.database.engine import get_session
from afkbot.database.models import SpecialAchievement, UserAchievement
from afkbot.engine.achievements import (
    AchievementContext,
    check_achievements,
    get_achievement,
)
from afkbot.services.stats_service import ensure_user, stats_to_dict

logger = logging.getLogger(__name__)

DEFAULT_SPECIAL_COLOR = "#FFD700"


@dataclass(frozen=True, slots=True)
class UnlockResult:
    """A freshly unlocked (or restored) achievement, ready to announce."""

    user_id: int
    achievement_id: str
    name: str
    description: str
    points: int
    rank_points: int
    restored: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def get_live_achievement_ids(session: Session, user_id: int) -> set[str]:
    """Achievement ids the user currently holds (soft-deleted rows excluded)."""
    rows = session.scalars(
        select(UserAchievement.achievement_id).where(
            UserAchievement.user_id == user_id,
            UserAchievement.manually_deleted.is_(False),
        )
    ).all()
    return set(rows)


def _unlock_in_session(
    session: Session,
    user_id: int,
    achievement_id: str,
    points: int,
    now: datetime,
) -> tuple[bool, int] | None:
    """Insert or restore the row and credit points.

    Returns ``(restored, rank_points)`` or None when the user already
    holds a live copy.
    """
    row = session.scalar(
        select(UserAchievement).where(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_id == achievement_id,
        )
    )
    restored = False
    if row is not None:
        if not row.manually_deleted:
            return None
        row.manually_deleted = False
        row.unlocked_at = now
        restored = True
    else:
        session.add(UserAchievement(
            user_id=user_id,
            achievement_id=achievement_id,
            unlocked_at=now,
            manually_deleted=False,
        ))

    stats = ensure_user(session, user_id)
    stats.rank_points = max(0, (stats.rank_points or 0) + points)
    return restored, stats.rank_points


def _special_dict(row: SpecialAchievement) -> dict:
    return {
        "achievement_id": row.achievement_id,
        "user_id": str(row.user_id),
        "emoji": row.emoji,
        "name": row.name,
        "description": row.description,
        "points": row.points or 0,
        "color": row.color or DEFAULT_SPECIAL_COLOR,
        "type": "special",
        "special_date": row.special_date.isoformat() if row.special_date else None,
        "notifications_sent": bool(row.notifications_sent),
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


# ---------------------------------------------------------------------------
# Unlocking
# ---------------------------------------------------------------------------
def unlock_achievement(
    engine,
    user_id: int,
    achievement_id: str,
    username: str | None = None,
    now: datetime | None = None,
) -> UnlockResult | None:
    """Unlock a catalogue achievement for *user_id*.

    Returns None when the user already holds it.

    Raises
    ------
    ValueError
        If *achievement_id* is not in the catalogue.
    """
    definition = get_achievement(achievement_id)
    if definition is None:
        raise ValueError(f"Unknown achievement: {achievement_id}")

    now = now or utcnow()
    with get_session(engine) as session:
        ensure_user(session, user_id, username)
        outcome = _unlock_in_session(session, user_id, achievement_id, definition.points, now)
        if outcome is None:
            return None
        restored, rank_points = outcome

    logger.info(
        "Achievement %s %s for user %s (+%d)",
        achievement_id, "restored" if restored else "unlocked", user_id, definition.points,
    )
    return UnlockResult(
        user_id=user_id,
        achievement_id=achievement_id,
        name=definition.name,
        description=definition.description,
        points=definition.points,
        rank_points=rank_points,
        restored=restored,
    )


def evaluate_achievements(
    engine,
    user_id: int,
    username: str | None = None,
    now: datetime | None = None,
) -> list[UnlockResult]:
    """Run the threshold checks against current stats and unlock what passes."""
    now = now or utcnow()
    unlocked: list[UnlockResult] = []

    with get_session(engine) as session:
        stats = ensure_user(session, user_id, username)
        ctx = AchievementContext(stats=stats_to_dict(stats))
        newly = check_achievements(ctx, get_live_achievement_ids(session, user_id))

        for achievement_id in newly:
            definition = get_achievement(achievement_id)
            outcome = _unlock_in_session(session, user_id, achievement_id, definition.points, now)
            if outcome is None:
                continue
            restored, rank_points = outcome
            unlocked.append(UnlockResult(
                user_id=user_id,
                achievement_id=achievement_id,
                name=definition.name,
                description=definition.description,
                points=definition.points,
                rank_points=rank_points,
                restored=restored,
            ))

    for result in unlocked:
        logger.info(
            "Achievement %s unlocked for user %s (+%d)",
            result.achievement_id, user_id, result.points,
        )
    return unlocked


def grant_best_admin(
    engine,
    user_id: int,
    scheduled_at: datetime,
    now: datetime | None = None,
) -> UnlockResult | None:
    """Grant ``best_admin`` once *scheduled_at* has passed.

    Any existing row, even one an admin soft-deleted, blocks the grant so
    the periodic check never re-awards it.
    """
    now = now or utcnow()
    if as_utc(now) < as_utc(scheduled_at):
        return None

    with get_session(engine) as session:
        existing = session.scalar(
            select(UserAchievement.id).where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_id == BEST_ADMIN_ID,
            )
        )
        if existing is not None:
            return None

    return unlock_achievement(engine, user_id, BEST_ADMIN_ID, now=now)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_user_achievements(
    engine, user_id: int, now: datetime | None = None,
) -> list[dict]:
    """Live achievements of *user_id*, newest first, with display metadata.

    Special achievements scheduled for the future stay hidden until due.
    """
    now = now or utcnow()
    with get_session(engine) as session:
        rows = session.scalars(
            select(UserAchievement)
            .where(
                UserAchievement.user_id == user_id,
                UserAchievement.manually_deleted.is_(False),
            )
            .order_by(UserAchievement.unlocked_at.desc())
        ).all()
        specials = {
            s.achievement_id: s
            for s in session.scalars(
                select(SpecialAchievement).where(SpecialAchievement.user_id == user_id)
            ).all()
        }

        result: list[dict] = []
        for row in rows:
            entry = {
                "achievement_id": row.achievement_id,
                "unlocked_at": row.unlocked_at.isoformat() if row.unlocked_at else None,
            }
            special = specials.get(row.achievement_id)
            definition = get_achievement(row.achievement_id)
            if special is not None:
                if special.special_date and as_utc(special.special_date) > as_utc(now):
                    continue
                entry.update(
                    name=special.name,
                    description=special.description,
                    points=special.points or 0,
                    emoji=special.emoji,
                    color=special.color or DEFAULT_SPECIAL_COLOR,
                    type="special",
                )
            elif definition is not None:
                entry.update(
                    name=definition.name,
                    description=definition.description,
                    points=definition.points,
                    type="standard",
                )
            else:
                # Orphaned row (catalogue entry removed); still listed by id
                entry.update(name=row.achievement_id, description="", points=0, type="unknown")
            result.append(entry)
        return result


def list_special_achievements(engine) -> list[dict]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(SpecialAchievement).order_by(SpecialAchievement.created_at.desc())
        ).all()
        return [_special_dict(r) for r in rows]


# ---------------------------------------------------------------------------
# Admin mutations
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RevokeResult:
    achievement_id: str
    name: str
    points_removed: int
    rank_points: int


def revoke_achievement(engine, user_id: int, achievement_id: str) -> RevokeResult:
    """Soft-delete an achievement so the user can earn it again.

    Special achievements lose their ``special_achievements`` row as well.

    Raises
    ------
    LookupError
        If the user holds no live copy of *achievement_id*.
    """
    with get_session(engine) as session:
        row = session.scalar(
            select(UserAchievement).where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_id == achievement_id,
                UserAchievement.manually_deleted.is_(False),
            )
        )
        if row is None:
            raise LookupError(f"User {user_id} does not hold {achievement_id}")

        definition = get_achievement(achievement_id)
        special = session.get(SpecialAchievement, achievement_id)
        if definition is not None:
            name, points = definition.name, definition.points
        elif special is not None:
            name, points = special.name, special.points or 0
        else:
            name, points = achievement_id, 0

        row.manually_deleted = True
        if special is not None:
            session.delete(special)

        stats = ensure_user(session, user_id)
        stats.rank_points = max(0, (stats.rank_points or 0) - points)
        rank_points = stats.rank_points

    logger.info("Achievement %s revoked from user %s (-%d)", achievement_id, user_id, points)
    return RevokeResult(
        achievement_id=achievement_id,
        name=name,
        points_removed=points,
        rank_points=rank_points,
    )


def reset_achievements(engine, user_id: int) -> int:
    """Hard-delete every achievement of *user_id* and zero their rank points."""
    with get_session(engine) as session:
        result = session.execute(
            delete(UserAchievement).where(UserAchievement.user_id == user_id)
        )
        stats = ensure_user(session, user_id)
        stats.rank_points = 0
        deleted = result.rowcount or 0
    logger.info("Reset %d achievements for user %s", deleted, user_id)
    return deleted


def reset_achievement(engine, user_id: int, achievement_id: str) -> tuple[int, int]:
    """Hard-delete one catalogue achievement.  Returns ``(deleted, points_removed)``.

    Raises
    ------
    ValueError
        If *achievement_id* is not in the catalogue.
    """
    definition = get_achievement(achievement_id)
    if definition is None:
        raise ValueError(f"Unknown achievement: {achievement_id}")

    with get_session(engine) as session:
        row = session.scalar(
            select(UserAchievement).where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_id == achievement_id,
            )
        )
        if row is None:
            return 0, 0
        # Soft-deleted rows already had their points taken away
        points = 0 if row.manually_deleted else definition.points
        session.delete(row)
        stats = ensure_user(session, user_id)
        stats.rank_points = max(0, (stats.rank_points or 0) - points)
    return 1, points


# ---------------------------------------------------------------------------
# Special achievements
# ---------------------------------------------------------------------------
def _special_id(now: datetime) -> str:
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"special_{int(now.timestamp() * 1000)}_{suffix}"


def create_special_achievement(
    engine,
    *,
    user_id: int,
    emoji: str,
    name: str,
    description: str,
    points: int = 0,
    color: str | None = None,
    special_date: datetime | None = None,
    username: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Create a one-off achievement and unlock it for *user_id*.

    ``unlocked_at`` is *special_date* when given, otherwise now.  The
    periodic notification task announces it once that moment has passed.
    """
    if not (emoji and name and description):
        raise ValueError("emoji, name and description are required")
    if points < 0:
        raise ValueError("points must not be negative")

    now = now or utcnow()
    if special_date is not None:
        # SQLite keeps wall-clock time only, so everything is stored in UTC
        special_date = as_utc(special_date)
    achievement_id = _special_id(now)
    unlocked_at = special_date or now

    with get_session(engine) as session:
        stats = ensure_user(session, user_id, username)
        row = SpecialAchievement(
            achievement_id=achievement_id,
            user_id=user_id,
            emoji=emoji,
            name=name,
            description=description,
            points=points,
            color=color or DEFAULT_SPECIAL_COLOR,
            special_date=special_date,
            notifications_sent=False,
            created_at=now,
        )
        session.add(row)
        session.add(UserAchievement(
            user_id=user_id,
            achievement_id=achievement_id,
            unlocked_at=unlocked_at,
            manually_deleted=False,
        ))
        stats.rank_points = (stats.rank_points or 0) + points
        session.flush()
        created = _special_dict(row)

    logger.info(
        "Special achievement %s created for user %s (date=%s)",
        achievement_id, user_id, special_date,
    )
    return created


def due_special_notifications(engine, now: datetime | None = None) -> list[dict]:
    """Special achievements whose moment has passed and that were never announced."""
    now = now or utcnow()
    with get_session(engine) as session:
        rows = session.scalars(
            select(SpecialAchievement)
            .where(SpecialAchievement.notifications_sent.is_(False))
            .order_by(SpecialAchievement.created_at)
        ).all()
        return [
            _special_dict(r)
            for r in rows
            if r.special_date is None or as_utc(r.special_date) <= as_utc(now)
        ]


def mark_notifications_sent(engine, achievement_id: str) -> bool:
    with get_session(engine) as session:
        row = session.get(SpecialAchievement, achievement_id)
        if row is None:
            return False
        row.notifications_sent = True
        return True
