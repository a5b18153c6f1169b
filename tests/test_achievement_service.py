"""
tests/test_achievement_service.py — Unlocking, Revoking & Special Achievements
================================================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from afkbot.constants import BEST_ADMIN_ID
from afkbot.services.achievement_service import (
    create_special_achievement,
    due_special_notifications,
    evaluate_achievements,
    grant_best_admin,
    list_special_achievements,
    list_user_achievements,
    mark_notifications_sent,
    reset_achievement,
    reset_achievements,
    revoke_achievement,
    unlock_achievement,
)
from afkbot.services.stats_service import get_user_stats, increment_stats

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


def _points(engine, user_id=1) -> int:
    return get_user_stats(engine, user_id)["rank_points"]


# ===========================================================================
# Threshold evaluation
# ===========================================================================
class TestEvaluateAchievements:
    def test_first_join_unlocks_once(self, db_engine):
        increment_stats(db_engine, 1, "drew", total_sessions=1)
        first = evaluate_achievements(db_engine, 1)
        assert [r.achievement_id for r in first] == ["first_join"]
        assert first[0].rank_points == 10
        assert evaluate_achievements(db_engine, 1) == []
        assert _points(db_engine) == 10

    def test_nothing_for_fresh_user(self, db_engine):
        assert evaluate_achievements(db_engine, 1) == []

    def test_revoked_achievement_can_be_earned_again(self, db_engine):
        increment_stats(db_engine, 1, total_sessions=1)
        evaluate_achievements(db_engine, 1)

        revoked = revoke_achievement(db_engine, 1, "first_join")
        assert revoked.points_removed == 10
        assert _points(db_engine) == 0
        assert list_user_achievements(db_engine, 1) == []

        again = evaluate_achievements(db_engine, 1)
        assert again[0].achievement_id == "first_join"
        assert again[0].restored is True
        assert _points(db_engine) == 10


class TestUnlockAchievement:
    def test_unknown_id(self, db_engine):
        with pytest.raises(ValueError, match="Unknown achievement"):
            unlock_achievement(db_engine, 1, "nope")

    def test_already_held_returns_none(self, db_engine):
        assert unlock_achievement(db_engine, 1, "first_message") is not None
        assert unlock_achievement(db_engine, 1, "first_message") is None


# ===========================================================================
# Admin mutations
# ===========================================================================
class TestRevokeAndReset:
    def test_revoke_missing_raises_lookup(self, db_engine):
        with pytest.raises(LookupError):
            revoke_achievement(db_engine, 1, "first_join")

    def test_reset_all_zeroes_points(self, db_engine):
        unlock_achievement(db_engine, 1, "first_join")
        unlock_achievement(db_engine, 1, "first_message")
        assert reset_achievements(db_engine, 1) == 2
        assert _points(db_engine) == 0
        assert list_user_achievements(db_engine, 1) == []

    def test_reset_one_removes_points(self, db_engine):
        unlock_achievement(db_engine, 1, "first_join")
        unlock_achievement(db_engine, 1, "first_message")
        assert reset_achievement(db_engine, 1, "first_join") == (1, 10)
        assert _points(db_engine) == 10

    def test_reset_one_not_held(self, db_engine):
        assert reset_achievement(db_engine, 1, "first_join") == (0, 0)

    def test_reset_one_soft_deleted_removes_no_points(self, db_engine):
        unlock_achievement(db_engine, 1, "first_join")
        revoke_achievement(db_engine, 1, "first_join")
        assert reset_achievement(db_engine, 1, "first_join") == (1, 0)

    def test_reset_one_unknown_id(self, db_engine):
        with pytest.raises(ValueError):
            reset_achievement(db_engine, 1, "nope")


# ===========================================================================
# best_admin
# ===========================================================================
class TestGrantBestAdmin:
    def test_not_before_schedule(self, db_engine):
        scheduled = NOW + timedelta(minutes=1)
        assert grant_best_admin(db_engine, 1, scheduled, now=NOW) is None

    def test_granted_once_due(self, db_engine):
        result = grant_best_admin(db_engine, 1, NOW, now=NOW)
        assert result is not None
        assert result.achievement_id == BEST_ADMIN_ID
        assert grant_best_admin(db_engine, 1, NOW, now=NOW + timedelta(minutes=5)) is None

    def test_soft_deleted_blocks_regrant(self, db_engine):
        grant_best_admin(db_engine, 1, NOW, now=NOW)
        revoke_achievement(db_engine, 1, BEST_ADMIN_ID)
        assert grant_best_admin(db_engine, 1, NOW, now=NOW + timedelta(hours=1)) is None

    def test_naive_schedule_read_as_utc(self, db_engine):
        naive = datetime(2026, 5, 1, 12, 0)
        assert grant_best_admin(db_engine, 1, naive, now=NOW) is not None


# ===========================================================================
# Special achievements
# ===========================================================================
class TestSpecialAchievements:
    def _create(self, engine, **overrides):
        params = dict(
            user_id=1, emoji="🎂", name="Birthday", description="Happy birthday",
            points=25, now=NOW,
        )
        params.update(overrides)
        return create_special_achievement(engine, **params)

    def test_create_credits_points(self, db_engine):
        created = self._create(db_engine)
        assert created["achievement_id"].startswith("special_")
        assert created["type"] == "special"
        assert _points(db_engine) == 25
        assert len(list_special_achievements(db_engine)) == 1

    def test_missing_fields(self, db_engine):
        with pytest.raises(ValueError, match="required"):
            self._create(db_engine, name="")

    def test_negative_points(self, db_engine):
        with pytest.raises(ValueError, match="negative"):
            self._create(db_engine, points=-1)

    def test_future_special_hidden_until_due(self, db_engine):
        future = NOW + timedelta(days=2)
        self._create(db_engine, special_date=future)
        assert list_user_achievements(db_engine, 1, now=NOW) == []
        assert due_special_notifications(db_engine, now=NOW) == []

        later = NOW + timedelta(days=3)
        listed = list_user_achievements(db_engine, 1, now=later)
        assert listed[0]["type"] == "special"
        assert listed[0]["emoji"] == "🎂"
        assert len(due_special_notifications(db_engine, now=later)) == 1

    def test_local_special_date_stored_as_utc(self, db_engine):
        local = datetime(2026, 5, 1, 15, 0, tzinfo=timezone(timedelta(hours=3)))
        created = self._create(db_engine, special_date=local)
        assert created["special_date"].startswith("2026-05-01T12:00")

    def test_mark_sent(self, db_engine):
        created = self._create(db_engine)
        assert mark_notifications_sent(db_engine, created["achievement_id"]) is True
        assert due_special_notifications(db_engine, now=NOW) == []
        assert mark_notifications_sent(db_engine, "missing") is False

    def test_revoke_special_removes_row_and_points(self, db_engine):
        created = self._create(db_engine)
        result = revoke_achievement(db_engine, 1, created["achievement_id"])
        assert result.name == "Birthday"
        assert result.points_removed == 25
        assert list_special_achievements(db_engine) == []
        assert _points(db_engine) == 0
