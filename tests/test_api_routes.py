"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================

Runs the dashboard API through the TestClient against the in-memory
database.  Verifies:
- auth guards on admin endpoints (401 / 403)
- response structure of the public endpoints
- side effects: counters, achievements, Telegram reports
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import httpx
import jwt
import pytest

from afkbot.api.auth import _store_oauth_state
from afkbot.api.deps import JWT_ALGORITHM, JWT_SECRET
from afkbot.api.main import _cors_origins
from afkbot.services.achievement_service import list_user_achievements, unlock_achievement
from afkbot.services.link_service import consume_link_code, create_link_code
from afkbot.services.session_service import finish_session
from afkbot.services.settings_service import get_user_settings
from afkbot.services.stats_service import get_user_stats, increment_stats

from conftest import ADMIN_ID, USER_ID, make_token

T0 = datetime(2026, 3, 1, 20, 0, tzinfo=UTC)


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return _auth(make_token(ADMIN_ID))


# ===========================================================================
# Health / config / session
# ===========================================================================
class TestPublicBasics:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_config_ids_are_strings(self, client):
        data = client.get("/api/config").json()
        assert data == {"admin_user_id": str(ADMIN_ID), "dashboard_url": "http://dash.test"}

    def test_session_anonymous(self, client):
        assert client.get("/api/session").json() == {"authenticated": False, "isAdmin": False}

    def test_session_from_bearer(self, client):
        data = client.get("/api/session", headers=_auth(make_token(USER_ID, "drew"))).json()
        assert data["authenticated"] is True
        assert data["userId"] == str(USER_ID)
        assert data["username"] == "drew"
        assert data["isAdmin"] is False

    def test_session_from_cookie(self, client):
        client.cookies.set("sessionId", make_token(ADMIN_ID))
        data = client.get("/api/session").json()
        assert data["isAdmin"] is True

    def test_session_with_garbage_token(self, client):
        data = client.get("/api/session", headers=_auth("not-a-jwt")).json()
        assert data["authenticated"] is False


# ===========================================================================
# Stats / leaderboard
# ===========================================================================
class TestStatsEndpoints:
    def test_unknown_user_gets_empty_stats(self, client):
        data = client.get(f"/api/stats/{USER_ID}").json()
        assert data["stats"] == {}
        assert data["achievements"] == []
        assert data["settings"] == {
            "dmNotifications": True,
            "afkTimeout": 15,
            "achievementNotifications": True,
        }

    def test_known_user(self, client, db_engine):
        increment_stats(db_engine, USER_ID, "drew", total_sessions=1)
        unlock_achievement(db_engine, USER_ID, "first_join")
        data = client.get(f"/api/stats/{USER_ID}").json()
        assert data["stats"]["username"] == "drew"
        assert data["achievements"][0]["achievement_id"] == "first_join"

    def test_leaderboard(self, client, db_engine):
        increment_stats(db_engine, 1, "low", rank_points=1)
        increment_stats(db_engine, 2, "high", rank_points=9)
        board = client.get("/api/leaderboard").json()
        assert [row["username"] for row in board] == ["high", "low"]

    def test_special_achievements_list(self, client):
        assert client.get("/api/special-achievements").json() == []

    def test_recent_sessions_newest_first(self, client, db_engine):
        finish_session(db_engine, USER_ID, channel_name="old", joined_at=T0, left_at=T0)
        later = T0 + timedelta(hours=1)
        finish_session(
            db_engine, USER_ID, channel_name="new", joined_at=later,
            left_at=later + timedelta(minutes=5), was_afk_moved=True,
        )
        rows = client.get(f"/api/sessions/{USER_ID}").json()
        assert [r["channel_name"] for r in rows] == ["new", "old"]
        assert rows[0]["duration"] == 300
        assert rows[0]["was_afk_moved"] is True

    def test_recent_sessions_limit_clamped(self, client, db_engine):
        for minute in range(3):
            start = T0 + timedelta(minutes=minute)
            finish_session(db_engine, USER_ID, channel_name="c", joined_at=start, left_at=start)
        assert len(client.get(f"/api/sessions/{USER_ID}?limit=0").json()) == 1
        assert len(client.get(f"/api/sessions/{USER_ID}?limit=2").json()) == 2


# ===========================================================================
# Settings / visits
# ===========================================================================
class TestSettingsEndpoint:
    def test_change_counts_and_reports(self, client, db_engine, telegram):
        resp = client.post(f"/api/settings/{USER_ID}", json={"dmNotifications": False})
        assert resp.json() == {"success": True, "settingsChanged": True}
        assert get_user_stats(db_engine, USER_ID)["settings_changes"] == 1
        ids = [a["achievement_id"] for a in list_user_achievements(db_engine, USER_ID)]
        assert "first_settings" in ids
        # settings report + achievement report
        assert telegram.send_report.await_count == 2

    def test_no_change(self, client, telegram):
        resp = client.post(f"/api/settings/{USER_ID}", json={"dmNotifications": True})
        assert resp.json()["settingsChanged"] is False
        telegram.send_report.assert_not_awaited()

    def test_unsupported_timeout_ignored(self, client, db_engine):
        resp = client.post(f"/api/settings/{USER_ID}", json={"afkTimeout": 20})
        assert resp.json()["settingsChanged"] is False
        assert get_user_settings(db_engine, USER_ID)["afk_timeout"] == 15

    def test_seconds_mode_timeout_accepted(self, client, db_engine):
        client.post(f"/api/settings/{USER_ID}", json={"afkTimeout": 10})
        assert get_user_settings(db_engine, USER_ID)["afk_timeout"] == 10


class TestVisitEndpoint:
    def test_first_visit_unlocks_explorer(self, client, db_engine):
        resp = client.post(f"/api/visit/{USER_ID}")
        assert resp.json()["webVisits"] == 1
        ids = [a["achievement_id"] for a in list_user_achievements(db_engine, USER_ID)]
        assert ids == ["first_web_visit"]


class TestMiscEndpoints:
    def test_unauthorized_access_alert(self, client, telegram):
        resp = client.post(
            "/api/unauthorized-access",
            json={"attemptedId": str(ADMIN_ID), "timestamp": "01.01.2026"},
        )
        assert resp.json() == {"success": True}
        assert "UNAUTHORIZED" in telegram.send_report.await_args.args[0]

    def test_link_code_requires_session(self, client):
        assert client.post("/api/telegram/link-code").status_code == 401

    def test_link_code(self, client):
        resp = client.post("/api/telegram/link-code", headers=_auth(make_token(USER_ID)))
        code = resp.json()["code"]
        assert len(code) == 6 and code.isdigit()

    def test_telegram_status_requires_session(self, client):
        assert client.get("/api/telegram/status").status_code == 401

    def test_telegram_status_after_link(self, client, db_engine):
        headers = _auth(make_token(USER_ID))
        assert client.get("/api/telegram/status", headers=headers).json() == {"linked": False}
        code = create_link_code(db_engine, USER_ID)
        assert consume_link_code(db_engine, code, 555).success
        assert client.get("/api/telegram/status", headers=headers).json() == {"linked": True}


# ===========================================================================
# Admin guards
# ===========================================================================
class TestAdminAuthGuards:
    ADMIN_POST_ENDPOINTS = [
        "/api/admin/create-achievement",
        "/api/admin/delete-achievement",
        "/api/admin/delete-user",
        "/api/admin/backup-database",
    ]

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_no_token_returns_401(self, client, endpoint):
        assert client.post(endpoint, json={}).status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_invalid_token_returns_401(self, client, endpoint):
        assert client.post(endpoint, json={}, headers=_auth("garbage")).status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_non_admin_returns_403(self, client, endpoint):
        resp = client.post(endpoint, json={}, headers=_auth(make_token(USER_ID)))
        assert resp.status_code == 403

    def test_expired_token_returns_401(self, client):
        token = jwt.encode(
            {"sub": str(ADMIN_ID), "exp": 1}, JWT_SECRET, algorithm=JWT_ALGORITHM,
        )
        resp = client.post("/api/admin/delete-user", json={"userId": "1"}, headers=_auth(token))
        assert resp.status_code == 401


# ===========================================================================
# Admin actions
# ===========================================================================
class TestAdminActions:
    def _special(self, **overrides):
        body = {
            "emoji": "🎂",
            "name": "Birthday",
            "description": "Happy birthday",
            "type": "special",
            "userId": str(USER_ID),
            "points": 15,
        }
        body.update(overrides)
        return body

    def test_create_special(self, client, db_engine, admin_headers):
        resp = client.post(
            "/api/admin/create-achievement", json=self._special(), headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["achievementId"].startswith("special_")
        assert get_user_stats(db_engine, USER_ID)["rank_points"] == 15

    def test_create_missing_field(self, client, admin_headers):
        resp = client.post(
            "/api/admin/create-achievement", json=self._special(name=""), headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_create_wrong_type(self, client, admin_headers):
        resp = client.post(
            "/api/admin/create-achievement",
            json=self._special(type="standard"),
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_create_naive_date_is_local(self, client, db_engine, admin_headers):
        client.post(
            "/api/admin/create-achievement",
            json=self._special(specialDate="2026-05-01T15:00:00"),
            headers=admin_headers,
        )
        special = client.get("/api/special-achievements").json()[0]
        # config offset is +3
        assert special["special_date"].startswith("2026-05-01T12:00")

    def test_delete_achievement(self, client, db_engine, admin_headers, telegram):
        unlock_achievement(db_engine, USER_ID, "first_join")
        resp = client.post(
            "/api/admin/delete-achievement",
            json={"userId": str(USER_ID), "achievementId": "first_join"},
            headers=admin_headers,
        )
        assert resp.json()["pointsRemoved"] == 10
        assert list_user_achievements(db_engine, USER_ID) == []
        telegram.send_report.assert_awaited_once()

    def test_delete_achievement_not_held(self, client, admin_headers):
        resp = client.post(
            "/api/admin/delete-achievement",
            json={"userId": str(USER_ID), "achievementId": "first_join"},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_delete_user(self, client, db_engine, admin_headers, telegram):
        increment_stats(db_engine, USER_ID, "drew", messages_sent=5)
        resp = client.post(
            "/api/admin/delete-user", json={"userId": str(USER_ID)}, headers=admin_headers,
        )
        assert resp.json()["success"] is True
        assert get_user_stats(db_engine, USER_ID) is None
        assert "drew" in telegram.send_report.await_args.args[0]

    def test_backup_rejects_in_memory_database(self, client, admin_headers):
        resp = client.post("/api/admin/backup-database", headers=admin_headers)
        assert resp.status_code == 400


# ===========================================================================
# OAuth
# ===========================================================================
class TestAuthRoutes:
    def test_login_without_oauth_env(self, client, monkeypatch):
        monkeypatch.delenv("DISCORD_CLIENT_ID", raising=False)
        resp = client.get("/auth/discord", follow_redirects=False)
        assert resp.status_code == 500

    def test_login_redirects_to_discord(self, client, monkeypatch):
        monkeypatch.setenv("DISCORD_CLIENT_ID", "cid")
        monkeypatch.setenv("DISCORD_CLIENT_SECRET", "secret")
        monkeypatch.setenv("DISCORD_REDIRECT_URI", "http://dash.test/auth/discord/callback")
        resp = client.get("/auth/discord", follow_redirects=False)
        assert resp.status_code in (302, 307)
        assert resp.headers["location"].startswith("https://discord.com/oauth2/authorize?")

    def test_callback_rejects_unknown_state(self, client, monkeypatch):
        monkeypatch.setenv("DISCORD_CLIENT_ID", "cid")
        monkeypatch.setenv("DISCORD_CLIENT_SECRET", "secret")
        monkeypatch.setenv("DISCORD_REDIRECT_URI", "http://dash.test/cb")
        resp = client.get("/auth/discord/callback?code=x&state=forged", follow_redirects=False)
        assert resp.status_code == 400

    def test_logout_clears_cookie(self, client):
        resp = client.get("/logout", follow_redirects=False)
        assert resp.status_code == 302
        assert "sessionId" in resp.headers.get("set-cookie", "")

    def test_logout_returns_to_dashboard(self, client):
        resp = client.get("/logout", follow_redirects=False)
        assert resp.headers["location"] == "http://dash.test"

    def test_callback_opens_profile_on_dashboard(self, client, db_engine, monkeypatch):
        monkeypatch.setenv("DISCORD_CLIENT_ID", "cid")
        monkeypatch.setenv("DISCORD_CLIENT_SECRET", "secret")
        monkeypatch.setenv("DISCORD_REDIRECT_URI", "http://dash.test/cb")

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/oauth2/token"):
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(200, json={"id": str(USER_ID), "username": "drew"})

        monkeypatch.setattr(
            httpx, "AsyncHTTPTransport", lambda **kwargs: httpx.MockTransport(handler),
        )
        _store_oauth_state(db_engine, "good-state")

        resp = client.get(
            "/auth/discord/callback?code=x&state=good-state", follow_redirects=False,
        )

        assert resp.status_code == 302
        assert resp.headers["location"] == f"http://dash.test/?userId={USER_ID}&autoLogin=true"
        assert "sessionId" in resp.headers.get("set-cookie", "")
        assert get_user_stats(db_engine, USER_ID)["username"] == "drew"


# ===========================================================================
# CORS
# ===========================================================================
class TestCorsOrigins:
    def test_env_list_wins(self, monkeypatch):
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.test/, https://b.test")
        assert _cors_origins("http://dash.test") == ["https://a.test", "https://b.test"]

    def test_falls_back_to_dashboard_url(self, monkeypatch):
        monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)
        monkeypatch.setenv("DASHBOARD_URL", "https://ignored.test")
        assert _cors_origins("http://dash.test/") == ["http://dash.test"]

    def test_nothing_configured(self, monkeypatch):
        monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)
        assert _cors_origins(None) == []
