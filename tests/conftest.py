"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, MagicMock

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of afkbot.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from afkbot.config import AfkBotConfig  # noqa: E402
from afkbot.database.models import Base  # noqa: E402

ADMIN_ID = 99999
USER_ID = 12345


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every AFK Bot table.

    StaticPool keeps one connection so ``asyncio.to_thread`` workers all
    see the same database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def cfg() -> AfkBotConfig:
    return AfkBotConfig(
        guild_id=1,
        afk_channel_id=500,
        admin_user_id=ADMIN_ID,
        stream_channel_id=600,
        achievements_channel_id=700,
        dashboard_url="http://dash.test",
    )


@pytest.fixture
def telegram() -> MagicMock:
    """Stand-in for TelegramClient that records reports."""
    client = MagicMock()
    client.enabled = True
    client.send_report = AsyncMock(return_value=True)
    client.send_message = AsyncMock(return_value=True)
    client.close = AsyncMock()
    return client


def make_token(sub: int | str = ADMIN_ID, username: str = "FixtureAdmin") -> str:
    """Create a session JWT.  Usable from tests and fixtures alike."""
    from afkbot.api.deps import create_session_token

    return create_session_token(sub, username)


@pytest.fixture
def client(db_engine, cfg, telegram):
    """FastAPI TestClient wired to the in-memory engine and test config."""
    from fastapi.testclient import TestClient

    from afkbot.api.deps import get_config, get_engine, get_telegram
    from afkbot.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: cfg
    app.dependency_overrides[get_telegram] = lambda: telegram
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def seed_settings(engine: Engine, user_id: int, **fields) -> None:
    """Write a ``user_settings`` row directly, without counting a change."""
    from afkbot.database.engine import get_session
    from afkbot.database.models import UserSettings

    values = {"dm_notifications": True, "afk_timeout": 15, "achievement_notifications": True}
    values.update(fields)
    with get_session(engine) as session:
        session.merge(UserSettings(user_id=user_id, **values))
