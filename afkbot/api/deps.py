"""
afkbot.api.deps — FastAPI dependency injection
================================================

Shared dependencies for the dashboard API: the engine, the parsed
config, the Telegram client used for admin reports, and the JWT session
helpers.  A session token travels either as the ``sessionId`` cookie set
by the OAuth callback or as an ``Authorization: Bearer`` header.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Cookie, Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from afkbot.config import AfkBotConfig, load_config
from afkbot.database.engine import create_db_engine, init_db
from afkbot.services.telegram_service import TelegramClient

_WEAK_SECRETS = frozenset({
    "afkbot-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
SESSION_COOKIE = "sessionId"
SESSION_TTL = timedelta(hours=24)


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    engine = create_db_engine()
    init_db(engine)
    return engine


@lru_cache(maxsize=1)
def get_config() -> AfkBotConfig:
    return load_config(os.getenv("AFKBOT_CONFIG", "config.yaml"))


@lru_cache(maxsize=1)
def get_telegram() -> TelegramClient:
    return TelegramClient.from_env()


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------
def create_session_token(user_id: int | str, username: str | None) -> str:
    """Issue an HS256 session token valid for 24 hours."""
    payload = {
        "sub": str(user_id),
        "username": username or "Unknown",
        "exp": datetime.now(UTC) + SESSION_TTL,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _extract_token(authorization: str | None, session_cookie: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1]
    return session_cookie or None


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    session_id: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
) -> dict | None:
    """Return the decoded session payload, or ``None`` when anonymous."""
    token = _extract_token(authorization, session_id)
    if token is None:
        return None
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        return None


def require_user(user: Annotated[dict | None, Depends(get_current_user)]) -> dict:
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Not authenticated")
    return user


def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
    session_id: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
    cfg: AfkBotConfig = Depends(get_config),
) -> dict:
    """Validate the JWT and require it to belong to ``admin_user_id``."""
    token = _extract_token(authorization, session_id)
    if token is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if payload.get("sub") != str(cfg.admin_user_id):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return payload
