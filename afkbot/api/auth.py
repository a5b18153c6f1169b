"""
afkbot.api.auth — Discord OAuth2 + JWT session cookie
=======================================================
"""

from __future__ import annotations

import logging
import os
import secrets
from datetime import timedelta
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy import delete

from afkbot.api.deps import (
    SESSION_COOKIE,
    SESSION_TTL,
    create_session_token,
    get_config,
    get_engine,
)
from afkbot.config import AfkBotConfig
from afkbot.constants import utcnow
from afkbot.database.engine import get_session, run_db
from afkbot.database.models import OAuthState
from afkbot.services.stats_service import increment_stats

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])

DISCORD_API = "https://discord.com/api/v10"
OAUTH_SCOPE = "identify"
OAUTH_STATE_TTL_SECONDS = 600


def _oauth_env() -> tuple[str, str, str]:
    """Return (client_id, client_secret, redirect_uri), or 500 naming what is unset."""
    client_id = os.getenv("DISCORD_CLIENT_ID", "").strip()
    client_secret = os.getenv("DISCORD_CLIENT_SECRET", "").strip()
    redirect_uri = os.getenv("DISCORD_REDIRECT_URI", "").strip()

    missing = [
        name for name, value in (
            ("DISCORD_CLIENT_ID", client_id),
            ("DISCORD_CLIENT_SECRET", client_secret),
            ("DISCORD_REDIRECT_URI", redirect_uri),
        )
        if not value
    ]
    if missing:
        raise HTTPException(
            status_code=500,
            detail="Discord OAuth is not configured: missing " + ", ".join(missing),
        )
    return client_id, client_secret, redirect_uri


def _store_oauth_state(engine, state: str) -> None:
    """Remember a login attempt; expired attempts are cleared on the way."""
    now = utcnow()
    cutoff = now - timedelta(seconds=OAUTH_STATE_TTL_SECONDS)
    with get_session(engine) as session:
        session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        session.add(OAuthState(state=state, created_at=now))


def _consume_oauth_state(engine, state: str) -> bool:
    """Delete *state* and report whether it existed and was younger than the TTL."""
    cutoff = utcnow() - timedelta(seconds=OAUTH_STATE_TTL_SECONDS)
    with get_session(engine) as session:
        session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        row = session.get(OAuthState, state)
        if row is None:
            return False
        session.delete(row)
        return True


@router.get("/auth/discord")
async def login(engine=Depends(get_engine)):
    """Redirect to the Discord OAuth2 consent screen."""
    client_id, _, redirect_uri = _oauth_env()

    state = secrets.token_urlsafe(32)
    await run_db(_store_oauth_state, engine, state)

    query = urlencode({
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": OAUTH_SCOPE,
        "state": state,
    })
    return RedirectResponse(f"https://discord.com/oauth2/authorize?{query}")


@router.get("/auth/discord/callback")
async def callback(
    code: str,
    state: str,
    engine=Depends(get_engine),
    cfg: AfkBotConfig = Depends(get_config),
):
    """Exchange the OAuth code, set the session cookie, open the profile
    on the dashboard front end at ``dashboard_url``."""
    client_id, client_secret, redirect_uri = _oauth_env()

    if not await run_db(_consume_oauth_state, engine, state):
        raise HTTPException(400, "Invalid or expired OAuth state")

    transport = httpx.AsyncHTTPTransport(retries=1)
    async with httpx.AsyncClient(timeout=10, transport=transport) as client:
        token_resp = await client.post(
            f"{DISCORD_API}/oauth2/token",
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
            },
        )
        if token_resp.status_code != 200:
            raise HTTPException(400, "OAuth token exchange failed")

        access_token = token_resp.json().get("access_token")
        if not access_token:
            raise HTTPException(400, "No access token returned")

        user_resp = await client.get(
            f"{DISCORD_API}/users/@me",
            headers={"Authorization": f"Bearer {access_token}"},
        )

    if user_resp.status_code != 200:
        raise HTTPException(400, "Failed to fetch Discord user")

    user_info = user_resp.json()
    user_id = user_info["id"]
    username = user_info.get("username", "Unknown")

    # Keeps the stored name fresh for the leaderboard
    await run_db(increment_stats, engine, int(user_id), username)
    logger.info("Dashboard login: %s (%s)", username, user_id)

    response = RedirectResponse(cfg.dashboard_link(user_id), status_code=302)
    response.set_cookie(
        SESSION_COOKIE,
        create_session_token(user_id, username),
        max_age=int(SESSION_TTL.total_seconds()),
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/logout")
async def logout(cfg: AfkBotConfig = Depends(get_config)):
    response = RedirectResponse(cfg.dashboard_url, status_code=302)
    response.delete_cookie(SESSION_COOKIE)
    return response
