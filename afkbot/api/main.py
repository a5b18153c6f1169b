"""
afkbot.api.main — FastAPI application entry point
===================================================

Run with::

    uvicorn afkbot.api.main:app --port 3000

or ``python -m afkbot.api.main``, which reads the port from
``config.yaml``.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

load_dotenv()

from afkbot.api.auth import router as auth_router  # noqa: E402
from afkbot.api.deps import get_config, get_engine, get_telegram  # noqa: E402
from afkbot.api.routes.admin import router as admin_router  # noqa: E402
from afkbot.api.routes.public import router as public_router  # noqa: E402

logger = logging.getLogger(__name__)

STATIC_DIR = os.getenv("AFKBOT_STATIC_DIR", "").strip()


def _cors_origins(dashboard_url: str | None) -> list[str]:
    """Resolve allowed CORS origins.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) the configured ``dashboard_url`` (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    if dashboard_url:
        return [dashboard_url.rstrip("/")]

    return []


def _configured_dashboard_url() -> str | None:
    try:
        return get_config().dashboard_url
    except (FileNotFoundError, KeyError) as exc:
        logger.warning("No usable config for CORS defaults: %s", exc)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine, close Telegram."""
    engine = get_engine()
    logger.info("AFK Bot API started — engine ready (%s)", engine.url.database)
    yield
    await get_telegram().close()
    logger.info("AFK Bot API shutting down")


app = FastAPI(
    title="AFK Bot Dashboard API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(_configured_dashboard_url()),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# OAuth redirects live at the root; everything else under /api
app.include_router(auth_router)
app.include_router(public_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


# Optional front-end build, mounted last so it never shadows /api
if STATIC_DIR and Path(STATIC_DIR).is_dir():
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="dashboard")


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    uvicorn.run(app, host="0.0.0.0", port=get_config().dashboard_port)
