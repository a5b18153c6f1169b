"""
afkbot.database.engine — Database Connection & Async Helper
=============================================================

The services are plain synchronous SQLAlchemy functions.  Cogs and
tasks never call them directly; they go through :func:`run_db`, which
runs the function on a worker thread while the gateway loop keeps
serving events.

The FastAPI dashboard uses the same service functions from its sync
route handlers, so both processes share one code path to the tables.

Usage::

    from afkbot.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # DATABASE_URL, else sqlite:///afkbot.db
    init_db(engine)

    # Inside an async Cog method:
    stats = await run_db(increment_stats, engine, user_id, messages_sent=1)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from afkbot.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

DEFAULT_DATABASE_URL = "sqlite:///afkbot.db"


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from ``DATABASE_URL``.

    Falls back to a local ``afkbot.db`` SQLite file.  SQLite connections
    are opened with ``check_same_thread=False`` because :func:`run_db`
    hops between worker threads; server databases get a small pool with
    pre-ping and hourly recycling.
    """
    url = url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            url,
            echo=False,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_timeout=10,
            pool_recycle=3600,
        )
    logger.info("Database engine created → %s", engine.url.database or engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`afkbot.database.models`.

    Safe to call on every startup.  In production the schema is managed
    by Alembic (``alembic upgrade head``); ``create_all`` covers fresh
    SQLite files and test databases.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.add(UserStats(user_id=123, username="drew"))
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a synchronous service call without blocking the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)
