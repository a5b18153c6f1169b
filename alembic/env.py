"""
alembic/env.py — AFK Bot migrations
=====================================

Resolves the database the same way the bot does: ``DATABASE_URL`` from
the environment (``.env`` included), then ``sqlalchemy.url`` from
alembic.ini, then the bot's ``afkbot.db`` SQLite default.  Online runs
reuse :func:`afkbot.database.engine.create_db_engine` so migrations see
the same connect arguments as the running bot.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv

from alembic import context

load_dotenv()

from afkbot.database.engine import DEFAULT_DATABASE_URL, create_db_engine  # noqa: E402
from afkbot.database.models import Base  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _database_url() -> str:
    return (
        os.getenv("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
        or DEFAULT_DATABASE_URL
    )


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def migrate_offline() -> None:
    """Print the migration SQL instead of running it."""
    url = _database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_is_sqlite(url),
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def migrate_online() -> None:
    engine = create_db_engine(_database_url())
    try:
        with engine.connect() as connection:
            # SQLite alters tables by copy-and-rename
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                render_as_batch=connection.dialect.name == "sqlite",
                compare_type=True,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    migrate_offline()
else:
    migrate_online()
