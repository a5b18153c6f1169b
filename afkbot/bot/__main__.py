"""
afkbot.bot.__main__ — Entry point for ``python -m afkbot.bot``
================================================================

Reads secrets from ``.env`` and server wiring from ``config.yaml``
(or the file named by ``AFKBOT_CONFIG``), makes sure the tables exist,
then runs :class:`~afkbot.bot.core.AfkBot` until interrupted.

Run with::

    python -m afkbot.bot        # or the ``afkbot`` console script

``LOG_LEVEL`` (default ``INFO``) sets the root log level.
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from afkbot.bot.core import AfkBot
from afkbot.config import load_config
from afkbot.database.engine import create_db_engine, init_db
from afkbot.services.telegram_service import TelegramClient

logger = logging.getLogger("afkbot")

_PLACEHOLDER_TOKEN = "your-discord-bot-token-here"


def _setup_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )


def main() -> None:
    """Bootstrap and run the AFK bot."""
    load_dotenv()
    _setup_logging()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == _PLACEHOLDER_TOKEN:
        logger.critical("DISCORD_TOKEN is not set. Copy .env.example to .env and fill it in.")
        sys.exit(1)

    config_path = os.getenv("AFKBOT_CONFIG", "config.yaml")
    try:
        cfg = load_config(config_path)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        logger.critical("Cannot load %s: %s", config_path, exc)
        sys.exit(1)
    logger.info(
        "Guild %s, AFK channel %s, prefix %r",
        cfg.guild_id, cfg.afk_channel_id, cfg.command_prefix,
    )

    engine = create_db_engine()
    init_db(engine)

    bot = AfkBot(cfg=cfg, engine=engine, telegram=TelegramClient.from_env())
    logger.info("Starting AFK bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
