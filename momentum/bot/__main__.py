"""
momentum.bot.__main__ — Entry point for ``python -m momentum.bot``
==================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine, ensure tables exist, seed the catalogue.
4. Load the AchievementCatalog (core + guild custom definitions).
5. Create the MomentumBot and hand it config + engine + catalog.
6. Start the bot (blocking — runs the asyncio event loop).
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from momentum.bot.core import MomentumBot
from momentum.config import load_config
from momentum.database.engine import create_db_engine, init_db
from momentum.engine.catalog import AchievementCatalog

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("momentum")


def main() -> None:
    """Bootstrap and run the Momentum bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — primary guild: %d", cfg.guild_id)

    # 3. Database (tables + core/seasonal catalogue).
    engine = create_db_engine()
    init_db(engine)

    # 4. Catalog.
    catalog = AchievementCatalog(engine)
    catalog.load_definitions()

    # 5. Bot.
    bot = MomentumBot(cfg=cfg, engine=engine, catalog=catalog)

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Momentum bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
