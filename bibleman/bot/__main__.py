"""
bibleman.bot.__main__ — Entry point for ``python -m bibleman.bot``
==================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Build the ledger store (BibleBot.setup_hook provisions its table/tab).
4. Build the reconciliation engine and reading plan.
5. Create the BibleBot and hand it everything.
6. Start the bot (blocking — runs the asyncio event loop).

Run with::

    python -m bibleman.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from bibleman.bot.core import BibleBot
from bibleman.config import load_config
from bibleman.engine.reconcile import ReconciliationEngine
from bibleman.ledger.factory import create_ledger_store
from bibleman.services.plan_service import StaticReadingPlan

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("bibleman")


def main() -> None:
    """Bootstrap and run the reading bot."""

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
    cfg = load_config(os.getenv("BIBLEMAN_CONFIG", "config.yaml"))
    logger.info(
        "Config loaded — %s, %d channel(s)", cfg.community_name, len(cfg.channel_ids),
    )

    # 3. Ledger.
    store = create_ledger_store(cfg)

    # 4. Engine + plan.
    reconciler = ReconciliationEngine(store, tz=cfg.timezone, write_delay=cfg.sync_write_delay)
    plan = StaticReadingPlan.from_config(cfg)

    # 5. Bot.
    bot = BibleBot(cfg=cfg, store=store, reconciler=reconciler, plan=plan)

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting reading bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
