"""
bibleman.sync — One-shot Bulk Sync (``python -m bibleman.sync``)
================================================================

Connects to Discord, rescans recent daily posts in every configured
channel, appends any ✅ the ledger is missing, prints a summary and exits.
Never deletes or rewrites rows, so it is safe to run any time.

Usage::

    python -m bibleman.sync               # sync
    python -m bibleman.sync --dry-run     # report only
    python -m bibleman.sync --audit       # also list per-member mismatches
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

import discord
from dotenv import load_dotenv

from bibleman.bot.sources import ReactionSource
from bibleman.config import BibleBotConfig, load_config
from bibleman.database.engine import run_db
from bibleman.engine.reconcile import ReconciliationEngine
from bibleman.errors import LedgerError
from bibleman.ledger.factory import create_ledger_store
from bibleman.services.sync_service import audit_discrepancies, log_summary, run_sync

logger = logging.getLogger("bibleman.sync")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bibleman-sync",
        description="Backfill the progress ledger from Discord ✅ reactions.",
    )
    parser.add_argument("--config", default=os.getenv("BIBLEMAN_CONFIG", "config.yaml"))
    parser.add_argument("--dry-run", action="store_true", help="compute but don't write")
    parser.add_argument("--audit", action="store_true", help="report Discord/ledger mismatches")
    return parser.parse_args(argv)


async def _wait_ready(client: discord.Client, token: str) -> asyncio.Task:
    """Start the gateway connection and wait for the cache to fill."""
    runner = asyncio.create_task(client.start(token), name="discord-client")
    ready = asyncio.create_task(client.wait_until_ready())
    done, _ = await asyncio.wait({runner, ready}, return_when=asyncio.FIRST_COMPLETED)
    if runner in done:
        ready.cancel()
        runner.result()  # re-raise login / connection errors
        raise RuntimeError("Discord client stopped before becoming ready")
    return runner


async def _sync(cfg: BibleBotConfig, token: str, args: argparse.Namespace) -> dict:
    store = create_ledger_store(cfg)
    reconciler = ReconciliationEngine(store, tz=cfg.timezone, write_delay=cfg.sync_write_delay)

    intents = discord.Intents.default()
    intents.message_content = True
    intents.members = True

    client = discord.Client(intents=intents)
    async with client:
        runner = await _wait_ready(client, token)
        logger.info("Connected to Discord as %s", client.user)
        try:
            source = ReactionSource(
                client,
                emoji=cfg.completion_emoji,
                marker=cfg.completion_marker,
                history_limit=cfg.history_limit,
            )
            report = await run_sync(source, reconciler, cfg.channel_ids, dry_run=args.dry_run)
            log_summary(report)

            if args.audit:
                scanned, _ = await source.collect(cfg.channel_ids)
                rows = await run_db(store.load_all)
                for item in audit_discrepancies(scanned, rows):
                    logger.warning(
                        "%s (%s, %s): missing from ledger %s, extra in ledger %s",
                        item["display_name"], item["user_id"], item["community"],
                        item["missing_from_ledger"], item["extra_in_ledger"],
                    )
            return report
        finally:
            await client.close()
            runner.cancel()


def main(argv: list[str] | None = None) -> None:
    """Run one sync pass and exit non-zero if anything failed."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    args = _parse_args(argv)
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token:
        logger.critical("DISCORD_TOKEN is not set.")
        sys.exit(1)

    cfg = load_config(args.config)
    logger.info("STARTING DISCORD → PROGRESS LEDGER SYNC")
    try:
        report = asyncio.run(_sync(cfg, token, args))
    except (LedgerError, discord.DiscordException):
        logger.exception("Sync failed")
        sys.exit(1)

    if report["failed"] or report["channels_failed"]:
        sys.exit(2)


if __name__ == "__main__":
    main()
