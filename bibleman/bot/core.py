"""
bibleman.bot.core — Bot Instance & Cog Loader
==============================================

Defines :class:`BibleBot`, a ``commands.Bot`` subclass that:

1. Carries the injected collaborators — config (``bot.cfg``), ledger store
   (``bot.store``), reconciliation engine (``bot.reconciler``), reading
   plan (``bot.plan``) and reaction source (``bot.source``) — so cogs read
   them from ``self.bot`` instead of module globals.
2. Loads every cog in :data:`EXTENSIONS`.
3. Syncs the slash-command tree (guild-scoped when ``DEV_GUILD_ID`` is set).
4. Provisions the ledger schema and runs one bulk sync on startup to pick
   up reactions added while the bot was offline.
"""

from __future__ import annotations

import asyncio
import logging
import os

import discord
from discord.ext import commands

from bibleman.bot.sources import ReactionSource
from bibleman.config import BibleBotConfig
from bibleman.database.engine import run_db
from bibleman.engine.reconcile import ReconciliationEngine
from bibleman.errors import LedgerError
from bibleman.ledger.base import LedgerStore
from bibleman.services.plan_service import ReadingPlan
from bibleman.services.sync_service import log_summary, run_sync

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "bibleman.bot.cogs.reactions",
    "bibleman.bot.cogs.meta",
]


class BibleBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`BibleBotConfig` from ``config.yaml``.
    store:
        The ledger backend.
    reconciler:
        Engine bound to *store*.
    plan:
        Reading-plan oracle for the leaderboard.
    """

    def __init__(
        self,
        cfg: BibleBotConfig,
        store: LedgerStore,
        reconciler: ReconciliationEngine,
        plan: ReadingPlan,
    ) -> None:
        intents = discord.Intents.default()
        intents.message_content = True    # Privileged: read daily-post embeds
        intents.members = True            # Privileged: nickname resolution
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=f"{cfg.community_name} — daily Bible reading",
        )

        self.cfg = cfg
        self.store = store
        self.reconciler = reconciler
        self.plan = plan
        self.source = ReactionSource(
            self,
            emoji=cfg.completion_emoji,
            marker=cfg.completion_marker,
            history_limit=cfg.history_limit,
        )

        # One bulk sync at a time (startup vs. /sync)
        self._sync_lock = asyncio.Lock()
        self._startup_sync_task: asyncio.Task | None = None

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load cog extensions; one broken cog shouldn't take the bot down."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

        try:
            await run_db(self.store.ensure_schema)
        except LedgerError:
            logger.exception("Could not verify ledger schema — will retry on first write")

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

        # on_ready can fire again after a reconnect; only sync once
        if self.cfg.sync_on_startup and self._startup_sync_task is None:
            self._startup_sync_task = asyncio.create_task(
                self._startup_sync(), name="startup-sync",
            )

    async def _startup_sync(self) -> None:
        try:
            await self.run_bulk_sync()
        except Exception:
            logger.exception("Startup sync failed")

    async def run_bulk_sync(self, *, dry_run: bool = False) -> dict:
        """Backfill missed reactions from recent history.  Serialized."""
        async with self._sync_lock:
            logger.info("Starting bulk sync over %d channel(s)", len(self.cfg.channel_ids))
            report = await run_sync(
                self.source, self.reconciler, self.cfg.channel_ids, dry_run=dry_run,
            )
            log_summary(report)
            return report

    async def close(self) -> None:
        """Graceful shutdown — cancel the startup sync if still running."""
        logger.info("Bot shutting down…")
        if self._startup_sync_task and not self._startup_sync_task.done():
            self._startup_sync_task.cancel()
        await super().close()
