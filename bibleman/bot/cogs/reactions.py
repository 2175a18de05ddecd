"""
bibleman.bot.cogs.reactions — Live ✅ Tracking
===============================================

Listens for raw reaction add/remove events (raw, so reactions on
uncached older posts still arrive) and pushes them through the
reconciliation engine.

Every failure stops here: it's logged with enough context (user, day,
community) to fix the ledger by hand or by re-running sync, and the
gateway loop keeps going.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from bibleman.bot.sources import message_text
from bibleman.engine.day_key import extract_day_key
from bibleman.errors import ExtractionFailure, LedgerError

if TYPE_CHECKING:
    from bibleman.bot.core import BibleBot

logger = logging.getLogger(__name__)


class Reactions(commands.Cog, name="Reactions"):
    """Records and retracts reading completions from ✅ reactions."""

    def __init__(self, bot: BibleBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        """Fire when any reaction is added, even on uncached messages."""
        await self._guarded(payload)

    @commands.Cog.listener()
    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        """Fire when any reaction is removed."""
        await self._guarded(payload)

    async def _guarded(self, payload: discord.RawReactionActionEvent) -> None:
        try:
            await self._handle_reaction(payload)
        except Exception:
            logger.exception(
                "Error processing %s on message %s from user %s",
                payload.event_type, payload.message_id, payload.user_id,
            )

    async def _fetch_message(
        self, payload: discord.RawReactionActionEvent,
    ) -> discord.Message | None:
        channel = self.bot.get_channel(payload.channel_id)
        try:
            if channel is None:
                channel = await self.bot.fetch_channel(payload.channel_id)
            if not hasattr(channel, "fetch_message"):
                return None
            return await channel.fetch_message(payload.message_id)
        except (discord.NotFound, discord.Forbidden, discord.HTTPException):
            logger.warning(
                "Could not fetch message %s in channel %s",
                payload.message_id, payload.channel_id,
            )
            return None

    def _display_name(self, payload: discord.RawReactionActionEvent) -> str | None:
        # Remove payloads carry no member object; fall back to the cache
        if payload.member is not None:
            return payload.member.display_name
        guild = self.bot.get_guild(payload.guild_id) if payload.guild_id else None
        member = guild.get_member(payload.user_id) if guild else None
        return member.display_name if member else None

    async def _handle_reaction(self, payload: discord.RawReactionActionEvent) -> None:
        """Inner reaction handler (separated for error isolation)."""
        source = self.bot.source

        # Cheap gates before any HTTP fetch
        if payload.guild_id is None:
            return
        if payload.user_id == source.bot_user_id:
            return
        if not source.is_tracked_emoji(payload.emoji):
            return

        message = await self._fetch_message(payload)
        if message is None:
            return

        event = source.observe_live(payload, message, display_name=self._display_name(payload))
        if event is None:
            return

        text = message_text(message)
        try:
            outcome = await self.bot.reconciler.reconcile_message(event, text)
        except ExtractionFailure as exc:
            logger.warning(
                "Untracked %s from %s (%s) in %s: %s",
                event.direction, event.display_name, event.user_id, event.community_id, exc,
            )
            return
        except LedgerError:
            logger.exception(
                "Ledger error on %s: user=%s day=%s community=%s message=%s",
                event.direction, event.user_id, extract_day_key(text),
                event.community_id, event.message_id,
            )
            return

        logger.info(
            "%s by %s on Day %s in %s → %s",
            event.direction, event.display_name, extract_day_key(text),
            event.community_id, outcome,
        )


async def setup(bot: BibleBot) -> None:
    await bot.add_cog(Reactions(bot))
