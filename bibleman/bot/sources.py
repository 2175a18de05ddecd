"""
bibleman.bot.sources — Gateway & History → ReactionEvent
=========================================================

Two ways a completion shows up:

* **Live** — ``on_raw_reaction_add`` / ``on_raw_reaction_remove`` payloads.
  :meth:`ReactionSource.observe_live` turns one into a
  :class:`ReactionEvent`, or ``None`` when it shouldn't be tracked (the
  bot's own reaction, another emoji, a message that isn't a daily post).
* **History** — :meth:`ReactionSource.scan_history` walks the most recent
  ``history_limit`` messages of a channel and lists who currently has a ✅
  on each daily post.  This is a recency window, not a full audit.

A daily post is a message authored by the bot whose first embed footer
contains the completion marker.  Nothing here writes to the ledger.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import discord

from bibleman.constants import CHECKMARK, COMPLETION_MARKER, HISTORY_SCAN_LIMIT
from bibleman.engine.events import Direction, ReactionEvent
from bibleman.errors import ChannelUnreachable

logger = logging.getLogger(__name__)

# Per-channel ceiling for a history scan (seconds)
CHANNEL_SCAN_TIMEOUT = 120.0


@dataclass(frozen=True, slots=True)
class Reactor:
    user_id: str
    display_name: str


@dataclass(frozen=True, slots=True)
class ScannedMessage:
    """A daily post found by a history scan and who has checked it off."""

    message_id: int
    channel_id: int
    channel_name: str
    community: str
    text: str
    created_at: datetime
    reactors: list[Reactor] = field(default_factory=list)

    def events(self) -> list[ReactionEvent]:
        """One Add event per reactor, observed at the post's creation time."""
        return [
            ReactionEvent(
                community_id=self.community,
                user_id=r.user_id,
                display_name=r.display_name,
                direction=Direction.ADD,
                channel_id=self.channel_id,
                message_id=self.message_id,
                channel_name=self.channel_name,
                observed_at=self.created_at,
            )
            for r in self.reactors
        ]


def message_text(message: discord.Message) -> str:
    """Text the day marker lives in: the first embed's description only."""
    if not message.embeds:
        return ""
    return message.embeds[0].description or ""


def community_of(message: discord.Message, guild_id: int | None = None) -> str:
    guild = message.guild
    if guild is not None and getattr(guild, "name", None):
        return guild.name
    return str(guild_id or getattr(guild, "id", "") or "Unknown Server")


class ReactionSource:
    """Normalizes Discord reaction signals into :class:`ReactionEvent`.

    Parameters
    ----------
    client:
        Logged-in client (the bot, or the bulk-sync client).
    emoji:
        The reaction that means "done".
    marker:
        Footer text that identifies a daily post.
    history_limit:
        Messages per channel a history scan looks at.
    """

    def __init__(
        self,
        client: discord.Client,
        *,
        emoji: str = CHECKMARK,
        marker: str = COMPLETION_MARKER,
        history_limit: int = HISTORY_SCAN_LIMIT,
        scan_timeout: float = CHANNEL_SCAN_TIMEOUT,
    ) -> None:
        self.client = client
        self.emoji = emoji
        self.marker = marker
        self.history_limit = history_limit
        self.scan_timeout = scan_timeout

    @property
    def bot_user_id(self) -> int | None:
        return self.client.user.id if self.client.user else None

    # -------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------
    def is_trackable(self, message: discord.Message) -> bool:
        """True for the bot's own daily posts carrying the completion footer."""
        if self.bot_user_id is None or message.author.id != self.bot_user_id:
            return False
        if not message.embeds:
            return False
        footer = message.embeds[0].footer
        return bool(footer and footer.text and self.marker in footer.text)

    def is_tracked_emoji(self, emoji: discord.PartialEmoji | discord.Emoji | str) -> bool:
        return str(emoji) == self.emoji or getattr(emoji, "name", None) == self.emoji

    # -------------------------------------------------------------------
    # Live
    # -------------------------------------------------------------------
    def observe_live(
        self,
        payload: discord.RawReactionActionEvent,
        message: discord.Message,
        *,
        display_name: str | None = None,
    ) -> ReactionEvent | None:
        """Build the event for a raw reaction payload, or ``None`` to ignore it."""
        if payload.user_id == self.bot_user_id:
            return None
        if not self.is_tracked_emoji(payload.emoji):
            return None
        if not self.is_trackable(message):
            return None

        direction = Direction.ADD if payload.event_type == "REACTION_ADD" else Direction.REMOVE
        if display_name is None:
            member = payload.member
            display_name = member.display_name if member else str(payload.user_id)

        return ReactionEvent(
            community_id=community_of(message, payload.guild_id),
            user_id=str(payload.user_id),
            display_name=display_name,
            direction=direction,
            channel_id=payload.channel_id,
            message_id=payload.message_id,
            channel_name=getattr(message.channel, "name", "") or "",
            observed_at=datetime.now(UTC),
        )

    # -------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------
    async def resolve_display_name(
        self,
        guild: discord.Guild | None,
        user: discord.abc.User,
    ) -> str:
        """Guild nickname when resolvable, otherwise the account name."""
        if guild is not None:
            member = guild.get_member(user.id)
            if member is None:
                try:
                    member = await guild.fetch_member(user.id)
                except (discord.NotFound, discord.Forbidden, discord.HTTPException):
                    member = None
            if member is not None:
                return member.display_name
        return getattr(user, "display_name", None) or user.name

    async def _reactors(self, message: discord.Message) -> list[Reactor] | None:
        reaction = next(
            (r for r in message.reactions if self.is_tracked_emoji(r.emoji)), None,
        )
        if reaction is None:
            return None

        reactors: list[Reactor] = []
        async for user in reaction.users():
            if user.id == self.bot_user_id:
                continue
            name = await self.resolve_display_name(message.guild, user)
            reactors.append(Reactor(user_id=str(user.id), display_name=name))
        return reactors

    async def scan_history(self, channel: discord.abc.Messageable) -> list[ScannedMessage]:
        """Daily posts among the last ``history_limit`` messages, with reactors."""
        scanned: list[ScannedMessage] = []
        channel_name = getattr(channel, "name", "") or ""

        async for message in channel.history(limit=self.history_limit):
            if not self.is_trackable(message):
                continue
            try:
                reactors = await self._reactors(message)
            except discord.HTTPException:
                logger.exception("Error fetching reactors for message %s", message.id)
                continue
            if not reactors:
                continue
            scanned.append(ScannedMessage(
                message_id=message.id,
                channel_id=message.channel.id,
                channel_name=channel_name,
                community=community_of(message),
                text=message_text(message),
                created_at=message.created_at,
                reactors=reactors,
            ))

        logger.info(
            "Scanned #%s: %d daily post(s) with reactions", channel_name, len(scanned),
        )
        return scanned

    async def _scan_channel(self, channel_id: int) -> list[ScannedMessage]:
        channel = self.client.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.client.fetch_channel(channel_id)
            except (discord.NotFound, discord.Forbidden, discord.HTTPException) as exc:
                raise ChannelUnreachable(channel_id, str(exc)) from exc
        if not hasattr(channel, "history"):
            raise ChannelUnreachable(channel_id, "not a text channel")

        logger.info("Scanning #%s...", getattr(channel, "name", channel_id))
        try:
            return await asyncio.wait_for(self.scan_history(channel), self.scan_timeout)
        except TimeoutError as exc:
            raise ChannelUnreachable(channel_id, "scan timed out") from exc
        except (discord.Forbidden, discord.HTTPException) as exc:
            raise ChannelUnreachable(channel_id, str(exc)) from exc

    async def collect(
        self, channel_ids: Iterable[int],
    ) -> tuple[list[ScannedMessage], list[int]]:
        """Scan every channel; return ``(scanned, failed_channel_ids)``.

        A channel that can't be reached contributes nothing and doesn't stop
        the others.
        """
        scanned: list[ScannedMessage] = []
        failed: list[int] = []
        for channel_id in channel_ids:
            try:
                scanned.extend(await self._scan_channel(channel_id))
            except ChannelUnreachable as exc:
                logger.warning("Skipping channel: %s", exc)
                failed.append(channel_id)
        return scanned, failed
