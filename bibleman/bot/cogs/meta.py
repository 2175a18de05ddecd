"""
bibleman.bot.cogs.meta — Leaderboard & Sync Commands
=====================================================

- /leaderboard — completion standings for this server
- /sync — admin-only: backfill missed ✅ reactions from recent history
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from bibleman.constants import LEADERBOARD_SIZE, RANK_BADGES
from bibleman.database.engine import run_db
from bibleman.engine.leaderboard import LeaderboardEntry, compute_leaderboard
from bibleman.errors import LedgerError
from bibleman.services.plan_service import local_today

if TYPE_CHECKING:
    from bibleman.bot.core import BibleBot

logger = logging.getLogger(__name__)


def is_admin():
    """Check for the configured admin role, or Manage Server when none is set."""
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: BibleBot = interaction.client  # type: ignore[assignment]
        user = interaction.user
        if not isinstance(user, discord.Member):
            return False
        admin_role_id = bot.cfg.admin_role_id
        if admin_role_id is None:
            return user.guild_permissions.manage_guild
        return any(role.id == admin_role_id for role in user.roles)
    return app_commands.check(predicate)


def _status(entry: LeaderboardEntry) -> str:
    if entry.days_behind == 0:
        return "✅ On track"
    if entry.days_behind <= 2:
        return "⚠️ Slightly behind"
    return "\U0001f6a8 Needs attention"


class Meta(commands.Cog, name="Meta"):
    """Leaderboard and maintenance commands."""

    def __init__(self, bot: BibleBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /leaderboard
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="leaderboard",
        description="See who is keeping up with the reading plan.",
    )
    async def leaderboard(self, ctx: commands.Context) -> None:
        community = ctx.guild.name if ctx.guild else None
        try:
            rows = await run_db(self.bot.store.load_all)
        except LedgerError:
            logger.exception("Leaderboard: ledger unavailable")
            await ctx.send("❌ Progress data is unavailable right now.", ephemeral=True)
            return

        entries = compute_leaderboard(
            rows, self.bot.plan,
            today=local_today(self.bot.cfg.timezone),
            community=community,
        )
        if not entries:
            await ctx.send(
                "No completions yet! React with ✅ on today's reading to get started.",
                ephemeral=True,
            )
            return

        lines = []
        for i, e in enumerate(entries[:LEADERBOARD_SIZE], 1):
            medal = RANK_BADGES[i-1] if 0 < i <= len(RANK_BADGES) else f"**{i}.**"
            lines.append(
                f"{medal} **{e.display_name}** — {e.completion_rate}% "
                f"({e.completed_days}/{e.total_plan_days} days) · {_status(e)}"
            )

        on_track = sum(1 for e in entries if e.on_track)
        embed = discord.Embed(
            title=f"\U0001f3c6 Reading Leaderboard — Day {entries[0].current_plan_day}",
            description="\n".join(lines),
            color=discord.Color.gold(),
        )
        embed.add_field(
            name="Summary",
            value=f"\U0001f465 {len(entries)} readers · ✅ {on_track} on track",
            inline=False,
        )
        embed.set_footer(text=self.bot.cfg.community_name)
        await ctx.send(embed=embed)

    # -------------------------------------------------------------------
    # /sync
    # -------------------------------------------------------------------
    @app_commands.command(name="sync", description="Backfill missed reading check-offs.")
    @app_commands.describe(dry_run="Only report what would be added")
    @is_admin()
    async def sync(self, interaction: discord.Interaction, dry_run: bool = False) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            report = await self.bot.run_bulk_sync(dry_run=dry_run)
        except LedgerError:
            logger.exception("Manual sync failed")
            await interaction.followup.send("❌ Sync failed — check the logs.", ephemeral=True)
            return

        verb = "would add" if dry_run else "added"
        msg = (
            f"\U0001f504 Sync complete: {verb} **{report['added']}**, "
            f"skipped **{report['skipped']}**, failed **{report['failed']}**."
        )
        if report["channels_failed"]:
            msg += f"\n⚠️ Unreachable channels: {len(report['channels_failed'])}"
        await interaction.followup.send(msg, ephemeral=True)


async def setup(bot: BibleBot) -> None:
    await bot.add_cog(Meta(bot))
