"""
bibleman.services.sync_service — Discord History → Ledger Backfill
===================================================================

Catches reactions the live handlers missed (bot offline, dropped gateway
events) by rescanning recent daily posts and appending whatever the
ledger doesn't have yet.  Never clears or rewrites existing rows, so it is
safe to run on startup, from ``/sync``, or from cron as often as you like.

How it works:
    1. Scan each configured channel (bounded; failures isolated per channel).
    2. Pull the ``Day N`` out of every daily post; posts without one are
       counted as ``unparsed`` and skipped.
    3. Hand the (event, day) pairs to
       :meth:`ReconciliationEngine.reconcile_bulk`, which reads the ledger
       once and appends only net-new keys.

Also home to the reaction audit: a side-by-side of what Discord shows and
what the ledger holds, per member.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import TYPE_CHECKING

from bibleman.engine.day_key import extract_day_key
from bibleman.engine.events import ReactionEvent
from bibleman.ledger.base import LedgerRow

if TYPE_CHECKING:
    from bibleman.bot.sources import ReactionSource, ScannedMessage
    from bibleman.engine.reconcile import ReconciliationEngine

logger = logging.getLogger(__name__)


def pair_with_days(
    scanned: Iterable[ScannedMessage],
) -> tuple[list[tuple[ReactionEvent, int]], int]:
    """Attach the plan day to every reactor event.

    Returns ``(pairs, unparsed_messages)``.
    """
    pairs: list[tuple[ReactionEvent, int]] = []
    unparsed = 0
    for message in scanned:
        day = extract_day_key(message.text)
        if day is None:
            unparsed += 1
            logger.warning(
                "No 'Day N' marker in message %s (#%s) — %d reaction(s) not tracked",
                message.message_id, message.channel_name, len(message.reactors),
            )
            continue
        pairs.extend((event, day) for event in message.events())
    return pairs, unparsed


async def run_sync(
    source: ReactionSource,
    reconciler: ReconciliationEngine,
    channel_ids: Iterable[int],
    *,
    dry_run: bool = False,
) -> dict:
    """Collect → reconcile → report.

    Returns the :meth:`reconcile_bulk` counters plus ``collected``,
    ``messages``, ``unparsed`` and ``channels_failed``.
    """
    scanned, failed_channels = await source.collect(channel_ids)
    pairs, unparsed = pair_with_days(scanned)
    logger.info(
        "Collected %d reaction(s) from %d daily post(s)",
        sum(len(m.reactors) for m in scanned), len(scanned),
    )

    stats = await reconciler.reconcile_bulk(pairs, dry_run=dry_run)
    return {
        **stats,
        "collected": len(pairs),
        "messages": len(scanned),
        "unparsed": unparsed,
        "channels_failed": failed_channels,
    }


def log_summary(report: dict) -> None:
    """Write the sync report to the log in a human-friendly block."""
    verb = "Would add" if report.get("dry_run") else "Newly added"
    logger.info("=" * 60)
    logger.info("SYNC SUMMARY")
    logger.info("Reactions found in Discord: %d", report["collected"])
    logger.info("%s to ledger: %d", verb, report["added"])
    logger.info("Already tracked (skipped): %d", report["skipped"])
    if report["failed"]:
        logger.warning("Failed writes: %d (re-run sync to retry)", report["failed"])
    if report["unparsed"]:
        logger.warning("Daily posts without a day number: %d", report["unparsed"])
    if report["channels_failed"]:
        logger.warning("Unreachable channels: %s", report["channels_failed"])
    if report["failed"]:
        logger.info("Ledger partially synced.")
    elif report["added"]:
        logger.info("Ledger is now in sync with Discord.")
    else:
        logger.info("Ledger was already in sync.")
    logger.info("=" * 60)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
def audit_discrepancies(
    scanned: Iterable[ScannedMessage],
    rows: Iterable[LedgerRow],
) -> list[dict]:
    """Compare Discord ✅ reactions with ledger rows, per (user, community).

    Only days that appear among the scanned posts are compared, because
    the scan only covers recent history.

    Returns one dict per member with a mismatch::

        {"user_id", "display_name", "community",
         "missing_from_ledger": [days], "extra_in_ledger": [days]}
    """
    pairs, _ = pair_with_days(scanned)

    discord_days: dict[tuple[str, str], set[int]] = defaultdict(set)
    names: dict[tuple[str, str], str] = {}
    scanned_days: dict[str, set[int]] = defaultdict(set)
    for event, day in pairs:
        key = (event.user_id, event.community_id)
        discord_days[key].add(day)
        names[key] = event.display_name
        scanned_days[event.community_id].add(day)

    ledger_days: dict[tuple[str, str], set[int]] = defaultdict(set)
    for row in rows:
        if row.day in scanned_days.get(row.community, ()):
            key = (row.user_id, row.community)
            ledger_days[key].add(row.day)
            names.setdefault(key, row.display_name)

    report = []
    for key in sorted(set(discord_days) | set(ledger_days)):
        missing = discord_days[key] - ledger_days[key]
        extra = ledger_days[key] - discord_days[key]
        if not missing and not extra:
            continue
        report.append({
            "user_id": key[0],
            "display_name": names.get(key, key[0]),
            "community": key[1],
            "missing_from_ledger": sorted(missing),
            "extra_in_ledger": sorted(extra),
        })

    if report:
        logger.warning("Audit: %d member(s) out of sync", len(report))
    else:
        logger.info("Audit: no discrepancies — Discord and ledger match")
    return report
