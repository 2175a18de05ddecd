"""
bibleman.engine.reconcile — Reaction → Ledger Reconciliation
=============================================================

Turns a :class:`ReactionEvent` plus its plan day into at most one ledger
mutation, keeping exactly one row per ``(day, user, community)``.

How it works:
    Add
        1. Look the key up with ``find_row`` — up to three times, waiting
           ``check_delays`` between attempts (default 0 s, 0.5 s, 1.5 s).
           Gateway events get re-delivered and two handlers for the same
           reaction can overlap; a late check catches the row the other
           handler just wrote.
        2. Found on any attempt → ``SKIPPED_DUPLICATE``, nothing written.
        3. Otherwise append a current-layout row → ``INSERTED``.
    Remove
        1. ``delete_row`` on the key.
        2. ``DELETED`` if a row went away, ``SKIPPED_NOT_FOUND`` otherwise.

Within one process a per-key :class:`asyncio.Lock` also serializes the
two paths, so the existence check only has to cover other processes.
There is no ordering across keys, and for one key the last event
processed wins: Discord doesn't order deliveries across reconnects.

Bulk sync (:meth:`ReconciliationEngine.reconcile_bulk`) reads the whole
ledger once into a key set, diffs in memory, and appends only net-new rows
with a small pause between writes.  A failed append is logged and counted;
the next run picks it up again.

Any store call that hits :class:`SchemaMissing` provisions the schema and
retries that call once.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import weakref
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import TypeVar
from zoneinfo import ZoneInfo

from bibleman.constants import (
    DATE_FORMAT,
    DEFAULT_TIMEZONE,
    EXISTENCE_CHECK_DELAYS,
    LABELED_TIMESTAMP_FORMAT,
    SYNC_WRITE_DELAY,
    TIMESTAMP_FORMAT,
)
from bibleman.database.engine import run_db
from bibleman.engine.day_key import require_day_key
from bibleman.engine.events import Direction, ReactionEvent
from bibleman.errors import SchemaMissing, StoreUnavailable
from bibleman.ledger.base import LedgerKey, LedgerRow, LedgerStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Outcome(enum.StrEnum):
    """What reconciling one event did to the ledger."""
    INSERTED = "inserted"
    DELETED = "deleted"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_NOT_FOUND = "skipped_not_found"


def build_row(event: ReactionEvent, day: int, tz: ZoneInfo) -> LedgerRow:
    """Ledger row for *event* on plan *day*, timestamps in *tz*."""
    observed = event.observed_at
    if observed.tzinfo is None:
        observed = observed.replace(tzinfo=UTC)
    local = observed.astimezone(tz)
    return LedgerRow(
        day=day,
        user_id=str(event.user_id),
        community=event.community_id,
        display_name=event.display_name,
        observation_date=local.strftime(DATE_FORMAT),
        observation_timestamp=local.strftime(TIMESTAMP_FORMAT),
        observation_label=local.strftime(LABELED_TIMESTAMP_FORMAT),
        channel_name=event.channel_name,
    )


class ReconciliationEngine:
    """Applies reaction events to a :class:`LedgerStore` idempotently.

    Parameters
    ----------
    store:
        The ledger backend.  Constructed once and injected.
    tz:
        Timezone for the observation columns.
    check_delays:
        Seconds to wait before each existence check on Add.
    write_delay:
        Seconds between appends during bulk sync.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        tz: str | ZoneInfo = DEFAULT_TIMEZONE,
        check_delays: tuple[float, ...] = EXISTENCE_CHECK_DELAYS,
        write_delay: float = SYNC_WRITE_DELAY,
    ) -> None:
        if not check_delays:
            raise ValueError("check_delays needs at least one entry")
        self.store = store
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz
        self.check_delays = tuple(check_delays)
        self.write_delay = write_delay
        self._locks: weakref.WeakValueDictionary[LedgerKey, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # -------------------------------------------------------------------
    # Store access
    # -------------------------------------------------------------------
    async def _call(self, func: Callable[..., T], *args) -> T:
        """Run a store call off-loop; self-heal a missing schema once."""
        try:
            return await run_db(func, *args)
        except SchemaMissing:
            logger.warning(
                "Ledger schema missing during %s — provisioning and retrying once",
                getattr(func, "__name__", func),
            )
            await run_db(self.store.ensure_schema)
            return await run_db(func, *args)

    def _lock_for(self, key: LedgerKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # -------------------------------------------------------------------
    # Single event
    # -------------------------------------------------------------------
    async def reconcile(self, event: ReactionEvent, day: int) -> Outcome:
        """Apply one event for plan *day*.  See module docstring."""
        key = LedgerKey(day, str(event.user_id), event.community_id)
        lock = self._lock_for(key)
        async with lock:
            if event.direction is Direction.ADD:
                return await self._add(event, key)
            return await self._remove(key)

    async def reconcile_message(self, event: ReactionEvent, text: str | None) -> Outcome:
        """Extract the day from *text*, then :meth:`reconcile`.

        Raises :class:`~bibleman.errors.ExtractionFailure` before touching
        the store when *text* has no usable ``Day N`` marker.
        """
        day = require_day_key(text)
        return await self.reconcile(event, day)

    async def _add(self, event: ReactionEvent, key: LedgerKey) -> Outcome:
        for attempt, delay in enumerate(self.check_delays, start=1):
            if delay:
                await asyncio.sleep(delay)
            existing = await self._call(self.store.find_row, *key)
            if existing is not None:
                logger.info(
                    "Day %d already recorded for %s (%s) in %s [check %d] — skipping",
                    key.day, event.display_name, key.user_id, key.community, attempt,
                )
                return Outcome.SKIPPED_DUPLICATE

        await self._call(self.store.append_row, build_row(event, key.day, self.tz))
        logger.info(
            "Recorded Day %d for %s (%s) in %s",
            key.day, event.display_name, key.user_id, key.community,
        )
        return Outcome.INSERTED

    async def _remove(self, key: LedgerKey) -> Outcome:
        removed = await self._call(self.store.delete_row, *key)
        if not removed:
            logger.info(
                "No Day %d row for %s in %s to remove",
                key.day, key.user_id, key.community,
            )
            return Outcome.SKIPPED_NOT_FOUND
        logger.info("Removed Day %d for %s in %s", key.day, key.user_id, key.community)
        return Outcome.DELETED

    # -------------------------------------------------------------------
    # Bulk sync
    # -------------------------------------------------------------------
    async def reconcile_bulk(
        self,
        items: Iterable[tuple[ReactionEvent, int]],
        *,
        dry_run: bool = False,
    ) -> dict:
        """Append every (event, day) pair whose key isn't in the ledger yet.

        Only Add events are considered: a history scan sees which reactions
        are present, not which were taken back.

        Args:
            items: ``(event, day)`` pairs, already day-extracted.
            dry_run: If True, compute but don't write.

        Returns:
            ``{"received": N, "added": A, "skipped": S, "failed": F, ...}``

        Raises:
            StoreUnavailable: If the ledger can't be read at all.
        """
        index = await self._call(self.store.load_keys)
        logger.info("Loaded %d existing ledger keys", len(index))

        received = 0
        skipped = 0
        to_add: list[LedgerRow] = []

        for event, day in items:
            if event.direction is not Direction.ADD:
                continue
            received += 1
            key = LedgerKey(day, str(event.user_id), event.community_id)
            if key in index:
                skipped += 1
                logger.debug(
                    "Skipped: Day %d - %s (already recorded)", day, event.display_name,
                )
                continue
            index.add(key)
            to_add.append(build_row(event, day, self.tz))

        added = 0
        failed = 0
        if dry_run:
            added = len(to_add)
            for row in to_add:
                logger.info("Would add: Day %d - %s", row.day, row.display_name)
        else:
            for position, row in enumerate(to_add):
                if position and self.write_delay:
                    await asyncio.sleep(self.write_delay)
                try:
                    await self._call(self.store.append_row, row)
                except StoreUnavailable:
                    failed += 1
                    logger.exception(
                        "Failed to add Day %d for %s (%s) in %s",
                        row.day, row.display_name, row.user_id, row.community,
                    )
                    continue
                added += 1
                logger.info("Added: Day %d - %s", row.day, row.display_name)

        action = "would add" if dry_run else "added"
        logger.info(
            "Bulk reconcile: %s %d, skipped %d, failed %d (of %d received)",
            action, added, skipped, failed, received,
        )
        return {
            "received": received,
            "added": added,
            "skipped": skipped,
            "failed": failed,
            "dry_run": dry_run,
            "timestamp": datetime.now(UTC).isoformat(),
        }
