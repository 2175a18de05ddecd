"""
bibleman.errors — Exception Taxonomy
=====================================

Every failure the reconciliation pipeline can raise derives from
:class:`LedgerError`, so handler boundaries can catch the whole family.
Duplicate keys are *not* errors; they surface as
``Outcome.SKIPPED_DUPLICATE``.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for progress-ledger failures."""


class ExtractionFailure(LedgerError):
    """A message carries no usable ``Day N`` marker."""


class StoreUnavailable(LedgerError):
    """The backing store could not be reached (network, auth, quota)."""


class SchemaMissing(LedgerError):
    """The ledger table/tab does not exist yet.

    Callers provision it with ``ensure_schema()`` and retry once.
    """


class ChannelUnreachable(LedgerError):
    """A channel could not be fetched or scanned during bulk collection."""

    def __init__(self, channel_id: int, reason: str = "") -> None:
        self.channel_id = channel_id
        self.reason = reason
        super().__init__(f"Channel {channel_id} unreachable: {reason or 'unknown'}")
