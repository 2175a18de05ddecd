"""
bibleman.ledger.base — Ledger Row, Row Codec & Store Contract
==============================================================

**Why this file exists:**
The progress ledger has lived in a spreadsheet through two column layouts.
Older rows were keyed by calendar date with the day number pushed to the
last column; newer rows lead with the day number::

    current: Day | User | Name | Guild | Date | Reaction Time | CST Time | Channel
    legacy:  Date | User | Name | Reaction Time | CST Time | Guild | Channel | Day

Every backend stores raw cell rows and funnels them through
:func:`parse_cells` / :func:`to_cells` here, so no other module ever
indexes into a positional row.  New writes always use the current layout.

A row is legacy when its first cell is not an in-range integer but does
parse as a ``YYYY-MM-DD`` date.  Anything else is unreadable and skipped.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, NamedTuple

from bibleman.constants import MAX_PLAN_DAY, MIN_PLAN_DAY

logger = logging.getLogger(__name__)

__all__ = [
    "Layout",
    "LedgerKey",
    "LedgerRow",
    "LedgerStore",
    "parse_cells",
    "to_cells",
]


class Layout(enum.StrEnum):
    """Physical column order a row was read from."""
    CURRENT = "current"
    LEGACY = "legacy"


class LedgerKey(NamedTuple):
    """Primary key of a ledger row: at most one row per key."""
    day: int
    user_id: str
    community: str


@dataclass(frozen=True, slots=True)
class LedgerRow:
    """One completed reading day for one user in one community.

    Only ``day``, ``user_id`` and ``community`` form the identity; the rest
    is metadata captured at observation time.
    """

    day: int
    user_id: str
    community: str
    display_name: str = ""
    observation_date: str = ""
    observation_timestamp: str = ""
    observation_label: str = ""
    channel_name: str = ""
    layout: Layout = Layout.CURRENT

    @property
    def key(self) -> LedgerKey:
        return LedgerKey(self.day, self.user_id, self.community)

    def matches(self, day: int, user_id: str, community: str) -> bool:
        return self.key == (day, str(user_id), community)


# ---------------------------------------------------------------------------
# Row codec
# ---------------------------------------------------------------------------
def _cell(cells: Sequence[Any], index: int) -> str:
    if index >= len(cells) or cells[index] is None:
        return ""
    return str(cells[index]).strip()


def _parse_day(text: str) -> int | None:
    try:
        day = int(text)
    except ValueError:
        return None
    if not MIN_PLAN_DAY <= day <= MAX_PLAN_DAY:
        return None
    return day


def _is_iso_date(text: str) -> bool:
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return len(text) == 10


def parse_cells(cells: Sequence[Any]) -> LedgerRow | None:
    """Normalize one raw ledger row in either layout into a :class:`LedgerRow`.

    Returns ``None`` for header rows, blank rows, and rows whose layout
    can't be determined or whose day number is missing/out of range.
    """
    first = _cell(cells, 0)
    user_id = _cell(cells, 1)
    if not first or not user_id:
        return None

    day = _parse_day(first)
    if day is not None:
        return LedgerRow(
            day=day,
            user_id=user_id,
            display_name=_cell(cells, 2),
            community=_cell(cells, 3),
            observation_date=_cell(cells, 4),
            observation_timestamp=_cell(cells, 5),
            observation_label=_cell(cells, 6),
            channel_name=_cell(cells, 7),
            layout=Layout.CURRENT,
        )

    if _is_iso_date(first):
        legacy_day = _parse_day(_cell(cells, 7))
        if legacy_day is None:
            logger.debug("Skipping legacy ledger row without day number: %r", cells)
            return None
        return LedgerRow(
            day=legacy_day,
            user_id=user_id,
            display_name=_cell(cells, 2),
            observation_date=first,
            observation_timestamp=_cell(cells, 3),
            observation_label=_cell(cells, 4),
            community=_cell(cells, 5),
            channel_name=_cell(cells, 6),
            layout=Layout.LEGACY,
        )

    logger.debug("Skipping unreadable ledger row: %r", cells)
    return None


def to_cells(row: LedgerRow) -> list[Any]:
    """Serialize *row* in the current layout (day first)."""
    return [
        row.day,
        row.user_id,
        row.display_name,
        row.community,
        row.observation_date,
        row.observation_timestamp,
        row.observation_label,
        row.channel_name,
    ]


# ---------------------------------------------------------------------------
# Store contract
# ---------------------------------------------------------------------------
class LedgerStore(ABC):
    """Append-preferring tabular store holding the progress ledger.

    All methods are **synchronous** and may block on I/O; async callers go
    through :func:`bibleman.database.engine.run_db`.  Implementations raise
    :class:`~bibleman.errors.StoreUnavailable` when the backend can't be
    reached and :class:`~bibleman.errors.SchemaMissing` when the
    table/tab doesn't exist yet.  No update-in-place operation exists.
    """

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create the table/tab with the current header order if absent."""

    @abstractmethod
    def append_row(self, row: LedgerRow) -> None:
        """Append *row* in the current layout."""

    @abstractmethod
    def find_row(self, day: int, user_id: str, community: str) -> LedgerRow | None:
        """Return the row for the key, in either layout, or ``None``."""

    @abstractmethod
    def delete_row(self, day: int, user_id: str, community: str) -> bool:
        """Delete the row for the key.  ``True`` if one was removed."""

    @abstractmethod
    def load_all(self) -> list[LedgerRow]:
        """Every readable row, normalized."""

    def load_keys(self) -> set[LedgerKey]:
        """Read the whole ledger once and index it by primary key."""
        return {row.key for row in self.load_all()}
