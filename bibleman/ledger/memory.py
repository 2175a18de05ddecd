"""
bibleman.ledger.memory — In-Memory Reference Store
===================================================

Keeps raw cell rows in a list, exactly like a spreadsheet tab would, so
both layouts can be seeded and read back.  Used by tests and by the
``memory`` backend for local dry runs.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from typing import Any

from bibleman.errors import SchemaMissing, StoreUnavailable
from bibleman.ledger.base import LedgerRow, LedgerStore, parse_cells, to_cells


class MemoryLedgerStore(LedgerStore):
    """Thread-safe list-backed ledger.

    Parameters
    ----------
    rows:
        Optional raw cell rows (current or legacy layout) to seed with.
    provisioned:
        When ``False`` the tab "doesn't exist" until :meth:`ensure_schema`
        runs, so every operation raises :class:`SchemaMissing`.
    """

    def __init__(
        self,
        rows: Iterable[Sequence[Any]] = (),
        *,
        provisioned: bool = True,
    ) -> None:
        self._rows: list[list[Any]] = [list(r) for r in rows]
        self._lock = threading.Lock()
        self.provisioned = provisioned
        self.available = True
        self.append_calls = 0

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailable("memory ledger marked unavailable")
        if not self.provisioned:
            raise SchemaMissing("memory ledger tab not provisioned")

    @property
    def raw_rows(self) -> list[list[Any]]:
        with self._lock:
            return [list(r) for r in self._rows]

    def ensure_schema(self) -> None:
        with self._lock:
            self.provisioned = True

    def append_row(self, row: LedgerRow) -> None:
        self._check()
        with self._lock:
            self._rows.append(to_cells(row))
            self.append_calls += 1

    def find_row(self, day: int, user_id: str, community: str) -> LedgerRow | None:
        self._check()
        for row in self.load_all():
            if row.matches(day, user_id, community):
                return row
        return None

    def delete_row(self, day: int, user_id: str, community: str) -> bool:
        self._check()
        with self._lock:
            for index, cells in enumerate(self._rows):
                row = parse_cells(cells)
                if row is not None and row.matches(day, user_id, community):
                    del self._rows[index]
                    return True
        return False

    def load_all(self) -> list[LedgerRow]:
        self._check()
        with self._lock:
            snapshot = [list(r) for r in self._rows]
        return [row for row in map(parse_cells, snapshot) if row is not None]
