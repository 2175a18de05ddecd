"""
bibleman.ledger.sheets — Google Sheets Ledger
==============================================

The production ledger: a ``Progress`` tab (columns A:H) in the reading-plan
spreadsheet, accessed with gspread and a service-account key.

Sheets has no row-level query, so lookups read the whole tab.  That's fine
for single live events; bulk sync reads it once via :meth:`load_keys`
instead of once per reaction to stay under the read quota.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from gspread.exceptions import APIError, GSpreadException, WorksheetNotFound

from bibleman.constants import PROGRESS_HEADERS, PROGRESS_RANGE, PROGRESS_TAB
from bibleman.errors import SchemaMissing, StoreUnavailable
from bibleman.ledger.base import LedgerRow, LedgerStore, parse_cells, to_cells

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


class SheetsLedgerStore(LedgerStore):
    """Ledger stored in one worksheet of a Google spreadsheet."""

    def __init__(self, spreadsheet: gspread.Spreadsheet, tab: str = PROGRESS_TAB) -> None:
        self.spreadsheet = spreadsheet
        self.tab = tab
        self._worksheet: gspread.Worksheet | None = None

    @classmethod
    def from_service_account(
        cls,
        credentials_file: str,
        spreadsheet_id: str,
        tab: str = PROGRESS_TAB,
    ) -> SheetsLedgerStore:
        """Authorize with a service-account JSON key and open *spreadsheet_id*."""
        credentials = Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
        gc = gspread.authorize(credentials)
        try:
            spreadsheet = gc.open_by_key(spreadsheet_id)
        except (APIError, GoogleAuthError, OSError) as exc:
            raise StoreUnavailable(f"Cannot open spreadsheet {spreadsheet_id}: {exc}") from exc
        logger.info("Opened spreadsheet %s (tab %s)", spreadsheet.title, tab)
        return cls(spreadsheet, tab)

    # -------------------------------------------------------------------
    # Error translation
    # -------------------------------------------------------------------
    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except WorksheetNotFound as exc:
            self._worksheet = None
            raise SchemaMissing(f"Worksheet {self.tab!r} not found during {action}") from exc
        except (APIError, GSpreadException, GoogleAuthError, OSError) as exc:
            raise StoreUnavailable(f"{action} on {self.tab!r} failed: {exc}") from exc

    def _ws(self) -> gspread.Worksheet:
        if self._worksheet is None:
            self._worksheet = self.spreadsheet.worksheet(self.tab)
        return self._worksheet

    def _values(self) -> list[list[str]]:
        return self._ws().get_values(PROGRESS_RANGE)

    # -------------------------------------------------------------------
    # LedgerStore
    # -------------------------------------------------------------------
    def ensure_schema(self) -> None:
        with self._guard("ensure_schema"):
            try:
                ws = self.spreadsheet.worksheet(self.tab)
            except WorksheetNotFound:
                ws = self.spreadsheet.add_worksheet(
                    title=self.tab, rows=1000, cols=len(PROGRESS_HEADERS),
                )
                logger.info("Created worksheet %r", self.tab)
            if not ws.row_values(1):
                ws.update([PROGRESS_HEADERS], "A1:H1")
                logger.info("Wrote header row to %r", self.tab)
            self._worksheet = ws

    def append_row(self, row: LedgerRow) -> None:
        with self._guard("append_row"):
            self._ws().append_row(
                to_cells(row),
                value_input_option="RAW",
                insert_data_option="INSERT_ROWS",
                table_range="A1",
            )

    def find_row(self, day: int, user_id: str, community: str) -> LedgerRow | None:
        for row in self.load_all():
            if row.matches(day, user_id, community):
                return row
        return None

    def delete_row(self, day: int, user_id: str, community: str) -> bool:
        with self._guard("delete_row"):
            values = self._values()
            # Sheet rows are 1-based; row 1 is the header
            for index, cells in enumerate(values, start=1):
                row = parse_cells(cells)
                if row is not None and row.matches(day, user_id, community):
                    self._ws().delete_rows(index)
                    return True
        return False

    def load_all(self) -> list[LedgerRow]:
        with self._guard("load_all"):
            values = self._values()
        return [row for row in map(parse_cells, values[1:]) if row is not None]
