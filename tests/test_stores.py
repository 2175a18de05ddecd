"""
tests/test_stores.py — Ledger Store Contract Tests
===================================================
The same behaviour is expected from every backend.  The SQL store runs
against in-memory SQLite; the Sheets store against a mocked worksheet.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from gspread.exceptions import APIError, WorksheetNotFound
from sqlalchemy import inspect

from bibleman.constants import PROGRESS_HEADERS
from bibleman.database.engine import get_session, init_db
from bibleman.database.models import ProgressEntry
from bibleman.errors import SchemaMissing, StoreUnavailable
from bibleman.ledger.base import Layout, LedgerRow
from bibleman.ledger.memory import MemoryLedgerStore
from bibleman.ledger.sheets import SheetsLedgerStore
from bibleman.ledger.sql import SqlLedgerStore

from tests.test_ledger_rows import CURRENT_ROW, LEGACY_ROW


def _row(day: int = 1, user_id: str = "U1", community: str = "G1") -> LedgerRow:
    return LedgerRow(
        day=day, user_id=user_id, community=community, display_name="Alice",
        observation_date="2026-01-15", observation_timestamp="2026-01-15 06:30:00",
        observation_label="2026-01-15 06:30:00 CST", channel_name="daily-reading",
    )


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------
class TestMemoryStore:

    def test_append_find_delete(self, memory_store):
        memory_store.append_row(_row(2))
        assert memory_store.find_row(2, "U1", "G1") == _row(2)
        assert memory_store.delete_row(2, "U1", "G1") is True
        assert memory_store.find_row(2, "U1", "G1") is None
        assert memory_store.delete_row(2, "U1", "G1") is False

    def test_delete_only_removes_matching_key(self, memory_store):
        memory_store.append_row(_row(2, "U1"))
        memory_store.append_row(_row(2, "U2"))
        memory_store.delete_row(2, "U1", "G1")
        assert [r.user_id for r in memory_store.load_all()] == ["U2"]

    def test_delete_legacy_row(self):
        store = MemoryLedgerStore([LEGACY_ROW])
        assert store.delete_row(3, "U2", "G1") is True
        assert store.raw_rows == []

    def test_unprovisioned_raises_schema_missing(self):
        store = MemoryLedgerStore(provisioned=False)
        with pytest.raises(SchemaMissing):
            store.append_row(_row())
        store.ensure_schema()
        store.append_row(_row())
        assert len(store.load_all()) == 1

    def test_unavailable(self, memory_store):
        memory_store.available = False
        with pytest.raises(StoreUnavailable):
            memory_store.load_all()


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------
class TestSqlStore:

    def test_append_writes_current_layout(self, db_engine):
        store = SqlLedgerStore(db_engine)
        store.append_row(_row(4))

        with get_session(db_engine) as session:
            entry = session.query(ProgressEntry).one()
            assert entry.col_a == "4"
            assert entry.col_b == "U1"
            assert entry.col_d == "G1"
            assert entry.col_h == "daily-reading"

    def test_find_and_delete(self, db_engine):
        store = SqlLedgerStore(db_engine)
        store.append_row(_row(4))
        store.append_row(_row(4, "U2"))

        found = store.find_row(4, "U1", "G1")
        assert found is not None and found.display_name == "Alice"
        assert store.find_row(4, "U1", "Other Guild") is None

        assert store.delete_row(4, "U1", "G1") is True
        assert store.delete_row(4, "U1", "G1") is False
        assert [r.user_id for r in store.load_all()] == ["U2"]

    def test_reads_legacy_rows(self, db_engine):
        with get_session(db_engine) as session:
            for cells in (LEGACY_ROW, CURRENT_ROW):
                session.add(ProgressEntry(**{
                    f"col_{c}": str(v) for c, v in zip("abcdefgh", cells)
                }))

        store = SqlLedgerStore(db_engine)
        rows = store.load_all()
        assert [(r.day, r.layout) for r in rows] == [(3, Layout.LEGACY), (5, Layout.CURRENT)]
        assert store.find_row(3, "U2", "G1").layout is Layout.LEGACY
        assert store.delete_row(3, "U2", "G1") is True
        assert [r.day for r in store.load_all()] == [5]

    def test_missing_table_raises_schema_missing(self, bare_engine):
        store = SqlLedgerStore(bare_engine)
        with pytest.raises(SchemaMissing):
            store.append_row(_row())
        with pytest.raises(SchemaMissing):
            store.load_all()

    def test_ensure_schema_is_idempotent(self, bare_engine):
        store = SqlLedgerStore(bare_engine)
        store.ensure_schema()
        store.ensure_schema()
        assert inspect(bare_engine).has_table("progress")
        store.append_row(_row())
        assert len(store.load_all()) == 1

    def test_init_db_provisions_progress_table(self, bare_engine):
        init_db(bare_engine)
        assert inspect(bare_engine).has_table("progress")
        SqlLedgerStore(bare_engine).append_row(_row())


# ---------------------------------------------------------------------------
# Google Sheets
# ---------------------------------------------------------------------------
def _sheet(values: list[list]) -> tuple[SheetsLedgerStore, MagicMock]:
    worksheet = MagicMock()
    worksheet.get_values.return_value = values
    spreadsheet = MagicMock()
    spreadsheet.worksheet.return_value = worksheet
    return SheetsLedgerStore(spreadsheet, "Progress"), worksheet


def _api_error() -> APIError:
    response = MagicMock()
    response.json.return_value = {"error": {"code": 429, "message": "quota", "status": "x"}}
    return APIError(response)


class TestSheetsStore:

    def test_load_all_skips_header(self):
        store, _ = _sheet([PROGRESS_HEADERS, [str(c) for c in LEGACY_ROW], CURRENT_ROW])
        assert [r.day for r in store.load_all()] == [3, 5]

    def test_append_uses_raw_insert(self):
        store, ws = _sheet([PROGRESS_HEADERS])
        store.append_row(_row(6))
        ws.append_row.assert_called_once()
        args, kwargs = ws.append_row.call_args
        assert args[0][0] == 6
        assert kwargs["value_input_option"] == "RAW"
        assert kwargs["insert_data_option"] == "INSERT_ROWS"

    def test_delete_targets_sheet_row_number(self):
        store, ws = _sheet([PROGRESS_HEADERS, CURRENT_ROW, LEGACY_ROW])
        assert store.delete_row(3, "U2", "G1") is True
        ws.delete_rows.assert_called_once_with(3)

    def test_delete_absent(self):
        store, ws = _sheet([PROGRESS_HEADERS, CURRENT_ROW])
        assert store.delete_row(1, "U9", "G1") is False
        ws.delete_rows.assert_not_called()

    def test_missing_tab_raises_schema_missing(self):
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = WorksheetNotFound("Progress")
        store = SheetsLedgerStore(spreadsheet)
        with pytest.raises(SchemaMissing):
            store.load_all()

    def test_api_error_raises_store_unavailable(self):
        store, ws = _sheet([])
        ws.append_row.side_effect = _api_error()
        with pytest.raises(StoreUnavailable):
            store.append_row(_row())

    def test_ensure_schema_creates_tab_with_headers(self):
        new_ws = MagicMock()
        new_ws.row_values.return_value = []
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = WorksheetNotFound("Progress")
        spreadsheet.add_worksheet.return_value = new_ws

        SheetsLedgerStore(spreadsheet).ensure_schema()

        spreadsheet.add_worksheet.assert_called_once()
        new_ws.update.assert_called_once_with([PROGRESS_HEADERS], "A1:H1")

    def test_ensure_schema_leaves_existing_header(self):
        store, ws = _sheet([PROGRESS_HEADERS])
        ws.row_values.return_value = PROGRESS_HEADERS
        store.ensure_schema()
        ws.update.assert_not_called()
