"""
tests/test_ledger_rows.py — Row Codec Tests
============================================
Both physical sheet layouts must normalize into the same ``LedgerRow``.
"""

from __future__ import annotations

import pytest

from bibleman.ledger.base import Layout, LedgerKey, LedgerRow, parse_cells, to_cells
from bibleman.ledger.memory import MemoryLedgerStore

LEGACY_ROW = [
    "2025-01-03", "U2", "Bob", "2025-01-03 05:00:00", "2025-01-03 05:00:00 CST",
    "G1", "general", 3,
]
CURRENT_ROW = [
    5, "U3", "Carl", "G1", "2025-01-05", "2025-01-05 05:00:00",
    "2025-01-05 05:00:00 CST", "general",
]


class TestParseCells:

    def test_current_layout(self):
        row = parse_cells(CURRENT_ROW)
        assert row.layout is Layout.CURRENT
        assert row.key == LedgerKey(5, "U3", "G1")
        assert row.display_name == "Carl"
        assert row.observation_date == "2025-01-05"
        assert row.channel_name == "general"

    def test_legacy_layout(self):
        row = parse_cells(LEGACY_ROW)
        assert row.layout is Layout.LEGACY
        assert row.key == LedgerKey(3, "U2", "G1")
        assert row.display_name == "Bob"
        assert row.observation_date == "2025-01-03"
        assert row.observation_label == "2025-01-03 05:00:00 CST"
        assert row.channel_name == "general"

    def test_string_cells_from_sheet(self):
        """Sheets hands back every cell as a string."""
        row = parse_cells([str(c) for c in CURRENT_ROW])
        assert row.day == 5

    @pytest.mark.parametrize(
        "cells",
        [
            [],
            ["Day", "User", "Name", "Guild", "Date", "Reaction Time", "CST Time", "Channel"],
            ["", "U1"],
            [3, ""],
            [400, "U1", "X", "G1"],
            ["Jan 3", "U1", "X"],
            ["2025-01-03", "U2", "Bob", "", "", "G1", "general", ""],
            ["2025-01-03", "U2", "Bob", "", "", "G1", "general", "999"],
        ],
    )
    def test_unreadable_rows_are_skipped(self, cells):
        assert parse_cells(cells) is None

    def test_short_current_row_fills_blanks(self):
        row = parse_cells(["7", "U9"])
        assert row.key == LedgerKey(7, "U9", "")
        assert row.channel_name == ""


class TestToCells:

    def test_always_writes_current_layout(self):
        legacy = parse_cells(LEGACY_ROW)
        cells = to_cells(legacy)
        assert cells[0] == 3
        assert cells[1] == "U2"
        assert cells[3] == "G1"
        assert parse_cells(cells).layout is Layout.CURRENT

    def test_column_order(self):
        row = LedgerRow(
            day=9, user_id="U1", community="G1", display_name="Al",
            observation_date="d", observation_timestamp="t",
            observation_label="l", channel_name="c",
        )
        assert to_cells(row) == [9, "U1", "Al", "G1", "d", "t", "l", "c"]


class TestMixedLedger:

    def test_load_all_normalizes_both_layouts(self):
        store = MemoryLedgerStore([LEGACY_ROW, CURRENT_ROW])
        rows = store.load_all()
        assert [r.day for r in rows] == [3, 5]
        assert {r.layout for r in rows} == {Layout.LEGACY, Layout.CURRENT}

    def test_find_row_sees_legacy_rows(self):
        store = MemoryLedgerStore([LEGACY_ROW])
        assert store.find_row(3, "U2", "G1") is not None
        assert store.find_row(3, "U2", "G2") is None

    def test_load_keys(self):
        store = MemoryLedgerStore([LEGACY_ROW, CURRENT_ROW])
        assert store.load_keys() == {LedgerKey(3, "U2", "G1"), LedgerKey(5, "U3", "G1")}
