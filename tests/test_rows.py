"""Unit tests for the row model - parsing, dates and sheet-row arithmetic."""

import os
import sys
import unittest
from datetime import date, time

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.dirname(__file__))

from sheetcal.rows import (
    SheetRow,
    cell_a1,
    column_letter,
    parse_row_date,
    parse_rows,
    parse_time,
    quote_sheet_name,
    to_sheet_row,
)
from fakes import make_row


class TestSheetRowArithmetic(unittest.TestCase):
    def test_row_index_7_is_sheet_row_9(self):
        self.assertEqual(to_sheet_row(7), 9)

    def test_first_data_row(self):
        self.assertEqual(to_sheet_row(0), 2)

    def test_negative_rejected(self):
        with self.assertRaises(ValueError):
            to_sheet_row(-1)

    def test_cell_a1(self):
        self.assertEqual(cell_a1(37, 7), "AL9")
        self.assertEqual(cell_a1(19, 2), "T4")


class TestColumnLetter(unittest.TestCase):
    def test_single_letters(self):
        self.assertEqual(column_letter(0), "A")
        self.assertEqual(column_letter(25), "Z")

    def test_double_letters(self):
        self.assertEqual(column_letter(26), "AA")
        self.assertEqual(column_letter(36), "AK")
        self.assertEqual(column_letter(37), "AL")
        self.assertEqual(column_letter(51), "AZ")


class TestQuoteSheetName(unittest.TestCase):
    def test_spaces(self):
        self.assertEqual(quote_sheet_name("This Year"), "'This Year'")

    def test_embedded_quote(self):
        self.assertEqual(quote_sheet_name("Dan's"), "'Dan''s'")


class TestParseRowDate(unittest.TestCase):
    def test_valid(self):
        self.assertEqual(parse_row_date("15/03/24"), date(2024, 3, 15))
        self.assertEqual(parse_row_date("1/3/24"), date(2024, 3, 1))

    def test_four_digit_year_rejected(self):
        self.assertIsNone(parse_row_date("15/03/2024"))

    def test_iso_rejected(self):
        self.assertIsNone(parse_row_date("2024-03-15"))

    def test_impossible_date(self):
        self.assertIsNone(parse_row_date("31/02/24"))

    def test_empty(self):
        self.assertIsNone(parse_row_date(""))
        self.assertIsNone(parse_row_date(None))


class TestParseTime(unittest.TestCase):
    def test_formats(self):
        self.assertEqual(parse_time("9:00"), time(9, 0))
        self.assertEqual(parse_time("21:30"), time(21, 30))
        self.assertEqual(parse_time("21:30:00"), time(21, 30))

    def test_invalid(self):
        self.assertIsNone(parse_time(""))
        self.assertIsNone(parse_time("25:00"))
        self.assertIsNone(parse_time("evening"))


class TestSheetRow(unittest.TestCase):
    def test_named_fields(self):
        row = SheetRow.from_cells(make_row(technicians=["Alice", "Bob"]), 7)
        self.assertEqual(row.sheet_row, 9)
        self.assertEqual(row.event_date, date(2024, 3, 15))
        self.assertEqual(row.event_name, "Conf erence")
        self.assertEqual(row.location, "Hall A")
        self.assertEqual(row.manager, "Mgr")
        self.assertEqual(row.technicians, ["Alice", "Bob"])
        self.assertFalse(row.cancel_requested)

    def test_cancel_values(self):
        for value in (True, "true", "TRUE"):
            row = SheetRow.from_cells(make_row(cancel=value), 0)
            self.assertTrue(row.cancel_requested, value)
        for value in ("", "FALSE", "yes", False):
            row = SheetRow.from_cells(make_row(cancel=value), 0)
            self.assertFalse(row.cancel_requested, value)

    def test_short_row(self):
        row = SheetRow.from_cells(["", "15/03/24", "Fri"], 0)
        self.assertEqual(row.cell_count, 3)
        self.assertEqual(row.technicians, [])
        self.assertEqual(row.location, "")

    def test_missing_row(self):
        self.assertIsNone(SheetRow.from_cells(None, 0))

    def test_sync_columns(self):
        cells = make_row() + [""] * 11
        cells[36] = "PROCESSED"
        cells[37] = "evt1"
        row = SheetRow.from_cells(cells, 0)
        self.assertEqual(row.processed_marker, "PROCESSED")
        self.assertEqual(row.event_id, "evt1")

    def test_parse_rows_keeps_index(self):
        rows = parse_rows([make_row(), make_row(title="B")])
        self.assertEqual([r.row_index for r in rows], [0, 1])
        self.assertEqual(rows[1].event_name, "Conf B")


if __name__ == "__main__":
    unittest.main()
