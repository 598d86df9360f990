#!/usr/bin/env python3
"""
Tests for reading spreadsheet payloads into grids.
"""

import io
import unittest
from unittest.mock import patch

import pandas as pd
from openpyxl import Workbook

from quote_ingest.exceptions import EmptyOrUnreadableDocument, MalformedSourceData
from quote_ingest.normalizer import parse_quantity
from quote_ingest.spreadsheet_reader import OLE_MAGIC, read_workbook


def build_xlsx(sheets):
    """Build an .xlsx payload in memory from {sheet_name: rows}."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class TestReadWorkbook(unittest.TestCase):
    """xlsx / csv sniffing and decoding."""

    def test_xlsx_sheets_in_order(self):
        content = build_xlsx({
            "Quote": [["Name", "Price"], ["Siemens PLC", 2500]],
            "Notes": [["Valid for 30 days"]],
        })
        sheets = read_workbook(content, "quote.xlsx")
        self.assertEqual([name for name, _ in sheets], ["Quote", "Notes"])
        self.assertEqual(sheets[0][1], [["Name", "Price"], ["Siemens PLC", 2500]])

    def test_csv_utf8(self):
        content = "Name,Price\nWidget,$5.00\n".encode("utf-8")
        sheets = read_workbook(content, "quote.csv")
        self.assertEqual(sheets, [("quote", [["Name", "Price"], ["Widget", "$5.00"]])])

    def test_csv_hebrew_windows_encoding(self):
        content = "שם,מחיר\nבקר,100\n".encode("cp1255")
        sheets = read_workbook(content, "הצעה.csv")
        self.assertEqual(sheets[0][1], [["שם", "מחיר"], ["בקר", "100"]])

    def test_csv_blank_cells_become_none(self):
        content = b"Name,Price,Qty\nWidget,,3\n"
        grid = read_workbook(content, "q.csv")[0][1]
        self.assertEqual(grid[1], ["Widget", None, "3"])

    @patch("quote_ingest.spreadsheet_reader.pd.read_excel")
    def test_legacy_xls(self, mock_read_excel):
        mock_read_excel.return_value = {
            "Prices": pd.DataFrame(
                [["Name", "Qty", "Price"], ["Relay", 2.0, float("nan")], ["Contactor", float("nan"), 45.5]],
                dtype=object,
            ),
        }
        sheets = read_workbook(OLE_MAGIC + b"\xa1\xb1\x1a\xe1 legacy workbook", "quote.xls")

        self.assertEqual([name for name, _ in sheets], ["Prices"])
        grid = sheets[0][1]
        self.assertEqual(grid[0], ["Name", "Qty", "Price"])
        self.assertEqual(grid[1][0], "Relay")
        self.assertIsNone(grid[1][2])
        self.assertIsNone(grid[2][1])
        self.assertEqual(grid[2][2], 45.5)
        self.assertEqual(parse_quantity(grid[1][1]), 2)
        self.assertEqual(mock_read_excel.call_args.kwargs["engine"], "xlrd")

    def test_empty_payload(self):
        with self.assertRaises(EmptyOrUnreadableDocument):
            read_workbook(b"", "empty.xlsx")

    def test_corrupted_xlsx(self):
        with self.assertRaises(MalformedSourceData) as ctx:
            read_workbook(b"PK\x03\x04 definitely not a workbook", "broken.xlsx")
        self.assertIn("Failed to parse spreadsheet", ctx.exception.message)


if __name__ == '__main__':
    unittest.main()
