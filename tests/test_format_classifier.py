#!/usr/bin/env python3
"""
Tests for document routing.
"""

import unittest

from quote_ingest.format_classifier import (
    classify,
    estimated_processing_seconds,
    is_supported,
    route_display_name,
    supported_extensions,
)


class TestClassify(unittest.TestCase):
    """MIME type first, extension as fallback."""

    def test_mime_types(self):
        test_cases = [
            ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "q.xlsx", "tabular"),
            ("application/vnd.ms-excel", "q.xls", "tabular"),
            ("text/csv; charset=utf-8", "q.csv", "tabular"),
            ("application/pdf", "quote.bin", "document-text"),
            ("image/png", "scan", "image"),
            ("IMAGE/JPEG", "scan.jpg", "image"),
        ]
        for mime, filename, expected in test_cases:
            with self.subTest(mime=mime):
                self.assertEqual(classify(mime, filename), expected)

    def test_generic_mime_falls_back_to_extension(self):
        self.assertEqual(classify("application/octet-stream", "Quote.XLSX"), "tabular")
        self.assertEqual(classify("binary/octet-stream", "quote.pdf"), "document-text")
        self.assertEqual(classify("", "scan.PNG"), "image")
        self.assertEqual(classify(None, "photo.webp"), "image")

    def test_unsupported(self):
        docx = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        self.assertEqual(classify(docx, "quote.docx"), "unsupported")
        self.assertEqual(classify("", "quote.docx"), "unsupported")
        self.assertEqual(classify(None, None), "unsupported")
        self.assertFalse(is_supported("", "notes.txt"))

    def test_supported_extensions(self):
        self.assertEqual(
            supported_extensions(),
            [".xlsx", ".xls", ".csv", ".pdf", ".jpg", ".jpeg", ".png", ".gif", ".webp"],
        )

    def test_display_names_and_estimates(self):
        self.assertEqual(route_display_name("tabular"), "Spreadsheet Parser")
        self.assertEqual(route_display_name("tabular", "he"), "מנתח גיליונות")
        self.assertEqual(route_display_name("bogus"), "Unsupported")
        self.assertEqual(estimated_processing_seconds("image", 1024), 10.0)
        self.assertLessEqual(estimated_processing_seconds("tabular", 100 * 1024 * 1024), 0.5)
        self.assertEqual(estimated_processing_seconds("unsupported", 10), 0.0)


if __name__ == '__main__':
    unittest.main()
