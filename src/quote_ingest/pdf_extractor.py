#!/usr/bin/env python3
"""
PDF text extraction with pdfplumber.

Tables found on a page are emitted as tab-separated rows so the freeform
parser's layout detection can see them; the rest of the page text is
extracted with the table areas cut out, so nothing is read twice.
"""

import io
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

import pdfplumber

from .exceptions import MalformedSourceData

logger = logging.getLogger(__name__)

BBox = Tuple[float, float, float, float]


@dataclass
class PDFText:
    text: str
    page_count: int


class PDFTextExtractor:
    """Extract text (and tables as tab-joined rows) from PDF bytes."""

    def extract(self, content: bytes) -> PDFText:
        """
        Extract text from a PDF payload.

        Args:
            content: Raw PDF bytes

        Returns:
            PDFText with the page texts joined by blank lines

        Raises:
            MalformedSourceData: If pdfplumber cannot open or read the file
        """
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                pages = [self._extract_page(page) for page in pdf.pages]
                page_count = len(pdf.pages)
        except Exception as e:
            logger.error(f"pdfplumber extraction failed: {e}")
            raise MalformedSourceData(
                f"Failed to parse PDF file: {e}. The file may be corrupted or password protected."
            ) from e

        text = "\n\n".join(page for page in pages if page.strip())
        logger.info(f"Extracted {len(text)} characters from {page_count} page(s)")
        return PDFText(text=text, page_count=page_count)

    def _extract_page(self, page) -> str:
        tables = page.find_tables()
        bboxes = [table.bbox for table in tables]

        outside = page.filter(_outside_of(bboxes)) if bboxes else page
        page_text = outside.extract_text() or ""
        if not page_text.strip() and not bboxes:
            # Some generators only yield text with layout mode
            page_text = page.extract_text(layout=True, x_tolerance=3, y_tolerance=3) or ""

        table_lines = []
        for table in tables:
            for row in table.extract():
                cells = [_clean_cell(cell) for cell in row]
                if any(cells):
                    table_lines.append("\t".join(cells))

        parts = [clean_text(page_text)] + table_lines
        return "\n".join(part for part in parts if part)


def _outside_of(bboxes: Sequence[BBox]) -> Callable[[Dict], bool]:
    def test(obj: Dict) -> bool:
        if not all(key in obj for key in ("x0", "x1", "top", "bottom")):
            return True
        cx = (obj["x0"] + obj["x1"]) / 2
        cy = (obj["top"] + obj["bottom"]) / 2
        return not any(x0 <= cx <= x1 and top <= cy <= bottom for x0, top, x1, bottom in bboxes)
    return test


def _clean_cell(cell) -> str:
    if cell is None:
        return ""
    return re.sub(r"\s+", " ", str(cell)).strip()


def clean_text(text: str) -> str:
    """Remove CID encoding artifacts and trailing whitespace; keep the line structure."""
    if not text:
        return ""
    text = re.sub(r"\(cid:\d+\)", "", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return "\n".join(line.rstrip() for line in text.split("\n")).strip("\n")


def extract_pdf_text(content: bytes) -> PDFText:
    """
    Convenience function to extract text from PDF bytes.

    Args:
        content: Raw PDF bytes

    Returns:
        PDFText
    """
    return PDFTextExtractor().extract(content)
