#!/usr/bin/env python3
"""
Freeform text parser for quotes delivered as text (usually extracted from PDFs).

Detects whether the text has a column layout. If it does, every line is a
potential record; otherwise the text is read paragraph by paragraph. Part
numbers, prices and quantities are found with regex pattern families that
cover English and Hebrew labels.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from .config import CategorySynonymMap
from .models import (
    ComponentCandidate,
    ExtractionMetadata,
    ExtractionResult,
    METHOD_STRUCTURED,
    METHOD_TEXT,
    ROUTE_DOCUMENT_TEXT,
    UnitPrice,
)
from .normalizer import (
    assign_part_number,
    build_unit_price,
    normalize_category,
    parse_quantity,
    score_candidate,
)
from .rtl import contains_hebrew
from .table_parser import detect_columns

logger = logging.getLogger(__name__)

# Text-derived records are never fully trusted
TEXT_CONFIDENCE_CAP = 0.9
LOW_CONFIDENCE_THRESHOLD = 0.5
TABULAR_LINE_SHARE = 0.2

NO_TEXT_MESSAGE = (
    "No text content found in the document. This may be a scanned or image-based PDF; "
    "try AI-vision extraction instead."
)
NO_DATA_MESSAGE = (
    "No structured component data found. For complex documents, "
    "try AI-vision extraction for better accuracy."
)
LOW_CONFIDENCE_MESSAGE = (
    "Low confidence extraction. Please review the extracted data carefully, "
    "or try AI-vision extraction for better results."
)

COLUMN_SPLIT = re.compile(r"\s{2,}|\t|\|")

# Part numbers must contain at least one digit
_PN_VALUE = r"((?=[A-Za-z0-9\-./]*\d)[A-Za-z0-9][A-Za-z0-9\-./]*[A-Za-z0-9]|\d)"

PART_NUMBER_PATTERNS = [
    re.compile(r"\bP/N\s*[:#.]?\s*" + _PN_VALUE, re.IGNORECASE),
    re.compile(r"\bPart\s*(?:Number|No\.?|#)\s*[:#.]?\s*" + _PN_VALUE, re.IGNORECASE),
    re.compile(r"\bPN\s*[:#]\s*" + _PN_VALUE, re.IGNORECASE),
    re.compile(r"\bCat(?:alog(?:ue)?)?\.?\s*(?:Number|No\.?|#)\s*[:#.]?\s*" + _PN_VALUE, re.IGNORECASE),
    re.compile(r"(?:מק\"ט|מק״ט|מקט|קטלוגי)\s*[:#]?\s*" + _PN_VALUE),
]

_AMOUNT = r"\d(?:[\d,.]*\d)?"
_CURRENCY_WORD = r"USD|NIS|ILS|EUR|ש\"ח|ש״ח|שקלים|שקל"

PRICE_PATTERNS = [
    # $2,500.00 / ₪ 120 / €99,90
    re.compile(r"[$₪€]\s*" + _AMOUNT),
    # 2,500 USD / 120 ש"ח / 99.90€
    re.compile(_AMOUNT + r"\s*(?:" + _CURRENCY_WORD + r"|[$₪€])", re.IGNORECASE),
    # USD 2,500
    re.compile(r"(?:USD|NIS|ILS|EUR)\s*" + _AMOUNT, re.IGNORECASE),
    # Price: 2500
    re.compile(r"(?:unit\s+price|price|מחיר(?:\s+יחידה)?)\s*[:\-]\s*" + _AMOUNT, re.IGNORECASE),
]

QUANTITY_PATTERNS = [
    re.compile(r"\b(?:qty|quantity)\s*[:.]?\s*(\d[\d,]*)", re.IGNORECASE),
    re.compile(r"(\d[\d,]*)\s*(?:pcs?|pieces?|units?|ea)\b", re.IGNORECASE),
    re.compile(r"כמות\s*:?\s*(\d[\d,]*)"),
    re.compile(r"(\d[\d,]*)\s*יח['׳]"),
]

MANUFACTURER_PATTERNS = [
    re.compile(r"\b(?:manufacturer|brand|mfr)\s*:\s*([^\t|:]+?)(?=\s{2,}|\t|\||$)", re.IGNORECASE | re.MULTILINE),
    re.compile(r"יצרן\s*:\s*([^\t|:]+?)(?=\s{2,}|\t|\||$)", re.MULTILINE),
]

# Bare part-number token inside a column layout, e.g. "6ES7512-1DK01"
_PN_TOKEN = re.compile(r"(?=.*\d)(?=.*[A-Za-z])[A-Za-z0-9][A-Za-z0-9\-./]{2,}")
_LETTERS = re.compile(r"[A-Za-z֐-׿]")

# Totals and tax lines under a price table
SUMMARY_ROW = re.compile(
    r'^(?:sub\s*-?\s*total|grand\s+total|total|vat|tax|discount|shipping|סה"כ|סה״כ|סך הכל|מע"מ|מע״מ)(?!\w)',
    re.IGNORECASE,
)


def split_columns(line: str) -> List[str]:
    return [cell.strip() for cell in COLUMN_SPLIT.split(line) if cell.strip()]


def has_tabular_layout(text: str) -> bool:
    """
    True when the text looks like a table.

    A line is column-like when it splits into 3+ cells on runs of 2+ spaces,
    tabs or pipes. At least two consecutive column-like lines must have the
    same cell count, and column-like lines must be more than 20% of the
    non-blank lines.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return False

    counts = [len(split_columns(line)) for line in lines]
    column_like = [count for count in counts if count >= 3]
    if len(column_like) <= len(lines) * TABULAR_LINE_SHARE:
        return False

    return any(
        first >= 3 and first == second
        for first, second in zip(counts, counts[1:])
    )


def find_part_number(text: str) -> Tuple[Optional[str], Optional[re.Match]]:
    for pattern in PART_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1), match
    return None, None


def find_price(text: str) -> Tuple[Optional[UnitPrice], Optional[re.Match]]:
    """
    Return (UnitPrice, match) for the first positive price in `text`.

    A currency next to the number wins; otherwise any currency named
    elsewhere in `text` applies, then USD.
    """
    for pattern in PRICE_PATTERNS:
        for match in pattern.finditer(text):
            unit_price = build_unit_price(_strip_price_label(match.group(0)), currency_field=text)
            if unit_price is not None:
                return unit_price, match
    return None, None


def _strip_price_label(matched: str) -> str:
    # Symbols and codes stay, the normalizer reads them
    return re.sub(r"^(?:unit\s+price|price|מחיר(?:\s+יחידה)?)\s*[:\-]\s*", "", matched, flags=re.IGNORECASE)


def find_quantity(text: str) -> Optional[int]:
    for pattern in QUANTITY_PATTERNS:
        match = pattern.search(text)
        if match:
            quantity = parse_quantity(match.group(1))
            if quantity is not None:
                return quantity
    return None


def find_manufacturer(text: str) -> Optional[str]:
    for pattern in MANUFACTURER_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def clean_name(text: str) -> Optional[str]:
    """Strip part-number anchors, prices, quantities and labels from a line; None if no words remain."""
    for pattern in PART_NUMBER_PATTERNS + PRICE_PATTERNS + QUANTITY_PATTERNS + MANUFACTURER_PATTERNS:
        text = pattern.sub(" ", text)
    text = re.sub(r"\b(?:price|unit\s+price|total)\s*:?", " ", text, flags=re.IGNORECASE)
    text = re.sub(r"\s+", " ", text).strip(" \t-:,;|.")
    if len(text) < 2 or not _LETTERS.search(text):
        return None
    return text


class FreeformTextParser:
    """Pattern-based extraction of component candidates from plain text."""

    def __init__(self, categories: Optional[CategorySynonymMap] = None):
        self.categories = categories or CategorySynonymMap()

    def parse(self, text: Optional[str], page_count: int = 1) -> ExtractionResult:
        """
        Extract candidates from document text.

        Args:
            text: Extracted document text
            page_count: Number of pages the text came from

        Returns:
            ExtractionResult. An empty text is a failure; text without any
            recognizable records is a success with an advisory error.
        """
        text = text or ""
        metadata = ExtractionMetadata(
            document_type=ROUTE_DOCUMENT_TEXT,
            row_or_page_count=page_count,
            extraction_method=METHOD_TEXT,
            text_length=len(text),
            is_rtl_document=contains_hebrew(text),
        )

        if not text.strip():
            logger.warning("Document has no extractable text")
            return ExtractionResult.failure(NO_TEXT_MESSAGE, metadata)

        tabular = has_tabular_layout(text)
        metadata.has_tabular_layout = tabular
        logger.info(f"Text layout: {'tabular' if tabular else 'freeform'} ({len(text)} chars, {page_count} pages)")

        candidates: List[ComponentCandidate] = []
        if tabular:
            candidates = self._extract_from_lines(text)
            if candidates:
                metadata.extraction_method = METHOD_STRUCTURED
        if not candidates:
            candidates = self._extract_from_paragraphs(text)

        if not candidates:
            logger.info("No component patterns found in text")
            return ExtractionResult(success=True, metadata=metadata, confidence=0.0, error=NO_DATA_MESSAGE)

        confidence = sum(c.confidence for c in candidates) / len(candidates)
        error = LOW_CONFIDENCE_MESSAGE if confidence < LOW_CONFIDENCE_THRESHOLD else None
        logger.info(f"Extracted {len(candidates)} candidates from text (avg confidence {confidence:.2f})")
        return ExtractionResult(
            success=True,
            candidates=candidates,
            metadata=metadata,
            confidence=confidence,
            error=error,
        )

    def _extract_from_lines(self, text: str) -> List[ComponentCandidate]:
        candidates = []
        for line_number, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            cells = split_columns(line)
            if self._is_header_line(cells):
                continue

            part_number, _ = find_part_number(line)
            unit_price, _ = find_price(line)
            # Titles and prose between table rows
            if len(cells) < 3 and not part_number and unit_price is None:
                continue

            text_cells = []
            for cell in cells:
                if part_number is None and _PN_TOKEN.fullmatch(cell):
                    part_number = cell
                    continue
                name_part = clean_name(cell)
                if name_part and name_part != part_number:
                    text_cells.append(name_part)

            # Longest remaining text cell reads most like a product name
            name = max(text_cells, key=len) if text_cells else None
            if not name and not part_number:
                continue
            if not part_number and SUMMARY_ROW.match(cells[0]):
                logger.debug(f"Skipping summary line {line_number}: {cells[0]!r}")
                continue

            candidates.append(self._build_candidate(
                name=name or part_number,
                part_number=part_number,
                unit_price=unit_price,
                quantity=find_quantity(line),
                manufacturer=find_manufacturer(line),
                source_row=line_number,
            ))
        return candidates

    def _is_header_line(self, cells: Sequence[str]) -> bool:
        # "Name  Part Number  Price" style rows
        if len(cells) < 2 or any(ch.isdigit() for cell in cells for ch in cell):
            return False
        return len(detect_columns(cells)) >= 2

    def _extract_from_paragraphs(self, text: str) -> List[ComponentCandidate]:
        candidates = []
        for index, paragraph in enumerate(re.split(r"\n\s*\n", text), 1):
            lines = [line.strip() for line in paragraph.splitlines() if line.strip()]
            if not lines:
                continue

            part_number, _ = find_part_number(paragraph)
            unit_price, _ = find_price(paragraph)
            name = self._paragraph_name(lines)

            if not name or not (part_number or unit_price):
                continue

            candidates.append(self._build_candidate(
                name=name,
                part_number=part_number,
                unit_price=unit_price,
                quantity=find_quantity(paragraph),
                manufacturer=find_manufacturer(paragraph),
                source_row=index,
            ))
        return candidates

    @staticmethod
    def _paragraph_name(lines: Sequence[str]) -> Optional[str]:
        """Name from the part-number line with the anchor removed, else the nearest line above it with words left."""
        for idx, line in enumerate(lines):
            if find_part_number(line)[0]:
                for candidate_line in [line] + list(reversed(lines[:idx])):
                    name = clean_name(candidate_line)
                    if name:
                        return name
                break
        return next((name for name in map(clean_name, lines) if name), None)

    def _build_candidate(self, name, part_number, unit_price, quantity, manufacturer, source_row) -> ComponentCandidate:
        candidate = ComponentCandidate(
            name=name,
            manufacturer=manufacturer,
            manufacturer_part_number=assign_part_number(part_number),
            category=normalize_category(name, self.categories),
            unit_price=unit_price,
            quantity=quantity,
            source_row=source_row,
        )
        candidate.confidence = score_candidate(candidate, self.categories, cap=TEXT_CONFIDENCE_CAP)
        return candidate


def parse_text(text: str, page_count: int = 1, categories: Optional[CategorySynonymMap] = None) -> ExtractionResult:
    """Convenience wrapper around FreeformTextParser."""
    return FreeformTextParser(categories).parse(text, page_count)
