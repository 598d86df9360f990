#!/usr/bin/env python3
"""
Tabular parser for spreadsheet-like quote data.
Maps multilingual (English/Hebrew) column headers to component fields
through an explicit synonym table, then turns each data row into a candidate.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import CategorySynonymMap
from .models import ComponentCandidate, ExtractionMetadata, ExtractionResult, METHOD_STRUCTURED, ROUTE_TABULAR
from .normalizer import (
    assign_part_number,
    build_unit_price,
    clean_text,
    normalize_category,
    parse_quantity,
    score_candidate,
)

logger = logging.getLogger(__name__)

# Canonical field -> accepted header strings. Order matters only as a
# tie-breaker when two fields match a header equally well.
HEADER_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "manufacturer_part_number": (
        "part number", "part no", "part no.", "part#", "partnumber", "p/n", "pn", "mpn",
        "manufacturer part number", "manufacturer pn", "mfr part", "mfr part number", "mfg part number",
        "catalog", "catalog number", "catalog no", "catalogue number", "cat no", "cat. no", "catno",
        "מק\"ט", "מק\"ט יצרן", "מספר קטלוגי", "קטלוגי", "מספר חלק",
    ),
    "name": (
        "name", "item name", "product name", "part name", "component", "component name",
        "product", "item", "שם", "שם פריט", "שם מוצר", "פריט", "מוצר",
    ),
    "manufacturer": (
        "manufacturer", "brand", "make", "mfr", "mfg", "maker", "יצרן", "מותג",
    ),
    "unit_price": (
        "price", "unit price", "price per unit", "unit cost", "cost", "list price", "net price",
        "מחיר", "מחיר יחידה", "מחיר ליחידה", "מחיר יח'", "מחיר יח", "עלות", "סכום",
    ),
    "currency": (
        "currency", "curr", "curr.", "מטבע", "מטבע תשלום",
    ),
    "category": (
        "category", "type", "product type", "classification", "group", "family",
        "קטגוריה", "סוג", "סיווג", "קבוצה", "משפחה",
    ),
    "quantity": (
        "quantity", "qty", "qty.", "q-ty", "units", "כמות", "כמ'",
    ),
    "description": (
        "description", "desc", "details", "remarks", "notes", "specification", "specifications",
        "תיאור", "פרטים", "הערות", "מפרט",
    ),
    "supplier": (
        "supplier", "vendor", "distributor", "ספק", "מפיץ",
    ),
}

# Shortest synonym allowed to match as a substring of a longer header
MIN_CONTAINED_SYNONYM = 4


def normalize_header(header: Any) -> str:
    """Lower-case, drop whitespace and quote marks (ASCII and Hebrew geresh/gershayim), trim ':' and '.'."""
    text = clean_text(header) or ""
    text = re.sub(r"[\s\"'׳״‘’“”]+", "", text.lower())
    return text.strip(":.")


_NORMALIZED_SYNONYMS: Dict[str, List[str]] = {
    field: sorted({normalize_header(s) for s in synonyms}, key=len, reverse=True)
    for field, synonyms in HEADER_SYNONYMS.items()
}


def detect_columns(headers: Sequence[Any]) -> Dict[str, int]:
    """
    Map canonical fields to column indices.

    Exact (normalized) matches are assigned first. Remaining fields may then
    claim a header that contains one of their synonyms, longest synonym
    first. A column is never assigned to two fields.
    """
    normalized = [normalize_header(h) for h in headers]
    matches: List[Tuple[int, int, int, int, str]] = []

    for col_idx, header in enumerate(normalized):
        if not header:
            continue
        for field_order, (field, synonyms) in enumerate(_NORMALIZED_SYNONYMS.items()):
            if header in synonyms:
                matches.append((0, -len(header), field_order, col_idx, field))
                continue
            contained = [s for s in synonyms if len(s) >= MIN_CONTAINED_SYNONYM and s in header]
            if contained:
                matches.append((1, -len(contained[0]), field_order, col_idx, field))

    detected: Dict[str, int] = {}
    used_columns = set()
    for _, _, _, col_idx, field in sorted(matches, key=lambda m: (m[0], m[1], m[3], m[2])):
        if field in detected or col_idx in used_columns:
            continue
        detected[field] = col_idx
        used_columns.add(col_idx)

    return detected


class TabularParser:
    """Turns a header row plus data rows into component candidates."""

    def __init__(self, categories: Optional[CategorySynonymMap] = None):
        self.categories = categories or CategorySynonymMap()

    def parse(self, grid: Sequence[Sequence[Any]], sheet_name: str = "Sheet1") -> ExtractionResult:
        """
        Parse a grid whose first non-empty row holds the headers.

        Args:
            grid: Rows of cell values
            sheet_name: Name of the sheet/table, recorded in metadata

        Returns:
            ExtractionResult with one candidate per non-empty data row
        """
        rows = [list(row) if row is not None else [] for row in grid]
        header_idx = next((i for i, row in enumerate(rows) if not self._is_empty_row(row)), None)

        if header_idx is None:
            logger.warning(f"Sheet {sheet_name!r} has no header row")
            return self._result([], ExtractionMetadata(
                document_type=ROUTE_TABULAR,
                extraction_method=METHOD_STRUCTURED,
                has_tabular_layout=True,
                sheet_name=sheet_name,
            ))

        headers = [clean_text(h) or "" for h in rows[header_idx]]
        column_analysis = detect_columns(headers)
        recognized = [headers[idx] for idx in sorted(column_analysis.values())]
        logger.info(f"Sheet {sheet_name!r}: recognized columns {column_analysis}")

        candidates: List[ComponentCandidate] = []
        data_rows = 0
        for row_number, row in enumerate(rows[header_idx + 1:], 1):
            if self._is_empty_row(row):
                continue
            data_rows += 1
            candidate = self._parse_row_with_column_analysis(row, column_analysis)
            if candidate is None:
                continue
            candidate.source_row = row_number
            candidates.append(candidate)

        metadata = ExtractionMetadata(
            document_type=ROUTE_TABULAR,
            row_or_page_count=data_rows,
            recognized_headers=recognized,
            extraction_method=METHOD_STRUCTURED,
            has_tabular_layout=True,
            sheet_name=sheet_name,
            detected_columns=column_analysis,
        )
        logger.info(f"Extracted {len(candidates)} candidates from {data_rows} data rows")
        return self._result(candidates, metadata)

    @staticmethod
    def _is_empty_row(row: Sequence[Any]) -> bool:
        return all(clean_text(cell) is None for cell in row)

    @staticmethod
    def _cell(row: Sequence[Any], column_analysis: Dict[str, int], field: str) -> Any:
        idx = column_analysis.get(field)
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    def _parse_row_with_column_analysis(
        self, row: Sequence[Any], column_analysis: Dict[str, int]
    ) -> Optional[ComponentCandidate]:
        def text(field: str) -> Optional[str]:
            return clean_text(self._cell(row, column_analysis, field))

        name = text("name")
        if not name:
            # No usable name column: fall back to the first non-empty cell
            name = next((clean_text(cell) for cell in row if clean_text(cell)), None)
        if not name:
            return None

        raw_category = text("category")
        candidate = ComponentCandidate(
            name=name,
            description=text("description"),
            manufacturer=text("manufacturer"),
            manufacturer_part_number=assign_part_number(text("manufacturer_part_number")),
            category=normalize_category(raw_category, self.categories),
            unit_price=build_unit_price(
                self._cell(row, column_analysis, "unit_price"),
                self._cell(row, column_analysis, "currency"),
            ),
            quantity=parse_quantity(self._cell(row, column_analysis, "quantity")),
            supplier=text("supplier"),
        )
        candidate.confidence = score_candidate(candidate, self.categories)
        return candidate

    @staticmethod
    def _result(candidates: List[ComponentCandidate], metadata: ExtractionMetadata) -> ExtractionResult:
        confidence = sum(c.confidence for c in candidates) / len(candidates) if candidates else 0.0
        return ExtractionResult(success=True, candidates=candidates, metadata=metadata, confidence=confidence)


def parse_table_data(grid: Sequence[Sequence[Any]], sheet_name: str = "Sheet1",
                     categories: Optional[CategorySynonymMap] = None) -> ExtractionResult:
    """
    Convenience function to parse a single grid.

    Args:
        grid: Rows of cell values, headers first
        sheet_name: Name of the sheet

    Returns:
        ExtractionResult
    """
    parser = TabularParser(categories)
    return parser.parse(grid, sheet_name)
