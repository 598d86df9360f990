"""
Review hints for part numbers read out of right-to-left (Hebrew) documents.

BiDi rendering tends to move Latin segments of a part number around, e.g.
"VSBM25 SI" comes back as "SI 25VSBM". Nothing here rewrites a part number:
suspicious values only produce warnings so a person can check them.
"""

import logging
import re
from typing import List, Optional, Sequence

from .models import ComponentCandidate, ExtractionWarning

logger = logging.getLogger(__name__)

HEBREW_CHARS = re.compile(r"[֐-׿]")

# Colour words usually close a cable/wire part number
COLOR_SUFFIXES = (
    "BLACK", "BLUE", "RED", "WHITE", "YELLOW", "GREEN", "ORANGE", "BROWN", "GRAY", "GREY",
    "BK", "BL", "RD", "WH", "YE", "GN", "OR", "BR", "GY",
)

_FRACTION_START = re.compile(r"^\d/\d")
_FRACTION_THEN_MODEL = re.compile(r"^[\d/\s-]+\s+(\d{3,})$")
_DIGITS_THEN_LETTERS = re.compile(r"^\d{2,4}[A-Z]{2,5}$", re.IGNORECASE)
_LETTERS_THEN_DIGITS = re.compile(r"^([A-Za-z]{1,4})(\d[\d.]+)$")


def contains_hebrew(text: Optional[str]) -> bool:
    return bool(text) and HEBREW_CHARS.search(text) is not None


def suspicious_reason(part_number: Optional[str]) -> Optional[str]:
    """Return why a part number looks reordered, or None when it looks fine."""
    if not part_number or len(part_number.strip()) < 3:
        return None

    original = part_number.strip()
    upper = original.upper()

    for color in COLOR_SUFFIXES:
        if upper.startswith(color) and upper[len(color):len(color) + 1].isdigit():
            return f'Color "{color}" at start - usually appears at end'

    parts = original.split()
    if len(parts) == 2:
        first, second = parts
        if len(first) <= 3 and len(second) > len(first) and re.fullmatch(r"\d+[A-Za-z]+", second):
            return f'Short code "{first}" before model "{second}" - likely reversed'

    if _FRACTION_START.match(original):
        return "Starts with fraction - usually comes after model number"

    match = _FRACTION_THEN_MODEL.match(original)
    if match:
        return f'Model "{match.group(1)}" at end - should likely be at start'

    if _DIGITS_THEN_LETTERS.match(original):
        return "Numbers before letters - might be reversed"

    match = _LETTERS_THEN_DIGITS.match(original)
    if match:
        return f'Starts with "{match.group(1)}" - letter group may have moved from end due to RTL rendering'

    return None


def review_warnings(candidates: Sequence[ComponentCandidate], is_rtl_document: bool) -> List[ExtractionWarning]:
    """
    Build review warnings for an RTL document.

    Adds one informational document-level warning and one warning per
    suspicious part number. Candidates are left untouched.
    """
    if not is_rtl_document:
        return []

    warnings = [ExtractionWarning(
        type="rtl_document",
        message="RTL document detected. Review part numbers for reversed segments.",
        severity="info",
    )]
    for index, candidate in enumerate(candidates):
        reason = suspicious_reason(candidate.manufacturer_part_number)
        if reason:
            logger.warning(f"Possible reversed part number {candidate.manufacturer_part_number!r}: {reason}")
            warnings.append(ExtractionWarning(
                type="potential_reversal",
                message=f'Component {index + 1} "{candidate.manufacturer_part_number}": {reason}',
                candidate_index=index,
            ))
    return warnings
