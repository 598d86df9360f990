"""
Currency & category normalization shared by every extraction path.

All functions here are pure: they never touch module state, and the
exchange-rate table and category map they receive are read-only.
"""

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional

from .config import CategorySynonymMap, ExchangeRateTable
from .models import ComponentCandidate, UnitPrice

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"
CENT = Decimal("0.01")

# Symbols, ISO codes and the Hebrew shekel words that may sit before or after a numeral
_CURRENCY_TOKENS = re.compile(r'USD|NIS|ILS|EUR|ש"ח|ש״ח|שקלים|שקל|[$₪€]', re.IGNORECASE)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_DECIMAL_COMMA = re.compile(r"^-?\d+,\d{2}$")
_LEADING_NUMBER = re.compile(r"\s*(-?\d[\d,.]*)")

_CURRENCY_MARKERS = [
    ("USD", re.compile(r"\$|(?<![A-Za-z])USD(?![A-Za-z])|\bdollars?\b", re.IGNORECASE)),
    ("EUR", re.compile(r"€|(?<![A-Za-z])EUR(?![A-Za-z])|\beuros?\b", re.IGNORECASE)),
    ("NIS", re.compile(r'₪|(?<![A-Za-z])(?:NIS|ILS)(?![A-Za-z])|ש"ח|ש״ח|שקל|\bshekels?\b', re.IGNORECASE)),
]

# Relative weight of each expected field in a record's confidence
FIELD_WEIGHTS = {
    "name": 30,
    "unit_price": 25,
    "manufacturer_part_number": 20,
    "manufacturer": 15,
    "category": 5,
    "quantity": 3,
    "description": 2,
}


def clean_text(value: Any) -> Optional[str]:
    """Render a raw cell/field value as text; blank values become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if value != value:  # NaN from pandas
            return None
        if value.is_integer():
            return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def parse_price(value: Any) -> Optional[Decimal]:
    """
    Parse a price into a Decimal.

    Currency symbols/codes are stripped and the leading number is read, so
    trailing annotations ("ea", "/pc", "+ VAT") are ignored. Thousands
    separators are removed.
    Zero, negative and unparseable values return None: "no price listed" is
    kept distinct from a zero-price record.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        if not amount.is_finite():
            return None
        return amount if amount > 0 else None

    text = _CURRENCY_TOKENS.sub("", str(value))
    # "1 200" style thousands
    text = re.sub(r"(?<=\d)\s+(?=\d)", "", text)
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    text = match.group(1).rstrip(".,")

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            # European 1.234,56
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        if _DECIMAL_COMMA.match(text):
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")

    if not _NUMBER.fullmatch(text):
        return None

    try:
        amount = Decimal(text)
    except InvalidOperation:
        logger.warning(f"Invalid price format: {value!r}")
        return None

    return amount if amount > 0 else None


def parse_quantity(value: Any) -> Optional[int]:
    """Parse a positive whole quantity ("5", "5 pcs", 5.0). Anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        amount = parse_price(value)
    else:
        match = re.search(r"\d[\d,]*(?:\.\d+)?", str(value))
        amount = parse_price(match.group(0)) if match else None
    if amount is None or amount != amount.to_integral_value():
        return None
    return int(amount)


def detect_currency(text: Any) -> Optional[str]:
    """Return the currency explicitly named in `text` (earliest marker wins), or None."""
    if text is None:
        return None
    text = str(text)
    found = []
    for code, pattern in _CURRENCY_MARKERS:
        match = pattern.search(text)
        if match:
            found.append((match.start(), code))
    if not found:
        return None
    return min(found)[1]


def resolve_currency(price_text: Any, currency_field: Any = None) -> str:
    """Symbol/code next to the number, then a dedicated currency field, then USD."""
    return detect_currency(price_text) or detect_currency(currency_field) or DEFAULT_CURRENCY


def build_unit_price(value: Any, currency_field: Any = None) -> Optional[UnitPrice]:
    """Parse a price cell into a UnitPrice, or None when no positive price is present."""
    amount = parse_price(value)
    if amount is None:
        return None
    return UnitPrice(amount=amount, currency=resolve_currency(value, currency_field))


def derive_prices(unit_price: Optional[UnitPrice], rates: ExchangeRateTable) -> Dict[str, Decimal]:
    """
    Compute the two non-source currencies for a price.

    The result never contains the source currency. Derived amounts are
    rounded half-up to cents and can be recomputed at any time from the
    source amount and the same rate table.
    """
    if unit_price is None:
        return {}

    amount = unit_price.amount
    if unit_price.currency == "USD":
        derived = {"NIS": amount * rates.usd_to_ils, "EUR": amount * rates.eur_to_usd}
    elif unit_price.currency == "EUR":
        derived = {"NIS": amount * rates.eur_to_ils, "USD": amount / rates.eur_to_usd}
    else:
        derived = {"USD": amount / rates.usd_to_ils, "EUR": amount / rates.eur_to_ils}

    return {code: value.quantize(CENT, rounding=ROUND_HALF_UP) for code, value in derived.items()}


def normalize_category(text: Any, categories: CategorySynonymMap) -> str:
    """Resolve a category/product-type string to its canonical label, or the default."""
    text = clean_text(text)
    if not text:
        return categories.default
    return categories.lookup(text) or categories.search(text) or categories.default


def assign_part_number(value: Optional[str]) -> Optional[str]:
    """
    Return the manufacturer part number exactly as it was read.

    This is deliberately the identity function. Part numbers read out of
    right-to-left documents have historically come back with their Latin
    segments reordered ("VSBM25 SI" turned into "SI 25VSBM"); nothing in this
    pipeline is allowed to reorder, re-case or otherwise rewrite them.
    Suspicious values are flagged for review by `rtl.py` instead.
    """
    return value


def score_candidate(candidate: ComponentCandidate, categories: CategorySynonymMap, cap: float = 1.0) -> float:
    """Weighted share of the expected fields that are populated, within [0, cap]."""
    populated = {
        "name": bool(candidate.name),
        "unit_price": candidate.unit_price is not None,
        "manufacturer_part_number": bool(candidate.manufacturer_part_number),
        "manufacturer": bool(candidate.manufacturer),
        "category": bool(candidate.category) and candidate.category != categories.default,
        "quantity": candidate.quantity is not None,
        "description": bool(candidate.description),
    }
    score = sum(FIELD_WEIGHTS[name] for name, present in populated.items() if present)
    confidence = score / sum(FIELD_WEIGHTS.values())
    return clamp_confidence(confidence, cap)


def clamp_confidence(value: Any, cap: float = 1.0) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if value != value:
        return 0.0
    return max(0.0, min(cap, value))
