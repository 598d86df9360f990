"""
Format classifier: decides which extraction path a document takes.

MIME type wins. When the MIME type is missing or generic, the filename
extension decides (case-insensitive).
"""

import logging
from pathlib import PurePath
from typing import List, Optional

from .models import ROUTE_DOCUMENT_TEXT, ROUTE_IMAGE, ROUTE_TABULAR, ROUTE_UNSUPPORTED

logger = logging.getLogger(__name__)

MIME_ROUTES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ROUTE_TABULAR,
    "application/vnd.ms-excel": ROUTE_TABULAR,
    "text/csv": ROUTE_TABULAR,
    "application/csv": ROUTE_TABULAR,
    "application/pdf": ROUTE_DOCUMENT_TEXT,
    "image/jpeg": ROUTE_IMAGE,
    "image/jpg": ROUTE_IMAGE,
    "image/png": ROUTE_IMAGE,
    "image/gif": ROUTE_IMAGE,
    "image/webp": ROUTE_IMAGE,
}

EXTENSION_ROUTES = {
    ".xlsx": ROUTE_TABULAR,
    ".xls": ROUTE_TABULAR,
    ".csv": ROUTE_TABULAR,
    ".pdf": ROUTE_DOCUMENT_TEXT,
    ".jpg": ROUTE_IMAGE,
    ".jpeg": ROUTE_IMAGE,
    ".png": ROUTE_IMAGE,
    ".gif": ROUTE_IMAGE,
    ".webp": ROUTE_IMAGE,
}

GENERIC_MIME_TYPES = {
    "",
    "application/octet-stream",
    "binary/octet-stream",
    "application/unknown",
    "application/x-unknown",
    # Some browsers report CSV uploads as plain text
    "text/plain",
}

ROUTE_NAMES = {
    ROUTE_TABULAR: {"en": "Spreadsheet Parser", "he": "מנתח גיליונות"},
    ROUTE_DOCUMENT_TEXT: {"en": "PDF Text Parser", "he": "מנתח PDF"},
    ROUTE_IMAGE: {"en": "AI Vision", "he": "AI Vision"},
    ROUTE_UNSUPPORTED: {"en": "Unsupported", "he": "לא נתמך"},
}


def _extension(filename: Optional[str]) -> str:
    return PurePath(filename or "").suffix.lower()


def _base_mime(mime_type: Optional[str]) -> str:
    # Drop parameters such as "; charset=utf-8"
    return (mime_type or "").split(";")[0].strip().lower()


def classify(mime_type: Optional[str], filename: Optional[str]) -> str:
    """Return one of tabular, document-text, image, unsupported."""
    mime = _base_mime(mime_type)

    if mime not in GENERIC_MIME_TYPES:
        route = MIME_ROUTES.get(mime, ROUTE_UNSUPPORTED)
    else:
        route = EXTENSION_ROUTES.get(_extension(filename), ROUTE_UNSUPPORTED)

    logger.debug(f"Classified {filename!r} ({mime or 'no MIME'}) as {route}")
    return route


def is_supported(mime_type: Optional[str], filename: Optional[str]) -> bool:
    return classify(mime_type, filename) != ROUTE_UNSUPPORTED


def supported_extensions() -> List[str]:
    return list(EXTENSION_ROUTES)


def supported_mime_types() -> List[str]:
    return list(MIME_ROUTES)


def supported_formats_message() -> str:
    return "Excel (.xlsx, .xls), CSV (.csv), PDF (.pdf), images (.jpg, .jpeg, .png, .gif, .webp)"


def route_display_name(route: str, language: str = "en") -> str:
    names = ROUTE_NAMES.get(route, ROUTE_NAMES[ROUTE_UNSUPPORTED])
    return names.get(language, names["en"])


def estimated_processing_seconds(route: str, size_bytes: int) -> float:
    """Rough wall-clock estimate for progress indicators."""
    size_mb = size_bytes / (1024 * 1024)
    if route == ROUTE_TABULAR:
        return min(0.5, 0.1 + size_mb * 0.05)
    if route == ROUTE_DOCUMENT_TEXT:
        return min(2.0, 0.3 + size_mb * 0.1)
    if route == ROUTE_IMAGE:
        return 10.0
    return 0.0
