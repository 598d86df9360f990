"""
Supplier Quote Ingest

Turns supplier quotations (spreadsheets, PDFs, images) into normalized,
reviewable component candidates.
"""

__version__ = "1.0.0"

from .config import CategorySynonymMap, ExchangeRateTable, Settings
from .models import ComponentCandidate, ExtractionMetadata, ExtractionResult, RawDocument, UnitPrice
from .orchestrator import ExtractionOrchestrator, extract_document
from .vision_adapter import AIVisionAdapter, VisionExtractionService

__all__ = [
    "AIVisionAdapter",
    "CategorySynonymMap",
    "ComponentCandidate",
    "ExchangeRateTable",
    "ExtractionMetadata",
    "ExtractionOrchestrator",
    "ExtractionResult",
    "RawDocument",
    "Settings",
    "UnitPrice",
    "VisionExtractionService",
    "extract_document",
]
