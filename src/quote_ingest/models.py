"""
Data models for the Supplier Quote Ingest pipeline.
"""

import json
import mimetypes
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

CURRENCIES = ("USD", "NIS", "EUR")

# Route tags produced by the format classifier
ROUTE_TABULAR = "tabular"
ROUTE_DOCUMENT_TEXT = "document-text"
ROUTE_IMAGE = "image"
ROUTE_UNSUPPORTED = "unsupported"

METHOD_STRUCTURED = "structured"
METHOD_TEXT = "text"
METHOD_AI = "ai"


def _money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


@dataclass(frozen=True)
class RawDocument:
    """An uploaded document. The pipeline only ever reads it."""
    content: bytes
    mime_type: str
    filename: str

    @classmethod
    def from_path(cls, path, mime_type: Optional[str] = None) -> "RawDocument":
        path = Path(path)
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(path.name)
        return cls(content=path.read_bytes(), mime_type=mime_type or "", filename=path.name)

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class UnitPrice:
    """A price exactly as read from the document, in its source currency."""
    amount: Decimal
    currency: str

    def __post_init__(self):
        if self.currency not in CURRENCIES:
            raise ValueError(f"Unsupported currency: {self.currency}")

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": _money(self.amount), "currency": self.currency}


@dataclass
class ComponentCandidate:
    """An extracted, not-yet-approved component record."""
    name: str = ""
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    manufacturer_part_number: Optional[str] = None
    category: str = "Other"
    unit_price: Optional[UnitPrice] = None
    quantity: Optional[int] = None
    confidence: float = 0.0
    derived_prices: Dict[str, Decimal] = field(default_factory=dict)
    supplier: Optional[str] = None
    notes: Optional[str] = None
    source_row: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "manufacturer": self.manufacturer,
            "manufacturerPartNumber": self.manufacturer_part_number,
            "category": self.category,
            "unitPrice": self.unit_price.to_dict() if self.unit_price else None,
            "derivedPrices": {code: _money(amount) for code, amount in self.derived_prices.items()},
            "quantity": self.quantity,
            "confidence": round(self.confidence, 4),
            "supplier": self.supplier,
            "notes": self.notes,
            "sourceRow": self.source_row,
        }


@dataclass
class ExtractionMetadata:
    """Describes how a document was read."""
    document_type: Optional[str] = None
    row_or_page_count: int = 0
    recognized_headers: List[str] = field(default_factory=list)
    extraction_method: Optional[str] = None
    has_tabular_layout: bool = False
    sheet_name: Optional[str] = None
    detected_columns: Dict[str, int] = field(default_factory=dict)
    text_length: Optional[int] = None
    is_rtl_document: bool = False
    supplier: Optional[str] = None
    quote_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "documentType": self.document_type,
            "rowOrPageCount": self.row_or_page_count,
            "recognizedHeaders": list(self.recognized_headers),
            "extractionMethod": self.extraction_method,
            "hasTabularLayout": self.has_tabular_layout,
            "isRTLDocument": self.is_rtl_document,
        }
        optional = {
            "sheetName": self.sheet_name,
            "detectedColumns": dict(self.detected_columns) or None,
            "textLength": self.text_length,
            "supplier": self.supplier,
            "quoteDate": self.quote_date,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data


@dataclass
class ExtractionWarning:
    """A review hint attached to a result, e.g. a possibly reversed part number."""
    type: str
    message: str
    severity: str = "warning"
    candidate_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "message": self.message,
            "severity": self.severity,
            "candidateIndex": self.candidate_index,
        }


@dataclass
class ExtractionResult:
    """The envelope handed back to the caller."""
    success: bool
    candidates: List[ComponentCandidate] = field(default_factory=list)
    metadata: ExtractionMetadata = field(default_factory=ExtractionMetadata)
    confidence: float = 0.0
    error: Optional[str] = None
    warnings: List[ExtractionWarning] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, metadata: Optional[ExtractionMetadata] = None) -> "ExtractionResult":
        return cls(success=False, metadata=metadata or ExtractionMetadata(), confidence=0.0, error=error)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "metadata": self.metadata.to_dict(),
            "confidence": round(self.confidence, 4),
        }
        if self.error:
            data["error"] = self.error
        if self.warnings:
            data["warnings"] = [warning.to_dict() for warning in self.warnings]
        return data

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
