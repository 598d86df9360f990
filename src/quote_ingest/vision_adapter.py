"""
AI vision adapter.

Wraps an external vision extraction service behind the same
``extract(document) -> ExtractionResult`` capability as the local parsers.
Every service call is bounded by a timeout and retried with exponential
backoff on transient failures; caller cancellation always propagates.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import CategorySynonymMap, Settings
from .exceptions import NoStructuredDataFound, QuoteIngestError, TransientServiceError
from .llm_client import OpenAIVisionService
from .models import (
    CURRENCIES,
    ComponentCandidate,
    ExtractionMetadata,
    ExtractionResult,
    METHOD_AI,
    ROUTE_DOCUMENT_TEXT,
    ROUTE_IMAGE,
    RawDocument,
    UnitPrice,
)
from .normalizer import (
    assign_part_number,
    build_unit_price,
    clamp_confidence,
    clean_text,
    normalize_category,
    parse_price,
    parse_quantity,
)
from .rtl import contains_hebrew, review_warnings

logger = logging.getLogger(__name__)

DEFAULT_ITEM_CONFIDENCE = 0.5
MAX_RETRY_WAIT_SECONDS = 10

# Per-currency price fields, in the order they are consulted
PRICE_FIELDS = (("NIS", "unitPriceNIS"), ("USD", "unitPriceUSD"), ("EUR", "unitPriceEUR"))

CURRENCY_ALIASES = {"ILS": "NIS", "₪": "NIS", "$": "USD", "€": "EUR"}


class VisionExtractionService(Protocol):
    """The external AI vision service. Only its input/output contract matters here."""

    async def extract(self, content: bytes, mime_type: str, filename: str) -> Dict[str, Any]:
        """Return {"components": [...], "metadata": {...}}."""
        ...


def _item_currency(value: Any) -> Optional[str]:
    text = clean_text(value)
    if not text:
        return None
    code = CURRENCY_ALIASES.get(text.upper(), text.upper())
    return code if code in CURRENCIES else None


def resolve_item_price(item: Dict[str, Any]) -> Optional[UnitPrice]:
    """
    Pick the source price of an AI item.

    The item's explicit currency wins when its matching price field is
    present; otherwise the first present per-currency field; otherwise the
    generic ``unitPrice`` (explicit currency, else USD).
    """
    currency = _item_currency(item.get("currency"))

    if currency:
        amount = parse_price(item.get(f"unitPrice{currency}"))
        if amount is not None:
            return UnitPrice(amount=amount, currency=currency)

    for code, key in PRICE_FIELDS:
        amount = parse_price(item.get(key))
        if amount is not None:
            return UnitPrice(amount=amount, currency=code)

    return build_unit_price(item.get("unitPrice"), currency)


class AIVisionAdapter:
    """Runs a VisionExtractionService and adapts its output into candidates."""

    def __init__(self, service: VisionExtractionService, categories: Optional[CategorySynonymMap] = None,
                 timeout_seconds: float = 60.0, max_attempts: int = 3, retry_base_delay: float = 1.0):
        self.service = service
        self.categories = categories or CategorySynonymMap()
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay

    async def extract(self, document: RawDocument) -> ExtractionResult:
        metadata = ExtractionMetadata(
            document_type=ROUTE_IMAGE if (document.mime_type or "").startswith("image/") else ROUTE_DOCUMENT_TEXT,
            extraction_method=METHOD_AI,
        )

        try:
            payload = await self._call_service(document)
            return self._adapt(payload, metadata)
        except NoStructuredDataFound as e:
            logger.info(f"AI extraction of {document.filename!r}: {e.message}")
            return ExtractionResult(success=True, metadata=metadata, confidence=0.0, error=e.message)
        except asyncio.TimeoutError:
            logger.error(f"AI extraction of {document.filename!r} timed out after {self.max_attempts} attempt(s)")
            return ExtractionResult.failure(
                f"AI extraction timed out after {self.timeout_seconds:g} seconds "
                f"({self.max_attempts} attempt(s)). Try again later or upload a smaller file.",
                metadata,
            )
        except TransientServiceError as e:
            logger.error(f"AI service still unavailable after {self.max_attempts} attempt(s): {e}")
            return ExtractionResult.failure(
                f"{e.message} Gave up after {self.max_attempts} attempt(s); please try again later.",
                metadata,
            )
        except QuoteIngestError as e:
            logger.error(f"AI extraction failed: {e.message}")
            return ExtractionResult.failure(e.message, metadata)
        except Exception as e:
            logger.exception(f"Unexpected AI service error for {document.filename!r}")
            return ExtractionResult.failure(f"AI extraction failed unexpectedly: {e}", metadata)

    async def _call_service(self, document: RawDocument) -> Dict[str, Any]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_base_delay, max=MAX_RETRY_WAIT_SECONDS),
            retry=retry_if_exception_type((TransientServiceError, asyncio.TimeoutError)),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                number = attempt.retry_state.attempt_number
                logger.info(f"AI extraction attempt {number}/{self.max_attempts} for {document.filename!r}")
                return await asyncio.wait_for(
                    self.service.extract(document.content, document.mime_type, document.filename),
                    timeout=self.timeout_seconds,
                )

    def _adapt(self, payload: Any, metadata: ExtractionMetadata) -> ExtractionResult:
        if not isinstance(payload, dict) or not isinstance(payload.get("components"), list):
            logger.error("AI response has no components list")
            return ExtractionResult.failure(
                "The AI service response was malformed (no component list). Try again or use a clearer image.",
                metadata,
            )

        doc_meta = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
        items = payload["components"]
        metadata.row_or_page_count = len(items)
        metadata.supplier = clean_text(doc_meta.get("supplier"))
        metadata.quote_date = clean_text(doc_meta.get("quoteDate"))
        headers = doc_meta.get("columnHeaders")
        if isinstance(headers, list):
            metadata.recognized_headers = [h for h in (clean_text(h) for h in headers) if h]

        candidates: List[ComponentCandidate] = []
        for index, item in enumerate(items, 1):
            if not isinstance(item, dict):
                logger.warning(f"Skipping AI item {index}: not an object")
                continue
            candidate = self._adapt_item(item, metadata.supplier)
            if candidate is None:
                logger.warning(f"Skipping AI item {index}: no name or part number")
                continue
            candidate.source_row = index
            candidates.append(candidate)

        metadata.is_rtl_document = bool(doc_meta.get("isRTLDocument")) or any(
            contains_hebrew(c.name) or contains_hebrew(c.description) for c in candidates
        )

        if not candidates:
            raise NoStructuredDataFound("The AI service found no components in this document.")

        confidence = sum(c.confidence for c in candidates) / len(candidates)
        logger.info(f"AI extraction produced {len(candidates)} candidates (avg confidence {confidence:.2f})")
        return ExtractionResult(
            success=True,
            candidates=candidates,
            metadata=metadata,
            confidence=confidence,
            warnings=review_warnings(candidates, metadata.is_rtl_document),
        )

    def _adapt_item(self, item: Dict[str, Any], default_supplier: Optional[str]) -> Optional[ComponentCandidate]:
        name = clean_text(item.get("name"))
        description = clean_text(item.get("description"))
        part_number = clean_text(item.get("manufacturerPN") or item.get("manufacturerPartNumber"))

        if not name and not part_number:
            return None

        raw_confidence = item.get("confidence")
        return ComponentCandidate(
            name=name or description or part_number,
            description=description,
            manufacturer=clean_text(item.get("manufacturer")),
            manufacturer_part_number=assign_part_number(part_number),
            category=normalize_category(item.get("category"), self.categories),
            unit_price=resolve_item_price(item),
            quantity=parse_quantity(item.get("quantity")),
            confidence=DEFAULT_ITEM_CONFIDENCE if raw_confidence is None else clamp_confidence(raw_confidence),
            supplier=clean_text(item.get("supplier")) or default_supplier,
            notes=clean_text(item.get("notes")),
        )


def create_openai_adapter(settings: Settings, categories: Optional[CategorySynonymMap] = None) -> AIVisionAdapter:
    """Build an adapter around the OpenAI-backed service using runtime settings."""
    categories = categories or CategorySynonymMap()
    service = OpenAIVisionService(model=settings.ai_model, categories=categories.canonical_labels)
    return AIVisionAdapter(
        service,
        categories,
        timeout_seconds=settings.ai_timeout_seconds,
        max_attempts=settings.ai_max_attempts,
        retry_base_delay=settings.ai_retry_base_delay,
    )
