#!/usr/bin/env python3
"""
Extraction orchestrator.

Routes a document to one extraction strategy, then normalizes the result:
derived prices, clamped confidences and the aggregate confidence.

    classifying -> extracting -> normalizing -> done
"""

import asyncio
import inspect
import logging
from typing import Optional

from .config import CategorySynonymMap, ExchangeRateTable, Settings
from .exceptions import EmptyOrUnreadableDocument, NoStructuredDataFound, QuoteIngestError, UnsupportedFileType
from .format_classifier import classify, supported_extensions
from .models import (
    ExtractionMetadata,
    ExtractionResult,
    ROUTE_DOCUMENT_TEXT,
    ROUTE_IMAGE,
    ROUTE_TABULAR,
    ROUTE_UNSUPPORTED,
    RawDocument,
)
from .normalizer import clamp_confidence, derive_prices, clean_text
from .pdf_extractor import PDFTextExtractor
from .rtl import review_warnings
from .spreadsheet_reader import read_workbook
from .table_parser import TabularParser
from .text_parser import FreeformTextParser
from .vision_adapter import AIVisionAdapter

logger = logging.getLogger(__name__)


class TabularStrategy:
    """Spreadsheets: read the first sheet with content and map its columns."""

    def __init__(self, categories: CategorySynonymMap):
        self.parser = TabularParser(categories)

    def extract(self, document: RawDocument) -> ExtractionResult:
        sheets = read_workbook(document.content, document.filename)
        for sheet_name, grid in sheets:
            if any(clean_text(cell) for row in grid for cell in (row or [])):
                return self.parser.parse(grid, sheet_name)
        raise EmptyOrUnreadableDocument(
            f"The spreadsheet {document.filename or ''} contains no data. Check that the quote is on a visible sheet."
        )


class DocumentTextStrategy:
    """PDFs with a text layer: extract the text, then pattern-match it."""

    def __init__(self, categories: CategorySynonymMap, pdf_extractor: Optional[PDFTextExtractor] = None):
        self.pdf_extractor = pdf_extractor or PDFTextExtractor()
        self.parser = FreeformTextParser(categories)

    def extract(self, document: RawDocument) -> ExtractionResult:
        pdf = self.pdf_extractor.extract(document.content)
        return self.parser.parse(pdf.text, pdf.page_count)


class ExtractionOrchestrator:
    """
    Single entry point of the pipeline.

    Exchange rates and the category map are passed in and only read. The
    vision adapter is optional; without it image uploads fail with an
    actionable message.
    """

    def __init__(self, rates: Optional[ExchangeRateTable] = None,
                 categories: Optional[CategorySynonymMap] = None,
                 vision_adapter: Optional[AIVisionAdapter] = None,
                 settings: Optional[Settings] = None,
                 pdf_extractor: Optional[PDFTextExtractor] = None):
        self.rates = rates or ExchangeRateTable()
        self.categories = categories or CategorySynonymMap()
        self.settings = settings or Settings()
        self.vision_adapter = vision_adapter
        self.strategies = {
            ROUTE_TABULAR: TabularStrategy(self.categories),
            ROUTE_DOCUMENT_TEXT: DocumentTextStrategy(self.categories, pdf_extractor),
        }
        if vision_adapter is not None:
            self.strategies[ROUTE_IMAGE] = vision_adapter

    def extract(self, document: RawDocument) -> ExtractionResult:
        """
        Synchronous wrapper around extract_async().

        Inside a running event loop this returns a failed result; await
        extract_async() there instead.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.extract_async(document))

        logger.error(f"extract() called for {document.filename!r} inside a running event loop")
        return ExtractionResult.failure(
            "extract() cannot run inside an event loop. Await extract_async() instead.",
            ExtractionMetadata(document_type=classify(document.mime_type, document.filename)),
        )

    async def extract_async(self, document: RawDocument) -> ExtractionResult:
        """
        Extract component candidates from a document.

        Never raises for document or service problems: those come back as a
        failed ExtractionResult. Caller cancellation propagates.
        """
        logger.debug(f"{document.filename!r}: classifying")
        route = classify(document.mime_type, document.filename)

        if route == ROUTE_UNSUPPORTED:
            error = UnsupportedFileType(document.mime_type, document.filename, supported_extensions())
            logger.warning(error.message)
            return ExtractionResult.failure(error.message, ExtractionMetadata(document_type=route))

        rejection = self._check_payload(document)
        if rejection:
            logger.warning(rejection)
            return ExtractionResult.failure(rejection, ExtractionMetadata(document_type=route))

        logger.debug(f"{document.filename!r}: extracting via {route}")
        result = await self._run_strategy(route, document)

        if route == ROUTE_DOCUMENT_TEXT and self._should_fall_back(result):
            logger.info(f"No usable text data in {document.filename!r}; retrying with AI vision")
            result = await self._run_strategy(ROUTE_IMAGE, document)

        logger.debug(f"{document.filename!r}: normalizing")
        result = self._normalize(result, route)
        logger.debug(f"{document.filename!r}: done ({len(result.candidates)} candidates)")
        return result

    def _check_payload(self, document: RawDocument) -> Optional[str]:
        if not document.content:
            return EmptyOrUnreadableDocument(
                f"The file {document.filename or ''} is empty. Please upload the quote again."
            ).message
        if document.size_bytes > self.settings.max_file_size_bytes:
            size_mb = document.size_bytes / (1024 * 1024)
            return (
                f"The file is too large ({size_mb:.1f} MB). "
                f"The maximum size is {self.settings.max_file_size_mb} MB."
            )
        return None

    def _should_fall_back(self, result: ExtractionResult) -> bool:
        if not self.settings.ai_fallback or self.vision_adapter is None:
            return False
        return not result.success or not result.candidates

    async def _run_strategy(self, route: str, document: RawDocument) -> ExtractionResult:
        strategy = self.strategies.get(route)
        if strategy is None:
            return ExtractionResult.failure(
                "AI vision extraction is not configured, so images cannot be processed. "
                "Configure an AI service or upload the quote as a spreadsheet or text PDF.",
                ExtractionMetadata(document_type=route),
            )

        try:
            result = strategy.extract(document)
            if inspect.isawaitable(result):
                result = await result
        except NoStructuredDataFound as e:
            logger.info(f"{document.filename!r}: {e.message}")
            return ExtractionResult(success=True, metadata=ExtractionMetadata(document_type=route), error=e.message)
        except QuoteIngestError as e:
            logger.error(f"{type(strategy).__name__} failed for {document.filename!r}: {e.message}")
            return ExtractionResult.failure(e.message, ExtractionMetadata(document_type=route))
        except Exception as e:
            logger.exception(f"Unexpected error while extracting {document.filename!r}")
            return ExtractionResult.failure(
                f"Extraction failed unexpectedly: {e}. Try a different file format.",
                ExtractionMetadata(document_type=route),
            )
        return result

    def _normalize(self, result: ExtractionResult, route: str) -> ExtractionResult:
        candidates = [c for c in result.candidates if c.name]
        for candidate in candidates:
            candidate.confidence = clamp_confidence(candidate.confidence)
            candidate.derived_prices = derive_prices(candidate.unit_price, self.rates)

        result.candidates = candidates
        if not result.metadata.document_type:
            result.metadata.document_type = route
        if result.metadata.is_rtl_document and not result.warnings:
            result.warnings = review_warnings(candidates, True)

        result.confidence = sum(c.confidence for c in candidates) / len(candidates) if candidates else 0.0
        return result


def extract_document(document: RawDocument, rates: Optional[ExchangeRateTable] = None,
                     categories: Optional[CategorySynonymMap] = None,
                     vision_adapter: Optional[AIVisionAdapter] = None,
                     settings: Optional[Settings] = None) -> ExtractionResult:
    """
    Convenience function to run one extraction synchronously.

    Args:
        document: The uploaded document
        rates: Exchange rates (defaults if omitted)
        categories: Category synonym map (defaults if omitted)

    Returns:
        ExtractionResult
    """
    orchestrator = ExtractionOrchestrator(rates, categories, vision_adapter, settings)
    return orchestrator.extract(document)
