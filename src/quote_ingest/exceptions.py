"""
Error taxonomy for the extraction pipeline.

These are raised inside the pipeline and turned into failed
ExtractionResult envelopes before anything reaches the caller.
"""


class QuoteIngestError(Exception):
    """Base class for all pipeline errors. `message` is shown to the user."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnsupportedFileType(QuoteIngestError):
    def __init__(self, mime_type: str, filename: str, supported: list):
        self.mime_type = mime_type
        self.filename = filename
        formats = ", ".join(supported)
        super().__init__(
            f"Unsupported file type: {filename or '<unnamed>'} ({mime_type or 'unknown MIME type'}). "
            f"Supported formats: {formats}"
        )


class EmptyOrUnreadableDocument(QuoteIngestError):
    pass


class NoStructuredDataFound(QuoteIngestError):
    """Advisory only: the document was read but nothing looked like a component."""
    pass


class MalformedSourceData(QuoteIngestError):
    pass


class ExternalServiceFailure(QuoteIngestError):
    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class TransientServiceError(ExternalServiceFailure):
    """Raised by service clients for errors worth another attempt (rate limits, 5xx, dropped connections)."""

    def __init__(self, message: str):
        super().__init__(message, retryable=True)
