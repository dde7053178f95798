# core/exceptions.py
"""
Exception taxonomy for the ingestion pipeline.

Extraction and enrichment faults are turned into result values by the
component that catches them; validation and delivery faults travel up to the
delivery engine, which decides whether to retry.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ScraperException(Exception):
    """Base class – carries an HTTP-ish status and a machine readable code."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "SCRAPER_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "status": self.status_code,
                "details": self.details,
            }
        }


class ExtractionError(ScraperException):
    """A source page could not be fetched or parsed."""

    def __init__(self, source: str, message: str):
        super().__init__(
            f"{source}: {message}",
            status_code=502,
            code="EXTRACTION_ERROR",
            details={"source": source},
        )
        self.source = source


class ValidationErrorKind(str, Enum):
    MISSING_FIELD = "MISSING_FIELD"
    TITLE_TOO_SHORT = "TITLE_TOO_SHORT"
    CONTENT_TOO_SHORT = "CONTENT_TOO_SHORT"


class ValidationError(ScraperException):
    """Raised before any network call when a payload cannot be sent."""

    def __init__(self, kind: ValidationErrorKind, field: Optional[str] = None):
        message = f"{kind.value}: {field}" if field else kind.value
        super().__init__(
            message,
            status_code=422,
            code="VALIDATION_ERROR",
            details={"kind": kind.value, "field": field},
        )
        self.kind = kind
        self.field = field


class DeliveryError(ScraperException):
    """
    One failed POST to the content API.

    ``status`` is ``None`` when no HTTP response was received at all
    (connection refused, DNS failure, timeout).
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(
            message,
            status_code=status or 503,
            code="DELIVERY_ERROR",
            details={"status": status},
        )
        self.status = status
        self.body = body
        self.retry_after = retry_after


class RunInProgressError(ScraperException):
    def __init__(self):
        super().__init__(
            "A pipeline run is already in progress",
            status_code=409,
            code="RUN_IN_PROGRESS",
        )


class SourceNotFoundError(KeyError):
    """Raised when a requested source does not exist in sources.yaml."""

    def __init__(self, source_name: str):
        super().__init__(f"Source '{source_name}' not found.")
        self.source_name = source_name
