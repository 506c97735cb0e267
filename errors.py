"""
Error taxonomy for the people extraction pipeline.

Validation and text-extraction errors abort an extraction immediately.
Provider errors are retried by the analysis client and only surface once the
retry budget is spent. Parse failures stay inside the response parser.
"""
from __future__ import annotations

from typing import Optional


class ExtractionError(Exception):
    """Base exception for pipeline errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class ConfigurationError(ExtractionError):
    """Raised when configuration is invalid or missing."""


class ValidationError(ExtractionError):
    """Raised for missing or empty input (file or text)."""


class TextExtractionError(ExtractionError):
    """Raised when a text extractor cannot produce text from a file."""


class AIProviderError(ExtractionError):
    """Raised when the AI provider call fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None, status_code: Optional[int] = None):
        super().__init__(message, original_error)
        self.status_code = status_code


class AIProviderRateLimited(AIProviderError):
    """Raised when the provider answers HTTP 429."""

    def __init__(self, message: str = "Rate limited by AI provider", original_error: Optional[Exception] = None):
        super().__init__(message, original_error, status_code=429)


class ResponseParseFailure(ExtractionError):
    """Raised inside the response parser when a repair stage gives up."""


class PersistenceError(ExtractionError):
    """Raised when the persistence gateway fails."""


class JobFailure(ExtractionError):
    """Terminal failure of a background job chunk."""
