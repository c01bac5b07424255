"""Custom exception hierarchy for the DocketDive service."""

from __future__ import annotations

from typing import Any


class DocketDiveError(Exception):
    """Base exception for all DocketDive application errors.

    Attributes:
        error_code: Machine-readable error code for clients.
        status_code: HTTP status code to return.
        message: Human-readable error message.
        details: Additional error context.
    """

    error_code: str = "DOCKETDIVE_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Additional context (e.g., provider, status).
            error_code: Override the class error code.
            status_code: Override the class status code.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class EmptyInputError(DocketDiveError):
    """The query (or text to embed) is blank after trimming.

    Raised before any network call is made. Never retried.
    """

    error_code = "EMPTY_INPUT"
    status_code = 400


class ValidationError(DocketDiveError):
    """Invalid input other than a blank query.

    Raised when:
    - Search limit is out of range
    - Document text is too long or yields no chunks
    """

    error_code = "VALIDATION_ERROR"
    status_code = 400


class ProviderUnavailableError(DocketDiveError):
    """An upstream model or embedding service could not be reached.

    Raised when:
    - The embedding endpoint returns a non-success status
    - A model provider refuses the connection
    - A provider is not configured (e.g., missing API key)
    """

    error_code = "PROVIDER_UNAVAILABLE"
    status_code = 503


class StoreUnavailableError(DocketDiveError):
    """The vector store collection could not be reached or queried."""

    error_code = "STORE_UNAVAILABLE"
    status_code = 503


class ProviderTimeoutError(DocketDiveError):
    """No token arrived from the model provider within the allowed interval."""

    error_code = "PROVIDER_TIMEOUT"
    status_code = 504


class ProviderError(DocketDiveError):
    """The model provider failed during generation.

    Terminal for the request; partial output already streamed is kept.
    """

    error_code = "PROVIDER_ERROR"
    status_code = 502


class QueryTimeoutError(DocketDiveError):
    """Request preparation exceeded the per-request ceiling."""

    error_code = "TIMEOUT"
    status_code = 408


class RateLimitError(DocketDiveError):
    """API rate limit exceeded for a client."""

    error_code = "RATE_LIMIT_EXCEEDED"
    status_code = 429
