"""Rendering of application errors as JSON responses."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi.responses import JSONResponse

from docketdive.errors import DocketDiveError, RateLimitError
from docketdive.observability.context import request_id_var


def error_body(
    error: str,
    message: str,
    details: Any = None,
) -> dict[str, Any]:
    """Standard error payload shared by every error response."""
    return {
        "request_id": request_id_var.get("") or "unknown",
        "error": error,
        "message": message,
        "details": details if details is not None else {},
        "timestamp": datetime.now(UTC).isoformat(),
    }


def error_response(exc: DocketDiveError) -> JSONResponse:
    """Build the JSON response for an application error.

    Rate limit responses carry a Retry-After header.
    """
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.details.get("retry_after_seconds", 60))}

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.error_code, exc.message, exc.details),
        headers=headers,
    )
