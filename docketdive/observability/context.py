"""Request context propagation using contextvars."""

from __future__ import annotations

from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_context() -> dict[str, str]:
    """Get current request context for logging.

    Example:
        ctx = get_context()
        logger.info("processing", **ctx, step="embed")
    """
    request_id = request_id_var.get("")
    return {"request_id": request_id} if request_id else {}


def set_request_context(request_id: str) -> None:
    """Set request context for the current async context."""
    request_id_var.set(request_id)


def clear_request_context() -> None:
    """Clear request context after request completes."""
    request_id_var.set("")
