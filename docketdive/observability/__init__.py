"""Observability module for logging, request context, and metrics."""

from .context import (
    clear_request_context,
    get_context,
    request_id_var,
    set_request_context,
)
from .logging import configure_logging, get_logger
from .metrics import CHAT_OUTCOMES, MetricsCollector

__all__ = [
    # Context
    "request_id_var",
    "get_context",
    "set_request_context",
    "clear_request_context",
    # Logging
    "configure_logging",
    "get_logger",
    # Metrics
    "MetricsCollector",
    "CHAT_OUTCOMES",
]
