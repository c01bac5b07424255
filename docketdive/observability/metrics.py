"""Simple in-memory metrics collection for the API."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime

CHAT_OUTCOMES = ("grounded", "ungrounded", "refused", "failed")


@dataclass
class RequestMetrics:
    """Container for request and chat metrics."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_latency_ms: float = 0.0
    min_latency_ms: float | None = None
    max_latency_ms: float | None = None
    errors_by_type: dict[str, int] = field(default_factory=dict)
    chat_outcomes: dict[str, int] = field(
        default_factory=lambda: dict.fromkeys(CHAT_OUTCOMES, 0)
    )
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class MetricsCollector:
    """Thread-safe metrics collector.

    One instance is created at startup and shared through ``app.state``.

    Collects:
    - Request counts (total, success, failure)
    - Latency statistics (avg, min, max)
    - Error breakdown by type
    - Chat outcomes (grounded, ungrounded, refused, failed)

    Example:
        metrics = MetricsCollector()
        metrics.record_request(latency_ms=150.5, success=True)
        metrics.record_chat_outcome("grounded")
        stats = metrics.get_stats()
    """

    def __init__(self) -> None:
        self._metrics = RequestMetrics()
        self._lock = threading.Lock()

    def record_request(
        self,
        latency_ms: float,
        success: bool,
        error_type: str | None = None,
    ) -> None:
        """Record metrics for a completed HTTP request.

        Args:
            latency_ms: Request latency in milliseconds.
            success: Whether the request succeeded.
            error_type: Type of error if failed (e.g., "TimeoutError").
        """
        with self._lock:
            m = self._metrics
            m.total_requests += 1
            m.total_latency_ms += latency_ms

            if m.min_latency_ms is None or latency_ms < m.min_latency_ms:
                m.min_latency_ms = latency_ms
            if m.max_latency_ms is None or latency_ms > m.max_latency_ms:
                m.max_latency_ms = latency_ms

            if success:
                m.successful_requests += 1
            else:
                m.failed_requests += 1
                if error_type:
                    m.errors_by_type[error_type] = m.errors_by_type.get(error_type, 0) + 1

    def record_error(self, error_type: str) -> None:
        """Record an error by type without touching request counts."""
        with self._lock:
            m = self._metrics
            m.errors_by_type[error_type] = m.errors_by_type.get(error_type, 0) + 1

    def record_chat_outcome(self, outcome: str) -> None:
        """Record how a chat response ended.

        Args:
            outcome: One of grounded, ungrounded, refused, failed.
        """
        if outcome not in CHAT_OUTCOMES:
            raise ValueError(f"unknown chat outcome '{outcome}'")
        with self._lock:
            self._metrics.chat_outcomes[outcome] += 1

    def get_stats(self) -> dict:
        """Get current metrics as a JSON-serializable dictionary."""
        with self._lock:
            m = self._metrics
            avg_latency = m.total_latency_ms / m.total_requests if m.total_requests > 0 else 0.0
            success_rate = (
                (m.successful_requests / m.total_requests * 100) if m.total_requests > 0 else 0.0
            )
            uptime_seconds = (datetime.now(UTC) - m.started_at).total_seconds()

            return {
                "total_requests": m.total_requests,
                "successful_requests": m.successful_requests,
                "failed_requests": m.failed_requests,
                "success_rate_percent": round(success_rate, 2),
                "latency_ms": {
                    "avg": round(avg_latency, 2),
                    "min": round(m.min_latency_ms, 2) if m.min_latency_ms is not None else None,
                    "max": round(m.max_latency_ms, 2) if m.max_latency_ms is not None else None,
                },
                "errors_by_type": dict(m.errors_by_type),
                "chat_outcomes": dict(m.chat_outcomes),
                "uptime_seconds": round(uptime_seconds, 0),
                "started_at": m.started_at.isoformat(),
            }

    def reset(self) -> None:
        """Reset all metrics. Useful for testing."""
        with self._lock:
            self._metrics = RequestMetrics()
