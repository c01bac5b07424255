"""FastAPI middleware for logging, metrics, and rate limiting."""

from __future__ import annotations

import threading
import time
import uuid
from collections import defaultdict
from collections.abc import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from docketdive.errors import RateLimitError
from docketdive.observability.context import clear_request_context, set_request_context

from .errors import error_response

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging and tracing.

    Features:
    - Generates/extracts request ID from X-Request-ID header
    - Logs request start and completion with timing
    - Binds context vars for downstream logging
    - Records metrics for each request

    For streamed chat responses the recorded latency is time to first
    byte; the stream's own duration is reported in its metadata event.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process the request with logging and tracing."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        set_request_context(request_id)
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=str(request.url.path),
            client_ip=request.client.host if request.client else None,
        )

        start_time = time.perf_counter()
        metrics = getattr(request.app.state, "metrics", None)

        try:
            response = await call_next(request)
            latency_ms = (time.perf_counter() - start_time) * 1000

            logger.info(
                "request_completed",
                status_code=response.status_code,
                latency_ms=round(latency_ms, 2),
            )

            if metrics is not None:
                metrics.record_request(latency_ms, success=response.status_code < 400)

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            latency_ms = (time.perf_counter() - start_time) * 1000

            logger.error(
                "request_failed",
                error_type=type(e).__name__,
                error_message=str(e),
                latency_ms=round(latency_ms, 2),
            )

            if metrics is not None:
                metrics.record_request(latency_ms, success=False, error_type=type(e).__name__)

            raise

        finally:
            structlog.contextvars.unbind_contextvars("request_id")
            clear_request_context()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Simple in-memory rate limiting middleware.

    Features:
    - Per-IP rate limiting with sliding window
    - Configurable requests per minute
    - Automatic cleanup of old entries
    - Excludes health, ping and metrics endpoints

    Note: This is suitable for single-instance deployments.
    For distributed deployments, use Redis-based rate limiting.
    """

    EXCLUDED_PATHS = {"/api/health", "/api/ping", "/api/metrics", "/", "/docs", "/redoc"}
    WINDOW_SECONDS = 60

    def __init__(
        self,
        app,
        requests_per_minute: int = 60,
        cleanup_interval: int = 100,
    ) -> None:
        """Initialize rate limiter.

        Args:
            app: The FastAPI/Starlette app.
            requests_per_minute: Max requests per IP per minute.
            cleanup_interval: Clean old entries every N requests.
        """
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.cleanup_interval = cleanup_interval
        self.requests: dict[str, list[float]] = defaultdict(list)
        self.request_count = 0
        self.lock = threading.Lock()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check rate limit before processing request."""
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        current_time = time.time()

        with self.lock:
            self.request_count += 1
            if self.request_count % self.cleanup_interval == 0:
                self._cleanup_old_entries(current_time)

            window = [
                t for t in self.requests[client_ip] if current_time - t < self.WINDOW_SECONDS
            ]
            self.requests[client_ip] = window
            limited = len(window) >= self.requests_per_minute
            if not limited:
                window.append(current_time)

        if limited:
            logger.warning(
                "rate_limit_exceeded",
                client_ip=client_ip,
                requests_in_window=len(window),
                limit=self.requests_per_minute,
            )
            # Middleware runs outside the app exception handlers
            exc = RateLimitError(
                message=f"Rate limit exceeded: {self.requests_per_minute} requests per minute",
                details={
                    "limit": self.requests_per_minute,
                    "window_seconds": self.WINDOW_SECONDS,
                    "retry_after_seconds": self.WINDOW_SECONDS,
                },
            )
            metrics = getattr(request.app.state, "metrics", None)
            if metrics is not None:
                metrics.record_error(exc.error_code)
            return error_response(exc)

        return await call_next(request)

    def _cleanup_old_entries(self, current_time: float) -> None:
        """Remove entries older than the window."""
        cutoff = current_time - self.WINDOW_SECONDS
        empty_ips = []

        for ip, timestamps in self.requests.items():
            self.requests[ip] = [t for t in timestamps if t > cutoff]
            if not self.requests[ip]:
                empty_ips.append(ip)

        for ip in empty_ips:
            del self.requests[ip]
