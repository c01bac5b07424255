"""Tests for docketdive/api/middleware.py."""

from __future__ import annotations

import time
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import Response

from config.settings import Settings
from docketdive.api.main import create_app
from docketdive.api.middleware import RateLimitMiddleware, RequestLoggingMiddleware
from docketdive.observability.metrics import MetricsCollector

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_request() -> MagicMock:
    """Create a mock Starlette request."""
    request = MagicMock(spec=Request)
    request.method = "POST"
    request.url.path = "/api/chat"
    request.headers = {}
    request.client = MagicMock()
    request.client.host = "127.0.0.1"
    request.app.state.metrics = MetricsCollector()
    return request


@pytest.fixture
def mock_response() -> Response:
    """Create a mock Starlette response."""
    return Response(content="OK", status_code=200)


@pytest.fixture
def mock_app() -> MagicMock:
    """Create a mock FastAPI app."""
    return MagicMock()


# =============================================================================
# RequestLoggingMiddleware Tests
# =============================================================================


class TestRequestLoggingMiddleware:
    """Test RequestLoggingMiddleware class."""

    @pytest.mark.asyncio
    async def test_generates_request_id(
        self, mock_request: MagicMock, mock_response: Response, mock_app: MagicMock
    ) -> None:
        """Should generate request ID if not present in headers."""

        async def call_next(request):
            return mock_response

        middleware = RequestLoggingMiddleware(mock_app)
        response = await middleware.dispatch(mock_request, call_next)

        assert len(response.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_extracts_request_id_from_header(
        self, mock_request: MagicMock, mock_response: Response, mock_app: MagicMock
    ) -> None:
        """Should use X-Request-ID from headers if present."""
        mock_request.headers = {"X-Request-ID": "test-request-id-123"}

        async def call_next(request):
            return mock_response

        middleware = RequestLoggingMiddleware(mock_app)

        with patch("docketdive.api.middleware.set_request_context") as mock_set:
            response = await middleware.dispatch(mock_request, call_next)

        mock_set.assert_called_once_with("test-request-id-123")
        assert response.headers["X-Request-ID"] == "test-request-id-123"

    @pytest.mark.asyncio
    async def test_records_metrics(
        self, mock_request: MagicMock, mock_app: MagicMock
    ) -> None:
        """Should record request success/failure in app metrics."""

        async def call_next(request):
            return Response(status_code=503)

        middleware = RequestLoggingMiddleware(mock_app)
        await middleware.dispatch(mock_request, call_next)

        stats = mock_request.app.state.metrics.get_stats()
        assert stats["total_requests"] == 1
        assert stats["failed_requests"] == 1

    @pytest.mark.asyncio
    async def test_clears_context_on_exception(
        self, mock_request: MagicMock, mock_app: MagicMock
    ) -> None:
        """Should clear context and record the failure when the app raises."""

        async def call_next(request):
            raise ValueError("Test error")

        middleware = RequestLoggingMiddleware(mock_app)

        with patch("docketdive.api.middleware.clear_request_context") as mock_clear:
            with pytest.raises(ValueError):
                await middleware.dispatch(mock_request, call_next)

        mock_clear.assert_called_once()
        stats = mock_request.app.state.metrics.get_stats()
        assert stats["errors_by_type"] == {"ValueError": 1}


# =============================================================================
# RateLimitMiddleware Tests
# =============================================================================


class TestRateLimitMiddleware:
    """Test RateLimitMiddleware class."""

    @pytest.mark.asyncio
    async def test_allows_requests_under_limit(
        self, mock_request: MagicMock, mock_response: Response, mock_app: MagicMock
    ) -> None:
        async def call_next(request):
            return mock_response

        middleware = RateLimitMiddleware(mock_app, requests_per_minute=3)

        for _ in range(3):
            response = await middleware.dispatch(mock_request, call_next)
            assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_rejects_over_limit(
        self, mock_request: MagicMock, mock_response: Response, mock_app: MagicMock
    ) -> None:
        """Should answer 429 with Retry-After once the window is full."""

        async def call_next(request):
            return mock_response

        middleware = RateLimitMiddleware(mock_app, requests_per_minute=2)

        await middleware.dispatch(mock_request, call_next)
        await middleware.dispatch(mock_request, call_next)
        response = await middleware.dispatch(mock_request, call_next)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert mock_request.app.state.metrics.get_stats()["errors_by_type"] == {
            "RATE_LIMIT_EXCEEDED": 1
        }

    @pytest.mark.asyncio
    async def test_excluded_paths_not_limited(
        self, mock_request: MagicMock, mock_response: Response, mock_app: MagicMock
    ) -> None:
        mock_request.url.path = "/api/health"

        async def call_next(request):
            return mock_response

        middleware = RateLimitMiddleware(mock_app, requests_per_minute=1)

        for _ in range(5):
            response = await middleware.dispatch(mock_request, call_next)
            assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_limits_are_per_client(
        self, mock_request: MagicMock, mock_response: Response, mock_app: MagicMock
    ) -> None:
        async def call_next(request):
            return mock_response

        middleware = RateLimitMiddleware(mock_app, requests_per_minute=1)

        await middleware.dispatch(mock_request, call_next)
        mock_request.client.host = "10.0.0.2"
        response = await middleware.dispatch(mock_request, call_next)

        assert response.status_code == 200

    def test_cleanup_removes_old_entries(self, mock_app: MagicMock) -> None:
        middleware = RateLimitMiddleware(mock_app)
        now = time.time()
        middleware.requests["old"] = [now - 120]
        middleware.requests["recent"] = [now - 5]

        middleware._cleanup_old_entries(now)

        assert "old" not in middleware.requests
        assert middleware.requests["recent"] == [now - 5]


class TestMiddlewareStack:
    """Middleware wired into the application."""

    def test_rate_limited_response_has_request_id(self) -> None:
        app = create_app(Settings(_env_file=None, rate_limit_per_minute=1))
        client = TestClient(app)

        client.get("/api/unknown")
        response = client.get("/api/unknown", headers={"X-Request-ID": "rl-1"})

        assert response.status_code == 429
        assert response.json()["error"] == "RATE_LIMIT_EXCEEDED"
        assert response.headers["X-Request-ID"] == "rl-1"
