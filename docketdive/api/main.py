"""FastAPI application for the DocketDive legal chat service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import Settings, get_settings
from docketdive.errors import DocketDiveError
from docketdive.observability.logging import configure_logging, get_logger
from docketdive.observability.metrics import MetricsCollector
from docketdive.providers import create_provider_registry
from docketdive.rag.pipeline import ChatPipeline
from docketdive.vector import create_embedder, create_vector_store

from .errors import error_body, error_response
from .middleware import RateLimitMiddleware, RequestLoggingMiddleware
from .routes import router

logger = get_logger(__name__)

API_VERSION = "0.1.0"


# =============================================================================
# Lifespan Context Manager
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle.

    Startup:
    - Configure structured logging
    - Build every shared client once and store it on app.state
    - Check vector store connectivity

    Shutdown:
    - Close HTTP, Weaviate and Redis connections
    """
    settings: Settings = app.state.settings
    configure_logging(json_output=settings.is_production, log_level=settings.log_level)

    logger.info("api_startup_started", environment=settings.env)

    embedder = create_embedder(settings)
    vector_store = create_vector_store(settings)
    providers = create_provider_registry(settings)

    app.state.embedder = embedder
    app.state.vector_store = vector_store
    app.state.providers = providers
    app.state.pipeline = ChatPipeline.from_settings(
        settings,
        embedder=embedder,
        store=vector_store,
        providers=providers,
        metrics=app.state.metrics,
    )

    if await vector_store.health_check():
        logger.info("weaviate_connected", status="connected")
    else:
        # Health endpoint reports the outage; chat requests fail with STORE_UNAVAILABLE
        logger.warning("weaviate_not_available", status="unavailable")

    logger.info("api_startup_complete", status="ready")

    try:
        yield
    finally:
        logger.info("api_shutdown_started")
        await providers.close()
        await embedder.close()
        await vector_store.close()
        logger.info("api_shutdown_complete")


# =============================================================================
# Application Factory
# =============================================================================


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; defaults to the cached environment settings
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="DocketDive API",
        description="Retrieval-augmented chat over South African case law and legislation",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.metrics = MetricsCollector()

    # ==========================================================================
    # Middleware Stack (order matters - last added runs first)
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.add_middleware(RateLimitMiddleware, requests_per_minute=settings.rate_limit_per_minute)

    # Runs first, so every response (including 429s) carries X-Request-ID
    app.add_middleware(RequestLoggingMiddleware)

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(DocketDiveError)
    async def handle_docketdive_error(
        request: Request, exc: DocketDiveError
    ) -> JSONResponse:
        """Handle application exceptions raised before a stream starts."""
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "docketdive_error",
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details,
            status_code=exc.status_code,
        )

        request.app.state.metrics.record_error(exc.error_code)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors."""
        errors = []
        for error in exc.errors():
            errors.append(
                {
                    "code": "VALIDATION_ERROR",
                    "message": error["msg"],
                    "field": ".".join(str(loc) for loc in error["loc"]),
                }
            )

        logger.warning("validation_error", errors=errors)
        request.app.state.metrics.record_error("VALIDATION_ERROR")

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body("VALIDATION_ERROR", "Request validation failed", errors),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
        )

        request.app.state.metrics.record_error(type(exc).__name__)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                "INTERNAL_ERROR",
                "An unexpected error occurred",
                {"error_type": type(exc).__name__},
            ),
        )

    # ==========================================================================
    # Include Routers
    # ==========================================================================

    app.include_router(router, prefix="/api", tags=["DocketDive"])

    # ==========================================================================
    # Root Endpoint
    # ==========================================================================

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "DocketDive API",
            "version": API_VERSION,
            "docs": "/docs",
            "chat": "/api/chat",
            "health": "/api/health",
        }

    return app


# Create app instance for uvicorn
app = create_app()
