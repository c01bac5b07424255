"""API routes for the DocketDive chat service."""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from docketdive.errors import StoreUnavailableError
from docketdive.observability.logging import get_logger
from docketdive.rag.models import encode_event
from docketdive.vector import build_passage_records

from .dependencies import (
    EmbedderDep,
    MetricsDep,
    PipelineDep,
    ProvidersDep,
    RequestIdDep,
    VectorStoreDep,
)
from .models import (
    ChatRequest,
    DocumentRequest,
    DocumentResponse,
    HealthResponse,
    LatencyStats,
    MetricsResponse,
    ServiceHealth,
)

logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Chat Endpoint
# =============================================================================


@router.post(
    "/chat",
    summary="Stream a Grounded Legal Answer",
    description="""
Answer a South African legal question from the vector store, streamed as
newline-delimited JSON (`application/x-ndjson`).

**Event types** (one JSON object per line, `{"type": ..., "content": ...}`):
- `sources` - always first; the passages the answer is grounded on (may be empty)
- `text_delta` - a chunk of answer text
- `metadata` - terminal on success; mode, sources used, timing, unverified citations
- `error` - terminal on failure mid-stream; text already sent is kept

Failures before streaming starts (blank message, unknown provider, embedding
or vector store down, timeout) are ordinary JSON error responses.
    """,
    responses={
        200: {
            "description": "NDJSON event stream",
            "content": {
                "application/x-ndjson": {
                    "example": '{"type":"sources","content":[]}\n'
                    '{"type":"text_delta","content":"I don\'t have specific information..."}\n'
                    '{"type":"metadata","content":{"mode":"No Sources","sourcesUsed":0}}\n'
                }
            },
        },
        400: {"description": "Blank message or invalid request"},
        408: {"description": "Retrieval exceeded the request time limit"},
        503: {"description": "Embedding service or vector store unavailable"},
    },
    tags=["Chat"],
)
async def chat(
    request: ChatRequest,
    request_id: RequestIdDep,
    pipeline: PipelineDep,
) -> StreamingResponse:
    """Stream a grounded answer to a legal question."""
    logger.info(
        "chat_request_received",
        query_preview=request.message[:100],
        provider=request.provider.value if request.provider else None,
        language=request.language,
        legal_aid_mode=request.legal_aid_mode,
        history_turns=len(request.conversation_history),
    )

    prepared = await pipeline.prepare(request.to_query(), request.provider)

    async def event_generator() -> AsyncGenerator[str, None]:
        async for event in pipeline.stream(prepared):
            yield encode_event(event)

    return StreamingResponse(
        event_generator(),
        media_type="application/x-ndjson",
        headers={
            "Cache-Control": "no-cache",
            "X-Request-ID": request_id,
        },
    )


# =============================================================================
# Document Endpoint
# =============================================================================


@router.post(
    "/documents",
    response_model=DocumentResponse,
    response_model_by_alias=True,
    summary="Add a Document to the Knowledge Base",
    description="""
Chunk a document (700-character windows, 150 overlap), embed each chunk as a
passage and store it in the vector store so later questions can cite it.
    """,
    responses={
        400: {"description": "Empty text, text over 500,000 characters, or no usable chunks"},
        503: {"description": "Embedding service or vector store unavailable"},
    },
    tags=["Documents"],
)
async def add_document(
    request: DocumentRequest,
    embedder: EmbedderDep,
    store: VectorStoreDep,
) -> DocumentResponse:
    """Chunk, embed and store a document."""
    records = build_passage_records(request.text, request.file_name, request.metadata)
    vectors = await embedder.embed_passages([r.content for r in records])
    result = await store.insert_passages(records, vectors)

    if result["inserted"] == 0:
        raise StoreUnavailableError(
            "Failed to store any chunks",
            details={"total_chunks": len(records), "errors": result["errors"]},
        )

    title = request.file_name or "Uploaded Document"
    logger.info(
        "document_added",
        title=title,
        chunks_stored=result["inserted"],
        total_chunks=len(records),
    )
    return DocumentResponse(
        success=True,
        chunks_stored=result["inserted"],
        total_chunks=len(records),
        errors=result["errors"],
        message=f"Successfully added {title} to knowledge base",
    )


# =============================================================================
# Metrics Endpoint
# =============================================================================


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Get API Metrics",
    description="""
Get API performance metrics and statistics.

Returns:
- Request counts (total, successful, failed)
- Success rate percentage
- Latency statistics (avg, min, max)
- Error breakdown by type
- Chat outcomes (grounded, ungrounded, refused, failed)
- Service uptime
    """,
    tags=["Monitoring"],
)
async def get_metrics(metrics: MetricsDep) -> MetricsResponse:
    """Get API metrics."""
    stats = metrics.get_stats()

    return MetricsResponse(
        total_requests=stats["total_requests"],
        successful_requests=stats["successful_requests"],
        failed_requests=stats["failed_requests"],
        success_rate_percent=stats["success_rate_percent"],
        latency_ms=LatencyStats(**stats["latency_ms"]),
        errors_by_type=stats["errors_by_type"],
        chat_outcomes=stats["chat_outcomes"],
        uptime_seconds=stats["uptime_seconds"],
        started_at=stats["started_at"],
    )


# =============================================================================
# Health Endpoints
# =============================================================================


@router.get(
    "/ping",
    summary="Liveness Check",
    tags=["Monitoring"],
)
async def ping():
    """Simple ping endpoint for basic liveness check."""
    return {"status": "ok"}


async def _check(name: str, probe: Callable[[], Awaitable[bool]]) -> ServiceHealth:
    start = time.perf_counter()
    try:
        healthy = await probe()
    except Exception as e:
        logger.warning("health_probe_failed", service=name, error=str(e))
        return ServiceHealth(name=name, healthy=False, error=str(e))
    return ServiceHealth(
        name=name,
        healthy=healthy,
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
        error=None if healthy else "Health check returned False",
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service Health Check",
    description="""
Check the vector store and each model provider.

Status values:
- `healthy` - all services reachable
- `degraded` - some services unavailable
- `unhealthy` - no service reachable
    """,
    tags=["Monitoring"],
)
async def health_check(
    store: VectorStoreDep,
    providers: ProvidersDep,
) -> HealthResponse:
    """Check health of the vector store and model providers."""
    services = [await _check("weaviate", store.health_check)]

    for name in providers.names:
        provider, config = providers.resolve(name)
        services.append(
            await _check(f"{name.value}:{config.model}", lambda p=provider, c=config: p.health_check(c))
        )

    all_healthy = all(s.healthy for s in services)
    any_healthy = any(s.healthy for s in services)

    if all_healthy:
        overall_status = "healthy"
    elif any_healthy:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    return HealthResponse(
        status=overall_status,
        services=services,
        timestamp=datetime.now(UTC).isoformat(),
    )
