"""FastAPI dependency injection for the DocketDive API.

Clients are built once in the application lifespan and stored on
``app.state``; these dependencies only hand them out. Tests swap them
through ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from docketdive.observability.context import request_id_var
from docketdive.observability.metrics import MetricsCollector
from docketdive.providers import ProviderRegistry
from docketdive.rag.pipeline import ChatPipeline
from docketdive.vector import HuggingFaceEmbedder, WeaviateVectorStore

# =============================================================================
# Application-scoped Dependencies
# =============================================================================


def get_pipeline(request: Request) -> ChatPipeline:
    """Get the chat pipeline built at startup."""
    return request.app.state.pipeline


def get_embedder(request: Request) -> HuggingFaceEmbedder:
    """Get the shared embedding client."""
    return request.app.state.embedder


def get_vector_store(request: Request) -> WeaviateVectorStore:
    """Get the shared vector store client."""
    return request.app.state.vector_store


def get_providers(request: Request) -> ProviderRegistry:
    """Get the provider registry."""
    return request.app.state.providers


def get_metrics(request: Request) -> MetricsCollector:
    """Get the metrics collector."""
    return request.app.state.metrics


# =============================================================================
# Request-scoped Dependencies
# =============================================================================


async def get_request_id() -> str:
    """Get the request ID bound by the logging middleware."""
    return request_id_var.get("") or "unknown"


# =============================================================================
# Typed Dependencies (for FastAPI injection)
# =============================================================================

PipelineDep = Annotated[ChatPipeline, Depends(get_pipeline)]
EmbedderDep = Annotated[HuggingFaceEmbedder, Depends(get_embedder)]
VectorStoreDep = Annotated[WeaviateVectorStore, Depends(get_vector_store)]
ProvidersDep = Annotated[ProviderRegistry, Depends(get_providers)]
MetricsDep = Annotated[MetricsCollector, Depends(get_metrics)]
RequestIdDep = Annotated[str, Depends(get_request_id)]
