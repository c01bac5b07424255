"""Pydantic models for FastAPI request/response handling."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from docketdive.errors import DocketDiveError
from docketdive.providers import parse_provider_name
from docketdive.rag.models import ConversationTurn, ProviderName, Query

# =============================================================================
# Request Models
# =============================================================================


class ChatRequest(BaseModel):
    """Request body for /api/chat."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "message": "Tell me about Van Meyeren v Cloete",
                    "conversationHistory": [],
                    "provider": "cloud",
                    "language": "en",
                    "legalAidMode": False,
                },
                {
                    "message": "Wat is die vereistes vir 'n geldige testament?",
                    "provider": "local",
                    "language": "af",
                    "legalAidMode": True,
                },
            ]
        },
    )

    # Blank messages are rejected by the pipeline with EMPTY_INPUT, not here
    message: str = Field(
        ...,
        max_length=4000,
        description="The user's legal question",
    )
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list,
        max_length=100,
        description="Prior turns, oldest first",
    )
    provider: Optional[ProviderName] = Field(
        default=None,
        description="Model backend: local (ollama) or cloud (groq). Defaults to the server setting.",
    )
    language: str = Field(
        default="en",
        max_length=8,
        description="Response language code; unsupported codes fall back to English",
    )
    legal_aid_mode: bool = Field(
        default=False,
        description="Use plain language and point to free legal resources",
    )

    @field_validator("provider", mode="before")
    @classmethod
    def resolve_provider_alias(cls, v: object) -> object:
        """Accept backend names (ollama, groq) as aliases."""
        if v is None or isinstance(v, ProviderName):
            return v
        if not isinstance(v, str):
            raise ValueError("provider must be a string")
        try:
            return parse_provider_name(v)
        except DocketDiveError as e:
            raise ValueError(e.message) from e

    def to_query(self) -> Query:
        """Convert to the pipeline's immutable Query."""
        return Query(
            text=self.message,
            history=tuple(self.conversation_history),
            language=self.language,
            legal_aid_mode=self.legal_aid_mode,
        )


class DocumentRequest(BaseModel):
    """Request body for /api/documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str = Field(..., description="Document text (max 500,000 characters)")
    file_name: Optional[str] = Field(
        default=None, max_length=300, description="Title shown when the document is cited"
    )
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Optional citation, court, url, category and date",
    )


# =============================================================================
# Response Models
# =============================================================================


class DocumentResponse(BaseModel):
    """Response from /api/documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = Field(..., description="Whether any chunk was stored")
    chunks_stored: int = Field(..., description="Chunks inserted into the vector store")
    total_chunks: int = Field(..., description="Chunks produced from the text")
    errors: int = Field(default=0, description="Chunks the store rejected")
    message: str = Field(..., description="Human-readable summary")


class ServiceHealth(BaseModel):
    """Health status of a single service."""

    name: str = Field(..., description="Service name")
    healthy: bool = Field(..., description="Whether service is healthy")
    latency_ms: float | None = Field(default=None, description="Health check latency in ms")
    error: str | None = Field(default=None, description="Error message if unhealthy")


class HealthResponse(BaseModel):
    """Response from /health endpoint."""

    status: str = Field(..., description="Overall status: healthy, degraded, or unhealthy")
    services: list[ServiceHealth] = Field(..., description="Individual service health")
    timestamp: str = Field(..., description="Health check timestamp (ISO format)")


class LatencyStats(BaseModel):
    """Latency statistics."""

    avg: float = Field(..., description="Average latency in ms")
    min: float | None = Field(default=None, description="Minimum latency in ms")
    max: float | None = Field(default=None, description="Maximum latency in ms")


class MetricsResponse(BaseModel):
    """Response from /metrics endpoint."""

    total_requests: int = Field(..., description="Total requests processed")
    successful_requests: int = Field(..., description="Successful requests")
    failed_requests: int = Field(..., description="Failed requests")
    success_rate_percent: float = Field(..., description="Success rate percentage")
    latency_ms: LatencyStats = Field(..., description="Latency statistics")
    errors_by_type: dict[str, int] = Field(..., description="Error counts by type")
    chat_outcomes: dict[str, int] = Field(
        ..., description="Chat responses by outcome: grounded, ungrounded, refused, failed"
    )
    uptime_seconds: float = Field(..., description="Service uptime in seconds")
    started_at: str = Field(..., description="Service start time (ISO format)")
