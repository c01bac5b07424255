"""Pydantic models for the retrieval and generation pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    TypeAdapter,
    model_validator,
)
from pydantic.alias_generators import to_camel

EmbeddingVector = list[float]


# =============================================================================
# Query
# =============================================================================


class ConversationTurn(BaseModel):
    """A prior message in the conversation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class Query(BaseModel):
    """A user question plus the context it was asked in.

    Immutable once issued; created per request.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    history: tuple[ConversationTurn, ...] = ()
    language: str = "en"
    legal_aid_mode: bool = False


# =============================================================================
# Retrieval
# =============================================================================


class PassageMetadata(BaseModel):
    """Citation metadata stored alongside each passage."""

    title: str = ""
    citation: str = ""
    court: str = ""
    url: str = ""
    category: str = "Law"
    date: str = ""


class RetrievedPassage(BaseModel):
    """A single passage returned by similarity search."""

    id: str
    content: str
    score: float = Field(ge=0.0, le=1.0, description="Cosine similarity, 0-1")
    metadata: PassageMetadata = Field(default_factory=PassageMetadata)

    @property
    def source_key(self) -> str:
        """Identity of the source document this passage belongs to.

        The source URL when present, else the title, else the passage id.
        """
        return self.metadata.url or self.metadata.title or self.id

    @property
    def label(self) -> str:
        """Human-readable name used in prompts and source listings."""
        return self.metadata.title or self.metadata.url or "Untitled"


class ContextBundle(BaseModel):
    """Passages selected for a prompt, bounded by a character budget.

    An empty bundle is an explicit "no grounding available" signal, and
    `empty_reason` records why.
    """

    model_config = ConfigDict(frozen=True)

    passages: tuple[RetrievedPassage, ...] = ()
    char_budget: int = Field(gt=0)
    empty_reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_budget(self) -> "ContextBundle":
        if self.total_chars > self.char_budget:
            raise ValueError(
                f"bundle holds {self.total_chars} chars, budget is {self.char_budget}"
            )
        return self

    @classmethod
    def empty(cls, reason: str, char_budget: int) -> "ContextBundle":
        """Build an explicitly empty bundle."""
        return cls(passages=(), char_budget=char_budget, empty_reason=reason)

    @property
    def total_chars(self) -> int:
        return sum(len(p.content) for p in self.passages)

    @property
    def is_empty(self) -> bool:
        return not self.passages


# =============================================================================
# Prompt
# =============================================================================


class ChatMessage(BaseModel):
    """A role-tagged message sent to a model provider."""

    role: Literal["system", "user", "assistant"]
    content: str


class Prompt(BaseModel):
    """Model-ready prompt: a system instruction plus ordered messages."""

    system: str
    messages: list[ChatMessage]

    def to_messages(self) -> list[dict[str, str]]:
        """Flatten into the role/content list both providers accept."""
        return [{"role": "system", "content": self.system}] + [
            m.model_dump() for m in self.messages
        ]


# =============================================================================
# Providers
# =============================================================================


class ProviderName(str, Enum):
    """Model backends a request can select."""

    LOCAL = "local"
    CLOUD = "cloud"


class ProviderConfig(BaseModel):
    """Connection and sampling parameters for one provider."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderName
    model: str
    base_url: str
    api_key: Optional[SecretStr] = None
    temperature: float = Field(default=0.05, ge=0.0, le=2.0)
    max_tokens: int = Field(default=3000, gt=0)
    token_timeout: float = Field(default=60.0, gt=0.0)


# =============================================================================
# Stream Events
# =============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceReference(_CamelModel):
    """A source shown to the user alongside the answer."""

    title: str
    citation: str = ""
    court: str = ""
    url: str = ""
    category: str = "Law"
    score: float

    @classmethod
    def from_passage(cls, passage: RetrievedPassage) -> "SourceReference":
        meta = passage.metadata
        return cls(
            title=passage.label,
            citation=meta.citation,
            court=meta.court,
            url=meta.url,
            category=meta.category,
            score=round(passage.score, 4),
        )


class ResponseMetadata(_CamelModel):
    """Summary emitted as the last event of a successful response."""

    mode: str
    grounded: bool
    sources_used: int
    token_chunks: int
    characters: int
    response_time_ms: int
    provider: Optional[str] = None
    note: Optional[str] = None
    unverified_citations: list[str] = Field(default_factory=list)


class ErrorPayload(_CamelModel):
    """Terminal error reported inside the stream."""

    code: str
    message: str


class SourcesEvent(BaseModel):
    type: Literal["sources"] = "sources"
    content: list[SourceReference]


class TextDeltaEvent(BaseModel):
    type: Literal["text_delta"] = "text_delta"
    content: str


class MetadataEvent(BaseModel):
    type: Literal["metadata"] = "metadata"
    content: ResponseMetadata


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    content: ErrorPayload


StreamEvent = Annotated[
    Union[SourcesEvent, TextDeltaEvent, MetadataEvent, ErrorEvent],
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def encode_event(event: StreamEvent) -> str:
    """Serialize an event as one NDJSON line."""
    return event.model_dump_json(by_alias=True) + "\n"
