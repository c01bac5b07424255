"""End-to-end chat orchestration: retrieve, ground, prompt, stream."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Protocol, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docketdive.errors import (
    DocketDiveError,
    EmptyInputError,
    ProviderUnavailableError,
    QueryTimeoutError,
    StoreUnavailableError,
)
from docketdive.observability.metrics import MetricsCollector

from .assembler import RetrievalAssembler
from .followup import enrich_query
from .grounding import GroundingResult, verify_grounding
from .models import (
    ContextBundle,
    ConversationTurn,
    EmbeddingVector,
    Prompt,
    ProviderConfig,
    Query,
    RetrievedPassage,
    StreamEvent,
)
from .prompt_builder import PromptBuilder
from .streamer import ResponseStreamer

if TYPE_CHECKING:
    from docketdive.providers import ModelProvider, ProviderRegistry

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Upstream failures worth a second attempt before the stream starts
RETRYABLE_ERRORS = (ProviderUnavailableError, StoreUnavailableError)


class Embedder(Protocol):
    async def embed(self, text: str) -> EmbeddingVector: ...


class VectorStore(Protocol):
    async def search(self, vector: EmbeddingVector, limit: int = 8) -> list[RetrievedPassage]: ...


@dataclass
class PreparedChat:
    """Everything needed to stream one response, resolved before streaming.

    Attributes:
        query: The validated query
        bundle: Grounding context after verification
        grounding: Verification outcome (refusal text and note)
        prompt: Model prompt; None when a canned refusal is sent instead
        provider: Adapter selected for this request
        config: Connection parameters for the adapter
        started_at: perf_counter() value when the request started
        deadline: Event-loop time after which the request is abandoned
    """

    query: Query
    bundle: ContextBundle
    grounding: GroundingResult
    prompt: Optional[Prompt]
    provider: "ModelProvider"
    config: ProviderConfig
    started_at: float
    deadline: float

    @property
    def refused(self) -> bool:
        return self.grounding.refused


async def canned_tokens(text: str) -> AsyncIterator[str]:
    """Token source for a canned answer: the whole text as one chunk."""
    yield text


class ChatPipeline:
    """Sequential per-request pipeline over shared, injected clients.

    Example:
        prepared = await pipeline.prepare(Query(text="What is spoliation?"), "cloud")
        async for event in pipeline.stream(prepared):
            send(encode_event(event))
    """

    def __init__(
        self,
        embedder: Embedder,
        store: VectorStore,
        providers: "ProviderRegistry",
        assembler: Optional[RetrievalAssembler] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        streamer: Optional[ResponseStreamer] = None,
        metrics: Optional[MetricsCollector] = None,
        top_k: int = 8,
        request_timeout: float = 90.0,
        embedding_max_attempts: int = 2,
        search_max_attempts: int = 2,
        retry_backoff_seconds: float = 0.3,
    ):
        self.embedder = embedder
        self.store = store
        self.providers = providers
        self.assembler = assembler or RetrievalAssembler()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.metrics = metrics
        self.streamer = streamer or ResponseStreamer(metrics)
        self.top_k = top_k
        self.request_timeout = request_timeout
        self.embedding_max_attempts = embedding_max_attempts
        self.search_max_attempts = search_max_attempts
        self.retry_backoff_seconds = retry_backoff_seconds

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        embedder: Embedder,
        store: VectorStore,
        providers: "ProviderRegistry",
        metrics: Optional[MetricsCollector] = None,
    ) -> "ChatPipeline":
        """Build a pipeline with limits and policies taken from settings."""
        return cls(
            embedder=embedder,
            store=store,
            providers=providers,
            assembler=RetrievalAssembler(
                min_similarity=settings.min_similarity,
                char_budget=settings.context_char_budget,
                max_passages=settings.max_context_passages,
            ),
            prompt_builder=PromptBuilder(
                max_history_turns=settings.max_history_turns,
                history_char_budget=settings.history_char_budget,
            ),
            metrics=metrics,
            top_k=settings.retrieval_top_k,
            request_timeout=settings.request_timeout,
            embedding_max_attempts=settings.embedding_max_attempts,
            search_max_attempts=settings.search_max_attempts,
            retry_backoff_seconds=settings.retry_backoff_seconds,
        )

    async def prepare(self, query: Query, provider: Optional[str] = None) -> PreparedChat:
        """Validate, retrieve, ground and build the prompt.

        Every failure here happens before any event is streamed, so callers
        can still answer with an ordinary error response.

        Args:
            query: The user's query
            provider: Provider name or alias; None selects the default

        Raises:
            EmptyInputError: If the query is blank (no network call is made)
            ValidationError: If the provider is unknown
            ProviderUnavailableError: If embedding keeps failing
            StoreUnavailableError: If search keeps failing
            QueryTimeoutError: If preparation exceeds the request ceiling
        """
        started_at = time.perf_counter()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.request_timeout

        try:
            if not query.text or not query.text.strip():
                raise EmptyInputError("Message is required")
            model_provider, config = self.providers.resolve(provider)

            try:
                async with asyncio.timeout(self.request_timeout):
                    bundle = await self._retrieve(query.text, query.history)
            except TimeoutError as e:
                raise QueryTimeoutError(
                    f"Request exceeded {self.request_timeout:.0f}s before generation started",
                    details={"timeout_seconds": self.request_timeout},
                ) from e
        except DocketDiveError as e:
            logger.warning("chat_prepare_failed", error_code=e.error_code, message=e.message)
            if self.metrics is not None:
                self.metrics.record_chat_outcome("failed")
            raise

        grounding = verify_grounding(query.text, bundle)
        prompt = None
        if not grounding.refused:
            prompt = self.prompt_builder.build_for(query, grounding.bundle)

        logger.info(
            "chat_prepared",
            provider=config.provider.value,
            sources=len(grounding.bundle.passages),
            empty_reason=grounding.bundle.empty_reason,
            refused=grounding.refused,
        )
        return PreparedChat(
            query=query,
            bundle=grounding.bundle,
            grounding=grounding,
            prompt=prompt,
            provider=model_provider,
            config=config,
            started_at=started_at,
            deadline=deadline,
        )

    def stream(self, prepared: PreparedChat) -> AsyncIterator[StreamEvent]:
        """Stream the response events for a prepared chat.

        Generation is never retried; a failure ends the stream with an
        error event.
        """
        if prepared.refused:
            tokens = canned_tokens(prepared.grounding.refusal or "")
        else:
            tokens = prepared.provider.complete(
                prepared.prompt, prepared.config, deadline=prepared.deadline
            )
        return self.streamer.stream(
            prepared.bundle,
            tokens,
            provider=prepared.config.provider.value,
            note=prepared.grounding.note,
            refused=prepared.refused,
            started_at=prepared.started_at,
        )

    async def retrieve(
        self, text: str, history: Sequence[ConversationTurn] = ()
    ) -> ContextBundle:
        """Embed, search and assemble without grounding checks or timeout."""
        if not text or not text.strip():
            raise EmptyInputError("Message is required")
        return await self._retrieve(text, history)

    async def _retrieve(
        self, text: str, history: Sequence[ConversationTurn] = ()
    ) -> ContextBundle:
        search_text = enrich_query(text, history)
        vector = await self._with_retry(
            "embed", self.embedding_max_attempts, self.embedder.embed, search_text
        )
        passages = await self._with_retry(
            "search", self.search_max_attempts, self.store.search, vector, self.top_k
        )
        bundle = self.assembler.assemble(passages)
        logger.info(
            "retrieval_completed",
            hits=len(passages),
            selected=len(bundle.passages),
            top_score=round(passages[0].score, 4) if passages else None,
        )
        return bundle

    async def _with_retry(
        self,
        operation: str,
        attempts: int,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        """Call fn with bounded retry on transient upstream failures."""

        def log_retry(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                "upstream_retry",
                operation=operation,
                attempt=state.attempt_number,
                error=str(error),
            )

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential(multiplier=self.retry_backoff_seconds, max=5),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=log_retry,
            reraise=True,
        ):
            with attempt:
                return await fn(*args)
        raise AssertionError("unreachable")  # pragma: no cover
