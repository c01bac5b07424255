"""Shared pytest fixtures for DocketDive tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import date
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from docketdive.observability.metrics import MetricsCollector
from docketdive.providers.base import ModelProvider
from docketdive.providers.registry import ProviderRegistry
from docketdive.rag.assembler import RetrievalAssembler
from docketdive.rag.models import (
    ContextBundle,
    PassageMetadata,
    Prompt,
    ProviderConfig,
    ProviderName,
    RetrievedPassage,
)
from docketdive.rag.pipeline import ChatPipeline
from docketdive.rag.prompt_builder import PromptBuilder

# =============================================================================
# Passages
# =============================================================================


def make_passage(
    passage_id: str = "p1",
    content: str = "The court considered the requirements of spoliation.",
    score: float = 0.9,
    title: str = "",
    url: str = "",
    citation: str = "",
    court: str = "",
    category: str = "Case Law",
) -> RetrievedPassage:
    """Build a RetrievedPassage with sensible defaults."""
    return RetrievedPassage(
        id=passage_id,
        content=content,
        score=score,
        metadata=PassageMetadata(
            title=title,
            citation=citation,
            court=court,
            url=url,
            category=category,
        ),
    )


@pytest.fixture
def passage_factory() -> Callable[..., RetrievedPassage]:
    """Factory for RetrievedPassage objects."""
    return make_passage


@pytest.fixture
def van_meyeren_passage() -> RetrievedPassage:
    """A judgment passage about dog-bite liability."""
    return make_passage(
        passage_id="vm-1",
        content=(
            "Van Meyeren v Cloete: the owner of a dog is liable under the actio de "
            "pauperie for harm caused by the animal acting contrary to its nature, "
            "even where the victim was a trespasser."
        ),
        score=0.91,
        title="Van Meyeren v Cloete",
        citation="[2020] ZASCA 100",
        court="Supreme Court of Appeal",
        url="https://www.saflii.org/za/cases/ZASCA/2020/100.html",
    )


@pytest.fixture
def defamation_passage() -> RetrievedPassage:
    """A passage that does not mention any of the cases used in tests."""
    return make_passage(
        passage_id="def-1",
        content=(
            "Defamation is the wrongful and intentional publication of a statement "
            "that injures another person's reputation."
        ),
        score=0.86,
        title="Khumalo v Holomisa",
        citation="[2002] ZACC 12",
        court="Constitutional Court",
        url="https://www.saflii.org/za/cases/ZACC/2002/12.html",
    )


@pytest.fixture
def grounded_bundle(van_meyeren_passage: RetrievedPassage) -> ContextBundle:
    """A bundle holding one Van Meyeren passage."""
    return ContextBundle(passages=(van_meyeren_passage,), char_budget=8000)


@pytest.fixture
def empty_bundle() -> ContextBundle:
    """An explicitly empty bundle."""
    return ContextBundle.empty("no_passages_above_threshold", 8000)


# =============================================================================
# Providers
# =============================================================================


class FakeProvider(ModelProvider):
    """In-memory provider that streams a fixed list of chunks."""

    def __init__(
        self,
        chunks: list[str] | None = None,
        name: ProviderName = ProviderName.CLOUD,
        error: Exception | None = None,
        healthy: bool = True,
    ):
        self.name = name
        self.chunks = chunks if chunks is not None else ["Hello", " world"]
        self.error = error
        self.healthy = healthy
        self.prompts: list[Prompt] = []
        self.yielded = 0
        self.closed = False

    async def _stream(self, prompt: Prompt, config: ProviderConfig) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        try:
            for chunk in self.chunks:
                self.yielded += 1
                yield chunk
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True

    async def health_check(self, config: ProviderConfig) -> bool:
        return self.healthy


def make_config(
    provider: ProviderName = ProviderName.CLOUD,
    token_timeout: float = 5.0,
) -> ProviderConfig:
    """Build a ProviderConfig for tests."""
    return ProviderConfig(
        provider=provider,
        model="test-model",
        base_url="http://provider.test",
        token_timeout=token_timeout,
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Cloud provider streaming a short grounded answer."""
    return FakeProvider(
        ["Under Van Meyeren v Cloete", " the owner is liable."],
        name=ProviderName.CLOUD,
    )


@pytest.fixture
def local_provider() -> FakeProvider:
    """Local provider streaming a short answer."""
    return FakeProvider(["Local answer."], name=ProviderName.LOCAL)


@pytest.fixture
def provider_registry(fake_provider: FakeProvider, local_provider: FakeProvider) -> ProviderRegistry:
    """Registry with both providers, cloud by default."""
    return ProviderRegistry(
        {
            ProviderName.CLOUD: (fake_provider, make_config(ProviderName.CLOUD)),
            ProviderName.LOCAL: (local_provider, make_config(ProviderName.LOCAL)),
        },
        default=ProviderName.CLOUD,
    )


# =============================================================================
# Embedder / Vector Store
# =============================================================================


@pytest.fixture
def mock_embedder() -> MagicMock:
    """Embedder returning a fixed query vector."""
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=[0.1] * 8)
    embedder.embed_passages = AsyncMock(side_effect=lambda texts: [[0.1] * 8 for _ in texts])
    return embedder


@pytest.fixture
def mock_store(van_meyeren_passage: RetrievedPassage) -> MagicMock:
    """Vector store returning the Van Meyeren passage."""
    store = MagicMock()
    store.search = AsyncMock(return_value=[van_meyeren_passage])
    store.health_check = AsyncMock(return_value=True)
    store.insert_passages = AsyncMock(
        side_effect=lambda records, vectors: {"inserted": len(records), "errors": 0}
    )
    return store


@pytest.fixture
def metrics() -> MetricsCollector:
    """Fresh metrics collector."""
    return MetricsCollector()


@pytest.fixture
def prompt_builder() -> PromptBuilder:
    """Prompt builder with a fixed date."""
    return PromptBuilder(today=lambda: date(2025, 3, 14))


@pytest.fixture
def pipeline(
    mock_embedder: MagicMock,
    mock_store: MagicMock,
    provider_registry: ProviderRegistry,
    prompt_builder: PromptBuilder,
    metrics: MetricsCollector,
) -> ChatPipeline:
    """Pipeline over mocked clients with retry backoff disabled."""
    return ChatPipeline(
        embedder=mock_embedder,
        store=mock_store,
        providers=provider_registry,
        assembler=RetrievalAssembler(min_similarity=0.78, char_budget=8000, max_passages=4),
        prompt_builder=prompt_builder,
        metrics=metrics,
        request_timeout=5.0,
        retry_backoff_seconds=0,
    )


async def collect(stream: AsyncIterator[Any]) -> list[Any]:
    """Drain an async iterator into a list."""
    return [item async for item in stream]
