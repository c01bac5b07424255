"""Tests for docketdive/rag/streamer.py."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

import pytest

from docketdive.errors import ProviderError, ProviderTimeoutError
from docketdive.rag.models import (
    ChatMessage,
    ErrorEvent,
    MetadataEvent,
    Prompt,
    SourcesEvent,
    TextDeltaEvent,
    encode_event,
    stream_event_adapter,
)
from docketdive.rag.streamer import MODE_NO_SOURCES, MODE_RAG, ResponseStreamer
from tests.conftest import FakeProvider, collect, make_config


async def _tokens(*chunks: str, error: Exception | None = None) -> AsyncIterator[str]:
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


@pytest.fixture
def streamer(metrics) -> ResponseStreamer:
    return ResponseStreamer(metrics)


class TestEventOrder:
    """Protocol ordering guarantees."""

    @pytest.mark.asyncio
    async def test_sources_then_deltas_then_metadata(self, streamer, grounded_bundle):
        events = await collect(
            streamer.stream(grounded_bundle, _tokens("Van Meyeren v Cloete", " applies."), provider="cloud")
        )

        assert [e.type for e in events] == ["sources", "text_delta", "text_delta", "metadata"]
        assert isinstance(events[0], SourcesEvent)
        assert events[0].content[0].title == "Van Meyeren v Cloete"
        assert events[0].content[0].citation == "[2020] ZASCA 100"
        assert [e.content for e in events if isinstance(e, TextDeltaEvent)] == [
            "Van Meyeren v Cloete",
            " applies.",
        ]

    @pytest.mark.asyncio
    async def test_empty_sources_event_still_sent_first(self, streamer, empty_bundle):
        events = await collect(streamer.stream(empty_bundle, _tokens("No sources.")))

        assert isinstance(events[0], SourcesEvent)
        assert events[0].content == []

    @pytest.mark.asyncio
    async def test_empty_chunks_are_skipped(self, streamer, empty_bundle):
        events = await collect(streamer.stream(empty_bundle, _tokens("", "a", "")))

        assert [e.type for e in events] == ["sources", "text_delta", "metadata"]
        assert events[-1].content.token_chunks == 1


class TestMetadata:
    """Terminal metadata event."""

    @pytest.mark.asyncio
    async def test_grounded_metadata(self, streamer, grounded_bundle, metrics):
        events = await collect(
            streamer.stream(grounded_bundle, _tokens("The owner ", "is liable."), provider="cloud")
        )

        meta = events[-1].content
        assert meta.mode == MODE_RAG
        assert meta.grounded is True
        assert meta.sources_used == 1
        assert meta.token_chunks == 2
        assert meta.characters == len("The owner is liable.")
        assert meta.provider == "cloud"
        assert meta.unverified_citations == []
        assert metrics.get_stats()["chat_outcomes"]["grounded"] == 1

    @pytest.mark.asyncio
    async def test_ungrounded_metadata(self, streamer, empty_bundle, metrics):
        events = await collect(
            streamer.stream(empty_bundle, _tokens("I lack sources."), provider="local", note="No relevant sources found")
        )

        meta = events[-1].content
        assert meta.mode == MODE_NO_SOURCES
        assert meta.grounded is False
        assert meta.note == "No relevant sources found"
        assert metrics.get_stats()["chat_outcomes"]["ungrounded"] == 1

    @pytest.mark.asyncio
    async def test_invented_citation_is_reported(self, streamer, grounded_bundle):
        events = await collect(
            streamer.stream(grounded_bundle, _tokens("See Smith v Jones [2019] ZAWCHC 7."))
        )

        assert events[-1].content.unverified_citations == ["Smith v Jones", "[2019] ZAWCHC 7"]

    @pytest.mark.asyncio
    async def test_refusal_metadata(self, streamer, empty_bundle, metrics):
        events = await collect(
            streamer.stream(
                empty_bundle,
                _tokens('I don\'t have specific information about "Smith v Jones"'),
                provider="cloud",
                note="Case not found in database",
                refused=True,
            )
        )

        meta = events[-1].content
        assert meta.provider is None
        assert meta.unverified_citations == []
        assert meta.note == "Case not found in database"
        assert metrics.get_stats()["chat_outcomes"]["refused"] == 1

    @pytest.mark.asyncio
    async def test_metadata_serializes_camel_case(self, streamer, grounded_bundle):
        events = await collect(streamer.stream(grounded_bundle, _tokens("x")))

        line = json.loads(encode_event(events[-1]))
        assert line["type"] == "metadata"
        assert {"sourcesUsed", "tokenChunks", "responseTimeMs", "unverifiedCitations"} <= set(
            line["content"]
        )
        assert isinstance(stream_event_adapter.validate_python(line), MetadataEvent)


class TestFailures:
    """Mid-stream failures."""

    @pytest.mark.asyncio
    async def test_error_after_partial_text(self, streamer, grounded_bundle, metrics):
        """Text already sent is kept and the stream ends with one error event."""
        events = await collect(
            streamer.stream(grounded_bundle, _tokens("Partial", error=ProviderError("Upstream failed")))
        )

        assert [e.type for e in events] == ["sources", "text_delta", "error"]
        assert isinstance(events[-1], ErrorEvent)
        assert events[-1].content.code == "PROVIDER_ERROR"
        assert events[-1].content.message == "Upstream failed"
        assert metrics.get_stats()["chat_outcomes"]["failed"] == 1

    @pytest.mark.asyncio
    async def test_timeout_before_first_token(self, streamer, empty_bundle):
        events = await collect(
            streamer.stream(empty_bundle, _tokens(error=ProviderTimeoutError("No response")))
        )

        assert [e.type for e in events] == ["sources", "error"]
        assert events[-1].content.code == "PROVIDER_TIMEOUT"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self, streamer, empty_bundle):
        events = await collect(streamer.stream(empty_bundle, _tokens("a", error=RuntimeError("bug"))))

        assert events[-1].content.code == "INTERNAL_ERROR"
        assert "bug" not in events[-1].content.message

    @pytest.mark.asyncio
    async def test_no_metadata_after_error(self, streamer, empty_bundle):
        events = await collect(streamer.stream(empty_bundle, _tokens(error=ProviderError("x"))))

        assert not any(isinstance(e, MetadataEvent) for e in events)


class TestCancellation:
    """Client disconnects part-way through a response."""

    @pytest.mark.asyncio
    async def test_closing_stream_releases_provider(self, streamer, grounded_bundle, metrics):
        """Closing the event stream stops token consumption and closes the upstream stream."""
        provider = FakeProvider([f"chunk {i}" for i in range(10)])
        prompt = Prompt(system="s", messages=[ChatMessage(role="user", content="q")])
        stream = streamer.stream(
            grounded_bundle, provider.complete(prompt, make_config()), provider="cloud"
        )

        received = []
        async for event in stream:
            received.append(event)
            if len(received) == 3:
                break
        await stream.aclose()

        assert [type(e) for e in received] == [SourcesEvent, TextDeltaEvent, TextDeltaEvent]
        assert provider.yielded == 2
        assert provider.closed
        assert sum(metrics.get_stats()["chat_outcomes"].values()) == 0

    @pytest.mark.asyncio
    async def test_fully_consumed_stream_also_closes_provider(self, streamer, empty_bundle):
        provider = FakeProvider(["a", "b"])
        prompt = Prompt(system="s", messages=[ChatMessage(role="user", content="q")])

        await collect(streamer.stream(empty_bundle, provider.complete(prompt, make_config())))

        assert provider.closed
