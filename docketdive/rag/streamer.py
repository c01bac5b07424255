"""Turn a token stream into the typed event stream sent to the client."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from typing import Optional

import structlog

from docketdive.errors import DocketDiveError
from docketdive.observability.metrics import MetricsCollector

from .citations import unverified_citations
from .models import (
    ContextBundle,
    ErrorEvent,
    ErrorPayload,
    MetadataEvent,
    ResponseMetadata,
    SourceReference,
    SourcesEvent,
    StreamEvent,
    TextDeltaEvent,
)

logger = structlog.get_logger(__name__)

MODE_RAG = "RAG"
MODE_NO_SOURCES = "No Sources"


class ResponseStreamer:
    """Emit sources, then text deltas, then one terminal metadata or error event.

    Guarantees for every response:
    - exactly one ``sources`` event, first (its list may be empty)
    - one ``text_delta`` per non-empty chunk
    - exactly one terminal event: ``metadata`` on success, ``error`` on failure

    Text already emitted is never retracted when generation fails.
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.metrics = metrics

    async def stream(
        self,
        bundle: ContextBundle,
        tokens: AsyncIterator[str],
        provider: Optional[str] = None,
        note: Optional[str] = None,
        refused: bool = False,
        started_at: Optional[float] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream events for one response.

        Args:
            bundle: Context the answer is grounded on
            tokens: Token chunks from a provider or a canned refusal
            provider: Provider name reported in metadata
            note: Reason reported in metadata when sources were withheld
            refused: Whether tokens are a canned refusal
            started_at: perf_counter() value when the request started

        Yields:
            StreamEvent objects in protocol order
        """
        started = started_at if started_at is not None else time.perf_counter()
        yield SourcesEvent(content=[SourceReference.from_passage(p) for p in bundle.passages])

        parts: list[str] = []
        chunks = 0
        try:
            async for chunk in tokens:
                if not chunk:
                    continue
                chunks += 1
                parts.append(chunk)
                yield TextDeltaEvent(content=chunk)
        except asyncio.CancelledError:
            logger.info("chat_stream_cancelled", token_chunks=chunks)
            raise
        except DocketDiveError as e:
            logger.error(
                "chat_stream_failed",
                error_code=e.error_code,
                message=e.message,
                token_chunks=chunks,
            )
            self._record("failed")
            yield ErrorEvent(content=ErrorPayload(code=e.error_code, message=e.message))
            return
        except Exception:
            logger.exception("chat_stream_failed", error_code="INTERNAL_ERROR", token_chunks=chunks)
            self._record("failed")
            yield ErrorEvent(
                content=ErrorPayload(
                    code="INTERNAL_ERROR",
                    message="An unexpected error occurred while generating the response",
                )
            )
            return
        finally:
            aclose = getattr(tokens, "aclose", None)
            if aclose is not None:
                await aclose()

        answer = "".join(parts)
        grounded = not bundle.is_empty
        unverified = [] if refused else unverified_citations(answer, bundle)
        metadata = ResponseMetadata(
            mode=MODE_RAG if grounded else MODE_NO_SOURCES,
            grounded=grounded,
            sources_used=len(bundle.passages),
            token_chunks=chunks,
            characters=len(answer),
            response_time_ms=int((time.perf_counter() - started) * 1000),
            provider=None if refused else provider,
            note=note,
            unverified_citations=unverified,
        )

        if refused:
            self._record("refused")
        else:
            self._record("grounded" if grounded else "ungrounded")

        logger.info(
            "chat_stream_completed",
            mode=metadata.mode,
            sources_used=metadata.sources_used,
            token_chunks=chunks,
            response_time_ms=metadata.response_time_ms,
            unverified_citations=len(unverified),
        )
        yield MetadataEvent(content=metadata)

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_chat_outcome(outcome)
