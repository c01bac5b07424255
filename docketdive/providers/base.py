"""Streaming completion interface shared by all model providers."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Optional

import structlog

from docketdive.errors import ProviderTimeoutError
from docketdive.rag.models import Prompt, ProviderConfig, ProviderName

logger = structlog.get_logger(__name__)


class ModelProvider(ABC):
    """A language-model backend exposing one streaming completion method.

    Subclasses implement `_stream` for their transport; `complete` adds the
    token timeout and guarantees the upstream connection is released.
    """

    name: ProviderName

    async def complete(
        self,
        prompt: Prompt,
        config: ProviderConfig,
        deadline: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Stream token chunks for a prompt.

        Args:
            prompt: System instruction plus ordered messages
            config: Connection and sampling parameters
            deadline: Absolute event-loop time after which no more tokens
                are awaited (the request ceiling)

        Yields:
            Non-empty text chunks in generation order

        Raises:
            ProviderTimeoutError: If a chunk does not arrive in time
            ProviderUnavailableError: If the backend cannot be reached
            ProviderError: On any other upstream failure
        """
        loop = asyncio.get_running_loop()
        stream = self._stream(prompt, config)
        chunks = 0
        try:
            while True:
                timeout = config.token_timeout
                if deadline is not None:
                    timeout = min(timeout, deadline - loop.time())
                    if timeout <= 0:
                        raise ProviderTimeoutError(
                            "Request deadline reached while waiting for the model",
                            details={"provider": self.name.value, "chunks": chunks},
                        )
                try:
                    async with asyncio.timeout(timeout):
                        chunk = await anext(stream)
                except StopAsyncIteration:
                    break
                except TimeoutError as e:
                    logger.warning(
                        "provider_token_timeout",
                        provider=self.name.value,
                        timeout=round(timeout, 2),
                        chunks=chunks,
                    )
                    raise ProviderTimeoutError(
                        f"No response from {self.name.value} model within {timeout:.0f}s",
                        details={"provider": self.name.value, "chunks": chunks},
                    ) from e
                if chunk:
                    chunks += 1
                    yield chunk
        finally:
            await stream.aclose()

    @abstractmethod
    def _stream(self, prompt: Prompt, config: ProviderConfig) -> AsyncIterator[str]:
        """Transport-specific token stream (an async generator)."""

    async def health_check(self, config: ProviderConfig) -> bool:
        """Whether the backend looks usable. Defaults to True."""
        return True

    async def close(self) -> None:
        """Release any pooled connections."""
