"""Groq cloud provider over the OpenAI-compatible API."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Optional

import openai
import structlog
from openai import AsyncOpenAI

from docketdive.errors import (
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from docketdive.rag.models import Prompt, ProviderConfig, ProviderName

from .base import ModelProvider

logger = structlog.get_logger(__name__)


class GroqProvider(ModelProvider):
    """Streams chat completions from Groq with the `openai` async SDK."""

    name = ProviderName.CLOUD

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self._client = client

    def _get_client(self, config: ProviderConfig) -> AsyncOpenAI:
        if self._client is None:
            if config.api_key is None:
                raise ProviderUnavailableError(
                    "Cloud model is not configured",
                    details={"provider": self.name.value, "reason": "missing GROQ_API_KEY"},
                )
            self._client = AsyncOpenAI(
                api_key=config.api_key.get_secret_value(),
                base_url=config.base_url,
                timeout=config.token_timeout,
                # Retry policy is owned by the pipeline; generation is never retried
                max_retries=0,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _stream(self, prompt: Prompt, config: ProviderConfig) -> AsyncIterator[str]:
        client = self._get_client(config)
        try:
            stream = await client.chat.completions.create(
                model=config.model,
                messages=prompt.to_messages(),
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                stream=True,
            )
            try:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    content = chunk.choices[0].delta.content
                    if content:
                        yield content
            finally:
                await stream.close()
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(
                "Cloud model timed out",
                details={"provider": self.name.value},
            ) from e
        except openai.APIConnectionError as e:
            raise ProviderUnavailableError(
                "Cloud model could not be reached",
                details={"provider": self.name.value},
            ) from e
        except openai.APIStatusError as e:
            logger.error("groq_request_rejected", status=e.status_code, message=e.message)
            raise ProviderError(
                f"Cloud model returned HTTP {e.status_code}",
                details={"provider": self.name.value, "status": e.status_code},
            ) from e
        except openai.OpenAIError as e:
            raise ProviderError(
                "Cloud model stream failed",
                details={"provider": self.name.value, "error": type(e).__name__},
            ) from e

    async def health_check(self, config: ProviderConfig) -> bool:
        """The cloud backend is usable when an API key is configured."""
        return config.api_key is not None or self._client is not None
