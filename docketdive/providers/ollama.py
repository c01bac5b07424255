"""Local Ollama inference server provider."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Optional

import httpx
import structlog

from docketdive.errors import (
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from docketdive.rag.models import Prompt, ProviderConfig, ProviderName

from .base import ModelProvider

logger = structlog.get_logger(__name__)


class OllamaProvider(ModelProvider):
    """Streams chat completions from Ollama's `/api/chat` NDJSON endpoint."""

    name = ProviderName.LOCAL

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            # Per-read timeouts are enforced by complete()
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _stream(self, prompt: Prompt, config: ProviderConfig) -> AsyncIterator[str]:
        client = await self._get_client()
        payload = {
            "model": config.model,
            "messages": prompt.to_messages(),
            "stream": True,
            "options": {
                "temperature": config.temperature,
                "num_predict": config.max_tokens,
            },
        }
        url = f"{config.base_url.rstrip('/')}/api/chat"

        try:
            async with client.stream("POST", url, json=payload) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode(errors="replace")
                    logger.error(
                        "ollama_request_rejected",
                        status=response.status_code,
                        body=body[:200],
                    )
                    raise ProviderError(
                        f"Local model returned HTTP {response.status_code}",
                        details={"provider": self.name.value, "status": response.status_code},
                    )

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError as e:
                        raise ProviderError(
                            "Local model sent a malformed stream line",
                            details={"provider": self.name.value},
                        ) from e

                    if data.get("error"):
                        raise ProviderError(
                            f"Local model error: {data['error']}",
                            details={"provider": self.name.value},
                        )
                    content = (data.get("message") or {}).get("content") or ""
                    if content:
                        yield content
                    if data.get("done"):
                        break
        except httpx.ConnectError as e:
            raise ProviderUnavailableError(
                "Local model server is not reachable. Is Ollama running?",
                details={"provider": self.name.value, "url": config.base_url},
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                "Local model server timed out",
                details={"provider": self.name.value},
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                "Local model stream failed",
                details={"provider": self.name.value, "error": type(e).__name__},
            ) from e

    async def health_check(self, config: ProviderConfig) -> bool:
        """Check the server answers `/api/tags`."""
        client = await self._get_client()
        try:
            response = await client.get(f"{config.base_url.rstrip('/')}/api/tags", timeout=5.0)
        except httpx.HTTPError as e:
            logger.warning("ollama_health_check_failed", error=str(e))
            return False
        return response.status_code == 200
