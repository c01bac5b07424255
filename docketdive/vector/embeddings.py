"""Hugging Face E5 embedding client with optional Redis caching."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Optional

import httpx
import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from docketdive.errors import EmptyInputError, ProviderUnavailableError
from docketdive.rag.models import EmbeddingVector

logger = structlog.get_logger(__name__)

# E5 models are trained with asymmetric prefixes
QUERY_PREFIX = "query: "
PASSAGE_PREFIX = "passage: "


class EmbeddingCache:
    """Redis-backed cache for query embeddings."""

    def __init__(
        self,
        redis_client: redis.Redis,
        prefix: str = "emb:",
        ttl: int = 300,
    ):
        """Initialize embedding cache.

        Args:
            redis_client: Async Redis client instance
            prefix: Key prefix for cache entries
            ttl: Time-to-live in seconds (default 5 minutes)
        """
        self.redis = redis_client
        self.prefix = prefix
        self.ttl = ttl

    def _hash_text(self, text: str) -> str:
        """Generate a 16-character hash key for text."""
        return hashlib.sha256(text.encode()).hexdigest()[:16]

    def _make_key(self, text: str) -> str:
        return f"{self.prefix}{self._hash_text(text)}"

    async def get(self, text: str) -> Optional[EmbeddingVector]:
        """Get cached embedding by (prefixed) text.

        Returns:
            Cached embedding or None if not found or Redis is unreachable
        """
        try:
            data = await self.redis.get(self._make_key(text))
        except RedisError as e:
            logger.warning("embedding_cache_read_failed", error=str(e))
            return None
        if data is None:
            return None
        return json.loads(data)

    async def set(self, text: str, embedding: EmbeddingVector) -> None:
        """Cache embedding for (prefixed) text. Failures are logged only."""
        try:
            await self.redis.setex(self._make_key(text), self.ttl, json.dumps(embedding))
        except RedisError as e:
            logger.warning("embedding_cache_write_failed", error=str(e))

    async def close(self) -> None:
        await self.redis.aclose()


def _normalize_response(payload: Any, expected: int) -> list[EmbeddingVector]:
    """Standardize an inference response to one vector per input.

    The endpoint answers with a bare vector, a list of vectors, or a list
    holding a single nested vector depending on model and batch size.
    """
    if not isinstance(payload, list) or not payload:
        raise ValueError("embedding response is not a non-empty list")

    if all(isinstance(x, (int, float)) for x in payload):
        vectors = [payload]
    elif all(isinstance(x, list) for x in payload):
        vectors = payload
        # [[[...]]] for a single input
        if len(vectors) == 1 and vectors[0] and isinstance(vectors[0][0], list):
            vectors = vectors[0]
    else:
        raise ValueError("embedding response mixes vectors and scalars")

    if len(vectors) != expected:
        raise ValueError(f"expected {expected} vectors, got {len(vectors)}")
    for vector in vectors:
        if not vector or not all(isinstance(x, (int, float)) for x in vector):
            raise ValueError("embedding vector is empty or non-numeric")
    return [[float(x) for x in vector] for vector in vectors]


class HuggingFaceEmbedder:
    """Hosted E5 embedder over the Hugging Face inference router.

    Retry policy belongs to the caller; every failure here surfaces as
    ProviderUnavailableError.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        cache: Optional[EmbeddingCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the embedder.

        Args:
            endpoint: Full model URL (base URL plus model name)
            api_key: Hugging Face token sent as a bearer header
            timeout: HTTP timeout in seconds
            cache: Optional Redis cache for query embeddings
            client: Shared HTTP client (created lazily when omitted)
        """
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.cache = cache
        self._client = client

        self.stats = {"cache_hits": 0, "api_calls": 0, "texts_embedded": 0}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and the cache connection."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
        if self.cache is not None:
            await self.cache.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, inputs: str | list[str]) -> Any:
        if not self.api_key:
            raise ProviderUnavailableError(
                "Embedding service is not configured",
                details={"reason": "missing HUGGINGFACE_API_KEY"},
            )
        client = await self._get_client()
        try:
            response = await client.post(
                self.endpoint,
                headers=self._headers(),
                json={"inputs": inputs, "options": {"wait_for_model": True}},
            )
        except httpx.HTTPError as e:
            logger.error("embedding_request_failed", error=str(e))
            raise ProviderUnavailableError(
                "Embedding service could not be reached",
                details={"error": type(e).__name__},
            ) from e

        self.stats["api_calls"] += 1
        if response.status_code != 200:
            logger.error(
                "embedding_request_rejected",
                status=response.status_code,
                body=response.text[:200],
            )
            raise ProviderUnavailableError(
                "Embedding service returned an error",
                details={"status": response.status_code},
            )
        try:
            return response.json()
        except ValueError as e:
            raise ProviderUnavailableError("Embedding service returned invalid JSON") from e

    async def embed(self, text: str) -> EmbeddingVector:
        """Embed a search query.

        Args:
            text: Query text; must be non-blank

        Returns:
            Query embedding vector

        Raises:
            EmptyInputError: If text is blank (no request is made)
            ProviderUnavailableError: On any upstream failure
        """
        stripped = text.strip() if text else ""
        if not stripped:
            raise EmptyInputError("Query text is empty")

        prefixed = f"{QUERY_PREFIX}{stripped}"
        if self.cache is not None:
            cached = await self.cache.get(prefixed)
            if cached is not None:
                self.stats["cache_hits"] += 1
                return cached

        payload = await self._post(prefixed)
        try:
            vector = _normalize_response(payload, expected=1)[0]
        except ValueError as e:
            raise ProviderUnavailableError(
                "Embedding service returned a malformed vector",
                details={"error": str(e)},
            ) from e

        self.stats["texts_embedded"] += 1
        if self.cache is not None:
            await self.cache.set(prefixed, vector)
        return vector

    async def embed_passages(self, texts: list[str]) -> list[EmbeddingVector]:
        """Embed document passages for ingestion (uncached, one batch).

        Raises:
            EmptyInputError: If any passage is blank
            ProviderUnavailableError: On any upstream failure
        """
        if not texts:
            return []
        stripped = [t.strip() for t in texts]
        if not all(stripped):
            raise EmptyInputError("Cannot embed a blank passage")

        payload = await self._post([f"{PASSAGE_PREFIX}{t}" for t in stripped])
        try:
            vectors = _normalize_response(payload, expected=len(texts))
        except ValueError as e:
            raise ProviderUnavailableError(
                "Embedding service returned malformed vectors",
                details={"error": str(e)},
            ) from e

        self.stats["texts_embedded"] += len(vectors)
        return vectors

    def get_stats(self) -> dict[str, Any]:
        """Get embedding statistics."""
        return dict(self.stats)


def create_redis_client(url: str) -> redis.Redis:
    """Create an async Redis client from a URL."""
    return redis.from_url(url, decode_responses=True)


def create_embedder(settings: Any) -> HuggingFaceEmbedder:
    """Create a HuggingFaceEmbedder from settings, with a cache when enabled.

    Args:
        settings: Application settings

    Returns:
        Configured HuggingFaceEmbedder instance
    """
    cache = None
    if settings.embedding_cache_enabled:
        cache = EmbeddingCache(
            create_redis_client(settings.redis_url),
            ttl=settings.embedding_cache_ttl,
        )

    api_key = None
    if settings.huggingface_api_key:
        api_key = settings.huggingface_api_key.get_secret_value()

    return HuggingFaceEmbedder(
        endpoint=settings.embedding_endpoint,
        api_key=api_key,
        timeout=settings.embedding_timeout,
        cache=cache,
    )
