"""Async Weaviate client for the legal passage vector store."""

from __future__ import annotations

import asyncio
from typing import Any, Optional
from urllib.parse import urlparse

import structlog
import weaviate
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from weaviate.classes.data import DataObject
from weaviate.classes.init import AdditionalConfig, Auth, Timeout
from weaviate.classes.query import MetadataQuery
from weaviate.exceptions import WeaviateBaseError

from docketdive.errors import StoreUnavailableError, ValidationError
from docketdive.rag.models import EmbeddingVector, PassageMetadata, RetrievedPassage

from .chunking import PassageRecord
from .schema import RETURN_PROPERTIES, CollectionName, get_legal_passage_collection_config

logger = structlog.get_logger(__name__)

MAX_SEARCH_LIMIT = 10


class WeaviateConfig(BaseModel):
    """Weaviate connection configuration."""

    url: str = Field(
        default="http://localhost:8080", description="Weaviate HTTP URL"
    )
    api_key: Optional[str] = Field(
        default=None, description="Optional API key for authentication"
    )
    grpc_port: int = Field(default=50051, description="gRPC port")
    collection: str = Field(
        default=CollectionName.LEGAL_PASSAGE.value, description="Passage collection name"
    )
    timeout: int = Field(default=30, description="Query timeout in seconds")

    @classmethod
    def from_settings(cls, settings: Any) -> "WeaviateConfig":
        api_key = None
        if settings.weaviate_api_key:
            api_key = settings.weaviate_api_key.get_secret_value()
        return cls(
            url=settings.weaviate_url,
            api_key=api_key,
            grpc_port=settings.weaviate_grpc_port,
            collection=settings.weaviate_collection,
            timeout=settings.weaviate_timeout,
        )


def similarity_from_distance(distance: Optional[float]) -> float:
    """Convert a cosine distance into a similarity clamped to [0, 1]."""
    if distance is None:
        return 0.0
    return min(1.0, max(0.0, 1.0 - distance))


class WeaviateVectorStore:
    """Read/insert access to the passage collection.

    The underlying async client is created once and shared by all requests.
    """

    def __init__(
        self,
        config: Optional[WeaviateConfig] = None,
        client: Optional[weaviate.WeaviateAsyncClient] = None,
    ):
        """Initialize the vector store.

        Args:
            config: Connection configuration (defaults to localhost)
            client: Pre-built async client (used by tests)
        """
        self._config = config or WeaviateConfig()
        self._client = client
        self._connect_lock = asyncio.Lock()

    @property
    def collection_name(self) -> str:
        return self._config.collection

    def _build_client(self) -> weaviate.WeaviateAsyncClient:
        parsed = urlparse(self._config.url)
        host = parsed.hostname or "localhost"
        secure = parsed.scheme == "https"
        http_port = parsed.port or (443 if secure else 8080)

        auth = Auth.api_key(self._config.api_key) if self._config.api_key else None
        return weaviate.use_async_with_custom(
            http_host=host,
            http_port=http_port,
            http_secure=secure,
            grpc_host=host,
            grpc_port=self._config.grpc_port,
            grpc_secure=secure,
            auth_credentials=auth,
            additional_config=AdditionalConfig(
                timeout=Timeout(query=self._config.timeout, insert=self._config.timeout * 2)
            ),
        )

    async def connect(self) -> weaviate.WeaviateAsyncClient:
        """Connect the shared client if it is not connected yet."""
        async with self._connect_lock:
            if self._client is None:
                self._client = self._build_client()
            if not self._client.is_connected():
                try:
                    await self._client.connect()
                except WeaviateBaseError as e:
                    raise StoreUnavailableError(
                        "Vector store could not be reached",
                        details={"url": self._config.url, "error": str(e)},
                    ) from e
                logger.info("weaviate_connected", url=self._config.url)
        return self._client

    async def close(self) -> None:
        """Close the client and release resources."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def health_check(self) -> bool:
        """Check if Weaviate is reachable.

        Returns:
            True if Weaviate is healthy, False otherwise
        """
        try:
            client = await self.connect()
            return await client.is_ready()
        except (StoreUnavailableError, WeaviateBaseError) as e:
            logger.error("weaviate_health_check_failed", error=str(e))
            return False

    async def init_schema(self) -> bool:
        """Create the passage collection if it doesn't exist.

        Returns:
            True if collection was created, False if it already exists
        """
        client = await self.connect()
        name = self.collection_name

        if await client.collections.exists(name):
            logger.info("collection_exists", collection=name)
            return False

        await client.collections.create(**get_legal_passage_collection_config(name))
        logger.info("collection_created", collection=name)
        return True

    async def delete_collection(self) -> bool:
        """Delete the passage collection.

        Returns:
            True if collection was deleted, False if it didn't exist
        """
        client = await self.connect()
        name = self.collection_name

        if not await client.collections.exists(name):
            logger.info("collection_missing", collection=name)
            return False

        await client.collections.delete(name)
        logger.info("collection_deleted", collection=name)
        return True

    async def get_collection_info(self) -> Optional[dict[str, Any]]:
        """Get collection schema and object count.

        Returns:
            Dictionary with collection info or None if collection doesn't exist
        """
        client = await self.connect()
        name = self.collection_name

        if not await client.collections.exists(name):
            return None

        collection = client.collections.get(name)
        config = await collection.config.get()
        response = await collection.aggregate.over_all(total_count=True)

        return {
            "name": name,
            "description": config.description,
            "properties": [
                {"name": p.name, "data_type": str(p.data_type)} for p in config.properties
            ],
            "object_count": response.total_count,
        }

    async def search(
        self,
        vector: EmbeddingVector,
        limit: int = 8,
    ) -> list[RetrievedPassage]:
        """Find the passages nearest to a query vector.

        Args:
            vector: Query embedding
            limit: Maximum number of results (1-10)

        Returns:
            Passages ordered by descending similarity; empty when nothing matches

        Raises:
            ValidationError: If limit is out of range
            StoreUnavailableError: If the collection cannot be queried
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_SEARCH_LIMIT:
            raise ValidationError(
                f"Search limit must be an integer between 1 and {MAX_SEARCH_LIMIT}",
                details={"limit": limit},
            )

        client = await self.connect()
        try:
            collection = client.collections.get(self.collection_name)
            response = await collection.query.near_vector(
                near_vector=vector,
                limit=limit,
                return_properties=RETURN_PROPERTIES,
                return_metadata=MetadataQuery(distance=True),
            )
        except WeaviateBaseError as e:
            logger.error("weaviate_search_failed", error=str(e))
            raise StoreUnavailableError(
                "Vector store query failed",
                details={"collection": self.collection_name},
            ) from e

        passages = self._parse_search_results(response.objects)
        logger.debug("weaviate_search_completed", limit=limit, results=len(passages))
        return passages

    def _parse_search_results(self, objects: list[Any]) -> list[RetrievedPassage]:
        """Parse Weaviate response objects into RetrievedPassage models."""
        results = []
        for obj in objects:
            props = obj.properties or {}
            distance = obj.metadata.distance if obj.metadata else None

            results.append(
                RetrievedPassage(
                    id=str(obj.uuid),
                    content=props.get("content") or "",
                    score=similarity_from_distance(distance),
                    metadata=PassageMetadata(
                        title=props.get("title") or "",
                        citation=props.get("citation") or "",
                        court=props.get("court") or "",
                        url=props.get("url") or "",
                        category=props.get("category") or "Law",
                        date=props.get("date") or "",
                    ),
                )
            )

        results.sort(key=lambda p: p.score, reverse=True)
        return results

    async def insert_passages(
        self,
        records: list[PassageRecord],
        vectors: list[EmbeddingVector],
    ) -> dict[str, int]:
        """Insert passages with their vectors.

        Args:
            records: Passage properties
            vectors: Embedding vectors (same order as records)

        Returns:
            Dictionary with insert statistics
        """
        # Validation (not retried)
        if len(records) != len(vectors):
            raise ValidationError(
                f"Mismatch: {len(records)} passages vs {len(vectors)} vectors"
            )

        if not records:
            return {"inserted": 0, "errors": 0}

        try:
            return await self._insert_with_retry(records, vectors)
        except WeaviateBaseError as e:
            logger.error("weaviate_insert_failed", error=str(e))
            raise StoreUnavailableError(
                "Vector store insert failed",
                details={"collection": self.collection_name},
            ) from e

    @retry(
        retry=retry_if_exception_type(WeaviateBaseError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _insert_with_retry(
        self,
        records: list[PassageRecord],
        vectors: list[EmbeddingVector],
    ) -> dict[str, int]:
        """Internal method that handles the actual insert with retry."""
        client = await self.connect()
        collection = client.collections.get(self.collection_name)

        objects = [
            DataObject(properties=record.to_properties(), vector=vector)
            for record, vector in zip(records, vectors)
        ]
        result = await collection.data.insert_many(objects)

        errors = len(result.errors)
        for index, error in result.errors.items():
            logger.error("passage_insert_failed", index=index, message=error.message)

        return {"inserted": len(objects) - errors, "errors": errors}


def create_vector_store(settings: Any) -> WeaviateVectorStore:
    """Create a WeaviateVectorStore from settings."""
    return WeaviateVectorStore(WeaviateConfig.from_settings(settings))
