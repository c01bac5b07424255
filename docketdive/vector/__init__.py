"""Weaviate vector store, E5 embeddings and document chunking."""

from .chunking import PassageRecord, build_passage_records, chunk_text
from .client import (
    WeaviateConfig,
    WeaviateVectorStore,
    create_vector_store,
    similarity_from_distance,
)
from .embeddings import (
    EmbeddingCache,
    HuggingFaceEmbedder,
    create_embedder,
    create_redis_client,
)
from .schema import (
    E5_LARGE_DIMENSION,
    LEGAL_PASSAGE_PROPERTIES,
    CollectionName,
    get_legal_passage_collection_config,
)

__all__ = [
    # Client
    "WeaviateVectorStore",
    "WeaviateConfig",
    "create_vector_store",
    "similarity_from_distance",
    # Embeddings
    "HuggingFaceEmbedder",
    "EmbeddingCache",
    "create_embedder",
    "create_redis_client",
    # Chunking
    "PassageRecord",
    "chunk_text",
    "build_passage_records",
    # Schema
    "CollectionName",
    "LEGAL_PASSAGE_PROPERTIES",
    "E5_LARGE_DIMENSION",
    "get_legal_passage_collection_config",
]
