"""Weaviate schema definitions for the legal passage collection."""

from __future__ import annotations

from enum import Enum
from typing import Any

from weaviate.classes.config import (
    Configure,
    DataType,
    Property,
    Tokenization,
    VectorDistances,
)


class CollectionName(str, Enum):
    """Weaviate collection names."""

    LEGAL_PASSAGE = "LegalPassage"


# Properties returned with every search hit
RETURN_PROPERTIES: list[str] = [
    "content",
    "title",
    "citation",
    "court",
    "url",
    "category",
    "date",
]

LEGAL_PASSAGE_PROPERTIES: list[Property] = [
    Property(
        name="content",
        data_type=DataType.TEXT,
        description="Passage text shown to the model as grounding",
        tokenization=Tokenization.WORD,
    ),
    Property(
        name="title",
        data_type=DataType.TEXT,
        description="Case or document title (e.g., Van Meyeren v Cloete)",
        tokenization=Tokenization.WORD,
    ),
    Property(
        name="citation",
        data_type=DataType.TEXT,
        description="Neutral or law report citation (e.g., [2020] ZASCA 100)",
        tokenization=Tokenization.WORD,
    ),
    Property(
        name="court",
        data_type=DataType.TEXT,
        description="Court that handed down the judgment",
        tokenization=Tokenization.WORD,
    ),
    Property(
        name="url",
        data_type=DataType.TEXT,
        description="Source URL; identifies the document for deduplication",
        tokenization=Tokenization.FIELD,  # exact match only
    ),
    Property(
        name="category",
        data_type=DataType.TEXT,
        description="Document category (Law, Case, Legislation, Upload)",
        tokenization=Tokenization.FIELD,
    ),
    Property(
        name="date",
        data_type=DataType.TEXT,
        description="Judgment or publication date as written in the source",
        tokenization=Tokenization.FIELD,
    ),
    Property(
        name="source",
        data_type=DataType.TEXT,
        description="Ingestion source (e.g., saflii, upload)",
        tokenization=Tokenization.FIELD,
    ),
    Property(
        name="chunk_index",
        data_type=DataType.INT,
        description="Position of the passage within its source document",
    ),
]


def get_legal_passage_collection_config(
    name: str = CollectionName.LEGAL_PASSAGE.value,
) -> dict[str, Any]:
    """Get the configuration for creating the passage collection.

    Args:
        name: Collection name (overridable from settings)

    Returns:
        Dictionary of collection configuration arguments for client.collections.create()
    """
    return {
        "name": name,
        "description": "South African case law and legislation passages for RAG retrieval",
        "properties": LEGAL_PASSAGE_PROPERTIES,
        # Vectors come from the hosted E5 model, not a Weaviate module
        "vector_config": Configure.Vectors.self_provided(
            vector_index_config=Configure.VectorIndex.hnsw(
                distance_metric=VectorDistances.COSINE,
            ),
        ),
    }


# Vector dimension for intfloat/multilingual-e5-large
E5_LARGE_DIMENSION = 1024
