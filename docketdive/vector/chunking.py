"""Sliding-window chunking for documents added to the knowledge base."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from docketdive.errors import EmptyInputError, ValidationError

CHUNK_SIZE = 700
CHUNK_OVERLAP = 150
MIN_CHUNK_CHARS = 50
MAX_DOCUMENT_CHARS = 500_000


class PassageRecord(BaseModel):
    """A chunk of a document ready to be embedded and stored."""

    content: str = Field(..., description="Chunk text")
    title: str = Field(default="Uploaded Document", description="Document title")
    citation: str = Field(default="", description="Citation, if the document has one")
    court: str = Field(default="", description="Court, for judgments")
    url: str = Field(default="", description="Source URL")
    category: str = Field(default="Legal Document", description="Document category")
    date: str = Field(default="", description="Judgment or publication date")
    source: str = Field(default="uploaded_document", description="Ingestion source")
    chunk_index: int = Field(default=0, ge=0, description="Position within the document")

    def to_properties(self) -> dict[str, Any]:
        """Properties dict for the passage collection."""
        return self.model_dump()


def chunk_text(
    text: str,
    size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> list[str]:
    """Split text into overlapping fixed-size windows.

    Each window is trimmed; windows of 50 characters or fewer are dropped.

    Args:
        text: Document text
        size: Window size in characters
        overlap: Characters shared between consecutive windows

    Returns:
        Chunks in document order
    """
    if size <= 0 or not 0 <= overlap < size:
        raise ValueError(f"invalid chunking parameters size={size} overlap={overlap}")

    chunks = []
    step = size - overlap
    for start in range(0, len(text), step):
        chunk = text[start : start + size].strip()
        if len(chunk) > MIN_CHUNK_CHARS:
            chunks.append(chunk)
    return chunks


def build_passage_records(
    text: str,
    title: Optional[str] = None,
    metadata: Optional[dict[str, str]] = None,
) -> list[PassageRecord]:
    """Chunk a document and attach its metadata to every chunk.

    Args:
        text: Document text (at most 500,000 characters)
        title: Document title, used for display and deduplication
        metadata: Optional citation, court, url, category, date

    Raises:
        EmptyInputError: If text is blank
        ValidationError: If text is too long or yields no usable chunks
    """
    if not text or not text.strip():
        raise EmptyInputError("No text provided")
    if len(text) > MAX_DOCUMENT_CHARS:
        raise ValidationError(
            "Text too long (max 500,000 characters)",
            details={"length": len(text), "max": MAX_DOCUMENT_CHARS},
        )

    chunks = chunk_text(text)
    if not chunks:
        raise ValidationError("No valid chunks could be created from text")

    extra = {
        key: value
        for key, value in (metadata or {}).items()
        if key in {"citation", "court", "url", "category", "date"} and value
    }
    return [
        PassageRecord(
            content=chunk,
            title=title or "Uploaded Document",
            chunk_index=index,
            **extra,
        )
        for index, chunk in enumerate(chunks)
    ]
