#!/usr/bin/env python3
"""Bulk-load legal documents into the DocketDive knowledge base.

Usage:
    python scripts/load_documents.py PATH [PATH ...] [--category NAME] [--reset]

Each PATH is either a .txt file (title taken from the file name) or a .json
file holding a list of {"text": ..., "title": ..., "metadata": {...}}
objects. Directories are scanned for .txt and .json files.

Options:
    --category NAME   Category stored on passages without one (default "Law")
    --reset           Delete and recreate the collection before loading
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import get_settings
from docketdive.errors import DocketDiveError
from docketdive.vector import build_passage_records, create_embedder, create_vector_store
from docketdive.vector.client import WeaviateVectorStore
from docketdive.vector.embeddings import HuggingFaceEmbedder

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".txt", ".json"}


def discover_files(paths: list[Path]) -> list[Path]:
    """Expand directories into the supported files they contain."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(
                sorted(p for p in path.rglob("*") if p.suffix.lower() in SUPPORTED_SUFFIXES)
            )
        elif path.suffix.lower() in SUPPORTED_SUFFIXES:
            files.append(path)
        else:
            logger.warning(f"Skipping unsupported file: {path}")
    return files


def read_documents(path: Path) -> list[dict[str, Any]]:
    """Read one file into document dictionaries.

    Args:
        path: A .txt or .json file

    Returns:
        List of {"text", "title", "metadata"} dictionaries
    """
    if path.suffix.lower() == ".txt":
        return [{"text": path.read_text(encoding="utf-8"), "title": path.stem, "metadata": {}}]

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = [data]

    documents = []
    for index, item in enumerate(data):
        if not isinstance(item, dict) or "text" not in item:
            logger.warning(f"{path}: entry {index} has no 'text' field, skipping")
            continue
        documents.append(
            {
                "text": item["text"],
                "title": item.get("title") or f"{path.stem}-{index}",
                "metadata": item.get("metadata") or {},
            }
        )
    return documents


async def load_document(
    document: dict[str, Any],
    embedder: HuggingFaceEmbedder,
    store: WeaviateVectorStore,
    category: str,
) -> dict[str, int]:
    """Chunk, embed and insert one document."""
    metadata = {key: str(value) for key, value in document["metadata"].items()}
    metadata.setdefault("category", category)

    records = build_passage_records(document["text"], document["title"], metadata)
    vectors = await embedder.embed_passages([r.content for r in records])
    result = await store.insert_passages(records, vectors)
    return {"chunks": len(records), **result}


async def run(files: list[Path], category: str, reset: bool) -> dict[str, Any]:
    settings = get_settings()
    embedder = create_embedder(settings)
    store = create_vector_store(settings)

    stats: dict[str, Any] = {
        "documents": 0,
        "chunks": 0,
        "inserted": 0,
        "errors": 0,
        "failed_documents": [],
    }

    try:
        if reset:
            await store.delete_collection()
        await store.init_schema()

        for path in files:
            for document in read_documents(path):
                try:
                    result = await load_document(document, embedder, store, category)
                except DocketDiveError as e:
                    logger.error(f"Failed to load '{document['title']}': {e.message}")
                    stats["failed_documents"].append(document["title"])
                    continue

                stats["documents"] += 1
                stats["chunks"] += result["chunks"]
                stats["inserted"] += result["inserted"]
                stats["errors"] += result["errors"]
                logger.info(
                    f"Loaded '{document['title']}': "
                    f"{result['inserted']}/{result['chunks']} chunks stored"
                )
    finally:
        await embedder.close()
        await store.close()

    return stats


def main() -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Load documents into the DocketDive knowledge base")
    parser.add_argument("paths", nargs="+", type=Path, help="Files or directories to load")
    parser.add_argument(
        "--category",
        default="Law",
        help="Category for passages without one (default Law)",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete and recreate the collection before loading",
    )
    args = parser.parse_args()

    files = discover_files(args.paths)
    if not files:
        logger.error("No .txt or .json files found")
        return 1

    print("=" * 60)
    print("DOCKETDIVE - DOCUMENT LOAD")
    print("=" * 60)
    print(f"Files: {len(files)}")
    print()

    start_time = time.time()
    try:
        stats = asyncio.run(run(files, args.category, args.reset))
    except DocketDiveError as e:
        logger.error(f"Load aborted: {e.message} {e.details}")
        return 1
    elapsed = time.time() - start_time

    print()
    print("-" * 40)
    print("SUMMARY")
    print("-" * 40)
    print(f"Documents loaded: {stats['documents']}")
    print(f"Chunks: {stats['chunks']}")
    print(f"Inserted: {stats['inserted']}")
    print(f"Errors: {stats['errors']}")
    print(f"Elapsed time: {elapsed:.2f}s")

    if stats["failed_documents"]:
        print()
        print("Failed documents:")
        for title in stats["failed_documents"]:
            print(f"  - {title}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
