#!/usr/bin/env python3
"""Initialize the Weaviate passage collection for DocketDive.

Usage:
    python scripts/init_weaviate.py [--delete] [--verify]

Options:
    --delete    Delete existing collection before creating
    --verify    Verify collection was created successfully

Vectors are supplied by the application (multilingual-e5-large), so the
collection is created without a server-side vectorizer.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import get_settings
from docketdive.errors import DocketDiveError
from docketdive.vector.client import WeaviateVectorStore, create_vector_store
from docketdive.vector.schema import E5_LARGE_DIMENSION, LEGAL_PASSAGE_PROPERTIES

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def verify_collection(store: WeaviateVectorStore) -> bool:
    """Verify the passage collection exists with every expected property.

    Args:
        store: Connected vector store

    Returns:
        True if collection exists and has correct schema
    """
    print()
    print("-" * 40)
    print("VERIFICATION")
    print("-" * 40)

    info = await store.get_collection_info()

    if info is None:
        print("ERROR: Collection does not exist")
        return False

    print(f"Collection: {info['name']}")
    print(f"Description: {info['description']}")
    print(f"Object count: {info['object_count']}")
    print()
    print("Properties:")

    expected_properties = {p.name for p in LEGAL_PASSAGE_PROPERTIES}
    actual_properties = {p["name"] for p in info["properties"]}

    for prop in info["properties"]:
        status = "OK" if prop["name"] in expected_properties else "UNEXPECTED"
        print(f"  {prop['name']}: {prop['data_type']} [{status}]")

    missing = expected_properties - actual_properties
    if missing:
        print()
        print(f"MISSING PROPERTIES: {sorted(missing)}")
        return False

    print()
    print(f"Vector dimension: {E5_LARGE_DIMENSION} (multilingual-e5-large)")

    return True


async def initialize(store: WeaviateVectorStore, delete: bool, verify: bool) -> int:
    """Run the requested schema steps against one store."""
    print("Connecting to Weaviate...")
    if not await store.health_check():
        logger.error("Cannot connect to Weaviate at the configured WEAVIATE_URL")
        return 1

    print("Connected to Weaviate")
    print()

    name = store.collection_name

    if delete:
        print("-" * 40)
        print("DELETING COLLECTION")
        print("-" * 40)
        if await store.delete_collection():
            print(f"Deleted collection '{name}'")
        else:
            print("Collection did not exist")
        print()

    print("-" * 40)
    print("INITIALIZING SCHEMA")
    print("-" * 40)
    if await store.init_schema():
        print(f"Created collection '{name}'")
    else:
        print(f"Collection '{name}' already exists")
    print()

    if verify:
        if await verify_collection(store):
            print("Verification: PASSED")
        else:
            print("Verification: FAILED")
            return 1

    return 0


async def run(delete: bool, verify: bool) -> int:
    store = create_vector_store(get_settings())
    try:
        return await initialize(store, delete=delete, verify=verify)
    finally:
        await store.close()


def main() -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Initialize Weaviate schema for DocketDive")
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete existing collection before creating",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Verify collection was created successfully",
    )
    args = parser.parse_args()

    settings = get_settings()

    print("=" * 60)
    print("DOCKETDIVE - WEAVIATE INITIALIZATION")
    print("=" * 60)
    print()
    print(f"Weaviate URL: {settings.weaviate_url}")
    print(f"Collection: {settings.weaviate_collection}")
    print(f"Vector dimension: {E5_LARGE_DIMENSION}")
    print()

    try:
        exit_code = asyncio.run(run(args.delete, args.verify))
    except DocketDiveError as e:
        logger.error(f"Error during initialization: {e.message} {e.details}")
        return 1

    if exit_code != 0:
        return exit_code

    print()
    print("=" * 60)
    print("Schema initialized!")
    print()
    print("Next steps:")
    print("  1. Set HUGGINGFACE_API_KEY in .env for the embedding service")
    print("  2. Run scripts/load_documents.py to add passages")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
