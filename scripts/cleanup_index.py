"""Delete every namespace from the configured vector index.

Destructive and unconfirmed; meant for manual use against test indexes.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
BACKEND_ROOT = PROJECT_ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from repochat.core.config import settings
from repochat.core.vector_store import VectorStore

logger = logging.getLogger("repochat.cleanup")


async def cleanup(store: VectorStore) -> list[str]:
    """Delete all records in every namespace and return the namespaces touched."""

    namespaces = await store.list_namespaces()
    if not namespaces:
        print("No namespaces found in the index.")
        return []

    for namespace in namespaces:
        await store.delete_all(namespace)
        print(f"  Deleted namespace: {namespace or '(default)'}")
    return namespaces


async def _run() -> None:
    store = VectorStore(
        api_key=settings.PINECONE_API_KEY,
        index_name=settings.PINECONE_INDEX_NAME,
        index_host=settings.PINECONE_INDEX_HOST,
        controller_url=settings.PINECONE_CONTROLLER_URL,
        api_version=settings.PINECONE_API_VERSION,
        timeout=settings.PINECONE_TIMEOUT,
    )
    try:
        deleted = await cleanup(store)
    finally:
        await store.aclose()
    print(f"Cleanup finished: {len(deleted)} namespaces removed from {settings.PINECONE_INDEX_NAME}")


def main() -> None:
    """Entry point for the cleanup utility."""

    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    try:
        asyncio.run(_run())
    except Exception:
        logger.exception("Error during cleanup")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
