"""Vector retrieval utilities shared by the chat and summary endpoints."""
from __future__ import annotations

import logging
from typing import Iterable, List, Protocol, Sequence

from ..core.vector_store import Match

logger = logging.getLogger(__name__)


class QueryEmbedder(Protocol):
    async def embed(self, text: str) -> List[float]: ...


class QueryStore(Protocol):
    async def query(
        self,
        namespace: str,
        vector: Sequence[float],
        top_k: int,
        *,
        include_metadata: bool = True,
    ) -> List[Match]: ...


async def retrieve(
    query: str,
    namespace: str,
    *,
    embedder: QueryEmbedder,
    store: QueryStore,
    top_k: int,
) -> List[Match]:
    """Embed the query and return up to ``top_k`` matches from ``namespace``."""

    search_text = query.strip()
    if not search_text:
        return []

    vector = await embedder.embed(search_text)
    matches = await store.query(namespace, vector, max(top_k, 1), include_metadata=True)
    logger.info("Retrieved %s matches from namespace=%s", len(matches), namespace or "(default)")
    return matches


def build_context(matches: Iterable[Match]) -> str:
    """Join the stored chunk text of each match, skipping matches without text."""

    return "\n\n".join(match.text for match in matches if match.text)
