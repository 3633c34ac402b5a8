"""Long-lived upstream clients shared by every request."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from starlette.requests import Request

from ..ingest.embeddings import Embedder
from ..ingest.loaders import GithubRepoLoader
from ..ingest.pipeline import IngestionOrchestrator
from ..rag.completions import CompletionClient
from .config import Settings
from .vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Clients constructed once at startup and injected into route handlers."""

    loader: GithubRepoLoader
    embedder: Embedder
    store: VectorStore
    completions: CompletionClient
    chunk_size: int = 1000
    chunk_overlap: int = 200

    @property
    def orchestrator(self) -> IngestionOrchestrator:
        return IngestionOrchestrator(
            loader=self.loader,
            embedder=self.embedder,
            store=self.store,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    async def aclose(self) -> None:
        for client in (self.store, self.embedder, self.completions):
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - shutdown best effort
                logger.exception("Failed to close %s", type(client).__name__)


def build_services(settings: Settings) -> Services:
    """Construct the upstream clients from application settings."""

    return Services(
        loader=GithubRepoLoader(
            api_url=settings.GITHUB_API_URL,
            branch=settings.GITHUB_BRANCH,
            max_concurrency=settings.GITHUB_MAX_CONCURRENCY,
            timeout=settings.GITHUB_TIMEOUT,
        ),
        embedder=Embedder(
            api_key=settings.EMBEDDING_API_KEY,
            model=settings.EMBEDDING_MODEL_NAME,
            batch_size=settings.EMBEDDING_BATCH_SIZE,
            max_attempts=settings.EMBEDDING_MAX_ATTEMPTS,
            timeout=settings.EMBEDDING_TIMEOUT,
            backoff=settings.EMBEDDING_RETRY_BACKOFF,
        ),
        store=VectorStore(
            api_key=settings.PINECONE_API_KEY,
            index_name=settings.PINECONE_INDEX_NAME,
            index_host=settings.PINECONE_INDEX_HOST,
            controller_url=settings.PINECONE_CONTROLLER_URL,
            api_version=settings.PINECONE_API_VERSION,
            timeout=settings.PINECONE_TIMEOUT,
            batch_size=settings.UPSERT_BATCH_SIZE,
            batch_delay=settings.UPSERT_BATCH_DELAY,
        ),
        completions=CompletionClient(
            api_key=settings.COMPLETION_API_KEY,
            model=settings.COMPLETION_MODEL_NAME,
            timeout=settings.COMPLETION_TIMEOUT,
        ),
        chunk_size=settings.CHUNK_SIZE,
        chunk_overlap=settings.CHUNK_OVERLAP,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the application's shared clients."""

    return request.app.state.services
