"""Ingestion pipeline linking loading, chunking, embedding and upserting."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Protocol, Sequence
from urllib.parse import urlparse

from ..core.metrics import record_ingestion_result
from ..core.vector_store import VectorRecord
from . import chunking
from .loaders import Document, validate_repository_input

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"


class IngestionStage(str, Enum):
    RECEIVED = "received"
    VALIDATING = "validating"
    SKIPPED = "skipped"
    LOADING = "loading"
    SPLITTING = "splitting"
    EMBEDDING = "embedding"
    UPSERTING = "upserting"
    DONE = "done"
    FAILED = "failed"


class RepositoryLoader(Protocol):
    async def load(self, repo_url: str, token: str) -> List[Document]: ...


class BatchEmbedder(Protocol):
    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]: ...


class NamespaceStore(Protocol):
    async def record_count(self, namespace: str) -> int: ...

    async def upsert(self, namespace: str, records: Sequence[VectorRecord]) -> int: ...


@dataclass(slots=True)
class IngestResult:
    """Outcome of one ingestion run."""

    namespace: str
    skipped: bool = False
    documents: int = 0
    chunks: int = 0
    vectors: int = 0


def derive_namespace(repo_url: str) -> str:
    """Return the repository name used as the vector namespace.

    ``https://github.com/o/r`` and ``https://github.com/o/r.git`` both map to
    ``r``; input without a path segment maps to ``"default"``.
    """

    parsed = urlparse(repo_url.strip())
    segments = [segment for segment in parsed.path.split("/") if segment]
    if not parsed.netloc or not segments:
        return DEFAULT_NAMESPACE
    name = segments[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or DEFAULT_NAMESPACE


class IngestionOrchestrator:
    """Populate one namespace from one repository.

    A namespace that already holds records is left untouched and the run is
    reported as skipped. A failure in any stage aborts the run; batches that
    were already upserted stay in the store.
    """

    def __init__(
        self,
        *,
        loader: RepositoryLoader,
        embedder: BatchEmbedder,
        store: NamespaceStore,
        chunk_size: int = chunking.DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = chunking.DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        self.loader = loader
        self.embedder = embedder
        self.store = store
        self.splitter = chunking.RecursiveTextSplitter(
            chunk_size=chunk_size, chunk_overlap=chunk_overlap
        )

    async def ingest(self, repo_url: str, token: str) -> IngestResult:
        namespace = derive_namespace(repo_url)
        stage = IngestionStage.RECEIVED
        logger.info("Ingestion %s for namespace=%s", stage.value, namespace)
        try:
            stage = self._enter(IngestionStage.VALIDATING, namespace)
            validate_repository_input(repo_url, token)

            existing = await self.store.record_count(namespace)
            if existing > 0:
                self._enter(IngestionStage.SKIPPED, namespace)
                logger.info(
                    "Namespace %s already holds %s records; skipping ingestion", namespace, existing
                )
                record_ingestion_result("skipped")
                return IngestResult(namespace=namespace, skipped=True)

            stage = self._enter(IngestionStage.LOADING, namespace)
            documents = await self.loader.load(repo_url, token)

            stage = self._enter(IngestionStage.SPLITTING, namespace)
            chunks = self.splitter.split_documents(documents)
            logger.info("Split %s documents into %s chunks", len(documents), len(chunks))

            stage = self._enter(IngestionStage.EMBEDDING, namespace)
            vectors = await self.embedder.embed_batch([chunk.text for chunk in chunks])
            if len(vectors) != len(chunks):
                raise RuntimeError("Mismatch between chunk count and embedding count")

            stage = self._enter(IngestionStage.UPSERTING, namespace)
            records = build_records(chunks, vectors)
            written = await self.store.upsert(namespace, records)
        except Exception:
            logger.exception("Ingestion failed during %s for namespace=%s", stage.value, namespace)
            record_ingestion_result("failed")
            raise

        self._enter(IngestionStage.DONE, namespace)
        record_ingestion_result("succeeded")
        return IngestResult(
            namespace=namespace,
            documents=len(documents),
            chunks=len(chunks),
            vectors=written,
        )

    @staticmethod
    def _enter(stage: IngestionStage, namespace: str) -> IngestionStage:
        logger.debug("Ingestion %s for namespace=%s", stage.value, namespace)
        return stage


def build_records(
    chunks: Sequence[chunking.Chunk],
    vectors: Sequence[Sequence[float]],
    *,
    timestamp_ms: int | None = None,
) -> List[VectorRecord]:
    """Pair chunks with their vectors under time-and-position derived ids."""

    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return [
        VectorRecord(
            id=f"chunk-{stamp}-{idx}",
            values=list(vector),
            metadata={"source": chunk.source_path or "unknown", "text": chunk.text},
        )
        for idx, (chunk, vector) in enumerate(zip(chunks, vectors))
    ]
