from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Sequence

import pytest
from fastapi.testclient import TestClient

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Settings are validated at import time; the real credentials are never used.
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("PINECONE_API_KEY", "test-pinecone-key")
os.environ.setdefault("PINECONE_INDEX_NAME", "test-index")
os.environ.setdefault("UPSERT_BATCH_DELAY", "0")

from repochat.core.rate_limiter import limiter
from repochat.core.services import Services
from repochat.core.vector_store import Match, VectorRecord
from repochat.ingest.loaders import Document, validate_repository_input
from repochat.main import create_app


class FakeLoader:
    def __init__(self, documents: Sequence[Document] | None = None) -> None:
        self.documents = list(documents or [])
        self.calls: list[tuple[str, str]] = []

    async def load(self, repo_url: str, token: str) -> List[Document]:
        validate_repository_input(repo_url, token)
        self.calls.append((repo_url, token))
        return list(self.documents)


class FakeEmbedder:
    def __init__(self, dimension: int = 4) -> None:
        self.dimension = dimension
        self.queries: list[str] = []
        self.batches: list[list[str]] = []

    def _vector(self, text: str) -> List[float]:
        return [float(len(text) % 7), 1.0] + [0.0] * (self.dimension - 2)

    async def embed(self, text: str) -> List[float]:
        self.queries.append(text)
        return self._vector(text)

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        self.batches.append(list(texts))
        return [self._vector(text) for text in texts]

    async def aclose(self) -> None:
        return None


class FakeStore:
    def __init__(self) -> None:
        self.namespaces: Dict[str, List[VectorRecord]] = {}
        self.calls: list[str] = []
        self.queries: list[tuple[str, int]] = []
        self.fail_upsert: Exception | None = None

    def seed(self, namespace: str, items: Sequence[tuple[str, str]]) -> None:
        records = self.namespaces.setdefault(namespace, [])
        for source, text in items:
            records.append(
                VectorRecord(
                    id=f"seed-{len(records)}",
                    values=[0.0, 1.0, 0.0, 0.0],
                    metadata={"source": source, "text": text},
                )
            )

    async def record_count(self, namespace: str) -> int:
        self.calls.append("record_count")
        return len(self.namespaces.get(namespace, []))

    async def describe_stats(self) -> Dict[str, int]:
        self.calls.append("describe_stats")
        return {name: len(records) for name, records in self.namespaces.items()}

    async def upsert(self, namespace: str, records: Sequence[VectorRecord]) -> int:
        self.calls.append("upsert")
        if self.fail_upsert is not None:
            raise self.fail_upsert
        self.namespaces.setdefault(namespace, []).extend(records)
        return len(records)

    async def query(
        self,
        namespace: str,
        vector: Sequence[float],
        top_k: int,
        *,
        include_metadata: bool = True,
    ) -> List[Match]:
        self.calls.append("query")
        self.queries.append((namespace, top_k))
        records = self.namespaces.get(namespace, [])[:top_k]
        return [
            Match(id=record.id, score=1.0, metadata=dict(record.metadata) if include_metadata else {})
            for record in records
        ]

    async def delete_namespace(self, namespace: str) -> None:
        self.calls.append("delete_namespace")
        self.namespaces.pop(namespace, None)

    async def aclose(self) -> None:
        return None


class FakeCompletions:
    def __init__(self, reply: str = "", tokens: Sequence[str] = ("Hello ", "world")) -> None:
        self.reply = reply
        self.tokens = list(tokens)
        self.prompts: list[tuple[str, Any]] = []

    async def complete(self, system: str, prompt: str) -> str:
        self.prompts.append((system, prompt))
        return self.reply

    async def stream_chat(self, system: str, messages: Sequence[Dict[str, str]]) -> AsyncIterator[str]:
        self.prompts.append((system, list(messages)))
        for token in self.tokens:
            yield token

    async def aclose(self) -> None:
        return None


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    limiter.reset()


@pytest.fixture()
def fake_loader() -> FakeLoader:
    return FakeLoader(
        [
            Document(path="src/app.ts", text="export const app = () => 'hi';\n"),
            Document(path="README.md", text="# Demo\n\nA small demo repository.\n"),
        ]
    )


@pytest.fixture()
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def fake_completions() -> FakeCompletions:
    return FakeCompletions()


@pytest.fixture()
def services(
    fake_loader: FakeLoader,
    fake_embedder: FakeEmbedder,
    fake_store: FakeStore,
    fake_completions: FakeCompletions,
) -> Services:
    return Services(
        loader=fake_loader,  # type: ignore[arg-type]
        embedder=fake_embedder,  # type: ignore[arg-type]
        store=fake_store,  # type: ignore[arg-type]
        completions=fake_completions,  # type: ignore[arg-type]
    )


@pytest.fixture()
def app(services: Services) -> TestClient:
    return TestClient(create_app(services=services))
