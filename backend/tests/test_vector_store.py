from __future__ import annotations

import asyncio
import importlib.util
import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from repochat.core.errors import BatchUpsertError, UpstreamAuthError, UpstreamUnavailableError
from repochat.core.vector_store import VectorRecord, VectorStore

INDEX_HOST = "test-index-abc.svc.pinecone.io"


def _store(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> VectorStore:
    kwargs.setdefault("index_host", INDEX_HOST)
    kwargs.setdefault("batch_delay", 0)
    return VectorStore(
        api_key="pc-key",
        index_name="test-index",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _records(count: int) -> list[VectorRecord]:
    return [
        VectorRecord(id=f"chunk-1-{idx}", values=[0.1, 0.2], metadata={"source": "a.py", "text": "x"})
        for idx in range(count)
    ]


def test_host_is_resolved_from_control_plane() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if request.url.host == "api.pinecone.io":
            assert request.headers["Api-Key"] == "pc-key"
            return httpx.Response(200, json={"name": "test-index", "host": INDEX_HOST})
        return httpx.Response(200, json={"namespaces": {"demo": {"vectorCount": 3}}})

    async def scenario() -> dict[str, int]:
        store = _store(handler, index_host=None)
        try:
            await store.describe_stats()
            return await store.describe_stats()
        finally:
            await store.aclose()

    assert asyncio.run(scenario()) == {"demo": 3}
    assert seen == [
        "https://api.pinecone.io/indexes/test-index",
        f"https://{INDEX_HOST}/describe_index_stats",
        f"https://{INDEX_HOST}/describe_index_stats",
    ]


def test_upsert_sends_sequential_batches() -> None:
    batches: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        batches.append(body)
        return httpx.Response(200, json={"upsertedCount": len(body["vectors"])})

    async def scenario() -> int:
        store = _store(handler, batch_size=100)
        try:
            return await store.upsert("demo", _records(250))
        finally:
            await store.aclose()

    assert asyncio.run(scenario()) == 250
    assert [len(batch["vectors"]) for batch in batches] == [100, 100, 50]
    assert {batch["namespace"] for batch in batches} == {"demo"}
    assert batches[0]["vectors"][0]["metadata"] == {"source": "a.py", "text": "x"}


def test_failed_batch_stops_remaining_upserts() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 2:
            return httpx.Response(500, json={"error": {"message": "internal"}})
        return httpx.Response(200, json={"upsertedCount": 100})

    async def scenario() -> None:
        store = _store(handler, batch_size=100)
        try:
            await store.upsert("demo", _records(300))
        finally:
            await store.aclose()

    with pytest.raises(BatchUpsertError) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.batch_index == 2
    assert excinfo.value.total_batches == 3
    assert calls["count"] == 2


def test_query_returns_matches_with_metadata() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert request.url.path == "/query"
        assert body["topK"] == 5
        assert body["includeMetadata"] is True
        return httpx.Response(
            200,
            json={
                "matches": [
                    {"id": "a", "score": 0.9, "metadata": {"source": "a.py", "text": "alpha"}},
                    {"id": "b", "score": 0.5},
                ],
                "namespace": body["namespace"],
            },
        )

    async def scenario():
        store = _store(handler)
        try:
            return await store.query("demo", [0.1, 0.2], 5)
        finally:
            await store.aclose()

    matches = asyncio.run(scenario())
    assert [match.id for match in matches] == ["a", "b"]
    assert matches[0].text == "alpha" and matches[0].source == "a.py"
    assert matches[1].text is None


def test_query_on_empty_namespace_returns_no_matches() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"matches": [], "namespace": "empty"})

    async def scenario():
        store = _store(handler)
        try:
            return await store.query("empty", [0.1], 10)
        finally:
            await store.aclose()

    assert asyncio.run(scenario()) == []


def test_delete_of_missing_namespace_is_a_no_op() -> None:
    bodies: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(404, json={"code": 5, "message": "Namespace not found"})

    async def scenario() -> None:
        store = _store(handler)
        try:
            await store.delete_namespace("gone")
        finally:
            await store.aclose()

    asyncio.run(scenario())
    assert bodies == [{"deleteAll": True, "namespace": "gone"}]


@pytest.mark.parametrize(
    ("status_code", "error_type"),
    [(401, UpstreamAuthError), (429, UpstreamUnavailableError), (503, UpstreamUnavailableError)],
)
def test_status_codes_map_to_error_types(status_code: int, error_type: type[Exception]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"message": "nope"})

    async def scenario() -> None:
        store = _store(handler)
        try:
            await store.describe_stats()
        finally:
            await store.aclose()

    with pytest.raises(error_type):
        asyncio.run(scenario())


def test_cleanup_script_deletes_every_namespace() -> None:
    script = Path(__file__).resolve().parents[2] / "scripts" / "cleanup_index.py"
    module_spec = importlib.util.spec_from_file_location("cleanup_index", script)
    module = importlib.util.module_from_spec(module_spec)
    assert module_spec.loader is not None
    module_spec.loader.exec_module(module)

    deleted: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/describe_index_stats":
            return httpx.Response(
                200, json={"namespaces": {"alpha": {"vectorCount": 2}, "beta": {"vectorCount": 1}}}
            )
        deleted.append(json.loads(request.content)["namespace"])
        return httpx.Response(200, json={})

    async def scenario() -> list[str]:
        store = _store(handler)
        try:
            return await module.cleanup(store)
        finally:
            await store.aclose()

    assert asyncio.run(scenario()) == ["alpha", "beta"]
    assert deleted == ["alpha", "beta"]
