"""HTTP client for the Pinecone vector index used as the only persistent store."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import httpx

from .errors import BatchUpsertError, RepoChatError, UpstreamAuthError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class VectorRecord:
    """A single embedded chunk ready to be written to a namespace."""

    id: str
    values: List[float]
    metadata: Dict[str, Any]

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.id, "values": list(self.values), "metadata": dict(self.metadata)}


@dataclass(slots=True)
class Match:
    """A nearest-neighbour hit returned by a namespace query."""

    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str | None:
        value = self.metadata.get("text")
        return value if isinstance(value, str) else None

    @property
    def source(self) -> str | None:
        value = self.metadata.get("source")
        return value if isinstance(value, str) else None


class VectorStore:
    """Namespaced upsert/query/delete operations against one Pinecone index.

    The data-plane host is resolved lazily from the control plane unless it is
    configured explicitly. One instance is shared by every request; the
    underlying ``httpx.AsyncClient`` keeps its connection pool for the lifetime
    of the process and must be released with :meth:`aclose`.
    """

    def __init__(
        self,
        *,
        api_key: str,
        index_name: str,
        index_host: str | None = None,
        controller_url: str = "https://api.pinecone.io",
        api_version: str = "2024-07",
        timeout: float = 60.0,
        batch_size: int = 100,
        batch_delay: float = 0.05,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.index_name = index_name
        self.controller_url = controller_url.rstrip("/")
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._host = _normalize_host(index_host) if index_host else None
        self._client = httpx.AsyncClient(
            headers={
                "Api-Key": api_key,
                "X-Pinecone-API-Version": api_version,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def upsert(self, namespace: str, records: Sequence[VectorRecord]) -> int:
        """Write records in sequential batches, pausing between batches.

        A failing batch raises :class:`BatchUpsertError`; batches before it
        remain committed and the ones after it are never sent.
        """

        if not records:
            return 0

        total_batches = (len(records) + self.batch_size - 1) // self.batch_size
        written = 0
        for batch_number, offset in enumerate(range(0, len(records), self.batch_size), start=1):
            batch = records[offset : offset + self.batch_size]
            logger.info(
                "Upserting batch %s of %s (%s vectors) into namespace=%s",
                batch_number,
                total_batches,
                len(batch),
                namespace,
            )
            try:
                await self._post(
                    "/vectors/upsert",
                    {"vectors": [record.to_payload() for record in batch], "namespace": namespace},
                    action="upsert",
                )
            except (RepoChatError, httpx.HTTPError) as exc:
                raise BatchUpsertError(batch_number, total_batches, str(exc)) from exc
            written += len(batch)
            if batch_number < total_batches and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)
        return written

    async def query(
        self,
        namespace: str,
        vector: Sequence[float],
        top_k: int,
        *,
        include_metadata: bool = True,
    ) -> List[Match]:
        """Return up to ``top_k`` nearest records; an empty namespace yields ``[]``."""

        payload = {
            "namespace": namespace,
            "vector": list(vector),
            "topK": max(top_k, 1),
            "includeMetadata": include_metadata,
            "includeValues": False,
        }
        data = await self._post("/query", payload, action="query")
        matches: List[Match] = []
        for raw in data.get("matches") or []:
            metadata = raw.get("metadata")
            matches.append(
                Match(
                    id=str(raw.get("id", "")),
                    score=float(raw.get("score") or 0.0),
                    metadata=metadata if isinstance(metadata, dict) else {},
                )
            )
        return matches

    async def describe_stats(self) -> Dict[str, int]:
        """Return record counts keyed by namespace name."""

        data = await self._post("/describe_index_stats", {}, action="describe_index_stats")
        namespaces = data.get("namespaces") or {}
        return {
            name: int((summary or {}).get("vectorCount") or (summary or {}).get("recordCount") or 0)
            for name, summary in namespaces.items()
        }

    async def record_count(self, namespace: str) -> int:
        stats = await self.describe_stats()
        return stats.get(namespace, 0)

    async def list_namespaces(self) -> List[str]:
        stats = await self.describe_stats()
        return sorted(stats)

    async def delete_all(self, namespace: str) -> None:
        """Remove every record in ``namespace``; absent namespaces are a no-op."""

        await self._post(
            "/vectors/delete",
            {"deleteAll": True, "namespace": namespace},
            action="delete",
            missing_ok=True,
        )
        logger.info("Deleted all records in namespace=%s", namespace)

    async def delete_namespace(self, namespace: str) -> None:
        await self.delete_all(namespace)

    async def _resolve_host(self) -> str:
        if self._host:
            return self._host
        url = f"{self.controller_url}/indexes/{self.index_name}"
        try:
            response = await self._client.get(url)
        except httpx.TransportError as exc:
            raise UpstreamUnavailableError(f"Vector store unreachable: {exc}") from exc
        _raise_for_status(response, "describe_index")
        host = response.json().get("host")
        if not host:
            raise UpstreamUnavailableError(
                f"Vector store index {self.index_name!r} did not report a host"
            )
        self._host = _normalize_host(host)
        logger.info("Resolved vector index %s to host %s", self.index_name, self._host)
        return self._host

    async def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        *,
        action: str,
        missing_ok: bool = False,
    ) -> Dict[str, Any]:
        host = await self._resolve_host()
        try:
            response = await self._client.post(f"{host}{path}", json=payload)
        except httpx.TransportError as exc:
            raise UpstreamUnavailableError(f"Vector store {action} failed: {exc}") from exc
        if missing_ok and response.status_code == 404:
            return {}
        _raise_for_status(response, action)
        if not response.content:
            return {}
        return response.json()


def _normalize_host(host: str) -> str:
    host = host.rstrip("/")
    if "://" not in host:
        host = f"https://{host}"
    return host


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.is_success:
        return
    detail = _error_message(response)
    if response.status_code in (401, 403):
        raise UpstreamAuthError(f"Vector store rejected credentials during {action}: {detail}")
    if response.status_code == 429 or response.status_code >= 500:
        raise UpstreamUnavailableError(
            f"Vector store {action} failed with HTTP {response.status_code}: {detail}"
        )
    raise RepoChatError(f"Vector store {action} failed with HTTP {response.status_code}: {detail}")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(body.get("message") or error or body)
    return str(body)
