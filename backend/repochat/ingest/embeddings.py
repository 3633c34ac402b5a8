"""Embedding utilities."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Sequence

import openai
from openai import AsyncOpenAI

from ..core.errors import EmbeddingError, UpstreamAuthError
from ..core.metrics import record_upstream_retry

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class Embedder:
    """Turn text into vectors through the OpenAI embeddings endpoint.

    Requests are sent in batches of ``batch_size`` texts, one batch at a time.
    Each batch gets ``max_attempts`` tries with exponential backoff on
    connection errors, timeouts, throttling and server errors.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        batch_size: int = 50,
        max_attempts: int = 3,
        timeout: float = 120.0,
        backoff: float = 1.0,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.batch_size = max(batch_size, 1)
        self.max_attempts = max(max_attempts, 1)
        self.backoff = backoff
        # Retries are handled here so the attempt bound is explicit.
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed ``texts`` preserving order; raises :class:`EmbeddingError` on failure."""

        vectors: List[List[float]] = []
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size
        for batch_number, offset in enumerate(range(0, len(texts), self.batch_size), start=1):
            batch = list(texts[offset : offset + self.batch_size])
            logger.debug("Embedding batch %s of %s (%s texts)", batch_number, total_batches, len(batch))
            vectors.extend(await self._embed_with_retry(batch))
        return vectors

    async def _embed_with_retry(self, batch: List[str]) -> List[List[float]]:
        # The API rejects empty strings.
        inputs = [text if text.strip() else " " for text in batch]
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._client.embeddings.create(model=self.model, input=inputs)
            except openai.AuthenticationError as exc:
                raise UpstreamAuthError(f"Embedding provider rejected the API key: {exc}") from exc
            except TRANSIENT_ERRORS as exc:
                last_error = exc
                if attempt == self.max_attempts:
                    break
                delay = self.backoff * (2 ** (attempt - 1))
                logger.warning(
                    "Embedding request failed (attempt %s/%s): %s; retrying in %.1fs",
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                record_upstream_retry("embeddings")
                await asyncio.sleep(delay)
                continue
            except openai.OpenAIError as exc:
                raise EmbeddingError(f"Embedding request failed: {exc}") from exc

            data = sorted(response.data, key=lambda item: item.index)
            if len(data) != len(batch):
                raise EmbeddingError(
                    f"Embedding provider returned {len(data)} vectors for {len(batch)} inputs"
                )
            return [list(item.embedding) for item in data]

        raise EmbeddingError(
            f"Embedding request failed after {self.max_attempts} attempts: {last_error}"
        ) from last_error
