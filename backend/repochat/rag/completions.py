"""Chat completion helpers backed by the OpenAI API."""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Sequence

import openai
from openai import AsyncOpenAI

from ..core.errors import RepoChatError, UpstreamAuthError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


class CompletionClient:
    """Thin wrapper around chat completions for one configured model."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gpt-4o",
        timeout: float = 120.0,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()

    async def stream_chat(
        self, system: str, messages: Sequence[Dict[str, str]]
    ) -> AsyncIterator[str]:
        """Yield response tokens as the model produces them."""

        payload = _with_system(system, messages)
        try:
            stream = await self._client.chat.completions.create(
                model=self.model, messages=payload, stream=True
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.OpenAIError as exc:
            raise _translate(exc) from exc

    async def complete(self, system: str, prompt: str) -> str:
        """Return the full text of a single non-streamed completion."""

        payload = _with_system(system, [{"role": "user", "content": prompt}])
        try:
            response = await self._client.chat.completions.create(
                model=self.model, messages=payload
            )
        except openai.OpenAIError as exc:
            raise _translate(exc) from exc
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def _with_system(system: str, messages: Sequence[Dict[str, str]]) -> List[Dict[str, str]]:
    return [{"role": "system", "content": system}, *messages]


def _translate(exc: openai.OpenAIError) -> RepoChatError:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return UpstreamAuthError(f"Completion provider rejected the API key: {exc}")
    if isinstance(exc, (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)):
        logger.warning("Completion provider unavailable: %s", exc)
        return UpstreamUnavailableError(f"Completion provider unavailable: {exc}")
    return RepoChatError(f"Completion request failed: {exc}")
