"""Exception types shared across ingestion and retrieval."""
from __future__ import annotations

from fastapi import status


class RepoChatError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RepoChatError):
    """Malformed request input rejected before any upstream call."""

    status_code = status.HTTP_400_BAD_REQUEST


class LoadError(RepoChatError):
    """The repository could not be read from the source host."""


class UpstreamAuthError(RepoChatError):
    """An upstream service rejected the supplied token or API key."""


class UpstreamUnavailableError(RepoChatError):
    """An upstream service throttled, timed out, or returned a server error."""


class EmbeddingError(RepoChatError):
    """Embedding generation failed after all retry attempts."""


class PartialIngestionError(RepoChatError):
    """Ingestion stopped after some records were already committed."""


class BatchUpsertError(PartialIngestionError):
    """A vector upsert batch failed; later batches were not sent."""

    def __init__(self, batch_index: int, total_batches: int, reason: str) -> None:
        super().__init__(f"Upsert batch {batch_index} of {total_batches} failed: {reason}")
        self.batch_index = batch_index
        self.total_batches = total_batches
