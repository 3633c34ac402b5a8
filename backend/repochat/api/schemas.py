"""Request and response bodies shared by the API routes."""
from __future__ import annotations

from typing import Any, Iterable, List, Literal, Optional
from urllib.parse import urlparse

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..core.errors import RepoChatError


class CamelModel(BaseModel):
    """Models exchanged with the browser client use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IngestRequest(CamelModel):
    repo_url: str = Field(..., description="GitHub repository URL")
    token: str = Field(..., min_length=1, description="GitHub access token")

    @field_validator("repo_url")
    @classmethod
    def _check_repo_url(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("Invalid URL format")
        if "github.com" not in value:
            raise ValueError("Must be a valid GitHub URL")
        return value.strip()


class IngestResponse(CamelModel):
    success: bool
    message: str
    error: Optional[str] = None


class SummarizeRequest(CamelModel):
    namespace: Optional[str] = None


class RepositoryStatsPayload(CamelModel):
    files: int
    lines: str
    languages: int


class RepositoryMetadataResponse(CamelModel):
    summary: str
    tech_stack: List[str]
    patterns: List[str]
    stats: RepositoryStatsPayload


class ConversationMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(CamelModel):
    message: str = Field(..., min_length=1)
    namespace: Optional[str] = None
    conversation_history: Optional[List[ConversationMessage]] = None


def format_validation_errors(errors: Iterable[dict[str, Any]]) -> List[str]:
    """Render pydantic error entries as ``field: message`` strings."""

    details: List[str] = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        details.append(f"{location}: {error.get('msg', 'invalid value')}" if location else str(error.get("msg")))
    return details


def failure_response(message: str, exc: Exception) -> JSONResponse:
    """Convert an exception raised while serving a request into the uniform error body."""

    if isinstance(exc, RepoChatError):
        status_code = exc.status_code
        error = exc.message
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        error = str(exc) or type(exc).__name__
    return JSONResponse(
        {"success": False, "message": message, "error": error},
        status_code=status_code,
    )
