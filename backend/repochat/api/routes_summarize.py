"""Architecture summary endpoint."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..core.rate_limiter import limiter
from ..core.services import Services, get_services
from ..rag import summary
from .schemas import (
    RepositoryMetadataResponse,
    RepositoryStatsPayload,
    SummarizeRequest,
    failure_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=RepositoryMetadataResponse, summary="Summarize an ingested repository")
@limiter.limit(settings.RATE_LIMIT_SUMMARIZE)
async def summarize_repository(
    request: Request,
    payload: SummarizeRequest,
    services: Services = Depends(get_services),
) -> RepositoryMetadataResponse | JSONResponse:
    """Describe the repository stored under ``namespace``."""

    namespace = payload.namespace or ""
    logger.info("Starting summarize request (namespace: %s)", namespace or "(default)")
    try:
        result = await summary.summarize(
            namespace,
            embedder=services.embedder,
            store=services.store,
            completer=services.completions,
            top_k=settings.SUMMARY_TOP_K,
        )
    except Exception as exc:
        logger.exception("Summarize failed for namespace=%s", namespace or "(default)")
        return failure_response("Failed to generate summary", exc)

    return RepositoryMetadataResponse(
        summary=result.summary,
        tech_stack=result.tech_stack,
        patterns=result.patterns,
        stats=RepositoryStatsPayload(
            files=result.stats.files,
            lines=result.stats.lines,
            languages=result.stats.languages,
        ),
    )
