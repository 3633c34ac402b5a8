"""Repository ingestion endpoint."""
import asyncio
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..core.errors import RepoChatError
from ..core.metrics import record_ingestion_result
from ..core.rate_limiter import limiter
from ..core.services import Services, get_services
from .schemas import IngestRequest, IngestResponse, failure_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=IngestResponse,
    response_model_exclude_none=True,
    summary="Ingest a GitHub repository into its namespace",
)
@limiter.limit(settings.RATE_LIMIT_INGESTION)
async def ingest_repository(
    request: Request,
    payload: IngestRequest,
    services: Services = Depends(get_services),
) -> IngestResponse | JSONResponse:
    """Run the ingestion pipeline to completion before responding.

    The run is bounded by ``INGEST_TIMEOUT``; on timeout the pipeline task is
    cancelled and whatever batches were already upserted stay in the store.
    """

    try:
        result = await asyncio.wait_for(
            services.orchestrator.ingest(payload.repo_url, payload.token),
            timeout=settings.INGEST_TIMEOUT,
        )
    except asyncio.TimeoutError:
        record_ingestion_result("failed")
        logger.error("Ingestion of %s timed out after %.0fs", payload.repo_url, settings.INGEST_TIMEOUT)
        return JSONResponse(
            {
                "success": False,
                "message": "Ingestion failed",
                "error": f"Ingestion timed out after {settings.INGEST_TIMEOUT:.0f} seconds",
            },
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except RepoChatError as exc:
        logger.warning("Ingestion of %s failed: %s", payload.repo_url, exc.message)
        return failure_response("Ingestion failed", exc)
    except Exception as exc:
        logger.exception("Unexpected ingestion failure for %s", payload.repo_url)
        return failure_response("Ingestion failed", exc)

    if result.skipped:
        return IngestResponse(
            success=True,
            message=f"Repository already ingested (namespace: {result.namespace})",
        )
    return IngestResponse(
        success=True,
        message=(
            f"Ingestion complete: {result.documents} files, {result.chunks} chunks, "
            f"{result.vectors} vectors (namespace: {result.namespace})"
        ),
    )
