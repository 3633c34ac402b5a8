"""Administrative API endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from ..core.services import Services, get_services
from .schemas import failure_response

logger = logging.getLogger(__name__)

router = APIRouter()


class NamespaceStatsResponse(BaseModel):
    namespaces: dict[str, int]


@router.get("/health", summary="Readiness probe")
async def admin_health() -> dict[str, str]:
    """Administrative health endpoint."""
    return {"status": "ok"}


@router.get("/metrics", summary="Prometheus metrics feed")
async def admin_metrics() -> Response:
    """Expose Prometheus-formatted metrics for scraping."""

    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


@router.get("/namespaces", response_model=NamespaceStatsResponse, summary="Record counts per namespace")
async def list_namespaces(
    services: Services = Depends(get_services),
) -> NamespaceStatsResponse | JSONResponse:
    try:
        stats = await services.store.describe_stats()
    except Exception as exc:
        logger.exception("Failed to describe vector index")
        return failure_response("Failed to list namespaces", exc)
    return NamespaceStatsResponse(namespaces=stats)


@router.delete("/namespaces/{namespace}", response_model=None, summary="Delete every record in a namespace")
async def delete_namespace(
    namespace: str,
    services: Services = Depends(get_services),
) -> dict[str, object] | JSONResponse:
    """Idempotent: deleting an absent namespace succeeds."""

    try:
        await services.store.delete_namespace(namespace)
    except Exception as exc:
        logger.exception("Failed to delete namespace %s", namespace)
        return failure_response("Failed to delete namespace", exc)
    logger.warning("Namespace %s deleted through the admin API", namespace)
    return {"success": True, "message": f"Namespace {namespace} deleted"}
