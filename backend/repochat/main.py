"""FastAPI application entry point for the repository chat service."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .api import routes_admin, routes_chat, routes_ingest, routes_summarize
from .api.schemas import format_validation_errors
from .core.config import settings
from .core.middleware import RequestLoggingMiddleware
from .core.rate_limiter import limiter, rate_limit_handler
from .core.services import Services, build_services

logger = logging.getLogger(__name__)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as HTTP 400 with field-level messages."""

    details = format_validation_errors(exc.errors())
    logger.info("Rejected %s %s: %s", request.method, request.url.path, "; ".join(details))
    return JSONResponse(
        {
            "success": False,
            "message": "Validation failed",
            "error": ", ".join(details),
            "details": details,
        },
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def create_app(services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    When ``services`` is omitted the upstream clients are built from settings
    on startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is not None:
            yield
            return
        owned = build_services(settings)
        app.state.services = owned
        logger.info("Upstream clients ready (index=%s)", settings.PINECONE_INDEX_NAME)
        try:
            yield
        finally:
            await owned.aclose()

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)
    if services is not None:
        app.state.services = services

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL.rstrip("/")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])
    app.include_router(routes_ingest.router, prefix="/ingest", tags=["ingest"])
    app.include_router(routes_summarize.router, prefix="/summarize", tags=["summarize"])
    app.include_router(routes_chat.router, prefix="/chat", tags=["chat"])

    return app


app = create_app()
