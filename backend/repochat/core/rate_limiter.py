"""Shared SlowAPI rate limiter configuration."""
from __future__ import annotations

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return a JSON response when a rate limit is exceeded."""

    logger.warning(
        "Rate limit exceeded for path=%s limit=%s", request.url.path, exc.detail
    )
    return JSONResponse(
        {"success": False, "message": "Rate limit exceeded", "error": str(exc.detail)},
        status_code=429,
        headers={"Retry-After": "60"},
    )
