"""Custom ASGI middleware for request logging."""
from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .metrics import record_request


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log structured request summaries and emit metrics."""

    def __init__(self, app: Callable) -> None:
        super().__init__(app)
        self.logger = logging.getLogger("repochat.request")

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        method = request.method
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            duration = time.perf_counter() - start
            record_request(method, route_path, status_code, duration)
            self.logger.exception(
                "HTTP %s %s raised an unhandled exception", method, route_path
            )
            raise
        duration = time.perf_counter() - start

        client_host = request.client.host if request.client else "unknown"
        self.logger.info(
            "HTTP %s %s status=%s client=%s duration=%.3f",
            method,
            route_path,
            status_code,
            client_host,
            duration,
        )
        record_request(method, route_path, status_code, duration)
        response.headers.setdefault("X-Process-Time", f"{duration:.6f}")
        return response
