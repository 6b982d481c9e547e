"""
API Middleware

Request logging with timing and request-id propagation.
"""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its status and duration"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        # Every event logged while serving the request carries its id
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id
        return response
