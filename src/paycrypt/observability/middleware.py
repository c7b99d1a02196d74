"""FastAPI middleware for observability.

Attaches a correlation ID (X-Request-ID) to every HTTP request and logs
request completion.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .correlation import generate_correlation_id, set_correlation_id
from .logging_config import get_logger

logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to generate and inject request IDs."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_correlation_id()
        set_correlation_id(request_id)

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed after {duration_ms:.2f}ms: {request.method} {request.url.path}: {e}",
                exc_info=True,
                extra={"origin": request.client.host if request.client else None},
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.2f}ms)",
            extra={"origin": request.client.host if request.client else None},
        )

        response.headers["X-Request-ID"] = request_id
        return response
