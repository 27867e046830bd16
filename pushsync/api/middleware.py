"""
FastAPI middleware for structured logging and request tracking.

Provides:
  - Request ID generation and propagation
  - GitHub delivery id and event bound into the log context
  - Automatic request/response logging
"""

import time
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from pushsync.utils.logging import (
    get_logger,
    bind_contextvars,
    clear_contextvars,
    generate_request_id,
)

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds structured logging to every HTTP request.

    Features:
      - Generates a unique request_id for each request
      - Binds request_id, X-GitHub-Delivery and X-GitHub-Event to structlog
        contextvars so every log line of a delivery can be correlated
      - Logs request start and completion with timing
      - Adds X-Request-ID header to responses
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()

        clear_contextvars()
        bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        delivery_id = request.headers.get("X-GitHub-Delivery")
        if delivery_id:
            bind_contextvars(delivery_id=delivery_id)
        event = request.headers.get("X-GitHub-Event")
        if event:
            bind_contextvars(event=event.lower())

        start_time = time.perf_counter()

        # Health probes are noisy, keep them at debug level
        quiet = request.url.path == "/health"
        if quiet:
            logger.debug("request_started")
        else:
            logger.info("request_started",
                        client=request.client.host if request.client else "unknown")

        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - start_time) * 1000

            response.headers["X-Request-ID"] = request_id

            log_method = logger.debug if quiet else logger.info
            log_method(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round(elapsed_ms, 1),
            )

            return response

        except Exception as exc:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "request_failed",
                status_code=500,
                duration_ms=round(elapsed_ms, 1),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise

        finally:
            clear_contextvars()
