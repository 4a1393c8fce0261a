"""Request middleware for tracing, metrics and error auditing."""

import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from payaudit.enums import ActionType
from payaudit.logging import bind_context, clear_context, get_logger
from payaudit.metrics import record_request

logger = get_logger(__name__)


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Adds request tracing and audits unhandled request errors.

    - Generates a request_id and reuses or creates a correlation_id
      (X-Correlation-ID header)
    - Binds both into the structlog context for the request
    - Records HTTP request metrics
    - Writes an ERROR "Request error" audit entry when a handler raises
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        request_id = str(uuid.uuid4())[:8]
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())[:8]

        clear_context()
        bind_context(
            request_id=request_id,
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )

        request.state.request_id = request_id
        request.state.correlation_id = correlation_id

        start_time = time.perf_counter()

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            if not request.url.path.startswith("/metrics"):
                record_request(
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration=duration_ms / 1000,
                )

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2),
            )

            audit_logger = getattr(request.app.state, "audit_logger", None)
            if audit_logger is not None:
                audit_logger.error(
                    "Request error",
                    e,
                    {
                        "path": request.url.path,
                        "method": request.method,
                        "request_id": request_id,
                        "correlation_id": correlation_id,
                    },
                    action_type=ActionType.SYSTEM,
                )
            raise

        finally:
            clear_context()


def get_correlation_id(request: Request) -> str | None:
    """Correlation ID bound to the current request, if any."""
    return getattr(request.state, "correlation_id", None)
