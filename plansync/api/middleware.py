"""
Request logging middleware.

Tags every request with a short request ID (echoed in X-Request-ID) and
logs method, path, status and duration.
"""

import logging
import time
import uuid
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger(__name__)


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_ctx.get()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request once it completes, or fails."""

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = uuid.uuid4().hex[:8]
        request_id_ctx.set(req_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(
                f"[{req_id}] {request.method} {request.url.path} failed after {elapsed_ms:.0f}ms: {e}",
                extra={"request_id": req_id, "elapsed_ms": elapsed_ms},
                exc_info=True,
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"[{req_id}] {request.method} {request.url.path} -> {response.status_code} "
            f"in {elapsed_ms:.0f}ms",
            extra={
                "request_id": req_id,
                "status_code": response.status_code,
                "elapsed_ms": elapsed_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
