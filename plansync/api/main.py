"""
FastAPI application for Plansync.

Serves the Google Calendar integration endpoints the planner's web layer
calls to connect accounts and manage availability, plus a health check.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from plansync.api.integration_routes import router as integration_router
from plansync.api.middleware import RequestLoggingMiddleware, get_request_id
from plansync.api.models import HealthResponse
from plansync.config import get_settings
from plansync.database import check_connection
from plansync.exceptions import (
    AuthRecoverableError,
    CalendarNotFound,
    CalendarSyncError,
    NotConnected,
    PermanentProviderError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


# =============================================================================
# Application Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    logger.info(f"Starting Plansync API ({settings.python_env})")
    if not settings.uses_google_oauth:
        logger.warning("Google OAuth client is not configured; connecting accounts will fail")

    yield

    logger.info("Shutting down Plansync API")


app = FastAPI(
    title="Plansync API",
    description="Google Calendar sync for shared plans.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(integration_router)


# =============================================================================
# Exception Handlers
# =============================================================================


def _status_for(exc: CalendarSyncError) -> int:
    if isinstance(exc, (NotConnected, CalendarNotFound)):
        return 404
    if isinstance(exc, AuthRecoverableError):
        return 403
    if isinstance(exc, TransientProviderError):
        return 503
    if isinstance(exc, PermanentProviderError):
        return 502
    return 500


@app.exception_handler(CalendarSyncError)
async def sync_error_handler(request, exc: CalendarSyncError):
    """Report sync failures with their caller-facing code."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(
            f"[{get_request_id()}] Sync error on {request.url.path}: "
            f"[{exc.code.value}] {exc.message}"
        )
    return JSONResponse(
        status_code=status_code,
        content={
            "error_type": exc.code.value,
            "message": exc.message,
            "retryable": exc.retryable,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_type": "http_error",
            "message": exc.detail,
            "retryable": exc.status_code >= 500,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"[{get_request_id()}] Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error_type": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": True,
        },
    )


# =============================================================================
# Health
# =============================================================================


@app.get("/health", response_model=HealthResponse, tags=["System"])
def health_check() -> HealthResponse:
    """Check API and database health."""
    database_connected = check_connection()
    return HealthResponse(
        status="healthy" if database_connected else "unhealthy",
        version=VERSION,
        database_connected=database_connected,
    )


def run_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Run the API server with Uvicorn."""
    import uvicorn

    uvicorn.run(
        "plansync.api.main:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    run_server(reload=True)
