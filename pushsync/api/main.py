"""
FastAPI application entry point for the GitHub push sync service.

This module sets up the FastAPI application with the webhook router,
request logging, a health check and error handling.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pushsync import __version__
from pushsync.api.middleware import RequestLoggingMiddleware
from pushsync.api.webhooks import router as webhooks_router
from pushsync.config.settings import get_settings
from pushsync.utils.logging import SERVICE_NAME, get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Configure logging and validate settings on startup.

    Misconfiguration is fatal in production and a warning elsewhere.
    """
    app_settings = get_settings()
    setup_logging(
        log_level=app_settings.log_level,
        environment=app_settings.environment,
    )

    logger.info("app_starting", version=__version__)

    try:
        for warning in app_settings.validate_for_startup():
            logger.warning("config_warning", message=warning)
        app_settings.log_configuration_summary()
    except ValueError as e:
        logger.error("config_validation_failed", error=str(e))
        if app_settings.is_production:
            raise

    logger.info("app_started", version=__version__)
    yield
    logger.info("app_shutdown_complete")


app = FastAPI(
    title="GitHub Push Sync",
    description=(
        "Receives GitHub push webhooks and replicates the pushed file changes "
        "onto a local directory tree."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.include_router(webhooks_router)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    timestamp: str
    service: str
    watched_branch: Optional[str] = None
    dry_run: bool = False


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Liveness check; also reports which branch the service watches."""
    app_settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        service=SERVICE_NAME,
        watched_branch=app_settings.watched_branch,
        dry_run=app_settings.dry_run,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log uncaught exceptions and answer with a 500."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "type": type(exc).__name__,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pushsync.api.main:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )
