"""stackhub FastAPI application."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from stackhub import __version__
from stackhub.api.dependencies import close_orchestrator, init_orchestrator
from stackhub.api.v1 import diagnostics_router, health_router, instances_router
from stackhub.config import get_config
from stackhub.errors import StackHubError
from stackhub.logging import setup_logging
from stackhub.logging_schema import LogEvent

# Import metrics to ensure they are registered
import stackhub.metrics  # noqa: F401

# Configure logging using config
_config = get_config()
setup_logging(_config.logging)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        "Starting stackhub",
        extra={
            "event": LogEvent.APP_STARTED,
            "version": __version__,
        },
    )

    orchestrator = await init_orchestrator(_config)

    report = await orchestrator.check_prerequisites()
    if not report.ready:
        logger.warning("System not ready, missing: %s", ", ".join(report.failed))

    # Records left in creating by a previous run have no workflow anymore
    await orchestrator.recover_interrupted()

    reconcile_task: asyncio.Task[None] | None = None
    if _config.server.reconcile_interval > 0:
        reconcile_task = asyncio.create_task(
            orchestrator.run_reconcile_loop(_config.server.reconcile_interval)
        )

    yield
    logger.info("Shutting down stackhub", extra={"event": LogEvent.APP_STOPPED})
    if reconcile_task is not None:
        reconcile_task.cancel()
        await asyncio.gather(reconcile_task, return_exceptions=True)
    await close_orchestrator()


app = FastAPI(
    title="stackhub",
    description="Lifecycle manager for self-hosted service bundles",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=_config.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handler for StackHubError
@app.exception_handler(StackHubError)
async def stackhub_error_handler(request: Request, exc: StackHubError) -> JSONResponse:
    """Handle StackHubError exceptions."""
    logger.warning(
        "Request failed",
        extra={
            "event": LogEvent.STACKHUB_ERROR,
            "error_code": exc.code.value,
            "error_message": exc.message,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True),
    )


# Error handler for unhandled exceptions
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions with logging."""
    logger.exception(
        "Unhandled exception",
        extra={
            "event": LogEvent.UNHANDLED_EXCEPTION,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# API key authentication middleware
@app.middleware("http")
async def api_key_middleware(
    request: Request, call_next: Callable[[Request], Response]
) -> Response:
    """Validate API key for non-health endpoints."""
    config = get_config()

    # Skip auth for health and metrics endpoints
    if request.url.path in ("/health", "/metrics"):
        return await call_next(request)

    # If API key is configured, validate it
    if config.server.api_key:
        auth_header = request.headers.get("Authorization", "")
        expected = f"Bearer {config.server.api_key}"
        if auth_header != expected:
            return Response(
                content='{"detail": "Invalid API key"}',
                status_code=401,
                media_type="application/json",
            )

    return await call_next(request)


# /health endpoint without prefix (for health checks)
app.include_router(health_router)


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


app.include_router(instances_router, prefix="/api/v1")
app.include_router(diagnostics_router, prefix="/api/v1")


def main() -> None:
    """Run the stackhub server."""
    config = get_config()
    uvicorn.run(
        "stackhub.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
