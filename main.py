"""
FastAPI backend for the VectorSurfer cache service.

Serves the cache analytics, golden dataset and drift detection API the
dashboard reads from, plus the execution log those features are built on.
All routes live under ``/api/v1``.
"""

import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse

from surfer_api.app_config import get_settings, save_settings
from surfer_api.shared.errors import ServiceError, UnauthorizedError
from surfer_api.shared.logger import get_logger, setup_logging

settings = get_settings()
setup_logging(settings.log_level)
logger = get_logger(__name__)

from surfer_api.backend import get_backend
from surfer_api.cache import router as cache_router
from surfer_api.executions import router as executions_router
from surfer_api.system import log_error
from surfer_api.system import router as system_router

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store before serving requests."""
    backend = get_backend()
    logger.info(
        "VectorSurfer cache service starting (auth %s, drift threshold=%.2f, k=%d)",
        "enabled" if backend.settings.auth_enabled else "disabled",
        backend.settings.drift_threshold,
        backend.settings.drift_k,
    )
    yield
    logger.info("VectorSurfer cache service stopped")


# Create FastAPI app
app = FastAPI(
    title="VectorSurfer Cache API",
    description="Cache analytics, golden dataset and drift detection for observed function executions",
    version="1.0.0",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)


# ============= Exception Handlers for Error Logging =============


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render service errors with their taxonomy status code."""
    if exc.status_code >= 500:
        log_error(
            endpoint=str(request.url.path),
            message=exc.message,
            level="error",
            details=f"Status code: {exc.status_code}",
        )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Log HTTP exceptions and return JSON response."""
    # Only log 5xx errors (server errors)
    if exc.status_code >= 500:
        log_error(
            endpoint=str(request.url.path),
            message=str(exc.detail),
            level="error",
            details=f"Status code: {exc.status_code}",
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected exceptions and return JSON response."""
    log_error(
        endpoint=str(request.url.path),
        message=str(exc),
        level="critical",
        details=f"Unhandled exception: {type(exc).__name__}",
        exc=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "code": "server_error"},
    )


# Dashboard runs on another origin in development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routes
app.include_router(system_router, prefix=API_PREFIX, tags=["system"])
app.include_router(cache_router, prefix=API_PREFIX, tags=["cache"])
app.include_router(executions_router, prefix=API_PREFIX, tags=["executions"])


def main(argv: list[str] | None = None) -> None:
    """Command line entry point: serve the API or write the settings file."""
    import argparse

    parser = argparse.ArgumentParser(description="VectorSurfer cache server")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("VECTORSURFER_PORT", settings.port)),
        help="Port to run the server on (default: 8000 or VECTORSURFER_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable auto-reload",
    )
    parser.add_argument(
        "--write-config",
        action="store_true",
        help="Write the effective settings to settings.yaml in the config folder and exit",
    )
    args = parser.parse_args(argv)

    if args.write_config:
        path = save_settings(settings)
        logger.info("Settings written to %s", path)
        return

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
