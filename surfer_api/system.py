"""
System API routes for the VectorSurfer cache backend.

Health and environment information, plus the error log helper used by the
application's exception handlers.
"""

import platform
import sys
from importlib import metadata
from typing import Any, Dict, Optional

from fastapi import APIRouter

from .shared.logger import get_logger

router = APIRouter()

logger = get_logger("surfer_api.errors")


def log_error(
    endpoint: str,
    message: str,
    level: str = "error",
    details: Optional[str] = None,
    exc: Optional[BaseException] = None,
) -> None:
    """Log a failed request with its endpoint and optional traceback."""
    log = logger.critical if level == "critical" else logger.error
    if details:
        log("%s: %s (%s)", endpoint, message, details, exc_info=exc)
    else:
        log("%s: %s", endpoint, message, exc_info=exc)


def _get_package_versions() -> Dict[str, str]:
    """Get versions of key packages."""
    packages = {}

    package_names = [
        "fastapi",
        "pydantic",
        "numpy",
        "uvicorn",
        "httpx",
        "orjson",
        "PyYAML",
        "platformdirs",
    ]

    for name in package_names:
        try:
            packages[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            pass

    return packages


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "VectorSurfer cache service is running",
    }


@router.get("/system/info")
async def system_info() -> Dict[str, Any]:
    """Get system and environment information."""
    return {
        "python": {
            "version": sys.version,
            "platform": sys.platform,
        },
        "system": {
            "os": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
        },
        "packages": _get_package_versions(),
    }
