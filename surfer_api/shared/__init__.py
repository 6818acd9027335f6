"""
Shared utilities for the VectorSurfer cache backend.

Logging setup and the error taxonomy used by services, routers and the client.
"""
from .errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    ServerError,
    ServiceError,
    UnauthorizedError,
    error_for_status,
)
from .logger import get_logger, setup_logging

__all__ = [
    "ServiceError",
    "BadRequestError",
    "UnauthorizedError",
    "NotFoundError",
    "ConflictError",
    "ServerError",
    "error_for_status",
    "get_logger",
    "setup_logging",
]
