"""Error taxonomy shared by the cache services and the HTTP client.

Services raise these exceptions; ``main.py`` renders them as JSON error
responses and the client maps response status codes back onto them.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base class for errors surfaced through the cache API."""

    status_code: int = 500
    code: str = "server_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class BadRequestError(ServiceError):
    """Invalid parameters (400, or 422 from request validation)."""

    status_code = 400
    code = "bad_request"


class UnauthorizedError(ServiceError):
    """Missing or unknown bearer token."""

    status_code = 401
    code = "unauthorized"


class NotFoundError(ServiceError):
    """Unknown execution or golden record."""

    status_code = 404
    code = "not_found"


class ConflictError(ServiceError):
    """Duplicate golden registration or execution uuid."""

    status_code = 409
    code = "conflict"


class ServerError(ServiceError):
    """Server side or network failure."""

    status_code = 500
    code = "server_error"


def error_for_status(status_code: int, message: str) -> ServiceError:
    """Build the taxonomy error matching an HTTP status code."""
    if status_code in (400, 422):
        error: ServiceError = BadRequestError(message)
    elif status_code == 401:
        error = UnauthorizedError(message)
    elif status_code == 404:
        error = NotFoundError(message)
    elif status_code == 409:
        error = ConflictError(message)
    elif status_code >= 500:
        error = ServerError(message)
    else:
        error = ServiceError(message)
        error.code = "client_error"
    # Keep the exact status the server sent (e.g. 422 or 503)
    error.status_code = status_code
    return error
