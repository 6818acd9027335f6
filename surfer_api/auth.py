"""
Bearer token authentication.

Every cache and execution route depends on ``require_session``. When the
settings list no API tokens the service runs open and callers get an
anonymous session.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from fastapi import Depends, Request

from .backend import CacheBackend, get_backend
from .shared.errors import UnauthorizedError


@dataclass(frozen=True)
class Session:
    """Authenticated caller of one request."""

    subject: str
    authenticated: bool


ANONYMOUS = Session(subject="anonymous", authenticated=False)


def _subject_for(token: str) -> str:
    return "token:" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


def authenticate(authorization: str | None, tokens: list[str]) -> Session:
    """Resolve an ``Authorization`` header against the configured tokens."""
    if not tokens:
        return ANONYMOUS
    if not authorization:
        raise UnauthorizedError("Missing bearer token")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise UnauthorizedError("Authorization header must use the Bearer scheme")

    for known in tokens:
        if hmac.compare_digest(token.encode("utf-8"), known.encode("utf-8")):
            return Session(subject=_subject_for(token), authenticated=True)
    raise UnauthorizedError("Invalid or expired token")


async def require_session(request: Request, backend: CacheBackend = Depends(get_backend)) -> Session:
    """FastAPI dependency returning the caller's session."""
    return authenticate(request.headers.get("Authorization"), backend.settings.api_tokens)
