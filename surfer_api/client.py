"""
Typed HTTP client for the VectorSurfer cache API.

Credentials are not global: every call takes the caller's ``ClientSession``
explicitly. A 401 response clears that session's token and fires its
``on_expired`` hook (the caller's re-login trigger) before raising
``UnauthorizedError``.

Responses come back as the service's own pydantic response models; a
payload that does not validate is a ``ServerError``.

GET requests are retried a fixed number of times on server and network
failures. Mutations are never retried; their failures always reach the
caller.

Usage:
    session = ClientSession(token="...", on_expired=show_login)
    with CacheClient("http://localhost:8000/api/v1") as client:
        stats = client.get_analytics(session, range_minutes=60)
        print(stats.cache_hit_rate)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from .analytics import CacheAnalytics
from .drift import DriftResult, DriftSummary
from .executions import Execution, ExecutionListResponse
from .golden import GoldenListResponse, GoldenMutationResponse, GoldenStats
from .recommender import CandidateResponse
from .shared.errors import ServerError, UnauthorizedError, error_for_status
from .shared.logger import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_BASE_URL = "http://localhost:8000/api/v1"


@dataclass
class ClientSession:
    """Credentials of one dashboard user, passed to every call."""

    token: Optional[str] = None
    on_expired: Optional[Callable[[], None]] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def clear(self) -> None:
        """Drop the stored token and notify the owner."""
        self.token = None
        if self.on_expired is not None:
            self.on_expired()


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("detail"):
        detail = payload["detail"]
        return detail if isinstance(detail, str) else str(detail)
    return f"API Error: {response.status_code} {response.reason_phrase}"


class CacheClient:
    """Client for ``/cache`` and ``/executions`` endpoints.

    Args:
        base_url: API root, including the ``/api/v1`` prefix.
        timeout_seconds: Per-request timeout.
        retries: Extra attempts for GET requests on 5xx/network failure.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        client: Optional pre-built ``httpx.Client``; not closed by this wrapper.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout_seconds: float = 10.0,
        retries: int = 2,
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.retries = max(0, retries)
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "CacheClient":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    def _send(
        self,
        session: ClientSession,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        body: Any,
    ) -> Any:
        try:
            response = self._client.request(
                method,
                path,
                params=params,
                json=body,
                headers=session.headers(),
            )
        except httpx.RequestError as exc:
            raise ServerError(f"Request failed for {method} {path}: {exc}") from exc

        if response.status_code == 401:
            session.clear()
            raise UnauthorizedError(_error_message(response))
        if response.is_error:
            raise error_for_status(response.status_code, _error_message(response))
        return response.json()

    def _request(
        self,
        session: ClientSession,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        attempts = 1 + (self.retries if method == "GET" else 0)
        attempt = 1
        while True:
            try:
                return self._send(session, method, path, params, body)
            except ServerError as exc:
                if attempt >= attempts:
                    raise
                logger.warning("%s %s failed (attempt %d/%d): %s", method, path, attempt, attempts, exc.message)
                attempt += 1

    def _parse(self, model: type[ModelT], payload: Any) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ServerError(f"Unexpected {model.__name__} payload: {exc.error_count()} invalid field(s)") from exc

    # ============================================================================
    # Cache analytics
    # ============================================================================

    def get_analytics(self, session: ClientSession, range_minutes: int = 60) -> CacheAnalytics:
        payload = self._request(session, "GET", "/cache/analytics", params={"range": range_minutes})
        return self._parse(CacheAnalytics, payload)

    # ============================================================================
    # Golden dataset
    # ============================================================================

    def list_golden(
        self,
        session: ClientSession,
        function_name: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> GoldenListResponse:
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if function_name:
            params["function_name"] = function_name
        return self._parse(GoldenListResponse, self._request(session, "GET", "/cache/golden", params=params))

    def register_golden(
        self,
        session: ClientSession,
        execution_uuid: str,
        note: str = "",
        tags: list[str] | None = None,
    ) -> GoldenMutationResponse:
        body = {"execution_uuid": execution_uuid, "note": note, "tags": tags or []}
        return self._parse(GoldenMutationResponse, self._request(session, "POST", "/cache/golden", body=body))

    def upsert_golden(
        self,
        session: ClientSession,
        execution_uuid: str,
        note: str = "",
        tags: list[str] | None = None,
    ) -> GoldenMutationResponse:
        body = {"execution_uuid": execution_uuid, "note": note, "tags": tags or []}
        return self._parse(GoldenMutationResponse, self._request(session, "PUT", "/cache/golden", body=body))

    def delete_golden(self, session: ClientSession, uuid: str) -> GoldenMutationResponse:
        payload = self._request(session, "DELETE", f"/cache/golden/{quote(uuid, safe='')}")
        return self._parse(GoldenMutationResponse, payload)

    def recommend_candidates(self, session: ClientSession, function_name: str, limit: int = 5) -> CandidateResponse:
        path = f"/cache/golden/recommend/{quote(function_name, safe='')}"
        return self._parse(CandidateResponse, self._request(session, "GET", path, params={"limit": limit}))

    def get_golden_stats(self, session: ClientSession) -> GoldenStats:
        return self._parse(GoldenStats, self._request(session, "GET", "/cache/golden/stats"))

    # ============================================================================
    # Drift detection
    # ============================================================================

    def get_drift_summary(self, session: ClientSession) -> DriftSummary:
        return self._parse(DriftSummary, self._request(session, "GET", "/cache/drift/summary"))

    def simulate_drift(
        self,
        session: ClientSession,
        text: str,
        function_name: str,
        threshold: float | None = None,
        k: int | None = None,
    ) -> DriftResult:
        """Omitted threshold/k fall back to the server defaults."""
        body: dict[str, Any] = {"text": text, "function_name": function_name}
        if threshold is not None:
            body["threshold"] = threshold
        if k is not None:
            body["k"] = k
        return self._parse(DriftResult, self._request(session, "POST", "/cache/drift/simulate", body=body))

    # ============================================================================
    # Executions
    # ============================================================================

    def record_execution(self, session: ClientSession, function_name: str, **fields: Any) -> Execution:
        body = {"function_name": function_name, **fields}
        return self._parse(Execution, self._request(session, "POST", "/executions", body=body))

    def list_executions(
        self,
        session: ClientSession,
        function_name: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> ExecutionListResponse:
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if function_name:
            params["function_name"] = function_name
        if status:
            params["status"] = status
        return self._parse(ExecutionListResponse, self._request(session, "GET", "/executions", params=params))

    def get_execution(self, session: ClientSession, uuid: str) -> Execution:
        payload = self._request(session, "GET", f"/executions/{quote(uuid, safe='')}")
        return self._parse(Execution, payload)
