"""Cache analytics, golden dataset and drift detection API endpoints.

Provides FastAPI endpoints for:
- Cache hit/miss analytics over a time range
- Golden record listing, registration, upsert and deletion
- Golden candidate recommendation and per-function golden statistics
- Drift summary and single-text drift simulation

All routes require a bearer token when API tokens are configured.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from .analytics import CacheAnalytics
from .auth import Session, require_session
from .backend import CacheBackend, get_backend
from .drift import DriftResult, DriftSummary
from .golden import GoldenListResponse, GoldenMutationResponse, GoldenStats
from .recommender import CandidateResponse

router = APIRouter(prefix="/cache", tags=["cache"])


# ============================================================================
# Request models
# ============================================================================


class GoldenRegisterRequest(BaseModel):
    execution_uuid: str
    note: str = ""
    tags: list[str] = []


class DriftSimulateRequest(BaseModel):
    text: str
    function_name: str
    threshold: float | None = None
    k: int | None = None


# ============================================================================
# Analytics
# ============================================================================


@router.get("/analytics", response_model=CacheAnalytics)
async def get_cache_analytics(
    range_minutes: int = Query(60, alias="range", description="Time range in minutes"),
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Cache hit/miss statistics over the last ``range`` minutes."""
    return backend.analytics.get_analytics(range_minutes)


# ============================================================================
# Golden dataset
# ============================================================================


@router.get("/golden", response_model=GoldenListResponse)
async def list_golden(
    function_name: str | None = Query(None, description="Exact function name filter"),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """List golden records, most recently registered first."""
    return backend.golden.list(function_name=function_name, limit=limit, offset=offset)


@router.post("/golden", response_model=GoldenMutationResponse)
async def register_golden(
    body: GoldenRegisterRequest,
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Register an execution as golden. Duplicates are rejected with 409."""
    return backend.golden.register(
        body.execution_uuid, note=body.note, tags=body.tags, subject=session.subject
    )


@router.put("/golden", response_model=GoldenMutationResponse)
async def upsert_golden(
    body: GoldenRegisterRequest,
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Register an execution as golden, or update its note and tags."""
    return backend.golden.upsert(
        body.execution_uuid, note=body.note, tags=body.tags, subject=session.subject
    )


@router.get("/golden/stats", response_model=GoldenStats)
async def get_golden_stats(
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Golden record counts and coverage per function."""
    return backend.golden.stats()


@router.get("/golden/recommend/{function_name}", response_model=CandidateResponse)
async def recommend_golden_candidates(
    function_name: str,
    limit: int = Query(5, ge=1, le=50),
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Recommend executions to add to the golden dataset of a function."""
    return backend.recommender.recommend(function_name, limit=limit)


@router.delete("/golden/{uuid}", response_model=GoldenMutationResponse)
async def delete_golden(
    uuid: str,
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Delete a golden record."""
    return backend.golden.delete(uuid, subject=session.subject)


# ============================================================================
# Drift detection
# ============================================================================


@router.get("/drift/summary", response_model=DriftSummary)
async def get_drift_summary(
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Per-function drift statistics over recent traffic."""
    return backend.drift.summary()


@router.post("/drift/simulate", response_model=DriftResult)
async def simulate_drift(
    body: DriftSimulateRequest,
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Check whether a text would be served from a function's cache."""
    return backend.drift.simulate(
        body.text, body.function_name, threshold=body.threshold, k=body.k
    )
