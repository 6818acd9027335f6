"""Execution log API endpoints.

Executions are what golden records reference, what cache analytics
aggregate and what the recommender and drift detector embed.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from .auth import Session, require_session
from .backend import CacheBackend, get_backend
from .shared.errors import NotFoundError
from .shared.logger import get_logger
from .store import CacheSource, ExecutionRecord, ExecutionStatus

logger = get_logger(__name__)

router = APIRouter(prefix="/executions", tags=["executions"])


class ExecutionCreate(BaseModel):
    function_name: str = Field(..., min_length=1)
    status: ExecutionStatus = ExecutionStatus.SUCCESS
    duration_ms: float = Field(0.0, ge=0.0)
    timestamp_utc: datetime | None = None
    uuid: str | None = None
    span_id: str | None = None
    trace_id: str | None = None
    team: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    input_preview: str | None = None
    output_preview: str | None = None
    cache_source: CacheSource | None = None


class Execution(BaseModel):
    uuid: str
    function_name: str
    status: ExecutionStatus
    duration_ms: float
    timestamp_utc: str
    span_id: str | None = None
    trace_id: str | None = None
    team: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    input_preview: str | None = None
    output_preview: str | None = None
    cache_source: CacheSource | None = None


class ExecutionListResponse(BaseModel):
    items: list[Execution]
    total: int
    limit: int
    offset: int


@router.post("", response_model=Execution)
async def record_execution(
    body: ExecutionCreate,
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Record one execution. A duplicate uuid is rejected with 409."""
    data = body.model_dump()
    data["uuid"] = body.uuid or str(uuid4())
    data["timestamp_utc"] = body.timestamp_utc or backend.clock()
    if body.status == ExecutionStatus.CACHE_HIT and body.cache_source is None:
        data["cache_source"] = CacheSource.STANDARD
    record = ExecutionRecord.from_dict(data)
    backend.store.add_execution(record)
    logger.debug("Recorded execution %s of %s", record.uuid, record.function_name)
    return record.to_dict()


@router.get("", response_model=ExecutionListResponse)
async def list_executions(
    function_name: str | None = Query(None),
    status: ExecutionStatus | None = Query(None),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """List executions, most recent first."""
    records = backend.store.list_executions(function_name=function_name, status=status)
    page = records[offset:offset + limit]
    return {
        "items": [r.to_dict() for r in page],
        "total": len(records),
        "limit": limit,
        "offset": offset,
    }


@router.get("/{uuid}", response_model=Execution)
async def get_execution(
    uuid: str,
    backend: CacheBackend = Depends(get_backend),
    session: Session = Depends(require_session),
):
    """Get one execution."""
    record = backend.store.get_execution(uuid)
    if record is None:
        raise NotFoundError(f"Execution '{uuid}' not found")
    return record.to_dict()
