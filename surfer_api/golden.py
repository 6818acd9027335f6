"""
Golden dataset registry.

Golden records pin trusted executions of a function as semantic cache
anchors. A record references exactly one execution and an execution can be
golden at most once: ``register`` rejects duplicates with a conflict and
``upsert`` is the explicit overwrite path.
"""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from typing import Callable, Optional
from uuid import uuid4

from pydantic import BaseModel

from .shared.errors import BadRequestError, NotFoundError
from .shared.logger import get_logger
from .store import CacheStore, ExecutionStatus, GoldenRecord

logger = get_logger(__name__)


class GoldenItem(BaseModel):
    """A golden record joined with its execution's outcome."""

    uuid: str
    function_name: str
    execution_uuid: str
    note: str = ""
    tags: list[str] = []
    created_at: str
    status: str | None = None
    duration_ms: float | None = None
    timestamp_utc: str | None = None


class GoldenListResponse(BaseModel):
    items: list[GoldenItem]
    total: int
    limit: int
    offset: int


class GoldenMutationResponse(BaseModel):
    uuid: str
    status: str


class GoldenFunctionStats(BaseModel):
    function_name: str
    count: int
    execution_count: int
    coverage: float


class GoldenStats(BaseModel):
    stats: list[GoldenFunctionStats]
    total: int
    functions_with_golden: int


def _dedupe_tags(tags: Optional[list[str]]) -> list[str]:
    seen: list[str] = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class GoldenRegistry:
    """CRUD over golden records, backed by ``CacheStore``."""

    def __init__(self, store: CacheStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    def _to_item(self, record: GoldenRecord) -> GoldenItem:
        execution = self.store.get_execution(record.execution_uuid)
        return GoldenItem(
            uuid=record.uuid,
            function_name=record.function_name,
            execution_uuid=record.execution_uuid,
            note=record.note,
            tags=record.tags,
            created_at=record.created_at.isoformat(),
            status=execution.status.value if execution else None,
            duration_ms=execution.duration_ms if execution else None,
            timestamp_utc=execution.timestamp_utc.isoformat() if execution else None,
        )

    def list(self, function_name: Optional[str] = None, limit: int = 50, offset: int = 0) -> GoldenListResponse:
        """Golden records, most recently registered first."""
        if limit < 1:
            raise BadRequestError("limit must be at least 1")
        if offset < 0:
            raise BadRequestError("offset must not be negative")
        records = self.store.list_golden(function_name)
        page = records[offset:offset + limit]
        return GoldenListResponse(
            items=[self._to_item(r) for r in page],
            total=len(records),
            limit=limit,
            offset=offset,
        )

    def _resolve_execution(self, execution_uuid: str):
        execution = self.store.get_execution(execution_uuid)
        if execution is None:
            raise NotFoundError(f"Execution '{execution_uuid}' not found")
        if execution.status == ExecutionStatus.ERROR:
            raise BadRequestError(f"Execution '{execution_uuid}' failed and cannot be registered as golden")
        return execution

    def register(
        self,
        execution_uuid: str,
        note: str = "",
        tags: Optional[list[str]] = None,
        subject: str = "anonymous",
    ) -> GoldenMutationResponse:
        """Register an execution as golden."""
        execution = self._resolve_execution(execution_uuid)
        record = GoldenRecord(
            uuid=str(uuid4()),
            function_name=execution.function_name,
            execution_uuid=execution.uuid,
            created_at=self._clock(),
            note=note,
            tags=_dedupe_tags(tags),
        )
        self.store.add_golden(record)
        logger.info(
            "Golden record %s registered for %s (execution %s) by %s",
            record.uuid, record.function_name, execution_uuid, subject,
        )
        return GoldenMutationResponse(uuid=record.uuid, status="registered")

    def upsert(
        self,
        execution_uuid: str,
        note: str = "",
        tags: Optional[list[str]] = None,
        subject: str = "anonymous",
    ) -> GoldenMutationResponse:
        """Register an execution, or overwrite note/tags if it is already golden."""
        execution = self._resolve_execution(execution_uuid)

        def build(existing: Optional[GoldenRecord]) -> GoldenRecord:
            return GoldenRecord(
                uuid=existing.uuid if existing else str(uuid4()),
                function_name=execution.function_name,
                execution_uuid=execution.uuid,
                created_at=existing.created_at if existing else self._clock(),
                note=note,
                tags=_dedupe_tags(tags),
            )

        record, created = self.store.upsert_golden(execution_uuid, build)
        if created:
            logger.info(
                "Golden record %s registered for %s (execution %s) by %s",
                record.uuid, record.function_name, execution_uuid, subject,
            )
            return GoldenMutationResponse(uuid=record.uuid, status="registered")
        logger.info("Golden record %s updated by %s", record.uuid, subject)
        return GoldenMutationResponse(uuid=record.uuid, status="updated")

    def delete(self, uuid: str, subject: str = "anonymous") -> GoldenMutationResponse:
        """Delete a golden record; unknown uuids are a NotFoundError."""
        record = self.store.remove_golden(uuid)
        if record is None:
            raise NotFoundError(f"Golden record '{uuid}' not found")
        logger.info("Golden record %s deleted by %s", uuid, subject)
        return GoldenMutationResponse(uuid=uuid, status="deleted")

    def stats(self) -> GoldenStats:
        """Golden counts and coverage per function."""
        records = self.store.list_golden()
        counts = Counter(r.function_name for r in records)

        stats = []
        for function_name, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            execution_count = sum(
                1
                for e in self.store.list_executions(function_name=function_name)
                if e.status != ExecutionStatus.ERROR
            )
            stats.append(
                GoldenFunctionStats(
                    function_name=function_name,
                    count=count,
                    execution_count=execution_count,
                    coverage=round(count / execution_count, 4) if execution_count else 0.0,
                )
            )

        return GoldenStats(stats=stats, total=len(records), functions_with_golden=len(stats))
