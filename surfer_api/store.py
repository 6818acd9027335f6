"""
Execution log and golden record storage.

``CacheStore`` keeps executions, their input embeddings and the golden
records in memory. When created with a path it persists executions and
golden records to a JSON file after every mutation and reloads them on
start. Embeddings are not persisted: the embedder is deterministic, so they
are rebuilt from ``input_preview`` on load.

All access goes through one re-entrant lock, which also makes the golden
uniqueness check and insert atomic.
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

import numpy as np

from .embedding import HashingEmbedder, is_empty_vector
from .shared.errors import ConflictError
from .shared.logger import get_logger

logger = get_logger(__name__)


class ExecutionStatus(str, Enum):
    """Outcome of an observed function execution."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    CACHE_HIT = "CACHE_HIT"


class CacheSource(str, Enum):
    """Cache tier that served a CACHE_HIT execution."""

    GOLDEN = "golden"
    STANDARD = "standard"


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        ts = value
    elif value:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    else:
        ts = datetime.now(UTC)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


@dataclass
class ExecutionRecord:
    """One observed function execution."""

    uuid: str
    function_name: str
    status: ExecutionStatus
    duration_ms: float
    timestamp_utc: datetime
    span_id: Optional[str] = None
    trace_id: Optional[str] = None
    team: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    input_preview: Optional[str] = None
    output_preview: Optional[str] = None
    cache_source: Optional[CacheSource] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["timestamp_utc"] = self.timestamp_utc.isoformat()
        data["cache_source"] = self.cache_source.value if self.cache_source else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionRecord":
        cache_source = data.get("cache_source")
        return cls(
            uuid=data["uuid"],
            function_name=data["function_name"],
            status=ExecutionStatus(data.get("status", ExecutionStatus.SUCCESS.value)),
            duration_ms=float(data.get("duration_ms", 0.0)),
            timestamp_utc=_parse_timestamp(data.get("timestamp_utc")),
            span_id=data.get("span_id"),
            trace_id=data.get("trace_id"),
            team=data.get("team"),
            error_code=data.get("error_code"),
            error_message=data.get("error_message"),
            input_preview=data.get("input_preview"),
            output_preview=data.get("output_preview"),
            cache_source=CacheSource(cache_source) if cache_source else None,
        )


@dataclass
class GoldenRecord:
    """A curated execution used as a semantic cache anchor."""

    uuid: str
    function_name: str
    execution_uuid: str
    created_at: datetime
    note: str = ""
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GoldenRecord":
        return cls(
            uuid=data["uuid"],
            function_name=data["function_name"],
            execution_uuid=data["execution_uuid"],
            created_at=_parse_timestamp(data.get("created_at")),
            note=data.get("note", ""),
            tags=list(data.get("tags", [])),
        )


class CacheStore:
    """Thread-safe store for executions, embeddings and golden records.

    Args:
        path: JSON file used for persistence, or None to stay in memory.
        embedder: Embedder used for execution inputs.
    """

    def __init__(self, path: Optional[Path] = None, embedder: Optional[HashingEmbedder] = None):
        self.path = Path(path) if path else None
        self.embedder = embedder or HashingEmbedder()
        self._lock = threading.RLock()
        self._executions: Dict[str, ExecutionRecord] = {}
        self._vectors: Dict[str, np.ndarray] = {}
        self._golden: Dict[str, GoldenRecord] = {}
        self._golden_by_execution: Dict[str, str] = {}
        if self.path is not None:
            self._load()

    # ============================================================================
    # Persistence
    # ============================================================================

    def _load(self) -> None:
        """Load executions and golden records from the JSON file."""
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            executions = [ExecutionRecord.from_dict(e) for e in data.get("executions") or []]
            golden = [GoldenRecord.from_dict(g) for g in data.get("golden") or []]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Failed to load store file %s, starting empty: %s", self.path, e)
            return

        with self._lock:
            for record in executions:
                self._index_execution(record)
            for record in golden:
                if record.execution_uuid not in self._executions:
                    logger.warning(
                        "Dropping golden record %s: execution %s is unknown",
                        record.uuid,
                        record.execution_uuid,
                    )
                    continue
                self._golden[record.uuid] = record
                self._golden_by_execution[record.execution_uuid] = record.uuid
        logger.info(
            "Loaded %d executions and %d golden records from %s",
            len(self._executions),
            len(self._golden),
            self.path,
        )

    def save(self) -> None:
        """Write the store to its JSON file (no-op for in-memory stores).

        The snapshot goes to a temporary file next to the target which then
        replaces it, so an interrupted write leaves the previous file intact.
        """
        if self.path is None:
            return
        with self._lock:
            data = {
                "executions": [e.to_dict() for e in self._executions.values()],
                "golden": [g.to_dict() for g in self._golden.values()],
                "last_updated": datetime.now(UTC).isoformat(),
            }
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.parent / f".{self.path.name}.tmp-{uuid4().hex}"
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            finally:
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    # ============================================================================
    # Executions
    # ============================================================================

    def _index_execution(self, record: ExecutionRecord) -> None:
        self._executions[record.uuid] = record
        if record.input_preview:
            vec = self.embedder.embed(record.input_preview)
            if not is_empty_vector(vec):
                self._vectors[record.uuid] = vec

    def add_execution(self, record: ExecutionRecord) -> ExecutionRecord:
        """Record an execution; raises ConflictError on a duplicate uuid."""
        with self._lock:
            if record.uuid in self._executions:
                raise ConflictError(f"Execution '{record.uuid}' already exists")
            self._index_execution(record)
            self.save()
        return record

    def get_execution(self, uuid: str) -> Optional[ExecutionRecord]:
        with self._lock:
            return self._executions.get(uuid)

    def list_executions(
        self,
        function_name: Optional[str] = None,
        status: Optional[ExecutionStatus] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[ExecutionRecord]:
        """Executions matching all given filters, most recent first."""
        with self._lock:
            records = list(self._executions.values())
        if function_name is not None:
            records = [r for r in records if r.function_name == function_name]
        if status is not None:
            records = [r for r in records if r.status == status]
        if since is not None:
            records = [r for r in records if r.timestamp_utc >= since]
        if until is not None:
            records = [r for r in records if r.timestamp_utc <= until]
        records.sort(key=lambda r: (r.timestamp_utc, r.uuid), reverse=True)
        return records

    def function_names(self) -> List[str]:
        with self._lock:
            return sorted({r.function_name for r in self._executions.values()})

    def vector(self, execution_uuid: str) -> Optional[np.ndarray]:
        """Input embedding of an execution, if it has embeddable input."""
        with self._lock:
            return self._vectors.get(execution_uuid)

    # ============================================================================
    # Golden records
    # ============================================================================

    def add_golden(self, record: GoldenRecord) -> GoldenRecord:
        """Insert a golden record; raises ConflictError if the execution is already golden."""
        with self._lock:
            existing = self._golden_by_execution.get(record.execution_uuid)
            if existing is not None:
                raise ConflictError(
                    f"Execution '{record.execution_uuid}' is already registered as golden",
                    details={"uuid": existing},
                )
            self._golden[record.uuid] = record
            self._golden_by_execution[record.execution_uuid] = record.uuid
            self.save()
        return record

    def upsert_golden(
        self,
        execution_uuid: str,
        build: Callable[[Optional[GoldenRecord]], GoldenRecord],
    ) -> Tuple[GoldenRecord, bool]:
        """Insert or replace the golden record of an execution in one step.

        ``build`` receives the current record (or None) and returns the one
        to store. Returns the stored record and whether it was created.
        """
        with self._lock:
            existing = self.golden_for_execution(execution_uuid)
            record = build(existing)
            if existing is not None and existing.uuid != record.uuid:
                del self._golden[existing.uuid]
            self._golden[record.uuid] = record
            self._golden_by_execution[execution_uuid] = record.uuid
            self.save()
        return record, existing is None

    def remove_golden(self, uuid: str) -> Optional[GoldenRecord]:
        """Delete a golden record and return it, or None if unknown."""
        with self._lock:
            record = self._golden.pop(uuid, None)
            if record is None:
                return None
            self._golden_by_execution.pop(record.execution_uuid, None)
            self.save()
        return record

    def get_golden(self, uuid: str) -> Optional[GoldenRecord]:
        with self._lock:
            return self._golden.get(uuid)

    def golden_for_execution(self, execution_uuid: str) -> Optional[GoldenRecord]:
        with self._lock:
            uuid = self._golden_by_execution.get(execution_uuid)
            return self._golden.get(uuid) if uuid else None

    def list_golden(self, function_name: Optional[str] = None) -> List[GoldenRecord]:
        """Golden records, most recently created first."""
        with self._lock:
            records = list(self._golden.values())
        if function_name is not None:
            records = [r for r in records if r.function_name == function_name]
        records.sort(key=lambda r: (r.created_at, r.uuid), reverse=True)
        return records

    def golden_execution_uuids(self, function_name: Optional[str] = None) -> set[str]:
        return {r.execution_uuid for r in self.list_golden(function_name)}
