"""
Semantic drift detection.

A function's reference set is the input embeddings of its golden executions
and of its successful executions (the cache entries). New text drifts when
its best cosine similarity to that set falls below the threshold: the input
would not be served from cache and should trigger a fresh computation.

The summary replays that comparison over each function's recent traffic,
comparing every sampled execution against all other reference vectors.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Callable, Optional

import numpy as np
from pydantic import BaseModel

from .app_config import CacheSettings
from .embedding import cosine_distance, is_empty_vector, top_k
from .shared.errors import BadRequestError
from .store import CacheStore, ExecutionRecord, ExecutionStatus


class DriftStatus(str, Enum):
    NORMAL = "NORMAL"
    ANOMALY = "ANOMALY"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    NO_VECTOR = "NO_VECTOR"


class DriftResult(BaseModel):
    is_drift: bool
    similarity: float
    avg_distance: float
    nearest_uuid: str | None = None
    threshold: float
    k: int
    neighbors: int
    input_text: str
    function_name: str
    error: str | None = None


class DriftSummaryItem(BaseModel):
    function_name: str
    status: DriftStatus
    avg_distance: float
    sample_count: int
    drift_count: int
    healthy_count: int
    threshold: float


class DriftSummary(BaseModel):
    items: list[DriftSummaryItem]
    total: int
    window_minutes: int


class DriftDetector:
    """Compares text against a function's golden/cached neighbourhood."""

    def __init__(self, store: CacheStore, settings: CacheSettings, clock: Callable[[], datetime] | None = None):
        self.store = store
        self.settings = settings
        self._clock = clock or (lambda: datetime.now(UTC))

    def _references(self, function_name: str) -> tuple[list[str], np.ndarray]:
        """Execution uuids and stacked vectors of the reference set."""
        uuids = [
            e.uuid
            for e in self.store.list_executions(function_name=function_name, status=ExecutionStatus.SUCCESS)
        ]
        seen = set(uuids)
        for uuid in sorted(self.store.golden_execution_uuids(function_name)):
            if uuid not in seen:
                uuids.append(uuid)
                seen.add(uuid)

        kept: list[str] = []
        vectors: list[np.ndarray] = []
        for uuid in uuids:
            vec = self.store.vector(uuid)
            if vec is not None:
                kept.append(uuid)
                vectors.append(vec)
        if not vectors:
            return [], np.zeros((0, self.store.embedder.dimensions))
        return kept, np.vstack(vectors)

    def simulate(
        self,
        text: str,
        function_name: str,
        threshold: Optional[float] = None,
        k: Optional[int] = None,
    ) -> DriftResult:
        """Would ``text`` be served from the cache of ``function_name``?"""
        threshold = self.settings.drift_threshold if threshold is None else threshold
        k = self.settings.drift_k if k is None else k

        if not text or not text.strip():
            raise BadRequestError("text must not be empty")
        if not function_name or not function_name.strip():
            raise BadRequestError("function_name must not be empty")
        if k < 1:
            raise BadRequestError("k must be at least 1")
        if not 0.0 < threshold <= 1.0:
            raise BadRequestError("threshold must be in (0, 1]")

        query = self.store.embedder.embed(text)
        if is_empty_vector(query):
            raise BadRequestError("text contains no embeddable tokens")

        uuids, matrix = self._references(function_name)
        if not uuids:
            return DriftResult(
                is_drift=True,
                similarity=0.0,
                avg_distance=1.0,
                threshold=threshold,
                k=k,
                neighbors=0,
                input_text=text,
                function_name=function_name,
                error=f"No cached or golden vectors for function '{function_name}'",
            )

        indices, sims = top_k(query, matrix, k)
        best = float(sims[0])
        return DriftResult(
            is_drift=best < threshold,
            similarity=round(best, 4),
            avg_distance=round(float(np.mean(cosine_distance(sims))), 4),
            nearest_uuid=uuids[int(indices[0])],
            threshold=threshold,
            k=k,
            neighbors=len(indices),
            input_text=text,
            function_name=function_name,
        )

    def _summarize(self, function_name: str, since: datetime) -> DriftSummaryItem:
        threshold = self.settings.drift_threshold
        uuids, matrix = self._references(function_name)

        def item(status: DriftStatus, avg: float = 0.0, samples: int = 0, drifted: int = 0) -> DriftSummaryItem:
            return DriftSummaryItem(
                function_name=function_name,
                status=status,
                avg_distance=round(avg, 4),
                sample_count=samples,
                drift_count=drifted,
                healthy_count=samples - drifted,
                threshold=threshold,
            )

        if not uuids:
            # Failed executions never become references, embedded or not
            return item(DriftStatus.NO_VECTOR)

        recent: list[ExecutionRecord] = [
            e
            for e in self.store.list_executions(function_name=function_name, since=since, until=self._clock())
            if self.store.vector(e.uuid) is not None
        ][: self.settings.drift_sample_size]
        if len(recent) < self.settings.drift_min_samples:
            return item(DriftStatus.INSUFFICIENT_DATA, samples=len(recent))

        index_of = {uuid: i for i, uuid in enumerate(uuids)}
        distances = []
        for execution in recent:
            sims = matrix @ self.store.vector(execution.uuid)
            own = index_of.get(execution.uuid)
            if own is not None:
                sims = np.delete(sims, own)
            best = float(sims.max()) if sims.size else 0.0
            distances.append(float(cosine_distance(best)))

        avg_distance = float(np.mean(distances))
        drifted = sum(1 for d in distances if 1.0 - d < threshold)
        status = DriftStatus.ANOMALY if avg_distance > 1.0 - threshold else DriftStatus.NORMAL
        return item(status, avg=avg_distance, samples=len(recent), drifted=drifted)

    def summary(self) -> DriftSummary:
        """Per-function drift over the configured window."""
        window = self.settings.drift_window_minutes
        since = self._clock() - timedelta(minutes=window)
        items = [self._summarize(name, since) for name in self.store.function_names()]
        return DriftSummary(items=items, total=len(items), window_minutes=window)
