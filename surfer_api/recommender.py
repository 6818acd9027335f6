"""
Golden candidate recommender.

Candidates are picked by greedy farthest-point sampling over the input
embeddings of a function's successful, non-golden executions:

1. With no golden records yet, the first pick is the execution closest to
   the centroid of the pool, i.e. the most typical input (STEADY).
2. Every further pick is the execution farthest from its nearest neighbour
   among the golden records and the picks so far. Its score is that cosine
   distance.
3. A pick at least ``1 - drift_threshold`` away from everything already
   covered would drift today and is labelled DISCOVERY; closer picks are
   STEADY.

Pool order is most recent first, so ties favour recent executions.
"""

from __future__ import annotations

from enum import Enum

import numpy as np
from pydantic import BaseModel

from .app_config import CacheSettings
from .embedding import cosine_distance
from .shared.errors import BadRequestError
from .store import CacheStore, ExecutionStatus


class CandidateType(str, Enum):
    STEADY = "STEADY"
    DISCOVERY = "DISCOVERY"


class GoldenCandidate(BaseModel):
    execution_uuid: str
    function_name: str
    score: float
    reason: str
    candidate_type: CandidateType
    duration_ms: float | None = None
    status: str | None = None
    timestamp_utc: str | None = None


class CandidateResponse(BaseModel):
    function_name: str
    candidates: list[GoldenCandidate]
    total: int


class CandidateRecommender:
    """Proposes executions worth adding to the golden dataset."""

    def __init__(self, store: CacheStore, settings: CacheSettings):
        self.store = store
        self.settings = settings

    def recommend(self, function_name: str, limit: int = 5) -> CandidateResponse:
        if not function_name.strip():
            raise BadRequestError("function_name must not be empty")
        if limit < 1:
            raise BadRequestError("limit must be at least 1")

        golden_uuids = self.store.golden_execution_uuids(function_name)
        pool = [
            e
            for e in self.store.list_executions(function_name=function_name, status=ExecutionStatus.SUCCESS)
            if e.uuid not in golden_uuids and self.store.vector(e.uuid) is not None
        ]
        if not pool:
            return CandidateResponse(function_name=function_name, candidates=[], total=0)

        pool_vectors = np.vstack([self.store.vector(e.uuid) for e in pool])
        anchors = [v for v in (self.store.vector(u) for u in golden_uuids) if v is not None]
        discovery_distance = 1.0 - self.settings.drift_threshold

        remaining = np.ones(len(pool), dtype=bool)
        candidates: list[GoldenCandidate] = []

        if not anchors:
            centroid = pool_vectors.mean(axis=0)
            norm = np.linalg.norm(centroid)
            if norm > 0:
                centroid = centroid / norm
            sims = pool_vectors @ centroid
            first = int(np.argmax(sims))
            remaining[first] = False
            anchors.append(pool_vectors[first])
            candidates.append(
                self._candidate(
                    pool[first],
                    score=float(sims[first]),
                    candidate_type=CandidateType.STEADY,
                    reason="closest to the typical input of this function",
                )
            )

        # Distance from each pool member to its nearest covered vector
        nearest = np.min(cosine_distance(pool_vectors @ np.vstack(anchors).T), axis=1)

        while len(candidates) < limit and remaining.any():
            masked = np.where(remaining, nearest, -np.inf)
            pick = int(np.argmax(masked))
            distance = float(nearest[pick])
            remaining[pick] = False

            if distance >= discovery_distance:
                candidate_type = CandidateType.DISCOVERY
                reason = f"input is {distance:.3f} away from every golden record and would drift"
            else:
                candidate_type = CandidateType.STEADY
                reason = f"input adds coverage at distance {distance:.3f} from the nearest golden record"

            candidates.append(
                self._candidate(pool[pick], score=distance, candidate_type=candidate_type, reason=reason)
            )
            nearest = np.minimum(nearest, cosine_distance(pool_vectors @ pool_vectors[pick]))

        return CandidateResponse(function_name=function_name, candidates=candidates, total=len(candidates))

    @staticmethod
    def _candidate(execution, score: float, candidate_type: CandidateType, reason: str) -> GoldenCandidate:
        return GoldenCandidate(
            execution_uuid=execution.uuid,
            function_name=execution.function_name,
            score=round(score, 4),
            reason=reason,
            candidate_type=candidate_type,
            duration_ms=execution.duration_ms,
            status=execution.status.value,
            timestamp_utc=execution.timestamp_utc.isoformat(),
        )
