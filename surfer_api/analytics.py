"""Cache hit/miss analytics over a time range."""

from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime, timedelta
from typing import Callable

import numpy as np
from pydantic import BaseModel

from .shared.errors import BadRequestError
from .store import CacheSource, CacheStore, ExecutionStatus


class CacheAnalytics(BaseModel):
    """Aggregate cache counters for one time range."""

    total_executions: int = 0
    cache_hit_count: int = 0
    cache_miss_count: int = 0
    cache_hit_rate: float = 0.0
    golden_hit_count: int = 0
    standard_hit_count: int = 0
    golden_ratio: float = 0.0
    time_saved_ms: float = 0.0
    avg_cached_duration_ms: float = 0.0
    time_range_minutes: int


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class CacheAnalyticsService:
    """Aggregates the execution log into cache statistics."""

    def __init__(self, store: CacheStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    def get_analytics(self, range_minutes: int) -> CacheAnalytics:
        """Statistics for executions in the last ``range_minutes`` minutes."""
        if range_minutes <= 0:
            raise BadRequestError("range must be a positive number of minutes")

        now = self._clock()
        try:
            since: datetime | None = now - timedelta(minutes=range_minutes)
        except OverflowError:
            # Range reaches back past year 1: nothing is excluded
            since = None
        executions = self.store.list_executions(since=since, until=now)
        if not executions:
            return CacheAnalytics(time_range_minutes=range_minutes)

        hits = [e for e in executions if e.status == ExecutionStatus.CACHE_HIT]
        golden_hits = sum(1 for e in hits if e.cache_source == CacheSource.GOLDEN)

        # Baseline cost of a real call, per function
        uncached: dict[str, list[float]] = defaultdict(list)
        for e in executions:
            if e.status == ExecutionStatus.SUCCESS:
                uncached[e.function_name].append(e.duration_ms)
        baselines = {name: float(np.mean(durations)) for name, durations in uncached.items()}

        time_saved = 0.0
        for hit in hits:
            baseline = baselines.get(hit.function_name)
            if baseline is not None:
                time_saved += max(0.0, baseline - hit.duration_ms)

        avg_cached = float(np.mean([h.duration_ms for h in hits])) if hits else 0.0

        return CacheAnalytics(
            total_executions=len(executions),
            cache_hit_count=len(hits),
            cache_miss_count=len(executions) - len(hits),
            cache_hit_rate=_percent(len(hits), len(executions)),
            golden_hit_count=golden_hits,
            standard_hit_count=len(hits) - golden_hits,
            golden_ratio=_percent(golden_hits, len(hits)),
            time_saved_ms=round(time_saved, 2),
            avg_cached_duration_ms=round(avg_cached, 2),
            time_range_minutes=range_minutes,
        )
