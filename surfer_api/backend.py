"""
Backend container wiring the cache services to one store.

Routers obtain the process-wide backend through the ``get_backend``
FastAPI dependency; tests install their own instance with ``set_backend``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Callable, Optional

from .analytics import CacheAnalyticsService
from .app_config import CacheSettings, get_settings
from .drift import DriftDetector
from .embedding import HashingEmbedder
from .golden import GoldenRegistry
from .recommender import CandidateRecommender
from .shared.logger import get_logger
from .store import CacheStore

logger = get_logger(__name__)


class CacheBackend:
    """Cache analytics, golden registry, recommender and drift detector over one store."""

    def __init__(
        self,
        settings: CacheSettings,
        store: Optional[CacheStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.clock = clock or (lambda: datetime.now(UTC))
        self.store = store or CacheStore(
            path=settings.resolve_data_file(),
            embedder=HashingEmbedder(settings.embedding_dimensions),
        )
        self.analytics = CacheAnalyticsService(self.store, clock=self.clock)
        self.golden = GoldenRegistry(self.store, clock=self.clock)
        self.recommender = CandidateRecommender(self.store, settings)
        self.drift = DriftDetector(self.store, settings, clock=self.clock)


_backend: Optional[CacheBackend] = None


def get_backend() -> CacheBackend:
    """Return the process-wide backend, creating it from settings on first use."""
    global _backend
    if _backend is None:
        settings = get_settings()
        _backend = CacheBackend(settings)
        logger.info("Cache backend ready (store: %s)", _backend.store.path or "in-memory")
    return _backend


def set_backend(backend: Optional[CacheBackend]) -> None:
    """Replace (or reset with None) the process-wide backend."""
    global _backend
    _backend = backend
