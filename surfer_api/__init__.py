"""
API package for the VectorSurfer cache backend.

This package provides the REST API endpoints and services for:
- Cache analytics (analytics.py)
- Golden dataset registry (golden.py)
- Golden candidate recommendation (recommender.py)
- Drift detection (drift.py)
- Execution log storage (store.py, executions.py)
- Bearer token auth (auth.py)
- System health and info (system.py)
- A typed HTTP client for all of the above (client.py)
"""

from .backend import CacheBackend, get_backend, set_backend
from .store import CacheStore, ExecutionRecord, ExecutionStatus, GoldenRecord

__all__ = [
    "CacheBackend",
    "get_backend",
    "set_backend",
    "CacheStore",
    "ExecutionRecord",
    "ExecutionStatus",
    "GoldenRecord",
]
