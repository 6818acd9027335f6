"""
Root conftest.py for the VectorSurfer cache backend tests.

This file contains shared fixtures and pytest configuration
that applies to all test modules.
"""

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Ensure the repository root is in the path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from surfer_api.app_config import CacheSettings
from surfer_api.backend import CacheBackend, set_backend
from surfer_api.embedding import HashingEmbedder
from surfer_api.store import CacheSource, CacheStore, ExecutionRecord, ExecutionStatus

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)

INVOICE_ACME = "Invoice 1042 from ACME Corp total due 1250 EUR payable within 30 days"
INVOICE_GLOBEX = "Invoice 2208 from Globex GmbH total due 980 EUR payable within 45 days"
INVOICE_INITECH = "Invoice 3310 from Initech LLC total due 4300 USD payable within 15 days"
PASSWORD_RESET = "Reset the password for user account via emailed magic link"


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "api: mark test as going through the HTTP layer",
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running",
    )


def pytest_collection_modifyitems(config, items):
    """Mark tests in *_api.py modules with 'api'."""
    for item in items:
        if str(item.fspath).endswith("_api.py"):
            item.add_marker(pytest.mark.api)


# ============================================================================
# Shared Fixtures
# ============================================================================


class FakeClock:
    """Controllable clock for services that timestamp records."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now = self.now + timedelta(minutes=minutes)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """In-memory settings with default drift parameters."""
    return CacheSettings(persist=False)


@pytest.fixture
def store():
    return CacheStore(embedder=HashingEmbedder(256))


@pytest.fixture
def make_execution():
    """Factory for execution records timestamped relative to NOW."""

    def _make(
        uuid: str,
        function_name: str = "parse_invoice",
        status: ExecutionStatus = ExecutionStatus.SUCCESS,
        minutes_ago: float = 5,
        duration_ms: float = 100.0,
        input_preview: str | None = None,
        cache_source: CacheSource | None = None,
    ) -> ExecutionRecord:
        return ExecutionRecord(
            uuid=uuid,
            function_name=function_name,
            status=status,
            duration_ms=duration_ms,
            timestamp_utc=NOW - timedelta(minutes=minutes_ago),
            input_preview=input_preview,
            cache_source=cache_source,
        )

    return _make


@pytest.fixture
def seeded_store(store, make_execution):
    """Store with a small parse_invoice history.

    e1-e3 are successful invoices, e4 failed, e5 is a cache hit.
    """
    store.add_execution(make_execution("e1", minutes_ago=5, input_preview=INVOICE_ACME))
    store.add_execution(make_execution("e2", minutes_ago=10, input_preview=INVOICE_GLOBEX))
    store.add_execution(make_execution("e3", minutes_ago=20, input_preview=INVOICE_INITECH))
    store.add_execution(
        make_execution(
            "e4",
            status=ExecutionStatus.ERROR,
            minutes_ago=25,
            input_preview="Invoice payload could not be decoded",
        )
    )
    store.add_execution(
        make_execution(
            "e5",
            status=ExecutionStatus.CACHE_HIT,
            minutes_ago=30,
            duration_ms=4.0,
            input_preview=INVOICE_ACME,
            cache_source=CacheSource.STANDARD,
        )
    )
    return store


@pytest.fixture
def backend(settings, seeded_store, clock):
    return CacheBackend(settings, store=seeded_store, clock=clock)


@pytest.fixture
def installed_backend(backend):
    """Install ``backend`` as the process-wide backend for HTTP tests."""
    set_backend(backend)
    yield backend
    set_backend(None)
