"""
Pytest fixtures for the earnings reconciliation test suite.

Provides:
- Deterministic clock and the packaged default configuration
- In-memory and SQLite-backed store bundles
- ``any_store``: the same test against both store implementations
- Structured log capture
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from earnings_config import get_active_config
from earnings_kernel.db.engine import (
    create_store_engine,
    create_tables,
    drop_tables,
    make_session_factory,
)
from earnings_kernel.domain.clock import DeterministicClock
from earnings_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from earnings_services.memory_store import memory_bundle
from earnings_services.sql_store import sql_bundle

import earnings_services.orm  # noqa: F401  (registers tables on Base.metadata)

from tests.builders import StoreSeeder


# Mid-flight for the standard 2024-01-01 .. 2024-03-01 campaign.
TEST_NOW = datetime(2024, 2, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture earnings logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, aggregator):
            aggregator.create_estimate("order-1")
            logs = captured_logs()
            assert any(r["message"] == "earnings_estimate_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("earnings")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(TEST_NOW)


@pytest.fixture(scope="session")
def config():
    return get_active_config()


@pytest.fixture(scope="session")
def channels(config):
    return config.channel_catalog()


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def memory_store():
    return memory_bundle()


@pytest.fixture
def sql_engine():
    engine = create_store_engine("sqlite://")
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine):
    return sql_bundle(make_session_factory(sql_engine))


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    """Run the requesting test once per store implementation."""
    if request.param == "memory":
        return memory_bundle()
    return request.getfixturevalue("sql_store")


@pytest.fixture
def seed(memory_store):
    """Seeder bound to the in-memory store."""
    return StoreSeeder(memory_store)


@pytest.fixture
def any_seed(any_store):
    """Seeder bound to ``any_store``."""
    return StoreSeeder(any_store)
