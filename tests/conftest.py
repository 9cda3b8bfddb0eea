"""
Pytest fixtures for the shop kernel test suite.

Provides:
- Structured logging configuration and log capture
- A deterministic clock and seeded random source
- The default seed state (loaded through shop_config)
- Services wired to a seeded EntityStore
- A ShopApplication with in-memory persistence and synchronous saves
- An in-memory SQLite engine for the SQL-backed stores
"""

import json
import logging
import random
from io import StringIO

import pytest

from shop_config import get_active_config
from shop_config.bridges import build_seed_state
from shop_kernel.app import ShopApplication, ShopSettings
from shop_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from shop_kernel.domain.clock import DeterministicClock
from shop_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from shop_kernel.services.assignment_tracker import AssignmentTracker
from shop_kernel.services.auth_service import AuthService
from shop_kernel.services.billing_ledger import BillingLedger
from shop_kernel.services.catalog_service import CatalogService
from shop_kernel.services.inventory_ledger import InventoryLedger
from shop_kernel.services.persistence import InMemorySnapshotStore
from shop_kernel.services.repair_workflow import RepairWorkflow
from shop_kernel.store import EntityStore


ADMIN_ID = "E001"
MANAGER_ID = "E002"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
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
    Capture shop_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.approve_transaction(...)
            logs = captured_logs()
            assert any(r["message"] == "transaction_approved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("shop_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock, randomness and seed data
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture(scope="session")
def shop_configuration():
    """The packaged default configuration."""
    return get_active_config()


@pytest.fixture
def seed_state(shop_configuration):
    """First-run FullState built from the default seed."""
    return build_seed_state(shop_configuration)


# =============================================================================
# Store and service fixtures
# =============================================================================


@pytest.fixture
def store(seed_state):
    return EntityStore(seed_state)


@pytest.fixture
def ledger(store, deterministic_clock):
    return InventoryLedger(store, deterministic_clock)


@pytest.fixture
def tracker(store, deterministic_clock):
    return AssignmentTracker(store, deterministic_clock)


@pytest.fixture
def repairs(store, ledger, deterministic_clock):
    return RepairWorkflow(store, ledger, deterministic_clock)


@pytest.fixture
def billing(store, deterministic_clock):
    return BillingLedger(store, deterministic_clock)


@pytest.fixture
def catalog(store, deterministic_clock, rng):
    return CatalogService(store, deterministic_clock, rng=rng)


@pytest.fixture
def auth(store, deterministic_clock, rng):
    return AuthService(store, clock=deterministic_clock, rng=rng)


# =============================================================================
# Application fixtures
# =============================================================================


@pytest.fixture
def snapshot_store():
    return InMemorySnapshotStore()


@pytest.fixture
def app(seed_state, snapshot_store, deterministic_clock, rng):
    """ShopApplication over in-memory stores; saves run synchronously."""
    application = ShopApplication(
        settings=ShopSettings(background_saves=False),
        seed=seed_state,
        snapshot_store=snapshot_store,
        clock=deterministic_clock,
        rng=rng,
    )
    yield application
    application.close()


@pytest.fixture
def admin_app(app):
    """The application with the seeded Admin logged in."""
    assert app.login("admin@company.com", "password") is not None
    return app


@pytest.fixture
def manager_app(app):
    """The application with the seeded Manager logged in."""
    assert app.login("manager@company.com", "password") is not None
    return app


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def sql_session_factory():
    """Fresh in-memory SQLite database with the kernel tables."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield get_session_factory()
    reset_engine()
