"""
Pytest fixtures for the rental engine test suite.

Provides:
- In-memory SQLite engine and session per test (tables created fresh)
- Deterministic clock, default settings, recording notification hook
- Product / customer / order factories
- captured_logs for asserting on structured log records

Environment Variables:
- RENTAL_TEST_DATABASE_URL: run the database tests against another URL
  (e.g. PostgreSQL).  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from rental_config.schema import RentalSettings
from rental_kernel.db.engine import build_engine, create_tables, drop_tables
from rental_kernel.domain.clock import DeterministicClock
from rental_kernel.domain.product import RateCard, RentalProduct
from rental_kernel.domain.validation import CustomerProfile
from rental_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from rental_services.catalog import ProductCatalogService
from rental_services.notifications import RecordingNotificationHook
from rental_services.order_lifecycle import CreateOrderRequest, OrderLifecycleService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite://"


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
    Capture rental_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, lifecycle):
            lifecycle.create(...)
            logs = captured_logs()
            assert any(r["message"] == "rental_order_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("rental_kernel")
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
# Database
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("RENTAL_TEST_DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture
def engine():
    engine = build_engine(get_database_url())
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    session = factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def clock():
    """Fixed at 2024-01-01 09:00 UTC (a Monday)."""
    return DeterministicClock()


@pytest.fixture
def settings():
    return RentalSettings()


@pytest.fixture
def hook():
    return RecordingNotificationHook()


@pytest.fixture
def catalog(session, settings, clock, hook):
    return ProductCatalogService(session, settings, clock, hook=hook)


@pytest.fixture
def lifecycle(session, settings, clock, hook):
    return OrderLifecycleService(session, settings, clock=clock, hook=hook)


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_product(catalog):
    """
    Register a product and (by default) an inventory pool for it.

    ``stock=None`` registers an untracked product.
    """
    counter = {"n": 0}

    def _make(
        stock: int | None = 2,
        daily: Decimal | None = Decimal("1000"),
        weekly: Decimal | None = None,
        monthly: Decimal | None = None,
        alert_threshold: int = 0,
        **overrides,
    ) -> RentalProduct:
        counter["n"] += 1
        fields = {
            "id": uuid4(),
            "code": f"PRD-{counter['n']:03d}",
            "name": f"Test product {counter['n']}",
            "rate_card": RateCard(daily=daily, weekly=weekly, monthly=monthly),
        }
        fields.update(overrides)
        product = RentalProduct(**fields)
        return catalog.register_product(
            product, TEST_ACTOR_ID, initial_stock=stock, alert_threshold=alert_threshold,
        )

    return _make


@pytest.fixture
def customer():
    return CustomerProfile(id=uuid4(), name="Test Customer", email="customer@example.com")


@pytest.fixture
def place_order(lifecycle, customer):
    """Create an order through the lifecycle service."""

    def _place(
        product: RentalProduct,
        start: date,
        end: date,
        quantity: int = 1,
        for_customer: CustomerProfile | None = None,
        **kwargs,
    ):
        request = CreateOrderRequest(
            customer=for_customer or customer,
            product_id=product.id,
            quantity=quantity,
            start_date=start,
            end_date=end,
            **kwargs,
        )
        return lifecycle.create(request, actor_id=TEST_ACTOR_ID)

    return _place
