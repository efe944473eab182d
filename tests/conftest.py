"""
Pytest fixtures for the resale reconciliation test suite.

Provides:
- A fresh in-memory SQLite database per test (tables created, immutability
  listeners registered)
- A session and a SqlAlchemyStore bound to it
- Services wired to a DeterministicClock
- Order / customer factories
- Structured log capture

Services never commit; the ``session`` fixture rolls back at teardown and
the engine is disposed, so nothing leaks between tests.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from resale_config.schema import BillingConfig, LedgerConfig, MatchingConfig
from resale_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from resale_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from resale_kernel.domain.clock import DeterministicClock
from resale_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from resale_kernel.services import (
    InvoiceService,
    LedgerService,
    OrderService,
    ReconciliationService,
)
from resale_kernel.store.sqlalchemy_store import SqlAlchemyStore

TEST_ACTOR_ID = uuid4()
TEST_DB_URL = "sqlite:///:memory:"


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
    Capture resale_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger_service):
            ledger_service.record_payment(...)
            logs = captured_logs()
            assert any(r["message"] == "ledger_payment_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("resale_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory database with every table, one per test."""
    eng = init_engine_from_url(TEST_DB_URL)
    create_tables()
    register_immutability_listeners()
    yield eng
    unregister_immutability_listeners()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    try:
        sess.rollback()
    finally:
        sess.close()


@pytest.fixture
def store(session) -> SqlAlchemyStore:
    return SqlAlchemyStore(session)


# =============================================================================
# Time and identity
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def seller_id():
    return uuid4()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def order_service(store, deterministic_clock) -> OrderService:
    return OrderService(store, clock=deterministic_clock)


@pytest.fixture
def invoice_service(store, deterministic_clock) -> InvoiceService:
    return InvoiceService(store, BillingConfig(), clock=deterministic_clock)


@pytest.fixture
def reconciliation_service(store) -> ReconciliationService:
    return ReconciliationService(store, MatchingConfig())


@pytest.fixture
def ledger_service(store, deterministic_clock) -> LedgerService:
    return LedgerService(store, LedgerConfig(), clock=deterministic_clock)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def create_order(order_service, seller_id, test_actor_id):
    """
    Order factory.  Defaults give profit = 1000 - 700 - 200 = 100.

    Usage::

        order = create_order("101", status="delivered", seller_price="2000")
    """
    counter = {"n": 0}

    def _create(reference: str | None = None, **overrides):
        counter["n"] += 1
        fields = {
            "seller_id": seller_id,
            "seller_reference_number": reference or str(1000 + counter["n"]),
            "product_codes": "A1",
            "seller_price": Decimal("1000"),
            "shipper_price": Decimal("700"),
            "delivery_charge": Decimal("200"),
            "status": "pending",
            "city": "Lahore",
            "actor_id": test_actor_id,
        }
        fields.update(overrides)
        return order_service.create_order(**fields)

    return _create


@pytest.fixture
def ledger_customer(ledger_service, test_actor_id):
    return ledger_service.create_customer(
        name="Customer C",
        phone="03001234567",
        city="Karachi",
        party="party 1",
        actor_id=test_actor_id,
    )


@pytest.fixture
def day():
    """``day(n)`` is the n-th of January 2024."""
    return lambda n: date(2024, 1, n)


@pytest.fixture
def make_order_record(seller_id):
    """
    OrderRecord builder for the pure engines (no database).

    Profit is computed from the components unless given explicitly.
    """
    from resale_engines.profit import calculate_order_profit
    from resale_kernel.domain.dtos import OrderRecord
    from resale_kernel.domain.order_status import normalize_status

    def _make(
        reference: str = "1",
        status: str = "delivered",
        seller_price: str = "1000",
        shipper_price: str | None = "700",
        delivery_charge: str = "200",
        profit: str | None = None,
        **overrides,
    ) -> OrderRecord:
        sp = Decimal(seller_price)
        ship = None if shipper_price is None else Decimal(shipper_price)
        dc = Decimal(delivery_charge)
        fields = {
            "id": uuid4(),
            "seller_id": seller_id,
            "seller_reference_number": reference,
            "product_codes": "A1",
            "status": normalize_status(status),
            "seller_price": sp,
            "shipper_price": ship,
            "delivery_charge": dc,
            "profit": (
                Decimal(profit) if profit is not None
                else calculate_order_profit(sp, ship, dc)
            ),
        }
        fields.update(overrides)
        return OrderRecord(**fields)

    return _make
