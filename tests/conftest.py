"""
Pytest fixtures for the ERP settlement core test suite.

Provides:
- Structured logging configuration and log capture
- An in-memory SQLite store with every table created
- Deterministic clock, tenant and actor ids
- A fake ``StockLedger`` standing in for the backend's stock procedures
- Row factories for consignments, events, allocations and transactions
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from erp_kernel.db.base import as_uuid
from erp_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from erp_kernel.domain.clock import DeterministicClock
from erp_kernel.exceptions import RemoteProcedureError
from erp_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from erp_kernel.models.consignment import Consignment, ConsignmentItem
from erp_kernel.models.event import EventStock, EventStockAllocation, StockReservation
from erp_kernel.models.transaction import Transaction
from erp_services.stock_ledger import StockLedger


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
    Capture erp_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "settlement_calculated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("erp_kernel")
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
# Store fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory store per test."""
    eng = init_engine_from_url("sqlite://")
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    s = get_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def actor_id() -> UUID:
    return uuid4()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 3, 15, 10, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Fake stock ledger
# =============================================================================


class FakeStockLedger(StockLedger):
    """
    In-session stand-in for the backend stock procedures.

    ``allocate`` inserts the allocation row, ``return_stock`` bumps
    ``quantity_returned`` and ``expire_reservations`` marks overdue active
    reservations expired, as the real functions do.  Every call is recorded.
    """

    def __init__(self, session, available: dict | None = None, now: datetime | None = None):
        self.session = session
        self.now = now or datetime(2024, 3, 15, 10, 0, 0, tzinfo=timezone.utc)
        self.available: dict[str, int] = dict(available or {})
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    def _check(self, name: str) -> None:
        if name in self.fail_on:
            raise RemoteProcedureError(name, "rejected by fake ledger")

    def allocate(self, tenant_id, event_id, inventory_id, quantity) -> str:
        self.calls.append(("allocate", str(event_id), str(inventory_id), quantity))
        self._check("allocate_stock_to_event")
        row = EventStockAllocation(
            tenant_id=as_uuid(tenant_id),
            event_id=as_uuid(event_id),
            inventory_id=as_uuid(inventory_id),
            quantity_allocated=quantity,
            quantity_sold=0,
            quantity_returned=0,
        )
        self.session.add(row)
        self.session.flush()
        key = str(inventory_id)
        self.available[key] = self.available.get(key, 0) - quantity
        return str(row.id)

    def return_stock(self, tenant_id, allocation_id, quantity) -> None:
        self.calls.append(("return", str(allocation_id), quantity))
        self._check("return_event_stock")
        row = self.session.get(EventStockAllocation, as_uuid(allocation_id))
        row.quantity_returned = row.quantity_returned + quantity
        key = str(row.inventory_id)
        self.available[key] = self.available.get(key, 0) + quantity

    def expire_reservations(self, tenant_id) -> None:
        self.calls.append(("expire",))
        self._check("expire_stock_reservations")
        rows = self.session.execute(
            select(StockReservation).where(
                StockReservation.tenant_id == as_uuid(tenant_id),
                StockReservation.status == "active",
            )
        ).scalars()
        cutoff = self.now.replace(tzinfo=None)
        for row in rows:
            if row.expires_at.replace(tzinfo=None) < cutoff:
                row.status = "expired"

    def available_stock(self, tenant_id, inventory_id) -> int:
        self.calls.append(("available", str(inventory_id)))
        return self.available.get(str(inventory_id), 0)


@pytest.fixture
def ledger(session, clock) -> FakeStockLedger:
    return FakeStockLedger(session, now=clock.now())


# =============================================================================
# Row factories
# =============================================================================


@pytest.fixture
def make_consignment(session, tenant_id):
    """
    Insert a consignment with its lines.

    Each line is a dict with ``name``, ``quantity``, ``unit_price`` and
    optional ``sold``, ``remaining`` and ``used_as_payment``.
    """

    def _make(
        lines,
        partner_id=None,
        created_at=None,
        tenant=None,
        stock_payment_value=None,
    ) -> Consignment:
        consignment = Consignment(
            tenant_id=tenant or tenant_id,
            partner_id=partner_id or uuid4(),
            status="open",
            stock_payment_value=stock_payment_value,
            created_at=created_at or datetime(2024, 3, 1, 9, 0, 0),
        )
        session.add(consignment)
        session.flush()
        for line in lines:
            sold = line.get("sold", 0)
            session.add(
                ConsignmentItem(
                    consignment_id=consignment.id,
                    product_name=line["name"],
                    quantity=line["quantity"],
                    sold=sold,
                    remaining=line.get("remaining", line["quantity"] - sold),
                    unit_price=Decimal(str(line["unit_price"])) if line.get("unit_price") is not None else None,
                    used_as_payment=line.get("used_as_payment", 0),
                )
            )
        session.commit()
        session.refresh(consignment)
        return consignment

    return _make


@pytest.fixture
def make_event(session, tenant_id):
    def _make(name="Spring Fair", start_date=date(2024, 3, 10), sales_goal=None, tenant=None) -> EventStock:
        event = EventStock(
            tenant_id=tenant or tenant_id,
            name=name,
            start_date=start_date,
            status="active",
            sales_goal=sales_goal,
        )
        session.add(event)
        session.commit()
        return event

    return _make


@pytest.fixture
def make_allocation(session, tenant_id):
    def _make(
        event,
        quantity_allocated,
        quantity_sold=0,
        quantity_returned=0,
        divergence=None,
        product_name="Linen dress",
        allocated_at=None,
        tenant=None,
    ) -> EventStockAllocation:
        row = EventStockAllocation(
            tenant_id=tenant or tenant_id,
            event_id=event.id,
            inventory_id=uuid4(),
            product_name=product_name,
            quantity_allocated=quantity_allocated,
            quantity_sold=quantity_sold,
            quantity_returned=quantity_returned,
            divergence=divergence,
            allocated_at=allocated_at or datetime(2024, 3, 9, 8, 0, 0),
        )
        session.add(row)
        session.commit()
        return row

    return _make


@pytest.fixture
def make_transaction(session, tenant_id):
    def _make(
        type,
        amount,
        dre_category=None,
        cash_impact=None,
        txn_date=date(2024, 3, 5),
        category=None,
        event_id=None,
        tenant=None,
    ) -> Transaction:
        row = Transaction(
            tenant_id=tenant or tenant_id,
            type=type,
            amount=Decimal(str(amount)) if amount is not None else None,
            dre_category=dre_category,
            cash_impact=cash_impact,
            date=txn_date,
            category=category,
            event_id=event_id,
        )
        session.add(row)
        session.commit()
        return row

    return _make
