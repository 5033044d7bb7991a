"""
erp_services.event_stock_service -- Event stock allocation, sales and returns.

Responsibility:
    Operator actions on stock sent to a sales event: allocate pieces from
    inventory, record pieces sold at the event, return unsold pieces, and
    release expired reservations.  Physical stock moves go through the
    injected ``StockLedger``; sale counts are written directly.

Invariants enforced:
    - ``1 <= quantity``; allocation never exceeds the inventory's available
      stock; sales and returns never exceed the allocation's pending pieces.
    - Each operation is one transaction.  Sales and returns lock the
      allocation row and check pending pieces against the locked row.

Failure modes:
    - MissingSelectionError when the event or inventory row is not chosen.
    - InvalidQuantityError / InsufficientRemainingError for bad quantities.
    - RecordNotFoundError for an unknown event or allocation.
    - RemoteProcedureError when the backend rejects a stock move.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from erp_kernel.db.base import as_uuid, require_tenant
from erp_kernel.domain.clock import Clock
from erp_kernel.domain.dtos import EventAllocationRecord
from erp_kernel.exceptions import (
    InsufficientRemainingError,
    InvalidQuantityError,
    MissingSelectionError,
    RecordNotFoundError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.event import EventStockAllocation
from erp_kernel.selectors.event_selector import EventSelector
from erp_services.base import BaseService
from erp_services.stock_ledger import StockLedger

logger = get_logger("services.event_stock")


def _require_quantity(quantity: int) -> int:
    if quantity is None or int(quantity) < 1:
        raise InvalidQuantityError("quantity", quantity, minimum=1)
    return int(quantity)


class EventStockService(BaseService):
    """Moves stock between inventory and sales events."""

    def __init__(self, session: Session, ledger: StockLedger, clock: Clock | None = None):
        super().__init__(session, clock)
        self._ledger = ledger
        self._selector = EventSelector(session)

    def _pending_allocation(self, tenant, allocation_id, quantity) -> EventAllocationRecord:
        allocation = self._selector.get_allocation(tenant, allocation_id, for_update=True)
        if allocation is None:
            raise RecordNotFoundError("event_stock_allocation", allocation_id)
        if quantity > allocation.pending:
            raise InsufficientRemainingError(allocation.id, quantity, allocation.pending)
        return allocation

    def allocate(
        self,
        tenant_id: UUID | str,
        event_id: UUID | str | None,
        inventory_id: UUID | str | None,
        quantity: int,
        actor_id: UUID | str | None = None,
    ) -> str:
        """Allocate ``quantity`` pieces of an inventory row to an event."""
        tenant = require_tenant(tenant_id, "EventStockService.allocate")
        if not event_id:
            raise MissingSelectionError("event_id")
        if not inventory_id:
            raise MissingSelectionError("inventory_id")
        qty = _require_quantity(quantity)

        with LogContext.bind(tenant_id=str(tenant), actor_id=actor_id):
            if self._selector.get_event(tenant, event_id) is None:
                raise RecordNotFoundError("event", event_id)
            available = self._ledger.available_stock(tenant, inventory_id)
            if qty > available:
                raise InsufficientRemainingError(str(inventory_id), qty, available)

            with self._write_batch(
                "event_stock_allocation",
                event_id=str(event_id),
                inventory_id=str(inventory_id),
                quantity=qty,
            ):
                allocation_id = self._ledger.allocate(tenant, event_id, inventory_id, qty)
            return allocation_id

    def register_sale(
        self,
        tenant_id: UUID | str,
        allocation_id: UUID | str,
        quantity: int,
        actor_id: UUID | str | None = None,
    ) -> int:
        """Record pieces sold at the event; returns the new sold total."""
        tenant = require_tenant(tenant_id, "EventStockService.register_sale")
        qty = _require_quantity(quantity)
        with LogContext.bind(tenant_id=str(tenant), actor_id=actor_id):
            with self._write_batch("event_sale", allocation_id=str(allocation_id), quantity=qty):
                allocation = self._pending_allocation(tenant, allocation_id, qty)
                row = self.session.get(EventStockAllocation, as_uuid(allocation.id))
                row.quantity_sold = allocation.quantity_sold + qty
            return allocation.quantity_sold + qty

    def return_stock(
        self,
        tenant_id: UUID | str,
        allocation_id: UUID | str,
        quantity: int,
        actor_id: UUID | str | None = None,
    ) -> None:
        """Send unsold pieces back to inventory through the ledger."""
        tenant = require_tenant(tenant_id, "EventStockService.return_stock")
        qty = _require_quantity(quantity)
        with LogContext.bind(tenant_id=str(tenant), actor_id=actor_id):
            with self._write_batch("event_stock_return", allocation_id=str(allocation_id), quantity=qty):
                allocation = self._pending_allocation(tenant, allocation_id, qty)
                self._ledger.return_stock(tenant, allocation.id, qty)

    def expire_reservations(self, tenant_id: UUID | str) -> None:
        tenant = require_tenant(tenant_id, "EventStockService.expire_reservations")
        with self._write_batch("reservation_expiry", tenant_id=str(tenant)):
            self._ledger.expire_reservations(tenant)
