"""
erp_services.stock_ledger -- Injected capability for backend stock procedures.

Responsibility:
    Wrap the hosted backend's stored functions that move physical stock
    (allocate to an event, return from an event, expire reservations,
    report available stock) behind an interface, so orchestration can be
    tested against a fake ledger.  The procedures themselves are NOT
    reimplemented here; only their ``(id, quantity)`` contracts are used.

Architecture position:
    Services -- boundary adapter to the external store.

Invariants enforced:
    - Every call takes an explicit ``tenant_id`` (recorded in logs; the
      backend derives row ownership from the authenticated session).
    - ``SqlFunctionStockLedger`` runs inside the caller's session, so a
      procedure call commits or rolls back with the surrounding batch.

Failure modes:
    - RemoteProcedureError when the backend rejects a call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from erp_kernel.exceptions import RemoteProcedureError
from erp_kernel.logging_config import get_logger

logger = get_logger("services.stock_ledger")


class StockLedger(ABC):
    """Stock movements owned by the backend."""

    @abstractmethod
    def allocate(
        self,
        tenant_id: UUID | str,
        event_id: UUID | str,
        inventory_id: UUID | str,
        quantity: int,
    ) -> str:
        """Move ``quantity`` pieces from inventory to an event; returns the allocation id."""

    @abstractmethod
    def return_stock(self, tenant_id: UUID | str, allocation_id: UUID | str, quantity: int) -> None:
        """Return ``quantity`` pieces of an allocation to inventory."""

    @abstractmethod
    def expire_reservations(self, tenant_id: UUID | str) -> None:
        """Release every reservation past its expiry."""

    @abstractmethod
    def available_stock(self, tenant_id: UUID | str, inventory_id: UUID | str) -> int:
        """Pieces of an inventory row that are neither reserved nor allocated."""


class SqlFunctionStockLedger(StockLedger):
    """
    ``StockLedger`` backed by the PostgreSQL functions of the hosted store:
    ``allocate_stock_to_event``, ``return_event_stock``,
    ``expire_stock_reservations`` and ``get_available_stock``.
    """

    def __init__(self, session: Session):
        self._session = session

    def _call(self, procedure: str, sql: str, params: dict, tenant_id):
        logger.info(
            "stock_procedure_called",
            extra={"procedure": procedure, "tenant_id": str(tenant_id), **{
                k: str(v) for k, v in params.items()
            }},
        )
        try:
            return self._session.execute(text(sql), params)
        except DBAPIError as e:
            reason = str(e.orig) if e.orig is not None else str(e)
            logger.warning(
                "stock_procedure_failed",
                extra={"procedure": procedure, "reason": reason},
            )
            raise RemoteProcedureError(procedure, reason) from e

    def allocate(self, tenant_id, event_id, inventory_id, quantity) -> str:
        result = self._call(
            "allocate_stock_to_event",
            "SELECT allocate_stock_to_event(:p_event_id, :p_inventory_id, :p_quantity)",
            {
                "p_event_id": str(event_id),
                "p_inventory_id": str(inventory_id),
                "p_quantity": int(quantity),
            },
            tenant_id,
        )
        return str(result.scalar_one())

    def return_stock(self, tenant_id, allocation_id, quantity) -> None:
        self._call(
            "return_event_stock",
            "SELECT return_event_stock(:p_allocation_id, :p_quantity_returned)",
            {"p_allocation_id": str(allocation_id), "p_quantity_returned": int(quantity)},
            tenant_id,
        )

    def expire_reservations(self, tenant_id) -> None:
        self._call(
            "expire_stock_reservations",
            "SELECT expire_stock_reservations()",
            {},
            tenant_id,
        )

    def available_stock(self, tenant_id, inventory_id) -> int:
        result = self._call(
            "get_available_stock",
            "SELECT get_available_stock(:p_inventory_id)",
            {"p_inventory_id": str(inventory_id)},
            tenant_id,
        )
        return int(result.scalar_one() or 0)
