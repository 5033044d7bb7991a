"""
erp_services.return_reconciliation_service -- Blind count of event returns.

Responsibility:
    Open a blind-count session over an event's pending allocations and,
    once the operator confirms it, return the counted pieces to inventory
    and record the count result on each allocation.

Architecture position:
    Services -- the state machine lives in ``erp_engines.blind_count``;
    this module only loads the lines and persists the confirmed outcome.

Invariants enforced:
    - Only allocations with pending pieces are counted.
    - The ledger is asked to return ``min(counted, expected)`` pieces, and
      only when that is positive; any overage is kept as a negative
      divergence rather than returned.
    - Every counted line is re-read under a row lock, scoped to the tenant
      and the event, before the first ledger call.  A line whose pending
      pieces moved since ``begin`` fails the whole confirmation.
    - All ledger calls and row updates of one confirmation commit together.

Failure modes:
    - RecordNotFoundError for an unknown event, or a counted line that is
      not one of the event's allocations.
    - StaleCountError when a sale or return landed between ``begin`` and
      ``confirm``; the operator has to count again.
    - InvalidTransitionError when persisting a session that is still being
      counted.
    - RemoteProcedureError / BatchWriteError from the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from erp_engines.blind_count import (
    Confirmed,
    CountLine,
    CountSession,
    Counting,
    Review,
    confirm,
    start_count,
)
from erp_engines.divergence import DivergenceSummary
from erp_kernel.db.base import as_uuid, require_tenant
from erp_kernel.domain.clock import Clock
from erp_kernel.exceptions import InvalidTransitionError, RecordNotFoundError, StaleCountError
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.event import EventStockAllocation
from erp_kernel.selectors.event_selector import EventSelector
from erp_services.base import BaseService
from erp_services.stock_ledger import StockLedger

logger = get_logger("services.return_reconciliation")


@dataclass(frozen=True)
class ReconciliationResult:
    event_id: str
    summary: DivergenceSummary
    returned_quantities: dict[str, int]


class ReturnReconciliationService(BaseService):
    """Blind-count reconciliation of stock coming back from an event."""

    def __init__(self, session: Session, ledger: StockLedger, clock: Clock | None = None):
        super().__init__(session, clock)
        self._ledger = ledger
        self._selector = EventSelector(session)

    def begin(self, tenant_id: UUID | str, event_id: UUID | str) -> Counting:
        """Start a blind count over the event's allocations still pending."""
        tenant = require_tenant(tenant_id, "ReturnReconciliationService.begin")
        if self._selector.get_event(tenant, event_id) is None:
            raise RecordNotFoundError("event", event_id)
        lines = [
            CountLine(
                id=a.id,
                label=a.product_label,
                expected_quantity=a.pending,
            )
            for a in self._selector.allocations_for_event(tenant, event_id)
            if a.pending > 0
        ]
        return start_count(lines)

    def confirm(
        self,
        tenant_id: UUID | str,
        event_id: UUID | str,
        session_state: CountSession,
        actor_id: UUID | str | None = None,
    ) -> ReconciliationResult:
        """
        Persist a reviewed (or already confirmed) count.

        A ``Review`` session is confirmed first; a ``Counting`` session is
        rejected.  Nothing is returned to inventory unless every line still
        belongs to ``event_id`` and still has the pending pieces it was
        counted against.
        """
        tenant = require_tenant(tenant_id, "ReturnReconciliationService.confirm")
        if isinstance(session_state, Review):
            session_state = confirm(session_state)
        if not isinstance(session_state, Confirmed):
            raise InvalidTransitionError(session_state.name, "persist the count")
        if self._selector.get_event(tenant, event_id) is None:
            raise RecordNotFoundError("event", event_id)

        summary = session_state.summary
        notes = {line.id: line.notes for line in session_state.lines}
        returned: dict[str, int] = {}

        with LogContext.bind(tenant_id=str(tenant), actor_id=actor_id):
            with self._write_batch(
                "event_return_reconciliation",
                event_id=str(event_id),
                line_count=len(summary.items),
                total_divergence=summary.total_divergence,
            ):
                current = self._selector.lock_allocations(
                    tenant, event_id, [item.id for item in summary.items]
                )
                for item in summary.items:
                    allocation = current.get(item.id)
                    if allocation is None:
                        raise RecordNotFoundError("event_stock_allocation", item.id)
                    if allocation.pending != item.expected_quantity:
                        raise StaleCountError(item.id, item.expected_quantity, allocation.pending)

                confirmed_at = self.clock.now()
                for item in summary.items:
                    to_return = min(item.counted_quantity, item.expected_quantity)
                    if to_return > 0:
                        self._ledger.return_stock(tenant, item.id, to_return)
                        returned[item.id] = to_return

                    row = self.session.get(EventStockAllocation, as_uuid(item.id))
                    row.counted_return = item.counted_quantity
                    row.divergence = item.divergence
                    row.divergence_notes = notes.get(item.id)
                    row.return_confirmed_at = confirmed_at
                    row.return_confirmed_by = as_uuid(actor_id) if actor_id else None

            if summary.has_divergence:
                logger.warning(
                    "event_return_divergence",
                    extra={
                        "event_id": str(event_id),
                        "total_shortage": summary.total_shortage,
                        "total_overage": summary.total_overage,
                    },
                )

        return ReconciliationResult(
            event_id=str(event_id),
            summary=summary,
            returned_quantities=returned,
        )
