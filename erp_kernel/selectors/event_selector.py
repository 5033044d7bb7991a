"""
Module: erp_kernel.selectors.event_selector
Responsibility: Read-only access to sales events and the stock allocated to
    them, as ``EventRecord`` / ``EventAllocationRecord`` DTOs.
Architecture position: Kernel > Selectors.

Failure modes:
    - Returns None / empty lists when nothing matches the tenant and id.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.base import as_uuid
from erp_kernel.domain.dtos import EventAllocationRecord, EventRecord
from erp_kernel.domain.values import to_decimal
from erp_kernel.models.event import EventStock, EventStockAllocation
from erp_kernel.selectors.base import BaseSelector


def allocation_from_row(row: EventStockAllocation) -> EventAllocationRecord:
    """Build an ``EventAllocationRecord`` from a stored allocation."""
    return EventAllocationRecord(
        id=str(row.id),
        event_id=str(row.event_id),
        inventory_id=str(row.inventory_id),
        quantity_allocated=row.quantity_allocated,
        quantity_sold=row.quantity_sold,
        quantity_returned=row.quantity_returned,
        counted_return=row.counted_return,
        divergence=row.divergence,
        divergence_notes=row.divergence_notes,
        allocated_at=row.allocated_at,
        product_label=row.product_name or "",
    )


class EventSelector(BaseSelector[EventStock]):
    """Selector for events and their stock allocations."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _event_to_dto(self, event: EventStock) -> EventRecord:
        return EventRecord(
            id=str(event.id),
            name=event.name,
            start_date=event.start_date,
            end_date=event.end_date,
            location=event.location,
            status=event.status,
            sales_goal=(
                to_decimal(event.sales_goal) if event.sales_goal is not None else None
            ),
        )

    def get_event(self, tenant_id: UUID | str, event_id: UUID | str) -> EventRecord | None:
        tenant = self._tenant(tenant_id, "EventSelector.get_event")
        stmt = (
            select(EventStock)
            .where(EventStock.tenant_id == tenant)
            .where(EventStock.id == as_uuid(event_id))
        )
        event = self.session.execute(stmt).scalar_one_or_none()
        return self._event_to_dto(event) if event is not None else None

    def list_events(self, tenant_id: UUID | str, limit: int | None = None) -> list[EventRecord]:
        """Events of the tenant, most recent start date first."""
        tenant = self._tenant(tenant_id, "EventSelector.list_events")
        stmt = (
            select(EventStock)
            .where(EventStock.tenant_id == tenant)
            .order_by(EventStock.start_date.desc(), EventStock.name)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self._event_to_dto(e) for e in self.session.execute(stmt).scalars().all()]

    def get_allocation(
        self,
        tenant_id: UUID | str,
        allocation_id: UUID | str,
        for_update: bool = False,
    ) -> EventAllocationRecord | None:
        tenant = self._tenant(tenant_id, "EventSelector.get_allocation")
        stmt = (
            select(EventStockAllocation)
            .where(EventStockAllocation.tenant_id == tenant)
            .where(EventStockAllocation.id == as_uuid(allocation_id))
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = self.session.execute(stmt).scalar_one_or_none()
        return allocation_from_row(row) if row is not None else None

    def lock_allocations(
        self,
        tenant_id: UUID | str,
        event_id: UUID | str,
        allocation_ids: Iterable[UUID | str],
    ) -> dict[str, EventAllocationRecord]:
        """
        Lock the given allocations of one event and re-read them from the
        store, keyed by id.  Ids belonging to another event or tenant are
        absent from the result.
        """
        tenant = self._tenant(tenant_id, "EventSelector.lock_allocations")
        ids = [as_uuid(a) for a in allocation_ids]
        if not ids:
            return {}
        stmt = (
            select(EventStockAllocation)
            .where(EventStockAllocation.tenant_id == tenant)
            .where(EventStockAllocation.event_id == as_uuid(event_id))
            .where(EventStockAllocation.id.in_(ids))
            .order_by(EventStockAllocation.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        rows = self.session.execute(stmt).scalars().all()
        return {str(r.id): allocation_from_row(r) for r in rows}

    def allocations_for_events(
        self,
        tenant_id: UUID | str,
        event_ids: Iterable[UUID | str] | None = None,
    ) -> list[EventAllocationRecord]:
        """
        Allocations of the given events (all events when ``event_ids`` is
        None), in allocation order.
        """
        tenant = self._tenant(tenant_id, "EventSelector.allocations_for_events")
        stmt = select(EventStockAllocation).where(EventStockAllocation.tenant_id == tenant)
        if event_ids is not None:
            ids = [as_uuid(e) for e in event_ids]
            if not ids:
                return []
            stmt = stmt.where(EventStockAllocation.event_id.in_(ids))
        stmt = stmt.order_by(EventStockAllocation.allocated_at, EventStockAllocation.id)
        return [allocation_from_row(r) for r in self.session.execute(stmt).scalars().all()]

    def allocations_for_event(
        self,
        tenant_id: UUID | str,
        event_id: UUID | str,
    ) -> list[EventAllocationRecord]:
        return self.allocations_for_events(tenant_id, [event_id])

    def recent_divergences(self, tenant_id: UUID | str, limit: int) -> list[EventAllocationRecord]:
        """Most recently allocated rows whose confirmed return diverged."""
        tenant = self._tenant(tenant_id, "EventSelector.recent_divergences")
        stmt = (
            select(EventStockAllocation)
            .where(EventStockAllocation.tenant_id == tenant)
            .where(EventStockAllocation.divergence.is_not(None))
            .where(EventStockAllocation.divergence != 0)
            .order_by(EventStockAllocation.allocated_at.desc(), EventStockAllocation.id)
            .limit(limit)
        )
        return [allocation_from_row(r) for r in self.session.execute(stmt).scalars().all()]
