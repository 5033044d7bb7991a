"""
Module: erp_kernel.selectors.consignment_selector
Responsibility: Read-only access to consignments and their product lines,
    converted to ``ConsignmentRecord`` / ``LineItem`` DTOs for the
    settlement calculator.
Architecture position: Kernel > Selectors.

Mapping from store columns to ``LineItem``:
    quantity_allocated        <- quantity
    quantity_sold_prior       <- sold
    quantity_returned_prior   <- quantity - sold - remaining (never negative)
    quantity_used_as_payment  <- used_as_payment
    quantity_sold_now         <- 0 (set by the caller)
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from erp_kernel.db.base import as_uuid
from erp_kernel.domain.dtos import ConsignmentRecord, LineItem
from erp_kernel.domain.values import to_decimal
from erp_kernel.models.consignment import Consignment, ConsignmentItem
from erp_kernel.selectors.base import BaseSelector


def line_item_from_row(item: ConsignmentItem) -> LineItem:
    """Build a ``LineItem`` from a stored consignment line."""
    quantity = item.quantity or 0
    sold = item.sold or 0
    remaining = item.remaining if item.remaining is not None else quantity - sold
    return LineItem(
        id=str(item.id),
        product_label=item.product_name,
        quantity_allocated=quantity,
        quantity_sold_prior=sold,
        quantity_returned_prior=max(0, quantity - sold - remaining),
        unit_price=to_decimal(item.unit_price),
        quantity_used_as_payment_prior=item.used_as_payment or 0,
    )


class ConsignmentSelector(BaseSelector[Consignment]):
    """
    Selector for consignment queries.

    Guarantees:
        - Lines are eagerly loaded and returned in product-name order.
        - Only rows of the given tenant are visible.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _to_dto(self, consignment: Consignment) -> ConsignmentRecord:
        return ConsignmentRecord(
            id=str(consignment.id),
            tenant_id=str(consignment.tenant_id),
            partner_id=str(consignment.partner_id) if consignment.partner_id else None,
            status=consignment.status,
            payment_type=consignment.payment_type,
            stock_payment_value=to_decimal(consignment.stock_payment_value),
            created_at=consignment.created_at,
            items=tuple(line_item_from_row(i) for i in consignment.items),
        )

    def get(
        self,
        tenant_id: UUID | str,
        consignment_id: UUID | str,
        for_update: bool = False,
    ) -> ConsignmentRecord | None:
        """
        Fetch one consignment with its lines, or None.

        With ``for_update`` the consignment row stays locked until the
        caller's transaction ends and the lines are re-read from the store,
        replacing anything the session already held.
        """
        tenant = self._tenant(tenant_id, "ConsignmentSelector.get")
        stmt = (
            select(Consignment)
            .options(selectinload(Consignment.items))
            .where(Consignment.tenant_id == tenant)
            .where(Consignment.id == as_uuid(consignment_id))
        )
        if for_update:
            stmt = stmt.with_for_update(of=Consignment).execution_options(populate_existing=True)
        consignment = self.session.execute(stmt).scalar_one_or_none()
        if consignment is None:
            return None
        return self._to_dto(consignment)

    def get_item(
        self,
        tenant_id: UUID | str,
        item_id: UUID | str,
        for_update: bool = False,
    ) -> tuple[str, LineItem] | None:
        """
        Fetch one line and the id of its consignment, or None.

        With ``for_update`` the parent consignment is locked first, so a
        line is never read while a settlement of the same consignment is
        in flight.
        """
        tenant = self._tenant(tenant_id, "ConsignmentSelector.get_item")
        stmt = (
            select(ConsignmentItem)
            .join(Consignment, ConsignmentItem.consignment_id == Consignment.id)
            .where(Consignment.tenant_id == tenant)
            .where(ConsignmentItem.id == as_uuid(item_id))
        )
        if for_update:
            self.session.execute(
                select(Consignment.id)
                .join(ConsignmentItem, ConsignmentItem.consignment_id == Consignment.id)
                .where(Consignment.tenant_id == tenant)
                .where(ConsignmentItem.id == as_uuid(item_id))
                .with_for_update(of=Consignment)
            ).all()
            stmt = stmt.execution_options(populate_existing=True)
        item = self.session.execute(stmt).scalar_one_or_none()
        if item is None:
            return None
        return str(item.consignment_id), line_item_from_row(item)

    def list_for_partner(
        self,
        tenant_id: UUID | str,
        partner_id: UUID | str,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> list[ConsignmentRecord]:
        """
        Consignments sent to ``partner_id``, optionally bounded by creation
        time (both bounds inclusive), oldest first.
        """
        tenant = self._tenant(tenant_id, "ConsignmentSelector.list_for_partner")
        stmt = (
            select(Consignment)
            .options(selectinload(Consignment.items))
            .where(Consignment.tenant_id == tenant)
            .where(Consignment.partner_id == as_uuid(partner_id))
        )
        if created_from is not None:
            stmt = stmt.where(Consignment.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(Consignment.created_at <= created_to)
        stmt = stmt.order_by(Consignment.created_at)

        return [self._to_dto(c) for c in self.session.execute(stmt).scalars().all()]
