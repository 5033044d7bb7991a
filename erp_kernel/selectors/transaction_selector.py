"""
Module: erp_kernel.selectors.transaction_selector
Responsibility: Read-only access to financial transactions as
    ``TransactionRecord`` DTOs for the DRE and event profitability reducers.
Architecture position: Kernel > Selectors.
"""

from datetime import date
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.base import as_uuid
from erp_kernel.domain.dtos import TransactionRecord
from erp_kernel.models.transaction import Transaction
from erp_kernel.selectors.base import BaseSelector


class TransactionSelector(BaseSelector[Transaction]):
    """
    Selector for transaction queries.

    Guarantees:
        - Results are ordered by date, most recent first.
        - Rows with no date are included only when no lower bound is given.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _to_dto(self, row: Transaction) -> TransactionRecord:
        return TransactionRecord(
            id=str(row.id),
            type=row.type,
            amount=row.amount,
            dre_category=row.dre_category,
            cash_impact=row.cash_impact,
            date=row.date,
            category=row.category,
            event_id=str(row.event_id) if row.event_id else None,
        )

    def list_transactions(
        self,
        tenant_id: UUID | str,
        date_from: date | None = None,
        date_to: date | None = None,
        category: str | None = None,
    ) -> list[TransactionRecord]:
        """Transactions of the tenant, optionally bounded (inclusive)."""
        tenant = self._tenant(tenant_id, "TransactionSelector.list_transactions")
        stmt = select(Transaction).where(Transaction.tenant_id == tenant)
        if date_from is not None:
            stmt = stmt.where(Transaction.date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Transaction.date <= date_to)
        if category is not None:
            stmt = stmt.where(Transaction.category == category)
        stmt = stmt.order_by(Transaction.date.desc(), Transaction.id)
        return [self._to_dto(r) for r in self.session.execute(stmt).scalars().all()]

    def list_for_events(
        self,
        tenant_id: UUID | str,
        event_ids: Iterable[UUID | str] | None = None,
    ) -> list[TransactionRecord]:
        """Transactions linked to an event (any event when ``event_ids`` is None)."""
        tenant = self._tenant(tenant_id, "TransactionSelector.list_for_events")
        stmt = (
            select(Transaction)
            .where(Transaction.tenant_id == tenant)
            .where(Transaction.event_id.is_not(None))
        )
        if event_ids is not None:
            ids = [as_uuid(e) for e in event_ids]
            if not ids:
                return []
            stmt = stmt.where(Transaction.event_id.in_(ids))
        stmt = stmt.order_by(Transaction.date.desc(), Transaction.id)
        return [self._to_dto(r) for r in self.session.execute(stmt).scalars().all()]
