"""
Module: erp_kernel.models.transaction
Responsibility: ORM mirror of the ``transactions`` table, the flat
    financial ledger that feeds the DRE (income statement) and event
    profitability reports.
Architecture position: Kernel > Models.  May import from db/base.py only.

Notes:
    Most columns are nullable because the store accepts sparse rows; readers
    treat an absent amount as zero and an empty ``dre_category`` as absent.
"""

from datetime import date as date_type
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base, TenantScoped, UUIDString


class Transaction(TenantScoped, Base):
    """One income or expense record."""

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transaction_date", "tenant_id", "date"),
        Index("idx_transaction_event", "tenant_id", "event_id"),
    )

    # income | expense
    type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Free-text cost bucket shown in reports
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # sales | operational_cost | cogs | other
    dre_category: Mapped[str | None] = mapped_column(String(30), nullable=True)

    cash_impact: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    date: Mapped[date_type | None] = mapped_column(Date, nullable=True)

    event_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    related_sale_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
