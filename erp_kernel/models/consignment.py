"""
Module: erp_kernel.models.consignment
Responsibility: ORM mirror of the consignment tables of the external store:
    consignments sent to resale partners, their product lines, and the
    commission statements issued to representatives.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced (by services, not the ORM):
    - ``sold + remaining <= quantity`` for every line; the difference is
      stock that came back or was taken as payment.
    - ``used_as_payment`` only ever grows.
    - A consignment becomes ``settled`` once, with its ``payment_type``
      recording the composition of the payout.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import Base, TenantScoped, UUIDString


class Consignment(TenantScoped, Base):
    """A batch of pieces sent to a resale partner."""

    __tablename__ = "consignments"

    __table_args__ = (
        Index("idx_consignment_partner", "tenant_id", "partner_id"),
    )

    partner_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    status: Mapped[str | None] = mapped_column(String(20), nullable=True, default="open")

    # cash | stock | mixed, set on settlement
    payment_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    stock_payment_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    items: Mapped[list["ConsignmentItem"]] = relationship(
        back_populates="consignment",
        order_by="ConsignmentItem.product_name",
    )

    def __repr__(self) -> str:
        return f"<Consignment {self.id} {self.status}>"


class ConsignmentItem(Base):
    """One product line of a consignment."""

    __tablename__ = "consignment_items"

    consignment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("consignments.id"),
        nullable=False,
        index=True,
    )

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Pieces sent
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    used_as_payment: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)

    consignment: Mapped[Consignment] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<ConsignmentItem {self.product_name} {self.sold}/{self.quantity}>"


class CommissionStatement(TenantScoped, Base):
    """Commission owed to a representative for a closed sales period."""

    __tablename__ = "commission_statements"

    __table_args__ = (
        Index("idx_commission_statement_rep", "tenant_id", "representative_id"),
    )

    representative_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    period_start: Mapped[date] = mapped_column(Date, nullable=False)

    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    total_sales: Mapped[Decimal] = mapped_column(nullable=False)

    # Stored as a fraction (0.40), as the store does
    commission_rate: Mapped[Decimal] = mapped_column(nullable=False)

    commission_amount: Mapped[Decimal] = mapped_column(nullable=False)

    net_amount: Mapped[Decimal] = mapped_column(nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
