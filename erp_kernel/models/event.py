"""
Module: erp_kernel.models.event
Responsibility: ORM mirror of the event stock tables: sales events, the
    stock allocated to them from inventory, and time-limited stock
    reservations.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced (by services and the backend's stored functions):
    - ``quantity_sold + quantity_returned <= quantity_allocated``.
    - ``divergence = expected_return - counted_return`` once a return is
      confirmed; positive is a shortage, negative an overage.
    - Allocation and return rows are written by the backend's stored
      functions; this package only updates sale counts and count results.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base, TenantScoped, UUIDString


class EventStock(TenantScoped, Base):
    """A sales event (fair, pop-up store) that receives allocated stock."""

    __tablename__ = "events_stock"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="planned")

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    sales_goal: Mapped[Decimal | None] = mapped_column(nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)


class EventStockAllocation(TenantScoped, Base):
    """Pieces of one inventory row allocated to an event."""

    __tablename__ = "event_stock_allocations"

    __table_args__ = (
        Index("idx_allocation_event", "tenant_id", "event_id"),
    )

    event_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("events_stock.id"),
        nullable=False,
    )

    inventory_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    quantity_allocated: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    quantity_returned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    counted_return: Mapped[int | None] = mapped_column(Integer, nullable=True)

    divergence: Mapped[int | None] = mapped_column(Integer, nullable=True)

    divergence_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    allocated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    allocated_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    return_confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    return_confirmed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)


class StockReservation(TenantScoped, Base):
    """Inventory held for a customer or order until ``expires_at``."""

    __tablename__ = "stock_reservations"

    inventory_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # active | fulfilled | expired | cancelled
    status: Mapped[str | None] = mapped_column(String(20), nullable=True, default="active")

    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reserved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    fulfilled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
