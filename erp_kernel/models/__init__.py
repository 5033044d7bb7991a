"""ORM mirror of the external store tables."""

from erp_kernel.models.consignment import (
    CommissionStatement,
    Consignment,
    ConsignmentItem,
)
from erp_kernel.models.event import (
    EventStock,
    EventStockAllocation,
    StockReservation,
)
from erp_kernel.models.transaction import Transaction

__all__ = [
    "Consignment",
    "ConsignmentItem",
    "CommissionStatement",
    "EventStock",
    "EventStockAllocation",
    "StockReservation",
    "Transaction",
]
