"""Read-only selectors returning DTOs from the external store."""

from erp_kernel.selectors.base import BaseSelector
from erp_kernel.selectors.consignment_selector import ConsignmentSelector
from erp_kernel.selectors.event_selector import EventSelector
from erp_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "BaseSelector",
    "ConsignmentSelector",
    "EventSelector",
    "TransactionSelector",
]
