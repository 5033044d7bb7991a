"""
DTOs -- Immutable records read from the external store.

Responsibility:
    Defines the frozen value records that flow into the pure engines:
    consignment line items, event stock allocations, events, and financial
    transactions.  Selectors build these from ORM rows; engines only ever
    see these records, never ORM entities.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Monetary fields are ``Decimal`` (coerced on construction, absent -> 0).
    - Quantities are ``int`` (absent -> 0).
    - Records are immutable; "changes" are expressed as new records or as
      update DTOs produced by engines.

Failure modes:
    - ValueError on construction with non-numeric amounts or fractional
      quantities.  ``TransactionRecord`` is the exception: a malformed
      amount counts as zero and is logged as ``transaction_amount_malformed``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from erp_kernel.domain.values import to_decimal, to_quantity
from erp_kernel.logging_config import get_logger

logger = get_logger("domain.dtos")


class TransactionType(str, Enum):
    """Direction of a financial transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class DreCategory(str, Enum):
    """Income-statement bucket a transaction is reported under."""

    SALES = "sales"
    OPERATIONAL_COST = "operational_cost"
    COGS = "cogs"
    OTHER = "other"


class ConsignmentStatus(str, Enum):
    """Lifecycle of a consignment as recorded by the store."""

    OPEN = "open"
    SETTLED = "settled"


class PaymentType(str, Enum):
    """How the partner's net payable was settled."""

    CASH = "cash"
    STOCK = "stock"
    MIXED = "mixed"


# =============================================================================
# Consignment
# =============================================================================


@dataclass(frozen=True)
class LineItem:
    """
    One allocated product line of a consignment (or event) being settled.

    ``quantity_sold_now`` is the operator's input for the current settlement;
    the ``*_prior`` fields come from the store.
    """

    id: str
    product_label: str
    quantity_allocated: int
    quantity_sold_prior: int = 0
    quantity_sold_now: int = 0
    quantity_returned_prior: int = 0
    unit_price: Decimal = Decimal("0")
    quantity_used_as_payment_prior: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        for name in (
            "quantity_allocated",
            "quantity_sold_prior",
            "quantity_sold_now",
            "quantity_returned_prior",
            "quantity_used_as_payment_prior",
        ):
            object.__setattr__(self, name, to_quantity(getattr(self, name)))

    @property
    def remaining_before_sale(self) -> int:
        """Pieces still with the partner before this settlement."""
        return (
            self.quantity_allocated
            - self.quantity_sold_prior
            - self.quantity_returned_prior
        )

    @property
    def remaining_after_sale(self) -> int:
        """Pieces left once ``quantity_sold_now`` is applied."""
        return self.remaining_before_sale - self.quantity_sold_now

    def with_sold_now(self, quantity: int) -> LineItem:
        """Return a copy carrying a new sold-now quantity."""
        return replace(self, quantity_sold_now=quantity)


@dataclass(frozen=True)
class ConsignmentRecord:
    """A consignment and its line items, as read for a settlement."""

    id: str
    tenant_id: str
    partner_id: str | None
    status: str | None
    payment_type: str | None
    stock_payment_value: Decimal
    created_at: datetime | None
    items: tuple[LineItem, ...] = field(default_factory=tuple)

    def item(self, item_id: str) -> LineItem | None:
        """Find a line item by id."""
        for line in self.items:
            if line.id == str(item_id):
                return line
        return None


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class EventAllocationRecord:
    """Stock allocated from inventory to a sales event."""

    id: str
    event_id: str
    inventory_id: str
    quantity_allocated: int
    quantity_sold: int = 0
    quantity_returned: int = 0
    counted_return: int | None = None
    divergence: int = 0
    divergence_notes: str | None = None
    allocated_at: datetime | None = None
    product_label: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "event_id", str(self.event_id))
        object.__setattr__(self, "inventory_id", str(self.inventory_id))
        object.__setattr__(self, "quantity_allocated", to_quantity(self.quantity_allocated))
        object.__setattr__(self, "quantity_sold", to_quantity(self.quantity_sold))
        object.__setattr__(self, "quantity_returned", to_quantity(self.quantity_returned))
        object.__setattr__(self, "divergence", to_quantity(self.divergence))

    @property
    def pending(self) -> int:
        """Pieces neither sold nor returned yet."""
        return self.quantity_allocated - self.quantity_sold - self.quantity_returned


@dataclass(frozen=True)
class EventRecord:
    """A sales event (fair, pop-up, market) that receives allocated stock."""

    id: str
    name: str
    start_date: date | None = None
    end_date: date | None = None
    location: str | None = None
    status: str = "planned"
    sales_goal: Decimal | None = None


# =============================================================================
# Financial transactions
# =============================================================================


def _amount_or_zero(value, record_id) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError:
        amount = None
    if amount is None or not amount.is_finite():
        logger.warning(
            "transaction_amount_malformed",
            extra={"transaction_id": record_id, "amount": repr(value)},
        )
        return Decimal("0")
    return amount


@dataclass(frozen=True)
class TransactionRecord:
    """
    A financial transaction as consumed by the DRE reducer.

    ``dre_category`` is normalized so that an empty string is treated the
    same as an absent category.  An absent, unparseable or non-finite
    ``amount`` is zero.
    """

    type: str | None
    amount: Decimal = Decimal("0")
    dre_category: str | None = None
    cash_impact: bool | None = None
    date: date | None = None
    category: str | None = None
    event_id: str | None = None
    id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _amount_or_zero(self.amount, self.id))
        if isinstance(self.type, Enum):
            object.__setattr__(self, "type", self.type.value)
        if isinstance(self.dre_category, Enum):
            object.__setattr__(self, "dre_category", self.dre_category.value)
        if not self.dre_category:
            object.__setattr__(self, "dre_category", None)
        if self.event_id is not None:
            object.__setattr__(self, "event_id", str(self.event_id))

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME.value

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE.value
