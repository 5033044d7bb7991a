"""
erp_engines.settlement -- Consignment settlement and commission calculation.

Responsibility:
    Turn the operator's "sold now" quantities over a set of consignment (or
    event) line items into settlement totals: gross sold value, commission,
    net payable, the value taken as stock payment, and the cash still owed.
    Also derives the per-line deltas to write back, the payment type label,
    the commission note, and commission statements for representatives.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import erp_kernel/domain, erp_kernel/exceptions and logging.

Invariants enforced:
    - Chained rounding: every line value is rounded, the sum is rounded, and
      every derived amount is rounded again before being combined further.
    - ``cash_payable >= 0``: stock payment in excess of the net payable is
      dropped, not carried forward (kept for compatibility with existing
      settlements; the dropped amount is exposed as ``excess_stock_payment``).
    - ``0 <= commission <= total_sold_value`` for rates in [0, 100].
    - The calculator never raises on quantities; ``validate_settlement`` is
      the guard callers run before committing.

Failure modes:
    - SettlementValidationError from ``validate_settlement`` aggregating
      every per-line problem found.
    - InvalidCommissionRateError from ``validate_commission_rate``.

Usage:
    from erp_engines.settlement import SettlementCalculator, validate_settlement

    items = validate_settlement(lines, Decimal("40"), sold_now={"a": 3, "b": 2})
    totals = SettlementCalculator().calculate(
        line_items=items,
        commission_rate_percent=Decimal("40"),
    )
    totals.cash_payable  # Decimal("126.00") when a is 50.00 and b is 30.00
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Sequence

from erp_kernel.domain.dtos import LineItem, PaymentType
from erp_kernel.domain.values import HUNDRED, ZERO, round2, to_decimal, to_quantity
from erp_kernel.exceptions import (
    InsufficientRemainingError,
    InvalidCommissionRateError,
    InvalidQuantityError,
    SettlementValidationError,
    StockPaymentExceedsRemainingError,
    UnknownLineItemError,
    ValidationError,
)
from erp_kernel.logging_config import get_logger
from erp_engines.tracer import traced_engine

logger = get_logger("engines.settlement")

StockPaymentAllocation = Mapping[str, int]


@dataclass(frozen=True)
class SettlementTotals:
    """Monetary outcome of a settlement, all values rounded to cents."""

    total_sold_value: Decimal
    commission: Decimal
    net_payable: Decimal
    stock_payment_value: Decimal
    cash_payable: Decimal
    commission_rate_percent: Decimal = Decimal("40")

    @property
    def excess_stock_payment(self) -> Decimal:
        """Stock-payment value above the net payable, which is not credited."""
        return max(ZERO, round2(self.stock_payment_value - self.net_payable))

    @property
    def payment_type(self) -> PaymentType:
        return payment_type_for(self)


@dataclass(frozen=True)
class LineItemUpdate:
    """Absolute column values to write back for one line."""

    id: str
    sold: int
    remaining: int
    used_as_payment: int
    sold_now: int
    used_as_payment_now: int


@dataclass(frozen=True)
class CommissionStatementDraft:
    """Commission owed to a representative, before it is persisted."""

    units_sold: int
    total_sales: Decimal
    commission_rate: Decimal  # fraction, e.g. 0.4
    commission_amount: Decimal
    net_amount: Decimal


def _stock_quantities(
    stock_payment: StockPaymentAllocation | None,
    stock_payment_enabled: bool,
) -> dict[str, int]:
    if not stock_payment_enabled or not stock_payment:
        return {}
    return {str(k): to_quantity(v) for k, v in stock_payment.items()}


class SettlementCalculator:
    """
    Pure settlement calculator.

    Contract:
        No I/O, no database access, fully deterministic.

    Guarantees:
        - ``line_value = round2(sold_now * unit_price)``;
          ``total_sold_value = round2(sum(line_value))``.
        - ``stock_payment_value = round2(sum(round2(qty * unit_price)))`` over
          allocation entries, only when stock payment is enabled.  Entries
          for ids not among ``line_items`` contribute nothing.
        - ``commission = round2(total_sold_value * rate / 100)``.
        - ``net_payable = round2(total_sold_value - commission)``.
        - ``cash_payable = round2(max(0, net_payable - stock_payment_value))``.
    """

    @traced_engine(
        "settlement",
        "1.0",
        fingerprint_fields=(
            "line_items",
            "commission_rate_percent",
            "stock_payment",
            "stock_payment_enabled",
        ),
    )
    def calculate(
        self,
        line_items: Sequence[LineItem],
        commission_rate_percent: Decimal | int | str,
        stock_payment: StockPaymentAllocation | None = None,
        stock_payment_enabled: bool = False,
    ) -> SettlementTotals:
        rate = to_decimal(commission_rate_percent)

        total_sold_value = ZERO
        for item in line_items:
            line_value = round2(item.quantity_sold_now * item.unit_price)
            total_sold_value = round2(total_sold_value + line_value)

        stock_payment_value = ZERO
        quantities = _stock_quantities(stock_payment, stock_payment_enabled)
        if quantities:
            by_id = {item.id: item for item in line_items}
            for item_id, qty in quantities.items():
                item = by_id.get(item_id)
                if item is None:
                    logger.warning(
                        "stock_payment_unknown_item",
                        extra={"item_id": item_id, "quantity": qty},
                    )
                    continue
                stock_line_value = round2(qty * item.unit_price)
                stock_payment_value = round2(stock_payment_value + stock_line_value)

        commission = round2(total_sold_value * rate / HUNDRED)
        net_payable = round2(total_sold_value - commission)
        cash_payable = round2(max(ZERO, net_payable - stock_payment_value))

        totals = SettlementTotals(
            total_sold_value=total_sold_value,
            commission=commission,
            net_payable=net_payable,
            stock_payment_value=stock_payment_value,
            cash_payable=cash_payable,
            commission_rate_percent=rate,
        )

        if totals.excess_stock_payment > 0:
            logger.warning(
                "stock_payment_exceeds_net_payable",
                extra={
                    "net_payable": str(net_payable),
                    "stock_payment_value": str(stock_payment_value),
                    "dropped": str(totals.excess_stock_payment),
                },
            )

        logger.info(
            "settlement_calculated",
            extra={
                "line_count": len(line_items),
                "total_sold_value": str(total_sold_value),
                "commission": str(commission),
                "net_payable": str(net_payable),
                "stock_payment_value": str(stock_payment_value),
                "cash_payable": str(cash_payable),
            },
        )
        return totals


def clamp_quantity(value: int | str | None, maximum: int, minimum: int = 0) -> int:
    """
    Clamp an operator-entered quantity into ``[minimum, maximum]``.

    Unparseable or absent input counts as ``minimum``.  When ``maximum`` is
    below ``minimum`` the result is ``minimum``.
    """
    try:
        qty = to_quantity(value)
    except ValueError:
        return minimum
    return max(minimum, min(qty, maximum))


def validate_commission_rate(rate: Decimal | int | str) -> Decimal:
    """Return the rate as Decimal, or raise if it is outside 0-100."""
    try:
        value = to_decimal(rate)
    except ValueError as e:
        raise InvalidCommissionRateError(rate) from e
    if not value.is_finite() or value < 0 or value > HUNDRED:
        raise InvalidCommissionRateError(value)
    return value


def validate_settlement(
    line_items: Sequence[LineItem],
    commission_rate_percent: Decimal | int | str | None = None,
    stock_payment: StockPaymentAllocation | None = None,
    stock_payment_enabled: bool = False,
    sold_now: Mapping[str, int] | None = None,
) -> tuple[LineItem, ...]:
    """
    Check every settlement precondition and return the effective lines.

    When ``sold_now`` is given its quantities replace each line's
    ``quantity_sold_now``; lines it does not mention sell nothing.

    Raises:
        SettlementValidationError: listing every problem found, so the
            operator can correct all of them in one pass.
    """
    errors: list[ValidationError] = []

    if commission_rate_percent is not None:
        try:
            validate_commission_rate(commission_rate_percent)
        except InvalidCommissionRateError as e:
            errors.append(e)

    items = tuple(line_items)
    if sold_now is not None:
        known = {item.id for item in items}
        requested: dict[str, int] = {}
        for item_id, qty in sold_now.items():
            key = str(item_id)
            if key not in known:
                errors.append(UnknownLineItemError(key))
                continue
            try:
                requested[key] = to_quantity(qty)
            except ValueError:
                errors.append(InvalidQuantityError(f"{key}.sold_now", qty))
        items = tuple(item.with_sold_now(requested.get(item.id, 0)) for item in items)

    by_id: dict[str, LineItem] = {}
    for item in items:
        by_id[item.id] = item
        if item.quantity_sold_now < 0:
            errors.append(InvalidQuantityError(f"{item.id}.sold_now", item.quantity_sold_now))
        elif item.quantity_sold_now > item.remaining_before_sale:
            errors.append(
                InsufficientRemainingError(
                    item.id, item.quantity_sold_now, item.remaining_before_sale
                )
            )

    if stock_payment_enabled and stock_payment:
        for item_id, raw_qty in stock_payment.items():
            key = str(item_id)
            item = by_id.get(key)
            if item is None:
                errors.append(UnknownLineItemError(key))
                continue
            try:
                qty = to_quantity(raw_qty)
            except ValueError:
                errors.append(InvalidQuantityError(f"{key}.stock_payment", raw_qty))
                continue
            if qty < 0:
                errors.append(InvalidQuantityError(f"{key}.stock_payment", qty))
            elif qty > max(0, item.remaining_after_sale):
                errors.append(
                    StockPaymentExceedsRemainingError(
                        key, qty, max(0, item.remaining_after_sale)
                    )
                )

    if errors:
        logger.info(
            "settlement_validation_failed",
            extra={"error_codes": [e.code for e in errors]},
        )
        raise SettlementValidationError(errors)
    return items


def build_line_updates(
    line_items: Sequence[LineItem],
    stock_payment: StockPaymentAllocation | None = None,
    stock_payment_enabled: bool = False,
) -> tuple[LineItemUpdate, ...]:
    """
    Per-line values to persist after a validated settlement.

    ``sold`` grows by the sold-now quantity, ``used_as_payment`` by the
    stock-payment quantity, and ``remaining`` shrinks by both.
    """
    quantities = _stock_quantities(stock_payment, stock_payment_enabled)
    updates = []
    for item in line_items:
        stock_qty = quantities.get(item.id, 0)
        updates.append(
            LineItemUpdate(
                id=item.id,
                sold=item.quantity_sold_prior + item.quantity_sold_now,
                remaining=item.remaining_after_sale - stock_qty,
                used_as_payment=item.quantity_used_as_payment_prior + stock_qty,
                sold_now=item.quantity_sold_now,
                used_as_payment_now=stock_qty,
            )
        )
    return tuple(updates)


def payment_type_for(totals: SettlementTotals) -> PaymentType:
    """``stock`` when stock covers everything, ``mixed`` when both, else ``cash``."""
    if totals.stock_payment_value > 0:
        if totals.cash_payable > 0:
            return PaymentType.MIXED
        return PaymentType.STOCK
    return PaymentType.CASH


def _format_rate(rate: Decimal) -> str:
    return f"{rate.normalize():f}"


def commission_note(totals: SettlementTotals, currency: str = "BRL") -> str:
    """Human-readable composition note for the commission transaction."""
    composition = payment_type_for(totals)
    note = (
        f"Consignment settlement: commission {_format_rate(totals.commission_rate_percent)}% "
        f"on {currency} {totals.total_sold_value} sold; "
        f"payment {composition.value}: {currency} {totals.cash_payable} cash"
    )
    if totals.stock_payment_value > 0:
        note += f" + {currency} {totals.stock_payment_value} in stock"
    return note


@traced_engine(
    "commission_statement",
    "1.0",
    fingerprint_fields=("line_items", "commission_rate_percent", "fallback_unit_price"),
)
def build_commission_statement(
    line_items: Sequence[LineItem],
    commission_rate_percent: Decimal | int | str,
    fallback_unit_price: Decimal | int | str,
) -> CommissionStatementDraft:
    """
    Commission owed on everything a representative sold.

    Units sold are the cumulative ``quantity_sold_prior`` of each line.  A
    line without a positive unit price is valued at ``fallback_unit_price``.
    """
    rate = validate_commission_rate(commission_rate_percent)
    fallback = to_decimal(fallback_unit_price)

    units = 0
    total_sales = ZERO
    for item in line_items:
        sold = item.quantity_sold_prior
        if sold <= 0:
            continue
        price = item.unit_price if item.unit_price > 0 else fallback
        units += sold
        total_sales = round2(total_sales + round2(sold * price))

    commission_amount = round2(total_sales * rate / HUNDRED)
    net_amount = round2(total_sales - commission_amount)

    return CommissionStatementDraft(
        units_sold=units,
        total_sales=total_sales,
        commission_rate=rate / HUNDRED,
        commission_amount=commission_amount,
        net_amount=net_amount,
    )
