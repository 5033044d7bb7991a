"""
Tests for the consignment settlement engine.

Covers:
- Totals for cash, stock and mixed settlements
- Clamp-to-zero of cash payable when stock over-covers the net payable
- Commission bounds and cash floor under property-based input
- Aggregated validation errors
- Per-line write-back values, payment type and commission note
- Commission statements for representatives
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from erp_engines.settlement import (
    SettlementCalculator,
    build_commission_statement,
    build_line_updates,
    clamp_quantity,
    commission_note,
    payment_type_for,
    validate_commission_rate,
    validate_settlement,
)
from erp_kernel.domain.dtos import LineItem, PaymentType
from erp_kernel.exceptions import (
    InsufficientRemainingError,
    InvalidCommissionRateError,
    SettlementValidationError,
    StockPaymentExceedsRemainingError,
    UnknownLineItemError,
)


def _two_lines(sold_a=3, sold_b=2):
    return [
        LineItem(id="a", product_label="Silk blouse", quantity_allocated=10,
                 quantity_sold_now=sold_a, unit_price=Decimal("50.00")),
        LineItem(id="b", product_label="Denim skirt", quantity_allocated=5,
                 quantity_sold_now=sold_b, unit_price=Decimal("30.00")),
    ]


class TestSettlementCalculator:

    def setup_method(self):
        self.calculator = SettlementCalculator()

    def test_cash_settlement(self):
        totals = self.calculator.calculate(
            line_items=_two_lines(),
            commission_rate_percent=Decimal("40"),
        )

        assert totals.total_sold_value == Decimal("210.00")
        assert totals.commission == Decimal("84.00")
        assert totals.net_payable == Decimal("126.00")
        assert totals.stock_payment_value == Decimal("0.00")
        assert totals.cash_payable == Decimal("126.00")
        assert totals.payment_type is PaymentType.CASH

    def test_stock_payment_over_covering_net_payable_clamps_cash_to_zero(self):
        totals = self.calculator.calculate(
            line_items=_two_lines(),
            commission_rate_percent=Decimal("40"),
            stock_payment={"a": 3},
            stock_payment_enabled=True,
        )

        assert totals.stock_payment_value == Decimal("150.00")
        assert totals.cash_payable == Decimal("0.00")
        assert totals.excess_stock_payment == Decimal("24.00")
        assert totals.payment_type is PaymentType.STOCK

    def test_excess_stock_payment_is_logged(self, captured_logs):
        self.calculator.calculate(
            line_items=_two_lines(),
            commission_rate_percent=Decimal("40"),
            stock_payment={"a": 3},
            stock_payment_enabled=True,
        )

        warnings = [r for r in captured_logs() if r["message"] == "stock_payment_exceeds_net_payable"]
        assert len(warnings) == 1
        assert warnings[0]["dropped"] == "24.00"

    def test_mixed_settlement(self):
        totals = self.calculator.calculate(
            line_items=_two_lines(),
            commission_rate_percent=Decimal("40"),
            stock_payment={"b": 2},
            stock_payment_enabled=True,
        )

        assert totals.stock_payment_value == Decimal("60.00")
        assert totals.cash_payable == Decimal("66.00")
        assert totals.payment_type is PaymentType.MIXED

    def test_stock_payment_ignored_when_disabled(self):
        totals = self.calculator.calculate(
            line_items=_two_lines(),
            commission_rate_percent=Decimal("40"),
            stock_payment={"a": 3},
            stock_payment_enabled=False,
        )

        assert totals.stock_payment_value == Decimal("0.00")
        assert totals.cash_payable == Decimal("126.00")

    def test_unknown_stock_payment_id_contributes_nothing(self, captured_logs):
        totals = self.calculator.calculate(
            line_items=_two_lines(),
            commission_rate_percent=Decimal("40"),
            stock_payment={"ghost": 4},
            stock_payment_enabled=True,
        )

        assert totals.stock_payment_value == Decimal("0.00")
        assert any(r["message"] == "stock_payment_unknown_item" for r in captured_logs())

    def test_each_line_rounded_before_summing(self):
        lines = [
            LineItem(id="x", product_label="Scarf", quantity_allocated=5,
                     quantity_sold_now=1, unit_price=Decimal("10.005")),
            LineItem(id="y", product_label="Belt", quantity_allocated=5,
                     quantity_sold_now=1, unit_price=Decimal("10.005")),
        ]
        totals = self.calculator.calculate(line_items=lines, commission_rate_percent=0)

        # 10.01 + 10.01, not round2(20.01)
        assert totals.total_sold_value == Decimal("20.02")

    def test_zero_rate_and_full_rate(self):
        zero = self.calculator.calculate(line_items=_two_lines(), commission_rate_percent=0)
        full = self.calculator.calculate(line_items=_two_lines(), commission_rate_percent=100)

        assert zero.commission == Decimal("0.00")
        assert zero.net_payable == Decimal("210.00")
        assert full.commission == Decimal("210.00")
        assert full.net_payable == Decimal("0.00")

    def test_nothing_sold(self):
        totals = self.calculator.calculate(
            line_items=_two_lines(0, 0),
            commission_rate_percent=Decimal("40"),
        )

        assert totals.total_sold_value == Decimal("0.00")
        assert totals.cash_payable == Decimal("0.00")

    def test_emits_engine_trace(self, captured_logs):
        self.calculator.calculate(line_items=_two_lines(), commission_rate_percent=Decimal("40"))

        traces = [r for r in captured_logs() if r["message"] == "ERP_ENGINE_TRACE"]
        assert traces[0]["engine_name"] == "settlement"
        assert len(traces[0]["input_fingerprint"]) == 16


_line_strategy = st.builds(
    lambda i, allocated, sold, price: LineItem(
        id=f"line-{i}",
        product_label="piece",
        quantity_allocated=allocated,
        quantity_sold_now=min(sold, allocated),
        unit_price=price,
    ),
    i=st.integers(min_value=0, max_value=10_000),
    allocated=st.integers(min_value=0, max_value=500),
    sold=st.integers(min_value=0, max_value=500),
    price=st.decimals(min_value=Decimal("0"), max_value=Decimal("5000"), places=2,
                      allow_nan=False, allow_infinity=False),
)


class TestSettlementProperties:

    @given(
        lines=st.lists(_line_strategy, max_size=8),
        rate=st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2,
                         allow_nan=False, allow_infinity=False),
    )
    @settings(max_examples=200)
    def test_commission_between_zero_and_total(self, lines, rate):
        totals = SettlementCalculator().calculate(line_items=lines, commission_rate_percent=rate)

        assert totals.commission >= 0
        assert totals.commission <= totals.total_sold_value + Decimal("0.01")

    @given(
        lines=st.lists(_line_strategy, min_size=1, max_size=8),
        stock_qty=st.integers(min_value=0, max_value=1000),
        rate=st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2,
                         allow_nan=False, allow_infinity=False),
    )
    @settings(max_examples=200)
    def test_cash_payable_never_negative(self, lines, stock_qty, rate):
        totals = SettlementCalculator().calculate(
            line_items=lines,
            commission_rate_percent=rate,
            stock_payment={lines[0].id: stock_qty},
            stock_payment_enabled=True,
        )

        assert totals.cash_payable >= 0


class TestValidateSettlement:

    def test_valid_input_returns_effective_lines(self):
        lines = _two_lines(0, 0)
        items = validate_settlement(lines, Decimal("40"), sold_now={"a": 3})

        assert [i.quantity_sold_now for i in items] == [3, 0]

    def test_all_problems_reported_together(self):
        lines = _two_lines(0, 0)
        with pytest.raises(SettlementValidationError) as exc_info:
            validate_settlement(
                lines,
                commission_rate_percent=Decimal("120"),
                sold_now={"a": 11, "ghost": 1},
                stock_payment={"b": 9},
                stock_payment_enabled=True,
            )

        kinds = {type(e) for e in exc_info.value.errors}
        assert kinds == {
            InvalidCommissionRateError,
            InsufficientRemainingError,
            UnknownLineItemError,
            StockPaymentExceedsRemainingError,
        }

    def test_stock_payment_limited_to_what_is_left_after_sale(self):
        lines = _two_lines(0, 0)
        validate_settlement(lines, sold_now={"a": 7}, stock_payment={"a": 3}, stock_payment_enabled=True)

        with pytest.raises(SettlementValidationError):
            validate_settlement(lines, sold_now={"a": 7}, stock_payment={"a": 4}, stock_payment_enabled=True)

    def test_prior_sales_and_returns_reduce_remaining(self):
        line = LineItem(id="a", product_label="Coat", quantity_allocated=10,
                        quantity_sold_prior=4, quantity_returned_prior=3,
                        unit_price=Decimal("80"))
        validate_settlement([line], sold_now={"a": 3})

        with pytest.raises(SettlementValidationError) as exc_info:
            validate_settlement([line], sold_now={"a": 4})
        assert exc_info.value.errors[0].remaining == 3

    def test_disabled_stock_payment_not_validated(self):
        validate_settlement(_two_lines(0, 0), stock_payment={"ghost": 99}, stock_payment_enabled=False)


class TestCommissionRate:

    @pytest.mark.parametrize("rate", ["0", "40", "100", 25])
    def test_accepted(self, rate):
        assert validate_commission_rate(rate) == Decimal(str(rate))

    @pytest.mark.parametrize("rate", ["-1", "100.01", "abc"])
    def test_rejected(self, rate):
        with pytest.raises(InvalidCommissionRateError):
            validate_commission_rate(rate)


class TestClampQuantity:

    @pytest.mark.parametrize(
        "value, maximum, expected",
        [(5, 3, 3), (-2, 3, 0), ("2", 3, 2), ("abc", 3, 0), (None, 3, 0), (4, -1, 0)],
    )
    def test_clamped(self, value, maximum, expected):
        assert clamp_quantity(value, maximum) == expected


class TestLineUpdates:

    def test_sale_and_stock_payment_applied(self):
        line = LineItem(id="a", product_label="Blazer", quantity_allocated=10,
                        quantity_sold_prior=2, quantity_sold_now=3,
                        quantity_used_as_payment_prior=1, quantity_returned_prior=1,
                        unit_price=Decimal("90"))
        (update,) = build_line_updates([line], {"a": 2}, True)

        assert update.sold == 5
        assert update.remaining == 2
        assert update.used_as_payment == 3
        assert update.sold_now == 3
        assert update.used_as_payment_now == 2

    def test_stock_payment_ignored_when_disabled(self):
        (update,) = build_line_updates(_two_lines()[:1], {"a": 2}, False)
        assert update.used_as_payment_now == 0
        assert update.remaining == 7


class TestPaymentTypeAndNote:

    def test_note_for_cash(self):
        totals = SettlementCalculator().calculate(line_items=_two_lines(), commission_rate_percent=40)

        assert payment_type_for(totals) is PaymentType.CASH
        assert commission_note(totals) == (
            "Consignment settlement: commission 40% on BRL 210.00 sold; "
            "payment cash: BRL 126.00 cash"
        )

    def test_note_for_mixed(self):
        totals = SettlementCalculator().calculate(
            line_items=_two_lines(),
            commission_rate_percent=Decimal("40"),
            stock_payment={"b": 2},
            stock_payment_enabled=True,
        )

        assert commission_note(totals, "USD").endswith(
            "payment mixed: USD 66.00 cash + USD 60.00 in stock"
        )


class TestCommissionStatement:

    def test_cumulative_sales_with_fallback_price(self):
        lines = [
            LineItem(id="a", product_label="Dress", quantity_allocated=10,
                     quantity_sold_prior=4, unit_price=Decimal("120")),
            LineItem(id="b", product_label="Top", quantity_allocated=6,
                     quantity_sold_prior=2, unit_price=None),
            LineItem(id="c", product_label="Hat", quantity_allocated=3,
                     quantity_sold_prior=0, unit_price=Decimal("40")),
        ]
        draft = build_commission_statement(
            line_items=lines,
            commission_rate_percent=Decimal("40"),
            fallback_unit_price=Decimal("50"),
        )

        assert draft.units_sold == 6
        assert draft.total_sales == Decimal("580.00")
        assert draft.commission_rate == Decimal("0.4")
        assert draft.commission_amount == Decimal("232.00")
        assert draft.net_amount == Decimal("348.00")

    def test_nothing_sold(self):
        draft = build_commission_statement(
            line_items=[],
            commission_rate_percent=Decimal("40"),
            fallback_unit_price=Decimal("50"),
        )

        assert draft.units_sold == 0
        assert draft.total_sales == Decimal("0.00")
        assert draft.commission_amount == Decimal("0.00")
