"""
erp_engines.dre -- Income statement (DRE) reducer.

Responsibility:
    Partition a flat list of financial transactions into income-statement
    buckets and sum them: sales, operational costs, cost of goods sold,
    other expenses, total expenses, cash result and profit margin.  Also
    groups costs by their free-text category and resolves report periods.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The report period is
    resolved from a date passed in by the caller; the engine never reads
    the clock.

Invariants enforced:
    - Classification precedence (a record may fall in more than one bucket):
        sales        dre_category == "sales" OR type == "income"
        operational  dre_category == "operational_cost" AND cash_impact
        cogs         dre_category == "cogs"
        other        type == "expense" AND dre_category is absent
    - Every running sum is rounded before being combined further.
    - ``cash_result == sales_total - total_expenses`` after rounding.
    - ``profit_margin_percent == 0`` whenever ``sales_total <= 0``.
    - An absent amount counts as zero.

Usage:
    from erp_engines.dre import build_dre

    breakdown = build_dre(records=transactions)
    breakdown.profit_margin_percent
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence

from erp_kernel.domain.dtos import DreCategory, TransactionRecord, TransactionType
from erp_kernel.domain.values import ZERO, round2, safe_percent
from erp_kernel.logging_config import get_logger
from erp_engines.tracer import traced_engine

logger = get_logger("engines.dre")

UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class DreBreakdown:
    """Income statement totals, all rounded to cents."""

    sales_total: Decimal
    operational_costs: Decimal
    cogs: Decimal
    other_expenses: Decimal
    total_expenses: Decimal
    cash_result: Decimal
    profit_margin_percent: Decimal


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    amount: Decimal


def _sum(records: Iterable[TransactionRecord]) -> Decimal:
    total = ZERO
    for record in records:
        total = round2(total + record.amount)
    return total


def is_sales(record: TransactionRecord) -> bool:
    return (
        record.dre_category == DreCategory.SALES.value
        or record.type == TransactionType.INCOME.value
    )


def is_operational_cost(record: TransactionRecord) -> bool:
    return record.dre_category == DreCategory.OPERATIONAL_COST.value and bool(
        record.cash_impact
    )


def is_cogs(record: TransactionRecord) -> bool:
    return record.dre_category == DreCategory.COGS.value


def is_other_expense(record: TransactionRecord) -> bool:
    return record.type == TransactionType.EXPENSE.value and record.dre_category is None


@traced_engine("dre", "1.0", fingerprint_fields=("records",))
def build_dre(records: Sequence[TransactionRecord]) -> DreBreakdown:
    """Reduce transactions to a ``DreBreakdown``; an empty list gives zeros."""
    rows = tuple(records)

    sales_total = _sum(r for r in rows if is_sales(r))
    operational_costs = _sum(r for r in rows if is_operational_cost(r))
    cogs = _sum(r for r in rows if is_cogs(r))
    other_expenses = _sum(r for r in rows if is_other_expense(r))

    total_expenses = round2(operational_costs + cogs + other_expenses)
    cash_result = round2(sales_total - total_expenses)
    margin = safe_percent(cash_result, sales_total)

    logger.info(
        "dre_built",
        extra={
            "record_count": len(rows),
            "sales_total": str(sales_total),
            "total_expenses": str(total_expenses),
            "cash_result": str(cash_result),
        },
    )

    return DreBreakdown(
        sales_total=sales_total,
        operational_costs=operational_costs,
        cogs=cogs,
        other_expenses=other_expenses,
        total_expenses=total_expenses,
        cash_result=cash_result,
        profit_margin_percent=margin,
    )


def costs_by_category(
    records: Sequence[TransactionRecord],
    limit: int | None = 8,
) -> tuple[CategoryTotal, ...]:
    """
    Cost records grouped by free-text category, largest first.

    A record counts as a cost when it is an expense or is not tagged as a
    sale.  Untagged income therefore lands here too, matching how the
    existing reports group it.  Ties keep first-seen category order.
    """
    totals: dict[str, Decimal] = {}
    for record in records:
        if not (
            record.type == TransactionType.EXPENSE.value
            or record.dre_category != DreCategory.SALES.value
        ):
            continue
        category = record.category or UNCATEGORIZED
        totals[category] = round2(totals.get(category, ZERO) + record.amount)

    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return tuple(CategoryTotal(category=k, amount=v) for k, v in ranked)


def expense_composition(breakdown: DreBreakdown) -> tuple[tuple[DreCategory, Decimal], ...]:
    """Non-zero expense buckets, in statement order."""
    buckets = (
        (DreCategory.OPERATIONAL_COST, breakdown.operational_costs),
        (DreCategory.COGS, breakdown.cogs),
        (DreCategory.OTHER, breakdown.other_expenses),
    )
    return tuple((k, v) for k, v in buckets if v > 0)


class ReportPeriod(str, Enum):
    """Report window, counted back from the reference date."""

    ALL = "all"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


def period_start_date(period: ReportPeriod | str, as_of: date) -> date | None:
    """
    First date included in ``period`` (``None`` for the whole history).

    ``week`` is the last seven days; ``month``, ``quarter`` and ``year`` start
    on the first day of the current calendar month, quarter and year.
    """
    period = ReportPeriod(period)
    if period is ReportPeriod.ALL:
        return None
    if period is ReportPeriod.WEEK:
        return as_of - timedelta(days=7)
    if period is ReportPeriod.MONTH:
        return as_of.replace(day=1)
    if period is ReportPeriod.QUARTER:
        first_month = ((as_of.month - 1) // 3) * 3 + 1
        return date(as_of.year, first_month, 1)
    return date(as_of.year, 1, 1)


def previous_month_bounds(as_of: date) -> tuple[date, date]:
    """First and last day of the calendar month before ``as_of``."""
    last = as_of.replace(day=1) - timedelta(days=1)
    first = last.replace(day=1)
    return first, last
