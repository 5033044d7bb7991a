"""
erp_engines.event_metrics -- Per-event stock, goal and profitability figures.

Responsibility:
    Reduce an event's stock allocations and linked transactions to the
    figures shown on the events overview and the event profit dashboard:
    pieces allocated/sold/returned, absolute divergence, sales-goal
    progress, revenue, expenses, profit and margin, plus the consolidated
    totals across events.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Event revenue counts records with ``type == "income"`` or
      ``dre_category == "sales"``; event expenses count ``type == "expense"``
      records unless ``cash_impact`` is explicitly False.
    - ``profit = round2(sales - expenses)``; margin is 0 when sales <= 0.
    - Goal progress is capped at 100 and is 0 without a positive goal.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from erp_kernel.domain.dtos import EventAllocationRecord, EventRecord, TransactionRecord
from erp_kernel.domain.values import HUNDRED, ZERO, round2, safe_percent, to_decimal
from erp_engines.dre import is_sales
from erp_engines.tracer import traced_engine


@dataclass(frozen=True)
class EventStockMetrics:
    total_allocated: int
    total_sold: int
    total_returned: int
    total_pending: int
    total_divergence: int
    has_divergence: bool


@dataclass(frozen=True)
class EventProfit:
    event_id: str
    name: str
    total_sales: Decimal
    total_expenses: Decimal
    profit: Decimal
    profit_margin_percent: Decimal
    items_sold: int
    items_allocated: int
    has_divergence: bool
    goal_progress_percent: Decimal
    goal_reached: bool


@dataclass(frozen=True)
class EventsSummary:
    """Consolidated figures across a set of events."""

    event_count: int
    total_sales: Decimal
    total_expenses: Decimal
    total_profit: Decimal
    average_margin_percent: Decimal
    total_items_sold: int
    events_with_divergence: int
    goals_reached: int
    best_event_id: str | None
    worst_event_id: str | None


def stock_metrics(allocations: Iterable[EventAllocationRecord]) -> EventStockMetrics:
    rows = tuple(allocations)
    return EventStockMetrics(
        total_allocated=sum(a.quantity_allocated for a in rows),
        total_sold=sum(a.quantity_sold for a in rows),
        total_returned=sum(a.quantity_returned for a in rows),
        total_pending=sum(max(0, a.pending) for a in rows),
        total_divergence=sum(abs(a.divergence) for a in rows),
        has_divergence=any(a.divergence != 0 for a in rows),
    )


def goal_progress(sales: Decimal, goal: Decimal | None) -> tuple[Decimal, bool]:
    """``(min(sales / goal * 100, 100), sales >= goal)``, or ``(0, False)`` without a goal."""
    target = to_decimal(goal)
    if target <= 0:
        return ZERO, False
    progress = min(safe_percent(sales, target), round2(HUNDRED))
    return progress, to_decimal(sales) >= target


def is_event_expense(record: TransactionRecord) -> bool:
    return record.is_expense and record.cash_impact is not False


@traced_engine("event_profit", "1.0", fingerprint_fields=("event", "allocations", "transactions"))
def event_profit(
    event: EventRecord,
    allocations: Sequence[EventAllocationRecord],
    transactions: Sequence[TransactionRecord],
) -> EventProfit:
    """Profitability of one event from its own allocations and transactions."""
    own_allocations = [a for a in allocations if a.event_id == event.id]
    linked = [t for t in transactions if t.event_id == event.id]

    sales = ZERO
    for t in linked:
        if is_sales(t):
            sales = round2(sales + t.amount)
    expenses = ZERO
    for t in linked:
        if is_event_expense(t):
            expenses = round2(expenses + t.amount)

    profit = round2(sales - expenses)
    stock = stock_metrics(own_allocations)
    progress, reached = goal_progress(sales, event.sales_goal)

    return EventProfit(
        event_id=event.id,
        name=event.name,
        total_sales=sales,
        total_expenses=expenses,
        profit=profit,
        profit_margin_percent=safe_percent(profit, sales),
        items_sold=stock.total_sold,
        items_allocated=stock.total_allocated,
        has_divergence=stock.has_divergence,
        goal_progress_percent=progress,
        goal_reached=reached,
    )


def summarize_events(profits: Sequence[EventProfit]) -> EventsSummary:
    """
    Consolidate per-event results.

    Best and worst events are picked by profit; ties keep input order.
    """
    total_sales = ZERO
    total_expenses = ZERO
    for p in profits:
        total_sales = round2(total_sales + p.total_sales)
        total_expenses = round2(total_expenses + p.total_expenses)
    total_profit = round2(total_sales - total_expenses)

    ranked = sorted(profits, key=lambda p: p.profit, reverse=True)

    return EventsSummary(
        event_count=len(profits),
        total_sales=total_sales,
        total_expenses=total_expenses,
        total_profit=total_profit,
        average_margin_percent=safe_percent(total_profit, total_sales),
        total_items_sold=sum(p.items_sold for p in profits),
        events_with_divergence=sum(1 for p in profits if p.has_divergence),
        goals_reached=sum(1 for p in profits if p.goal_reached),
        best_event_id=ranked[0].event_id if ranked else None,
        worst_event_id=ranked[-1].event_id if ranked else None,
    )
