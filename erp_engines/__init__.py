"""
Module: erp_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    erp_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import erp_kernel domain values, DTOs, exceptions and logging.
    MUST NOT import erp_services, erp_config, or SQLAlchemy.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Reference dates are passed in by the services.
    - Decimal-only arithmetic with chained two-place rounding.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entrypoints are wrapped by ``@traced_engine`` and emit
    ERP_ENGINE_TRACE records with an input fingerprint and duration.
"""

from erp_engines.blind_count import (
    Confirmed,
    CountLine,
    CountSession,
    Counting,
    Review,
    attach_note,
    confirm,
    missing_notes,
    record_count,
    revise,
    start_count,
    submit_for_review,
    toggle_expected,
    visible_expected,
)
from erp_engines.divergence import (
    CountedAllocation,
    DivergenceStatus,
    DivergenceSummary,
    reconcile_counts,
    summarize_divergences,
)
from erp_engines.dre import (
    CategoryTotal,
    DreBreakdown,
    ReportPeriod,
    build_dre,
    costs_by_category,
    expense_composition,
    period_start_date,
)
from erp_engines.event_metrics import (
    EventProfit,
    EventsSummary,
    EventStockMetrics,
    event_profit,
    goal_progress,
    stock_metrics,
    summarize_events,
)
from erp_engines.settlement import (
    CommissionStatementDraft,
    LineItemUpdate,
    SettlementCalculator,
    SettlementTotals,
    build_commission_statement,
    build_line_updates,
    clamp_quantity,
    commission_note,
    payment_type_for,
    validate_commission_rate,
    validate_settlement,
)

__all__ = [
    # settlement
    "SettlementCalculator",
    "SettlementTotals",
    "LineItemUpdate",
    "CommissionStatementDraft",
    "validate_settlement",
    "validate_commission_rate",
    "clamp_quantity",
    "build_line_updates",
    "payment_type_for",
    "commission_note",
    "build_commission_statement",
    # divergence
    "CountedAllocation",
    "DivergenceStatus",
    "DivergenceSummary",
    "reconcile_counts",
    "summarize_divergences",
    # blind count
    "CountLine",
    "CountSession",
    "Counting",
    "Review",
    "Confirmed",
    "start_count",
    "record_count",
    "attach_note",
    "toggle_expected",
    "visible_expected",
    "submit_for_review",
    "revise",
    "confirm",
    "missing_notes",
    # dre
    "DreBreakdown",
    "CategoryTotal",
    "ReportPeriod",
    "build_dre",
    "costs_by_category",
    "expense_composition",
    "period_start_date",
    # events
    "EventStockMetrics",
    "EventProfit",
    "EventsSummary",
    "stock_metrics",
    "goal_progress",
    "event_profit",
    "summarize_events",
]
