"""
erp_services.reporting_service -- Read-only financial and event reports.

Responsibility:
    Load transactions and event data for a tenant and hand them to the
    pure reducers: the income statement (DRE) for a report period, the
    divergence alert list, the events overview, and the consolidated event
    profitability dashboard.

Architecture position:
    Services -- read side only; never writes or commits.

Invariants enforced:
    - The report period is resolved against the injected clock.
    - Every query is scoped by an explicit ``tenant_id``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from erp_config.schema import ReportingConfig
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
    stock_metrics,
    summarize_events,
)
from erp_kernel.db.base import require_tenant
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.dtos import DreCategory, EventAllocationRecord, EventRecord
from erp_kernel.logging_config import get_logger
from erp_kernel.selectors.event_selector import EventSelector
from erp_kernel.selectors.transaction_selector import TransactionSelector

logger = get_logger("services.reporting")


@dataclass(frozen=True)
class DreReport:
    period: ReportPeriod
    date_from: date | None
    date_to: date
    breakdown: DreBreakdown
    costs_by_category: tuple[CategoryTotal, ...]
    expense_composition: tuple[tuple[DreCategory, Decimal], ...]


@dataclass(frozen=True)
class DivergenceAlerts:
    allocations: tuple[EventAllocationRecord, ...]
    total_divergence: int


@dataclass(frozen=True)
class EventOverview:
    event: EventRecord
    stock: EventStockMetrics


@dataclass(frozen=True)
class EventProfitDashboard:
    events: tuple[EventProfit, ...]
    summary: EventsSummary


class ReportingService:
    """Builds tenant reports; holds no transaction of its own."""

    def __init__(
        self,
        session: Session,
        reporting_config: ReportingConfig | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self._config = reporting_config or ReportingConfig()
        self._transactions = TransactionSelector(session)
        self._events = EventSelector(session)

    def dre(self, tenant_id: UUID | str, period: ReportPeriod | str = ReportPeriod.MONTH) -> DreReport:
        """Income statement from the start of ``period`` up to today."""
        tenant = require_tenant(tenant_id, "ReportingService.dre")
        period = ReportPeriod(period)
        today = self.clock.now().date()
        start = period_start_date(period, today)

        if start is None:
            records = self._transactions.list_transactions(tenant)
        else:
            records = self._transactions.list_transactions(tenant, date_from=start, date_to=today)
        breakdown = build_dre(records=records)
        logger.info(
            "dre_report_built",
            extra={"period": period.value, "record_count": len(records)},
        )
        return DreReport(
            period=period,
            date_from=start,
            date_to=today,
            breakdown=breakdown,
            costs_by_category=costs_by_category(records, limit=self._config.top_cost_categories),
            expense_composition=expense_composition(breakdown),
        )

    def divergence_alerts(self, tenant_id: UUID | str) -> DivergenceAlerts:
        """Latest allocations whose confirmed return did not match the count."""
        tenant = require_tenant(tenant_id, "ReportingService.divergence_alerts")
        rows = tuple(
            self._events.recent_divergences(tenant, self._config.divergence_alert_limit)
        )
        return DivergenceAlerts(
            allocations=rows,
            total_divergence=sum(abs(a.divergence) for a in rows),
        )

    def events_overview(self, tenant_id: UUID | str) -> tuple[EventOverview, ...]:
        """Most recent events with their stock figures."""
        tenant = require_tenant(tenant_id, "ReportingService.events_overview")
        events = self._events.list_events(tenant, limit=self._config.events_overview_limit)
        allocations = self._events.allocations_for_events(tenant, [e.id for e in events])
        return tuple(
            EventOverview(
                event=e,
                stock=stock_metrics(a for a in allocations if a.event_id == e.id),
            )
            for e in events
        )

    def event_profit_dashboard(self, tenant_id: UUID | str) -> EventProfitDashboard:
        """Profitability of every event plus consolidated totals."""
        tenant = require_tenant(tenant_id, "ReportingService.event_profit_dashboard")
        events = self._events.list_events(tenant)
        ids = [e.id for e in events]
        allocations = self._events.allocations_for_events(tenant, ids)
        transactions = self._transactions.list_for_events(tenant, ids)

        profits = tuple(
            event_profit(event=e, allocations=allocations, transactions=transactions)
            for e in events
        )
        return EventProfitDashboard(events=profits, summary=summarize_events(profits))
