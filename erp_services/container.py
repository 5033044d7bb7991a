"""
erp_services.container -- Central construction point for ERP services.

Responsibility:
    Creates every service exactly once for a Session and wires the
    configuration sections into them.  No service creates other services
    internally; callers that need more than one service go through
    ``build_services``.

Architecture position:
    Services -- the only module in the service layer that calls
    ``erp_config.get_active_config()``.

Usage:
    from erp_services.container import build_services, init_database

    config = init_database()
    with session_scope() as session:
        services = build_services(session, config=config)
        services.settlement.settle(tenant_id, consignment_id, sold_now, actor_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from erp_config import ErpConfig, get_active_config
from erp_kernel.db.engine import init_engine_from_url
from erp_kernel.domain.clock import Clock, SystemClock
from erp_services.commission_statement_service import CommissionStatementService
from erp_services.event_stock_service import EventStockService
from erp_services.reporting_service import ReportingService
from erp_services.return_reconciliation_service import ReturnReconciliationService
from erp_services.settlement_service import ConsignmentSettlementService
from erp_services.stock_ledger import SqlFunctionStockLedger, StockLedger


@dataclass(frozen=True)
class ServiceContainer:
    config: ErpConfig
    ledger: StockLedger
    settlement: ConsignmentSettlementService
    commission_statements: CommissionStatementService
    event_stock: EventStockService
    return_reconciliation: ReturnReconciliationService
    reporting: ReportingService


def init_database(config: ErpConfig | None = None) -> Engine:
    """Initialize the engine from the ``database`` section of the config."""
    config = config or get_active_config()
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
    )


def build_services(
    session: Session,
    config: ErpConfig | None = None,
    ledger: StockLedger | None = None,
    clock: Clock | None = None,
) -> ServiceContainer:
    """Build every service over one session.

    Args:
        session: SQLAlchemy session shared by all services.
        config: Loaded configuration; ``get_active_config()`` when omitted.
        ledger: Stock ledger; the SQL-function ledger over ``session``
            when omitted.
        clock: Optional clock; default SystemClock.
    """
    config = config or get_active_config()
    ledger = ledger or SqlFunctionStockLedger(session)
    clock = clock or SystemClock()

    return ServiceContainer(
        config=config,
        ledger=ledger,
        settlement=ConsignmentSettlementService(
            session,
            settlement_config=config.settlement,
            currency=config.reporting.currency,
            clock=clock,
        ),
        commission_statements=CommissionStatementService(
            session, settlement_config=config.settlement, clock=clock
        ),
        event_stock=EventStockService(session, ledger, clock=clock),
        return_reconciliation=ReturnReconciliationService(session, ledger, clock=clock),
        reporting=ReportingService(session, reporting_config=config.reporting, clock=clock),
    )
