"""
erp_services -- Imperative shell over the pure engines.

Services own the transaction boundary: each public write method commits on
success and rolls back on failure.  They receive a Session, a Clock and,
where physical stock moves, a ``StockLedger`` by constructor injection.
"""

from erp_services.base import BaseService
from erp_services.commission_statement_service import (
    CommissionStatementService,
    StatementResult,
)
from erp_services.event_stock_service import EventStockService
from erp_services.reporting_service import (
    DivergenceAlerts,
    DreReport,
    EventOverview,
    EventProfitDashboard,
    ReportingService,
)
from erp_services.return_reconciliation_service import (
    ReconciliationResult,
    ReturnReconciliationService,
)
from erp_services.settlement_service import ConsignmentSettlementService, SettlementResult
from erp_services.stock_ledger import SqlFunctionStockLedger, StockLedger

__all__ = [
    "BaseService",
    "StockLedger",
    "SqlFunctionStockLedger",
    "ConsignmentSettlementService",
    "SettlementResult",
    "CommissionStatementService",
    "StatementResult",
    "EventStockService",
    "ReturnReconciliationService",
    "ReconciliationResult",
    "ReportingService",
    "DreReport",
    "DivergenceAlerts",
    "EventOverview",
    "EventProfitDashboard",
]
