"""
erp_services.commission_statement_service -- Representative commission statements.

Responsibility:
    Compute and persist the commission owed to a sales representative for
    the consignments sent to them in a period.  The figures come from
    ``erp_engines.settlement.build_commission_statement``; this module only
    gathers the lines and writes the statement row.

Invariants enforced:
    - The period defaults to the calendar month before the clock's date.
    - Both period bounds are inclusive; the end bound covers the whole day.
    - Statements are created ``pending``; paying them is out of scope.

Failure modes:
    - MissingSelectionError when no representative is given.
    - InvalidPeriodError when the period starts after it ends.
    - BatchWriteError when the store rejects the insert.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from uuid import UUID

from sqlalchemy.orm import Session

from erp_config.schema import SettlementConfig
from erp_engines.dre import previous_month_bounds
from erp_engines.settlement import CommissionStatementDraft, build_commission_statement
from erp_kernel.db.base import as_uuid, require_tenant
from erp_kernel.domain.clock import Clock
from erp_kernel.exceptions import InvalidPeriodError, MissingSelectionError
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.consignment import CommissionStatement
from erp_kernel.selectors.consignment_selector import ConsignmentSelector
from erp_services.base import BaseService

logger = get_logger("services.commission_statement")


@dataclass(frozen=True)
class StatementResult:
    statement_id: str
    representative_id: str
    period_start: date
    period_end: date
    consignment_count: int
    draft: CommissionStatementDraft


class CommissionStatementService(BaseService):
    """Issues commission statements for representatives."""

    def __init__(
        self,
        session: Session,
        settlement_config: SettlementConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._config = settlement_config or SettlementConfig()
        self._selector = ConsignmentSelector(session)

    def create_statement(
        self,
        tenant_id: UUID | str,
        representative_id: UUID | str | None,
        period_start: date | None = None,
        period_end: date | None = None,
        notes: str | None = None,
        actor_id: UUID | str | None = None,
        commission_rate_percent=None,
    ) -> StatementResult:
        tenant = require_tenant(tenant_id, "CommissionStatementService.create_statement")
        if not representative_id:
            raise MissingSelectionError("representative_id")

        if period_start is None or period_end is None:
            default_start, default_end = previous_month_bounds(self.clock.now().date())
            period_start = period_start or default_start
            period_end = period_end or default_end
        if period_start > period_end:
            raise InvalidPeriodError(period_start, period_end)

        rate = (
            self._config.default_commission_rate_percent
            if commission_rate_percent is None
            else commission_rate_percent
        )

        with LogContext.bind(tenant_id=str(tenant), actor_id=actor_id):
            consignments = self._selector.list_for_partner(
                tenant,
                representative_id,
                created_from=datetime.combine(period_start, time.min),
                created_to=datetime.combine(period_end, time(23, 59, 59)),
            )
            lines = [item for c in consignments for item in c.items]
            draft = build_commission_statement(
                line_items=lines,
                commission_rate_percent=rate,
                fallback_unit_price=self._config.fallback_unit_price,
            )

            with self._write_batch(
                "commission_statement",
                representative_id=str(representative_id),
                consignment_count=len(consignments),
            ):
                row = CommissionStatement(
                    tenant_id=tenant,
                    representative_id=as_uuid(representative_id),
                    period_start=period_start,
                    period_end=period_end,
                    total_sales=draft.total_sales,
                    commission_rate=draft.commission_rate,
                    commission_amount=draft.commission_amount,
                    net_amount=draft.net_amount,
                    notes=notes,
                    status="pending",
                    created_at=self.clock.now(),
                    created_by=as_uuid(actor_id) if actor_id else None,
                )
                self.session.add(row)
                self.session.flush()
                statement_id = str(row.id)

            return StatementResult(
                statement_id=statement_id,
                representative_id=str(representative_id),
                period_start=period_start,
                period_end=period_end,
                consignment_count=len(consignments),
                draft=draft,
            )
