"""
erp_services.settlement_service -- Consignment settlement orchestration.

Responsibility:
    Read a consignment, run the settlement engine over the operator's input,
    and write the resulting deltas back in one transaction:

        1. per-line ``sold`` / ``remaining`` / ``used_as_payment``,
        2. consignment ``status``, ``payment_type`` and ``stock_payment_value``,
        3. one expense transaction for the commission when it is non-zero.

    Also records single-item sales reported by resellers between
    settlements.

Architecture position:
    Services -- orchestration over erp_engines.settlement and the kernel
    selectors/models.  Contains no settlement arithmetic of its own.

Invariants enforced:
    - Validation happens before the first write; a rejected settlement
      never touches the store.
    - Settlements and sales lock the consignment row inside the batch and
      validate the freshly read lines, so concurrent writers cannot both
      sell the same remaining pieces.
    - All writes of one settlement commit atomically (see BaseService).
    - Every call is scoped by an explicit ``tenant_id``.

Failure modes:
    - TenantScopeError without a tenant.
    - RecordNotFoundError when the consignment or line is not the tenant's.
    - SettlementValidationError / InvalidQuantityError /
      InsufficientRemainingError for bad input.
    - BatchWriteError when the store rejects the batch.

Usage:
    service = ConsignmentSettlementService(session, config.settlement)
    result = service.settle(
        tenant_id=tenant_id,
        consignment_id=consignment_id,
        sold_now={item_a: 3, item_b: 2},
        actor_id=user_id,
    )
    result.totals.cash_payable
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_config.schema import SettlementConfig
from erp_engines.settlement import (
    LineItemUpdate,
    SettlementCalculator,
    SettlementTotals,
    build_line_updates,
    commission_note,
    payment_type_for,
    validate_settlement,
)
from erp_kernel.db.base import as_uuid, require_tenant
from erp_kernel.domain.clock import Clock
from erp_kernel.domain.dtos import (
    ConsignmentRecord,
    ConsignmentStatus,
    DreCategory,
    PaymentType,
    TransactionType,
)
from erp_kernel.domain.values import round2, to_decimal
from erp_kernel.exceptions import (
    InsufficientRemainingError,
    InvalidQuantityError,
    RecordNotFoundError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.consignment import Consignment, ConsignmentItem
from erp_kernel.models.transaction import Transaction
from erp_kernel.selectors.consignment_selector import ConsignmentSelector
from erp_services.base import BaseService

logger = get_logger("services.settlement")


@dataclass(frozen=True)
class SettlementResult:
    consignment_id: str
    totals: SettlementTotals
    payment_type: PaymentType
    line_updates: tuple[LineItemUpdate, ...]
    commission_transaction_id: str | None


class ConsignmentSettlementService(BaseService):
    """
    Settles consignments and records reseller sales.

    Transaction boundary: each public write method commits on success and
    rolls back on failure.
    """

    def __init__(
        self,
        session: Session,
        settlement_config: SettlementConfig | None = None,
        currency: str = "BRL",
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._config = settlement_config or SettlementConfig()
        self._currency = currency
        self._selector = ConsignmentSelector(session)
        self._calculator = SettlementCalculator()

    def _load(self, tenant_id, consignment_id, for_update: bool = False) -> ConsignmentRecord:
        record = self._selector.get(tenant_id, consignment_id, for_update=for_update)
        if record is None:
            raise RecordNotFoundError("consignment", consignment_id)
        return record

    def _rate(self, commission_rate_percent) -> Decimal:
        if commission_rate_percent is None:
            return self._config.default_commission_rate_percent
        return to_decimal(commission_rate_percent)

    def preview(
        self,
        tenant_id: UUID | str,
        consignment_id: UUID | str,
        sold_now: Mapping[str, int],
        stock_payment: Mapping[str, int] | None = None,
        stock_payment_enabled: bool = False,
        commission_rate_percent: Decimal | int | str | None = None,
    ) -> SettlementTotals:
        """Validate the input and compute totals without writing anything."""
        require_tenant(tenant_id, "ConsignmentSettlementService.preview")
        record = self._load(tenant_id, consignment_id)
        rate = self._rate(commission_rate_percent)
        items = validate_settlement(
            record.items,
            commission_rate_percent=rate,
            stock_payment=stock_payment,
            stock_payment_enabled=stock_payment_enabled,
            sold_now=sold_now,
        )
        return self._calculator.calculate(
            line_items=items,
            commission_rate_percent=rate,
            stock_payment=stock_payment,
            stock_payment_enabled=stock_payment_enabled,
        )

    def settle(
        self,
        tenant_id: UUID | str,
        consignment_id: UUID | str,
        sold_now: Mapping[str, int],
        actor_id: UUID | str,
        stock_payment: Mapping[str, int] | None = None,
        stock_payment_enabled: bool = False,
        commission_rate_percent: Decimal | int | str | None = None,
    ) -> SettlementResult:
        """
        Validate, compute and persist a settlement.

        ``stock_payment_value`` on the consignment accumulates across
        settlements, as ``used_as_payment`` does on each line.
        """
        tenant = require_tenant(tenant_id, "ConsignmentSettlementService.settle")
        with LogContext.bind(tenant_id=str(tenant), actor_id=str(actor_id)):
            rate = self._rate(commission_rate_percent)
            commission_txn_id: str | None = None
            with self._write_batch("consignment_settlement", consignment_id=str(consignment_id)):
                record = self._load(tenant, consignment_id, for_update=True)
                items = validate_settlement(
                    record.items,
                    commission_rate_percent=rate,
                    stock_payment=stock_payment,
                    stock_payment_enabled=stock_payment_enabled,
                    sold_now=sold_now,
                )
                totals = self._calculator.calculate(
                    line_items=items,
                    commission_rate_percent=rate,
                    stock_payment=stock_payment,
                    stock_payment_enabled=stock_payment_enabled,
                )
                updates = build_line_updates(items, stock_payment, stock_payment_enabled)
                payment_type = payment_type_for(totals)

                logger.info(
                    "consignment_settlement_started",
                    extra={
                        "consignment_id": record.id,
                        "line_count": len(updates),
                        "payment_type": payment_type.value,
                    },
                )

                rows = {
                    str(r.id): r
                    for r in self.session.execute(
                        select(ConsignmentItem).where(
                            ConsignmentItem.consignment_id == as_uuid(record.id)
                        )
                    ).scalars()
                }
                for update in updates:
                    row = rows[update.id]
                    row.sold = update.sold
                    row.remaining = update.remaining
                    row.used_as_payment = update.used_as_payment

                consignment = self.session.get(Consignment, as_uuid(record.id))
                consignment.status = ConsignmentStatus.SETTLED.value
                consignment.payment_type = payment_type.value
                consignment.stock_payment_value = round2(
                    record.stock_payment_value + totals.stock_payment_value
                )

                if totals.commission > 0:
                    txn = Transaction(
                        tenant_id=tenant,
                        type=TransactionType.EXPENSE.value,
                        amount=totals.commission,
                        category=self._config.commission_category,
                        dre_category=DreCategory.OPERATIONAL_COST.value,
                        cash_impact=True,
                        date=self.clock.now().date(),
                        notes=commission_note(totals, self._currency),
                    )
                    self.session.add(txn)
                    self.session.flush()
                    commission_txn_id = str(txn.id)

            return SettlementResult(
                consignment_id=record.id,
                totals=totals,
                payment_type=payment_type,
                line_updates=updates,
                commission_transaction_id=commission_txn_id,
            )

    def register_sale(
        self,
        tenant_id: UUID | str,
        item_id: UUID | str,
        quantity: int,
        actor_id: UUID | str | None = None,
    ) -> LineItemUpdate:
        """Record ``quantity`` pieces of one line sold by the reseller."""
        tenant = require_tenant(tenant_id, "ConsignmentSettlementService.register_sale")
        with LogContext.bind(tenant_id=str(tenant), actor_id=actor_id):
            if quantity < 1:
                raise InvalidQuantityError("quantity", quantity, minimum=1)

            with self._write_batch("reseller_sale", item_id=str(item_id), quantity=quantity):
                found = self._selector.get_item(tenant, item_id, for_update=True)
                if found is None:
                    raise RecordNotFoundError("consignment_item", item_id)
                _, item = found
                remaining = item.remaining_before_sale
                if quantity > remaining:
                    raise InsufficientRemainingError(item.id, quantity, remaining)

                update = build_line_updates([item.with_sold_now(quantity)])[0]
                row = self.session.get(ConsignmentItem, as_uuid(item.id))
                row.sold = update.sold
                row.remaining = update.remaining
            return update
