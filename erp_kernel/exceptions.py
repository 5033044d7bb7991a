"""
Typed Exception Hierarchy for the ERP Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Settlement and stock-return flows must tell the operator exactly what is
wrong before anything reaches the external store. Callers catch by type and
read structured attributes instead of parsing messages:

    try:
        service.settle(tenant_id, consignment_id, sold_now=..., actor_id=...)
    except SettlementValidationError as e:
        for problem in e.errors:
            show_inline(problem.code, problem.item_id)
    except BatchWriteError as e:
        toast(f"Settlement not committed: {e}")

Every class carries a class-level ``code`` (machine-readable, API-safe) and
keeps its context as attributes.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ErpKernelError (base)
    |
    +-- ValidationError
    |   +-- InsufficientRemainingError
    |   +-- StockPaymentExceedsRemainingError
    |   +-- UnknownLineItemError
    |   +-- InvalidQuantityError
    |   +-- InvalidCommissionRateError
    |   +-- MissingSelectionError
    |   +-- SettlementValidationError   (aggregate of the above)
    |   +-- InvalidPeriodError
    |
    +-- CountError
    |   +-- IncompleteCountError
    |   +-- InvalidTransitionError
    |   +-- StaleCountError
    |
    +-- ExternalStoreError
    |   +-- RecordNotFoundError
    |   +-- BatchWriteError
    |   +-- RemoteProcedureError
    |
    +-- TenantScopeError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                              | When Raised
--------------|-----------------------------------|-------------------------------------
Validation    | INSUFFICIENT_REMAINING            | Sale/return exceeds pending quantity
              | STOCK_PAYMENT_EXCEEDS_REMAINING   | Stock payment exceeds what is left
              | UNKNOWN_LINE_ITEM                 | Quantity given for a foreign item
              | INVALID_QUANTITY                  | Negative or below-minimum quantity
              | INVALID_COMMISSION_RATE           | Rate outside 0-100
              | MISSING_SELECTION                 | Required partner/item/event missing
              | SETTLEMENT_VALIDATION_FAILED      | One or more of the above, aggregated
              | INVALID_PERIOD                    | Period starts after it ends
--------------|-----------------------------------|-------------------------------------
Count         | INCOMPLETE_COUNT                  | Review requested with uncounted items
              | INVALID_COUNT_TRANSITION          | Action not allowed in current state
              | STALE_COUNT                       | Pending pieces changed since the count began
--------------|-----------------------------------|-------------------------------------
Store         | RECORD_NOT_FOUND                  | Parent/line row missing for tenant
              | BATCH_WRITE_FAILED                | Write batch rolled back
              | REMOTE_PROCEDURE_FAILED           | Stored procedure call failed
--------------|-----------------------------------|-------------------------------------
Tenant        | MISSING_TENANT                    | Operation invoked without tenant_id

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation errors never reach the store. They are raised before the
   first write and are always recoverable by user correction.

2. Store errors mean the whole batch was rolled back. Re-read the records
   before retrying; nothing is retried automatically.

===============================================================================
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence


class ErpKernelError(Exception):
    """
    Base exception for all ERP kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ERP_KERNEL_ERROR"


# Validation exceptions (caller-side, before commit)


class ValidationError(ErpKernelError):
    """Base exception for input validation errors."""

    code: str = "VALIDATION_ERROR"


class InsufficientRemainingError(ValidationError):
    """Requested quantity is larger than what is still pending."""

    code: str = "INSUFFICIENT_REMAINING"

    def __init__(self, item_id: str, requested: int, remaining: int):
        self.item_id = str(item_id)
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Item {item_id}: requested {requested}, only {remaining} remaining"
        )


class StockPaymentExceedsRemainingError(ValidationError):
    """Quantity designated as stock payment exceeds what is left after the sale."""

    code: str = "STOCK_PAYMENT_EXCEEDS_REMAINING"

    def __init__(self, item_id: str, requested: int, remaining: int):
        self.item_id = str(item_id)
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Item {item_id}: {requested} designated as stock payment, "
            f"only {remaining} left after sale"
        )


class UnknownLineItemError(ValidationError):
    """Quantity supplied for an item that is not part of the settlement."""

    code: str = "UNKNOWN_LINE_ITEM"

    def __init__(self, item_id: str):
        self.item_id = str(item_id)
        super().__init__(f"Unknown line item: {item_id}")


class InvalidQuantityError(ValidationError):
    """Quantity is negative or below the operation's minimum."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: int, minimum: int = 0):
        self.field = field
        self.value = value
        self.minimum = minimum
        super().__init__(f"Invalid quantity for {field}: {value} (minimum {minimum})")


class InvalidCommissionRateError(ValidationError):
    """Commission rate outside the 0-100 percent range."""

    code: str = "INVALID_COMMISSION_RATE"

    def __init__(self, rate: Decimal):
        self.rate = str(rate)
        super().__init__(f"Commission rate must be between 0 and 100, got {rate}")


class MissingSelectionError(ValidationError):
    """A required selection (partner, item, event, allocation) is missing."""

    code: str = "MISSING_SELECTION"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required selection: {field}")


class InvalidPeriodError(ValidationError):
    """A reporting or statement period starts after it ends."""

    code: str = "INVALID_PERIOD"

    def __init__(self, start, end):
        self.start = start
        self.end = end
        super().__init__(f"Period start {start} is after its end {end}")


class SettlementValidationError(ValidationError):
    """
    One or more settlement inputs are invalid.

    Aggregates every problem found so the operator can fix them in one pass.
    """

    code: str = "SETTLEMENT_VALIDATION_FAILED"

    def __init__(self, errors: Sequence[ValidationError]):
        self.errors = tuple(errors)
        super().__init__(
            f"Settlement rejected: {len(self.errors)} problem(s): "
            + "; ".join(str(e) for e in self.errors)
        )


# Blind-count session exceptions


class CountError(ErpKernelError):
    """Base exception for blind-count session errors."""

    code: str = "COUNT_ERROR"


class IncompleteCountError(CountError):
    """Review requested while some items have no explicit count."""

    code: str = "INCOMPLETE_COUNT"

    def __init__(self, missing_ids: Sequence[str]):
        self.missing_ids = tuple(str(i) for i in missing_ids)
        super().__init__(
            f"{len(self.missing_ids)} item(s) not counted: {', '.join(self.missing_ids)}"
        )


class InvalidTransitionError(CountError):
    """Action is not permitted from the session's current state."""

    code: str = "INVALID_COUNT_TRANSITION"

    def __init__(self, state: str, action: str):
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} while session is {state}")


class StaleCountError(CountError):
    """A line's pending pieces changed after the count was opened."""

    code: str = "STALE_COUNT"

    def __init__(self, item_id: str, expected: int, pending: int):
        self.item_id = str(item_id)
        self.expected = expected
        self.pending = pending
        super().__init__(
            f"Item {self.item_id}: counted against {expected} pending, "
            f"store now has {pending}; start a new count"
        )


# External store exceptions


class ExternalStoreError(ErpKernelError):
    """Base exception for failures talking to the external store."""

    code: str = "EXTERNAL_STORE_ERROR"


class RecordNotFoundError(ExternalStoreError):
    """Row not found within the caller's tenant."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, entity: str, record_id: str):
        self.entity = entity
        self.record_id = str(record_id)
        super().__init__(f"{entity} not found: {record_id}")


class BatchWriteError(ExternalStoreError):
    """
    A write batch failed and was rolled back.

    No write from the batch should be assumed applied; re-read before retry.
    """

    code: str = "BATCH_WRITE_FAILED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class RemoteProcedureError(ExternalStoreError):
    """A stored procedure of the external backend reported failure."""

    code: str = "REMOTE_PROCEDURE_FAILED"

    def __init__(self, procedure: str, reason: str):
        self.procedure = procedure
        self.reason = reason
        super().__init__(f"Remote procedure {procedure} failed: {reason}")


# Tenant scoping


class TenantScopeError(ErpKernelError):
    """Operation invoked without an explicit tenant."""

    code: str = "MISSING_TENANT"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} requires an explicit tenant_id")
