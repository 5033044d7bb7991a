"""
BaseService -- common transaction handling for ERP services.

Responsibility:
    Every service that writes to the external store inherits from
    ``BaseService``.  Each public write method wraps its reads-then-writes
    in ``_write_batch`` so that all per-line updates, the parent status
    update, and any inserted transaction commit together or not at all.

Architecture position:
    Services -- imperative shell over the pure engines.

Invariants enforced:
    - One transaction per public operation: commit on success, rollback on
      any exception.
    - Database failures surface as ``BatchWriteError`` (the batch was rolled
      back; the caller must re-read before retrying).  No automatic retry.
    - Kernel errors raised inside the batch (validation, remote procedure)
      propagate unchanged after the rollback.
"""

from __future__ import annotations

from abc import ABC
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import BatchWriteError
from erp_kernel.logging_config import LogContext, get_logger

logger = get_logger("services")


class BaseService(ABC):
    """
    Abstract base class for store-writing services.

    Contract:
        Receives the caller's Session (and optionally a Clock) by
        constructor injection.  Owns commit/rollback for its operations.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    @contextmanager
    def _write_batch(self, operation: str, **log_fields: Any) -> Iterator[Session]:
        """Run a block as one transaction; its log lines carry ``operation``."""
        with LogContext.bind(operation=operation):
            try:
                yield self.session
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(
                    f"{operation}_failed",
                    extra={**log_fields, "reason": str(e)},
                )
                raise BatchWriteError(operation, str(e)) from e
            except Exception as e:
                self.session.rollback()
                logger.warning(
                    f"{operation}_rejected",
                    extra={**log_fields, "error_code": getattr(e, "code", type(e).__name__)},
                )
                raise
            logger.info(f"{operation}_completed", extra=log_fields)
