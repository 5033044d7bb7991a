"""
Module: erp_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the store contract: they fetch rows
    filtered by tenant and foreign key and hand back frozen DTOs.
Architecture position: Kernel > Selectors.  May import from db/, models/,
    and domain/dtos.  MUST NOT import from engines, services, or config.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush, or commit.
    - DTO return convention: public methods return ``erp_kernel.domain.dtos``
      records, never ORM instances.
    - Explicit tenancy: every public method takes ``tenant_id`` and filters
      on it; a missing tenant raises TenantScopeError.

Failure modes:
    - Lookups by id return None when the row is absent or belongs to
      another tenant (never raises on absence of data).
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from erp_kernel.db.base import Base, require_tenant

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  The caller owns the session and its transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _tenant(tenant_id, operation: str) -> UUID:
        """Validate and normalize the tenant for ``operation``."""
        return require_tenant(tenant_id, operation)
