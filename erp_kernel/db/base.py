"""
Module: erp_kernel.db.base
Responsibility: Declarative base classes for the ORM mirror of the external
    store.  Provides the UUID primary key convention, the type annotation map
    for consistent column types, and the TenantScoped mixin that puts an
    explicit ``tenant_id`` on every row.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import
    from models/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Decimal precision: ``Decimal`` maps to Numeric(38, 9).  NEVER use float
      for monetary amounts.
    - Tenant scoping: every store table carries a non-null, indexed
      ``tenant_id``; selectors and services filter on it explicitly.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from erp_kernel.exceptions import TenantScopeError


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID (or UUID string) -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(as_uuid(value))
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


def as_uuid(value) -> PyUUID:
    """Accept a UUID or its string form; raise ValueError otherwise."""
    if isinstance(value, PyUUID):
        return value
    return PyUUID(str(value))


class Base(DeclarativeBase):
    """
    Declarative base for all store models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TenantScoped:
    """Mixin adding the owning tenant to a store table."""

    tenant_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
        index=True,
    )


UUID = PyUUID


def require_tenant(tenant_id, operation: str) -> PyUUID:
    """Normalize the explicit tenant of ``operation``; reject a missing one."""
    if tenant_id is None or tenant_id == "":
        raise TenantScopeError(operation)
    return as_uuid(tenant_id)
