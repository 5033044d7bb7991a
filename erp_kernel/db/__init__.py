"""Database layer - engine, base classes, and session scope."""

from erp_kernel.db.base import UUID, Base, TenantScoped, UUIDString, as_uuid, require_tenant
from erp_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TenantScoped",
    "UUIDString",
    "UUID",
    "as_uuid",
    "require_tenant",
]
