"""
ERP Kernel - settlement and reconciliation core

Shared foundation for the consignment/event settlement engines:
- Structured logging with request-scoped context
- Typed, code-carrying exceptions
- Decimal-safe rounding helpers
- Immutable DTOs for records read from the external store
- SQLAlchemy models and read-only selectors over that store
"""

__version__ = "0.1.0"
