"""
Structured JSON logging for the ERP core.

Every record under the ``erp_kernel`` logger becomes one JSON line carrying
the bound tenant, actor and operation, followed by the record's ``extra``
fields.  Money is written as a decimal string so amounts survive the trip
through JSON unchanged.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping
from uuid import UUID

_LOGGER_PREFIX = "erp_kernel"

_context: ContextVar[Mapping[str, str]] = ContextVar(
    "erp_log_context", default=MappingProxyType({})
)


class LogContext:
    """
    Who is doing what, attached to every log line while bound.

    ``tenant_id`` and ``actor_id`` are bound by each service call and
    ``operation`` by its write batch.  Values live in a ContextVar, so
    threads and asyncio tasks never see each other's fields.
    """

    FIELDS = ("tenant_id", "actor_id", "operation")

    @classmethod
    def _merged(cls, fields: Mapping[str, Any]) -> Mapping[str, str]:
        unknown = sorted(set(fields) - set(cls.FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields for the rest of the current context; None is skipped."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        current = _context.get()
        return {name: current[name] for name in cls.FIELDS if name in current}

    @classmethod
    def clear(cls) -> None:
        _context.set(MappingProxyType({}))

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Set fields for the block, restoring the previous ones afterwards."""
        token = _context.set(cls._merged(fields))
        try:
            yield
        finally:
            _context.reset(token)


_RECORD_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return repr(obj)


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Exceptions logged with ``exc_info`` add ``error_type``, ``error_message``,
    the kernel ``error_code`` when there is one, and the exception's public
    attributes under ``error_detail``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, val in vars(record).items():
            if key not in _RECORD_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["error_type"] = type(exc).__name__
            payload["error_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["error_code"] = code
            detail = {k: v for k, v in vars(exc).items() if not k.startswith("_")}
            if detail:
                payload["error_detail"] = detail
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger ``erp_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``erp_kernel`` logger; later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root.addHandler(h)


def reset_logging() -> None:
    """Drop the handlers added by ``configure_logging``.  Test suites only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
