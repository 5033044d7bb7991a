"""
Configuration Loader (``erp_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen
``erp_config.schema`` dataclasses.  Runtime callers go through
``erp_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Monetary settings are parsed as ``Decimal`` from their string form.
* Out-of-range values raise ``ValueError``; missing optional sections fall
  back to the schema defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from erp_config.schema import (
    DatabaseConfig,
    ErpConfig,
    ReportingConfig,
    SettlementConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e
    if not number.is_finite():
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    return number


def parse_settlement(data: dict[str, Any]) -> SettlementConfig:
    defaults = SettlementConfig()
    rate = parse_decimal(
        data.get("default_commission_rate_percent", defaults.default_commission_rate_percent),
        "default_commission_rate_percent",
    )
    if rate < 0 or rate > 100:
        raise ValueError(f"default_commission_rate_percent must be 0-100, got {rate}")
    fallback = parse_decimal(
        data.get("fallback_unit_price", defaults.fallback_unit_price),
        "fallback_unit_price",
    )
    if fallback < 0:
        raise ValueError(f"fallback_unit_price must not be negative, got {fallback}")
    return SettlementConfig(
        default_commission_rate_percent=rate,
        fallback_unit_price=fallback,
        commission_category=data.get("commission_category", defaults.commission_category),
    )


def parse_reporting(data: dict[str, Any]) -> ReportingConfig:
    defaults = ReportingConfig()
    config = ReportingConfig(
        currency=data.get("currency", defaults.currency),
        divergence_alert_limit=int(
            data.get("divergence_alert_limit", defaults.divergence_alert_limit)
        ),
        top_cost_categories=int(data.get("top_cost_categories", defaults.top_cost_categories)),
        events_overview_limit=int(
            data.get("events_overview_limit", defaults.events_overview_limit)
        ),
    )
    for name in ("divergence_alert_limit", "top_cost_categories", "events_overview_limit"):
        if getattr(config, name) < 1:
            raise ValueError(f"{name} must be at least 1")
    return config


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    return DatabaseConfig(
        url=data.get("url", defaults.url),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> ErpConfig:
    """Parse a whole configuration set from its YAML mapping."""
    return ErpConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        settlement=parse_settlement(data.get("settlement") or {}),
        reporting=parse_reporting(data.get("reporting") or {}),
        database=parse_database(data.get("database") or {}),
    )
