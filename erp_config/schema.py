"""
ERP configuration schema.

Frozen dataclasses that YAML configuration sets are parsed into by the
loader.  ``ErpConfig`` is the runtime artifact returned by
``erp_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class SettlementConfig:
    """Commission and rounding conventions for settlements."""

    default_commission_rate_percent: Decimal = Decimal("40")
    fallback_unit_price: Decimal = Decimal("50")
    commission_category: str = "Commission"


@dataclass(frozen=True)
class ReportingConfig:
    currency: str = "BRL"
    divergence_alert_limit: int = 10
    top_cost_categories: int = 8
    events_overview_limit: int = 6


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5


@dataclass(frozen=True)
class ErpConfig:
    """The loaded, validated configuration set."""

    config_id: str
    version: int
    checksum: str
    settlement: SettlementConfig = field(default_factory=SettlementConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
