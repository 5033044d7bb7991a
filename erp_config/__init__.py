"""
erp_config -- single public entrypoint for ERP configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the settlement and reporting
    sections from here; nothing else reads configuration files.

Architecture position:
    Configuration -- sits above ``erp_kernel`` and below ``erp_services``.
    The kernel and the engines MUST NEVER import from ``erp_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Deterministic identity: the same YAML always produces the same
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- a value is out of range.

Audit relevance:
    Every ``get_active_config()`` call emits an ``ERP_CONFIG_TRACE`` log
    entry with the config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from erp_config.loader import load_yaml_file, parse_config
from erp_config.schema import (
    DatabaseConfig,
    ErpConfig,
    ReportingConfig,
    SettlementConfig,
)

_logger = logging.getLogger("erp_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "ERP_CONFIG_PATH"


def get_active_config(config_path: Path | str | None = None) -> ErpConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: the ``config_path`` argument, then the
    ``ERP_CONFIG_PATH`` environment variable, then the packaged
    ``sets/default.yaml``.  Nothing is cached between calls.
    """
    path = Path(
        config_path
        or os.environ.get(CONFIG_PATH_ENV)
        or _DEFAULT_CONFIG_PATH
    )
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    config = parse_config(load_yaml_file(path))

    _logger.info(
        "ERP_CONFIG_TRACE",
        extra={
            "trace_type": "ERP_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "ErpConfig",
    "SettlementConfig",
    "ReportingConfig",
    "DatabaseConfig",
    "CONFIG_PATH_ENV",
]
