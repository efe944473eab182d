"""
resale_config -- single public entrypoint for configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration at
    runtime.  No other component reads configuration files or environment
    variables.

Architecture position:
    Configuration sits above ``resale_kernel``.  The kernel never imports
    from this package; callers pass the returned ``ResaleConfig`` into
    ``store_scope()`` and the services.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file or set does not exist.
    - ``ValueError`` -- a value is out of range.

Every successful call emits a ``RESALE_CONFIG_TRACE`` log record with the
config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from resale_config.loader import load_yaml_file, parse_config
from resale_config.schema import (
    BillingConfig,
    CurrencyConfig,
    DatabaseConfig,
    LedgerConfig,
    MatchingConfig,
    ResaleConfig,
)

_logger = logging.getLogger("resale_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "RESALE_DATABASE_URL"


def _resolve(config_path: Path | None, config_name: str) -> Path:
    if config_path is None:
        return _DEFAULT_CONFIG_DIR / config_name / "root.yaml"
    config_path = Path(config_path)
    if config_path.is_dir():
        return config_path / "root.yaml"
    return config_path


def get_active_config(
    config_path: Path | None = None,
    config_name: str = "default",
) -> ResaleConfig:
    """
    The ONLY public configuration entrypoint.

    Args:
        config_path: A YAML file, or a directory holding ``root.yaml``.
            Defaults to ``resale_config/sets/<config_name>/root.yaml``.
        config_name: Configuration set under ``sets/``.

    Environment:
        RESALE_DATABASE_URL, when set and non-empty, replaces
        ``database.url``.

    Raises:
        FileNotFoundError: No such configuration file.
        ValueError: A value is out of range.
    """
    path = _resolve(config_path, config_name)
    config = parse_config(load_yaml_file(path))

    env_url = os.environ.get(DATABASE_URL_ENV, "").strip()
    if env_url:
        config = replace(config, database=replace(config.database, url=env_url))

    _logger.info(
        "RESALE_CONFIG_TRACE",
        extra={
            "trace_type": "RESALE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "database_configured": config.database.url is not None,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "DATABASE_URL_ENV",
    "ResaleConfig",
    "CurrencyConfig",
    "BillingConfig",
    "MatchingConfig",
    "LedgerConfig",
    "DatabaseConfig",
]
