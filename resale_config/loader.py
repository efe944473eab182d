"""
Configuration loader (``resale_config.loader``).

Loads a YAML configuration file and parses it into ``resale_config.schema``
dataclasses.  Callers use ``resale_config.get_active_config()``; this module
is its implementation.

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` -> ``KeyError``.
* Out-of-range values -> ``ValueError`` from the schema dataclasses.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from resale_config.schema import (
    BillingConfig,
    CurrencyConfig,
    DatabaseConfig,
    LedgerConfig,
    MatchingConfig,
    ResaleConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, default: str) -> Decimal:
    """YAML floats are read through str() so 0.04 stays exactly 0.04."""
    if value is None:
        return Decimal(default)
    return Decimal(str(value))


def parse_currency(data: dict[str, Any]) -> CurrencyConfig:
    return CurrencyConfig(
        code=data.get("code", "PKR"),
        symbol=data.get("symbol", "Rs."),
    )


def parse_billing(data: dict[str, Any]) -> BillingConfig:
    return BillingConfig(
        tax_rate=parse_decimal(data.get("tax_rate"), "0.04"),
        bill_prefix=data.get("bill_prefix", "INV-"),
        number_width=int(data.get("number_width", 3)),
    )


def parse_matching(data: dict[str, Any]) -> MatchingConfig:
    return MatchingConfig(
        profit_tolerance=parse_decimal(data.get("profit_tolerance"), "0.01"),
    )


def parse_ledger(data: dict[str, Any]) -> LedgerConfig:
    choices = data.get("party_choices")
    return LedgerConfig(
        bill_prefix=data.get("bill_prefix", "BILL-"),
        number_width=int(data.get("number_width", 3)),
        default_payment_method=data.get("default_payment_method", "Cash"),
        party_choices=tuple(choices) if choices else LedgerConfig().party_choices,
    )


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=data.get("url") or None,
        echo=bool(data.get("echo", False)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form; identical data, identical checksum."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> ResaleConfig:
    """
    Parse a whole configuration document.

    Raises:
        KeyError: ``config_id`` missing.
        ValueError: a section value is out of range.
    """
    return ResaleConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        currency=parse_currency(data.get("currency") or {}),
        billing=parse_billing(data.get("billing") or {}),
        matching=parse_matching(data.get("matching") or {}),
        ledger=parse_ledger(data.get("ledger") or {}),
        database=parse_database(data.get("database") or {}),
        checksum=compute_checksum(data),
    )
