"""
Configuration schema (``resale_config.schema``).

Frozen dataclasses for every configuration section.  Instances are built by
``resale_config.loader`` from YAML and are immutable once returned by
``get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class CurrencyConfig:
    code: str = "PKR"
    symbol: str = "Rs."


@dataclass(frozen=True)
class BillingConfig:
    """Seller invoice generation."""

    tax_rate: Decimal = Decimal("0.04")
    bill_prefix: str = "INV-"
    number_width: int = 3

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.tax_rate < Decimal("1"):
            raise ValueError(f"billing.tax_rate must be in [0, 1): {self.tax_rate}")
        if self.number_width < 1:
            raise ValueError("billing.number_width must be >= 1")


@dataclass(frozen=True)
class MatchingConfig:
    """Seller statement reconciliation."""

    profit_tolerance: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if self.profit_tolerance < 0:
            raise ValueError("matching.profit_tolerance must be non-negative")


@dataclass(frozen=True)
class LedgerConfig:
    """Khata bills and payments."""

    bill_prefix: str = "BILL-"
    number_width: int = 3
    default_payment_method: str = "Cash"
    party_choices: tuple[str, ...] = field(
        default=("Party 1", "Party 2", "Party 3", "Party 4", "Party 5")
    )


@dataclass(frozen=True)
class DatabaseConfig:
    """None url means no database: the fail-fast store is used."""

    url: str | None = None
    echo: bool = False


@dataclass(frozen=True)
class ResaleConfig:
    config_id: str
    version: int
    currency: CurrencyConfig = field(default_factory=CurrencyConfig)
    billing: BillingConfig = field(default_factory=BillingConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    checksum: str = ""
