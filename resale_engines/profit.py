"""
resale_engines.profit -- Order profit calculation.

Responsibility:
    Compute the per-order profit that is sealed at creation time, the display
    profit derived from the current stored components, and the drift check
    between the two.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - profit = seller_price - (shipper_price or 0) - delivery_charge.
    - An absent shipper_price is unknown, not zero, for display purposes:
      display_profit() returns None and format_amount() renders "-".
    - Decimal-only arithmetic.

Usage:
    from resale_engines.profit import calculate_order_profit

    profit = calculate_order_profit(
        seller_price=Decimal("500"),
        shipper_price=Decimal("300"),
        delivery_charge=Decimal("50"),
    )  # Decimal("150")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from resale_kernel.db.types import ZERO, round_money
from resale_kernel.domain.dtos import OrderRecord

UNKNOWN_AMOUNT = "-"


def calculate_order_profit(
    seller_price: Decimal,
    shipper_price: Decimal | None,
    delivery_charge: Decimal,
) -> Decimal:
    """Profit sealed on the order at creation.  Missing shipper price counts as 0."""
    return seller_price - (shipper_price if shipper_price is not None else ZERO) - delivery_charge


def display_profit(order: OrderRecord) -> Decimal | None:
    """
    Profit derived from the order's current components.

    Returns None when the shipper price is unknown.
    """
    if order.shipper_price is None:
        return None
    return calculate_order_profit(
        order.seller_price, order.shipper_price, order.delivery_charge
    )


def format_amount(value: Decimal | None, symbol: str = "Rs.") -> str:
    """Render an amount as ``Rs. 1,234.50``; unknown amounts render as ``-``."""
    if value is None:
        return UNKNOWN_AMOUNT
    return f"{symbol} {round_money(value):,.2f}"


def parse_product_codes(raw: str | list[str] | None) -> list[str]:
    """
    Split a comma-separated product code string.

    Codes are trimmed and upper-cased; blanks are dropped.  Duplicates are
    kept, each one is a unit of the order.
    """
    if raw is None:
        return []
    parts = raw if isinstance(raw, list) else str(raw).split(",")
    return [p.strip().upper() for p in parts if p and p.strip()]


@dataclass(frozen=True)
class ProfitCheck:
    """Stored profit against the profit derived from current components."""

    order_id: UUID
    stored_profit: Decimal
    display_profit: Decimal | None

    @property
    def drift(self) -> Decimal | None:
        if self.display_profit is None:
            return None
        return self.display_profit - self.stored_profit

    @property
    def is_consistent(self) -> bool:
        """True when the components still reproduce the stored profit."""
        return self.drift is None or self.drift == ZERO

    def to_dict(self) -> dict:
        return {
            "order_id": str(self.order_id),
            "stored_profit": str(round_money(self.stored_profit)),
            "display_profit": (
                None if self.display_profit is None
                else str(round_money(self.display_profit))
            ),
            "drift": None if self.drift is None else str(round_money(self.drift)),
            "is_consistent": self.is_consistent,
        }


def check_profit(order: OrderRecord) -> ProfitCheck:
    return ProfitCheck(
        order_id=order.id,
        stored_profit=order.profit,
        display_profit=display_profit(order),
    )
