"""
resale_engines.invoice_aggregation -- Seller invoice totals.

Responsibility:
    The single aggregation function over a set of orders.  Invoice
    generation, invoice statements and invoice listings all call
    ``aggregate_invoice``; none of them re-implement the branch logic.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - delivered orders add ``+profit`` to total profit and ``+seller_price``
      to the delivered seller-price total.
    - returned orders add nothing to profit except ``-delivery_charge``;
      their displayed profit is 0, never positive.
    - other statuses count in total_orders only.
    - tax = tax_rate x delivered seller-price total (never returns).
    - net_profit = total_profit - tax - other_expenses.
    - Aggregates always come from the live order state passed in.

Usage:
    totals = aggregate_invoice(
        orders=linked_orders,
        tax_rate=Decimal("0.04"),
        other_expenses=Decimal("50"),
    )
    totals.net_profit
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from resale_engines.tracer import traced_engine
from resale_kernel.db.types import ZERO, round_money
from resale_kernel.domain.dtos import OrderRecord
from resale_kernel.domain.order_status import BILLABLE_STATUSES, OrderStatus
from resale_kernel.logging_config import get_logger

logger = get_logger("engines.invoice_aggregation")

DEFAULT_TAX_RATE = Decimal("0.04")


@dataclass(frozen=True)
class InvoiceOrderLine:
    """One order's contribution to an invoice."""

    order_id: UUID
    seller_reference_number: str
    status: OrderStatus
    seller_price: Decimal
    shipper_price: Decimal | None
    delivery_charge: Decimal
    displayed_profit: Decimal
    profit_contribution: Decimal

    def to_dict(self) -> dict:
        return {
            "order_id": str(self.order_id),
            "seller_reference_number": self.seller_reference_number,
            "status": self.status.value,
            "seller_price": str(round_money(self.seller_price)),
            "shipper_price": (
                None if self.shipper_price is None
                else str(round_money(self.shipper_price))
            ),
            "delivery_charge": str(round_money(self.delivery_charge)),
            "profit": str(round_money(self.displayed_profit)),
            "profit_contribution": str(round_money(self.profit_contribution)),
        }


@dataclass(frozen=True)
class InvoiceTotals:
    """Derived invoice figures.  Never persisted."""

    total_orders: int
    delivered_orders: int
    return_orders: int
    total_seller_price: Decimal
    total_shipper_price: Decimal
    total_delivered_seller_price: Decimal
    net_delivery_charge: Decimal
    total_profit: Decimal
    tax_rate: Decimal
    tax: Decimal
    other_expenses: Decimal
    net_profit: Decimal
    lines: tuple[InvoiceOrderLine, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "total_orders": self.total_orders,
            "delivered_orders": self.delivered_orders,
            "return_orders": self.return_orders,
            "total_seller_price": str(round_money(self.total_seller_price)),
            "total_shipper_price": str(round_money(self.total_shipper_price)),
            "total_delivered_seller_price": str(
                round_money(self.total_delivered_seller_price)
            ),
            "net_delivery_charge": str(round_money(self.net_delivery_charge)),
            "total_profit": str(round_money(self.total_profit)),
            "tax_rate": str(self.tax_rate),
            "tax": str(round_money(self.tax)),
            "other_expenses": str(round_money(self.other_expenses)),
            "net_profit": str(round_money(self.net_profit)),
            "orders": [line.to_dict() for line in self.lines],
        }


def _line_for(order: OrderRecord) -> InvoiceOrderLine:
    if order.status == OrderStatus.DELIVERED:
        displayed, contribution = order.profit, order.profit
    elif order.status == OrderStatus.RETURNED:
        displayed, contribution = ZERO, -abs(order.delivery_charge)
    else:
        displayed, contribution = ZERO, ZERO
    return InvoiceOrderLine(
        order_id=order.id,
        seller_reference_number=order.seller_reference_number,
        status=order.status,
        seller_price=order.seller_price,
        shipper_price=order.shipper_price,
        delivery_charge=order.delivery_charge,
        displayed_profit=displayed,
        profit_contribution=contribution,
    )


@traced_engine(
    "invoice_aggregation", "1.0", fingerprint_fields=("tax_rate", "other_expenses")
)
def aggregate_invoice(
    *,
    orders: Sequence[OrderRecord],
    tax_rate: Decimal = DEFAULT_TAX_RATE,
    other_expenses: Decimal = ZERO,
) -> InvoiceTotals:
    """
    Aggregate an order set into invoice totals.

    Args:
        orders: Orders on the invoice (or about to be).
        tax_rate: Fraction of delivered seller price charged as tax.
        other_expenses: Deducted from net profit; must be >= 0.

    Raises:
        ValueError: other_expenses is negative.
    """
    if other_expenses < ZERO:
        raise ValueError("other_expenses must be non-negative")

    lines = tuple(_line_for(o) for o in orders)

    delivered = [ln for ln in lines if ln.status == OrderStatus.DELIVERED]
    returned = [ln for ln in lines if ln.status == OrderStatus.RETURNED]

    total_profit = sum((ln.profit_contribution for ln in lines), ZERO)
    delivered_seller_price = sum((ln.seller_price for ln in delivered), ZERO)
    tax = tax_rate * delivered_seller_price

    totals = InvoiceTotals(
        total_orders=len(lines),
        delivered_orders=len(delivered),
        return_orders=len(returned),
        total_seller_price=sum((ln.seller_price for ln in lines), ZERO),
        total_shipper_price=sum(
            (ln.shipper_price for ln in lines if ln.shipper_price is not None), ZERO
        ),
        total_delivered_seller_price=delivered_seller_price,
        net_delivery_charge=(
            sum((ln.delivery_charge for ln in delivered), ZERO)
            - sum((ln.delivery_charge for ln in returned), ZERO)
        ),
        total_profit=total_profit,
        tax_rate=tax_rate,
        tax=tax,
        other_expenses=other_expenses,
        net_profit=total_profit - tax - other_expenses,
        lines=lines,
    )

    logger.debug(
        "invoice_aggregated",
        extra={
            "total_orders": totals.total_orders,
            "delivered_orders": totals.delivered_orders,
            "return_orders": totals.return_orders,
            "net_profit": str(totals.net_profit),
        },
    )
    return totals


def is_billable(order: OrderRecord) -> bool:
    """Unbilled, unpaid, and delivered or returned."""
    return (
        order.invoice_id is None
        and not order.is_paid
        and order.status in BILLABLE_STATUSES
    )


def select_billable_orders(orders: Sequence[OrderRecord]) -> list[OrderRecord]:
    return [o for o in orders if is_billable(o)]


def status_breakdown(orders: Sequence[OrderRecord]) -> dict[str, int]:
    """Count of orders per status value, for the no-eligible-orders report."""
    counts = Counter(o.status.value for o in orders)
    return dict(sorted(counts.items()))
