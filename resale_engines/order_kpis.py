"""
resale_engines.order_kpis -- Order delivery statistics.

Responsibility:
    Status counts, delivery/return ratios and per-product-code and per-city
    breakdowns over a seller's orders (or all orders).

Architecture position:
    Engines -- pure, zero I/O.

Invariants enforced:
    - Every product code on an order counts once per occurrence; orders with
      no codes count under ``UNKNOWN``.  Orders with no city count under
      ``UNKNOWN``.
    - Ratios are percentages of total orders, 0 when there are no orders.
    - Breakdowns are sorted by count descending, then by key.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from resale_engines.profit import parse_product_codes
from resale_kernel.db.types import ZERO, round_money
from resale_kernel.domain.dtos import OrderRecord
from resale_kernel.domain.order_status import OrderStatus

UNKNOWN_KEY = "UNKNOWN"

_HUNDRED = Decimal("100")


@dataclass
class KpiBucket:
    key: str
    count: int = 0
    delivered: int = 0
    returned: int = 0

    def add(self, status: OrderStatus) -> None:
        self.count += 1
        if status == OrderStatus.DELIVERED:
            self.delivered += 1
        elif status == OrderStatus.RETURNED:
            self.returned += 1


@dataclass(frozen=True)
class OrderKpis:
    status_counts: dict[str, int]
    products: tuple[KpiBucket, ...] = field(default_factory=tuple)
    cities: tuple[KpiBucket, ...] = field(default_factory=tuple)

    @property
    def total_orders(self) -> int:
        return sum(self.status_counts.values())

    def _ratio(self, status: OrderStatus) -> Decimal:
        if not self.total_orders:
            return ZERO
        return round_money(
            Decimal(self.status_counts[status.value]) * _HUNDRED / Decimal(self.total_orders)
        )

    @property
    def delivery_ratio(self) -> Decimal:
        return self._ratio(OrderStatus.DELIVERED)

    @property
    def return_ratio(self) -> Decimal:
        return self._ratio(OrderStatus.RETURNED)

    def to_dict(self) -> dict:
        return {
            "summary": {
                "total_orders": self.total_orders,
                **self.status_counts,
                "delivery_ratio": str(self.delivery_ratio),
                "return_ratio": str(self.return_ratio),
            },
            "product_kpis": [
                {
                    "product_code": b.key,
                    "count": b.count,
                    "delivered": b.delivered,
                    "returned": b.returned,
                }
                for b in self.products
            ],
            "city_kpis": [
                {
                    "city": b.key,
                    "count": b.count,
                    "delivered": b.delivered,
                    "returned": b.returned,
                }
                for b in self.cities
            ],
        }


def _sorted(buckets: dict[str, KpiBucket]) -> tuple[KpiBucket, ...]:
    return tuple(sorted(buckets.values(), key=lambda b: (-b.count, b.key)))


def compute_order_kpis(orders: Sequence[OrderRecord]) -> OrderKpis:
    status_counts = {s.value: 0 for s in OrderStatus}
    products: dict[str, KpiBucket] = {}
    cities: dict[str, KpiBucket] = {}

    for order in orders:
        status_counts[order.status.value] += 1

        for code in parse_product_codes(order.product_codes) or [UNKNOWN_KEY]:
            products.setdefault(code, KpiBucket(code)).add(order.status)

        city = (order.city or "").strip() or UNKNOWN_KEY
        cities.setdefault(city, KpiBucket(city)).add(order.status)

    return OrderKpis(
        status_counts=status_counts,
        products=_sorted(products),
        cities=_sorted(cities),
    )
