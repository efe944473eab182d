"""
OrderService -- order creation, updates and profit checks.

Responsibility:
    Validate new orders, compute and seal their profit, apply later edits
    without ever recomputing profit, and expose the next seller reference,
    profit drift checks and delivery KPIs.

Invariants enforced:
    - profit = seller_price - (shipper_price or 0) - delivery_charge, once,
      at creation.
    - seller_price >= 0, delivery_charge > 0, shipper_price >= 0 when given.
    - seller_reference_number is unique per seller.
    - profit and shipper_price are rejected on update here, and again by
      the ORM listener in db/immutability.py.

Failure modes:
    - MissingFieldError / InvalidFieldError naming the offending field.
    - DuplicateOrderReferenceError.
    - ImmutabilityViolationError on an attempt to change a sealed field.
    - OrderNotFoundError.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from resale_engines.numbering import next_reference_number
from resale_engines.order_kpis import OrderKpis, compute_order_kpis
from resale_engines.profit import (
    ProfitCheck,
    calculate_order_profit,
    check_profit,
    display_profit,
    format_amount,
    parse_product_codes,
)
from resale_kernel.db.types import ZERO
from resale_kernel.domain.clock import Clock
from resale_kernel.domain.dtos import OrderRecord
from resale_kernel.domain.order_status import OrderStatus, normalize_status
from resale_kernel.exceptions import (
    DuplicateOrderReferenceError,
    ImmutabilityViolationError,
    InvalidFieldError,
    MissingFieldError,
    OrderNotFoundError,
)
from resale_kernel.logging_config import get_logger
from resale_kernel.models.order import SEALED_ORDER_FIELDS
from resale_kernel.services.base import (
    BaseService,
    optional_text,
    parse_money,
    require_text,
)
from resale_kernel.store.base import ResaleStore

logger = get_logger("services.order")

_TEXT_FIELDS = frozenset({
    "customer_name",
    "phone_number_1",
    "phone_number_2",
    "customer_address",
    "city",
    "courier_service",
    "tracking_id",
})

UPDATABLE_FIELDS = _TEXT_FIELDS | {
    "status",
    "is_paid",
    "seller_price",
    "delivery_charge",
    "qty",
    "product_codes",
}


def _check_seller_price(value: Any) -> Decimal:
    amount = parse_money("seller_price", value)
    if amount < ZERO:
        raise InvalidFieldError("seller_price", value, "must be zero or greater")
    return amount


def _check_delivery_charge(value: Any) -> Decimal:
    amount = parse_money("delivery_charge", value)
    if amount <= ZERO:
        raise InvalidFieldError("delivery_charge", value, "must be greater than zero")
    return amount


def _check_qty(value: Any) -> int:
    try:
        qty = int(value)
    except (TypeError, ValueError):
        raise InvalidFieldError("qty", value, "must be a whole number") from None
    if qty < 1:
        raise InvalidFieldError("qty", value, "must be at least 1")
    return qty


def _join_codes(raw: Any) -> str:
    codes = parse_product_codes(raw)
    if not codes:
        raise MissingFieldError("product_codes")
    return ",".join(codes)


class OrderService(BaseService):
    """Order lifecycle over the storage port."""

    def __init__(
        self,
        store: ResaleStore,
        clock: Clock | None = None,
        currency_symbol: str = "Rs.",
    ):
        super().__init__(store, clock)
        self.currency_symbol = currency_symbol

    def create_order(
        self,
        *,
        seller_id: UUID,
        seller_reference_number: Any,
        product_codes: Any,
        seller_price: Any,
        delivery_charge: Any,
        shipper_price: Any = None,
        status: Any = None,
        qty: Any = 1,
        customer_name: str | None = None,
        phone_number_1: str | None = None,
        phone_number_2: str | None = None,
        customer_address: str | None = None,
        city: str | None = None,
        courier_service: str | None = None,
        tracking_id: str | None = None,
        actor_id: UUID | None = None,
    ) -> OrderRecord:
        """
        Validate and create an order with its sealed profit.

        Prices accept Decimal, int or numeric strings.  A blank shipper price
        is stored as NULL (unknown), not zero.
        """
        if seller_id is None:
            raise MissingFieldError("seller_id")
        reference = require_text("seller_reference_number", seller_reference_number)
        codes = _join_codes(product_codes)
        seller_amount = _check_seller_price(seller_price)
        dc = _check_delivery_charge(delivery_charge)
        shipper_amount = parse_money("shipper_price", shipper_price, required=False)
        if shipper_amount is not None and shipper_amount < ZERO:
            raise InvalidFieldError("shipper_price", shipper_price, "must be zero or greater")
        order_status = normalize_status(status)
        quantity = _check_qty(qty)

        if self.store.find_orders_by_reference(reference, seller_id=seller_id):
            logger.warning(
                "order_duplicate_reference",
                extra={"seller_id": str(seller_id), "reference": reference},
            )
            raise DuplicateOrderReferenceError(str(seller_id), reference)

        profit = calculate_order_profit(seller_amount, shipper_amount, dc)

        order = self.store.add_order(
            seller_id=seller_id,
            seller_reference_number=reference,
            product_codes=codes,
            seller_price=seller_amount,
            shipper_price=shipper_amount,
            delivery_charge=dc,
            profit=profit,
            status=order_status.value,
            qty=quantity,
            customer_name=optional_text(customer_name),
            phone_number_1=optional_text(phone_number_1),
            phone_number_2=optional_text(phone_number_2),
            customer_address=optional_text(customer_address),
            city=optional_text(city),
            courier_service=optional_text(courier_service),
            tracking_id=optional_text(tracking_id),
            is_paid=False,
            created_by_id=actor_id,
        )
        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "seller_id": str(seller_id),
                "reference": reference,
                "profit": str(profit),
            },
        )
        return order

    def update_order(
        self,
        order_id: UUID,
        *,
        actor_id: UUID | None = None,
        **changes: Any,
    ) -> OrderRecord:
        """
        Apply field edits.  Profit is never recomputed.

        Raises:
            ImmutabilityViolationError: profit or shipper_price in changes.
            InvalidFieldError: unknown field or bad value.
        """
        sealed = sorted(SEALED_ORDER_FIELDS & changes.keys())
        if sealed:
            logger.error(
                "order_sealed_field_update_rejected",
                extra={"order_id": str(order_id), "fields": sealed},
            )
            raise ImmutabilityViolationError(
                "Order",
                str(order_id),
                f"Cannot modify field '{sealed[0]}' after the order is created",
            )

        unknown = sorted(changes.keys() - UPDATABLE_FIELDS)
        if unknown:
            raise InvalidFieldError(unknown[0], changes[unknown[0]], "field cannot be updated")

        clean: dict[str, Any] = {}
        for key, value in changes.items():
            if key == "status":
                clean[key] = normalize_status(value).value
            elif key == "seller_price":
                clean[key] = _check_seller_price(value)
            elif key == "delivery_charge":
                clean[key] = _check_delivery_charge(value)
            elif key == "qty":
                clean[key] = _check_qty(value)
            elif key == "product_codes":
                clean[key] = _join_codes(value)
            elif key == "is_paid":
                clean[key] = bool(value)
            else:
                clean[key] = optional_text(value)
        if actor_id is not None:
            clean["updated_by_id"] = actor_id

        self.get_order(order_id)
        order = self.store.update_order(order_id, clean)
        logger.info(
            "order_updated",
            extra={"order_id": str(order_id), "fields": sorted(changes)},
        )
        return order

    def get_order(self, order_id: UUID) -> OrderRecord:
        order = self.store.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def list_orders(
        self,
        seller_id: UUID | None = None,
        status: str | OrderStatus | None = None,
    ) -> list[OrderRecord]:
        return self.store.list_orders(
            seller_id=seller_id,
            status=normalize_status(status) if status is not None else None,
        )

    def next_reference_number(self, seller_id: UUID) -> int:
        """Highest numeric reference of the seller + 1."""
        return next_reference_number(self.store.list_order_references(seller_id))

    def check_profit(self, order_id: UUID) -> ProfitCheck:
        result = check_profit(self.get_order(order_id))
        if not result.is_consistent:
            logger.warning("order_profit_drift", extra=result.to_dict())
        return result

    def format_profit(self, order: OrderRecord) -> str:
        """Display profit, ``-`` when the shipper price is unknown."""
        return format_amount(display_profit(order), self.currency_symbol)

    def order_kpis(self, seller_id: UUID | None = None) -> OrderKpis:
        return compute_order_kpis(self.store.list_orders(seller_id=seller_id))
