"""
Tests for OrderService.

Covers:
- Creation: validation, status normalization, sealed profit
- Duplicate seller reference rejection
- Updates never recompute profit; sealed fields rejected by the service
  and by the ORM listener
- Next reference number, profit drift and KPIs through the store
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from resale_kernel.domain.order_status import OrderStatus
from resale_kernel.exceptions import (
    DuplicateOrderReferenceError,
    ImmutabilityViolationError,
    InvalidFieldError,
    MissingFieldError,
    OrderNotFoundError,
)
from resale_kernel.models.order import Order


class TestCreateOrder:
    def test_profit_sealed_at_creation(self, create_order):
        order = create_order("101", seller_price="1500", shipper_price="900", delivery_charge="150")

        assert order.profit == Decimal("450")
        assert order.status == OrderStatus.PENDING
        assert order.invoice_id is None
        assert order.is_paid is False

    def test_blank_shipper_price_is_unknown(self, create_order, order_service):
        order = create_order("101", shipper_price="")

        assert order.shipper_price is None
        assert order.profit == Decimal("800")
        assert order_service.format_profit(order) == "-"

    def test_product_codes_normalized(self, create_order):
        order = create_order("101", product_codes=" a1 , b2,,")
        assert order.product_codes == "A1,B2"
        assert order.product_code_list == ["A1", "B2"]

    def test_return_status_alias(self, create_order):
        assert create_order("101", status="Return").status == OrderStatus.RETURNED

    def test_unknown_status_rejected(self, create_order):
        with pytest.raises(InvalidFieldError) as exc_info:
            create_order("101", status="lost")
        assert exc_info.value.field == "status"

    @pytest.mark.parametrize(
        "field, value, error",
        [
            ("seller_price", None, MissingFieldError),
            ("seller_price", "abc", InvalidFieldError),
            ("seller_price", "-1", InvalidFieldError),
            ("delivery_charge", "0", InvalidFieldError),
            ("shipper_price", "-5", InvalidFieldError),
            ("product_codes", " , ", MissingFieldError),
            ("qty", 0, InvalidFieldError),
        ],
    )
    def test_validation(self, create_order, field, value, error):
        with pytest.raises(error) as exc_info:
            create_order("101", **{field: value})
        assert exc_info.value.field == field

    def test_missing_reference(self, create_order):
        with pytest.raises(MissingFieldError):
            create_order("   ")

    def test_duplicate_reference_same_seller(self, create_order):
        create_order("101")
        with pytest.raises(DuplicateOrderReferenceError):
            create_order("101")

    def test_same_reference_other_seller(self, create_order):
        create_order("101")
        other = create_order("101", seller_id=uuid4())
        assert other.seller_reference_number == "101"

    def test_creation_logged(self, create_order, captured_logs):
        order = create_order("101")
        logs = [r for r in captured_logs() if r["message"] == "order_created"]
        assert logs[0]["order_id"] == str(order.id)


class TestUpdateOrder:
    def test_update_does_not_recompute_profit(self, create_order, order_service):
        order = create_order("101")
        updated = order_service.update_order(
            order.id, seller_price="5000", status="delivered", city=" Multan "
        )

        assert updated.seller_price == Decimal("5000")
        assert updated.status == OrderStatus.DELIVERED
        assert updated.city == "Multan"
        assert updated.profit == Decimal("100")

    def test_profit_update_rejected(self, create_order, order_service):
        order = create_order("101")
        with pytest.raises(ImmutabilityViolationError):
            order_service.update_order(order.id, profit="999")

    def test_shipper_price_update_rejected(self, create_order, order_service):
        order = create_order("101")
        with pytest.raises(ImmutabilityViolationError):
            order_service.update_order(order.id, shipper_price="1")

    def test_unknown_field_rejected(self, create_order, order_service):
        order = create_order("101")
        with pytest.raises(InvalidFieldError):
            order_service.update_order(order.id, invoice_id=uuid4())

    def test_missing_order(self, order_service):
        with pytest.raises(OrderNotFoundError):
            order_service.update_order(uuid4(), city="Lahore")


class TestOrmGuard:
    def test_profit_sealed_at_flush(self, create_order, session):
        order = create_order("101")
        row = session.get(Order, order.id)
        row.profit = Decimal("1")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_shipper_price_sealed_at_flush(self, create_order, session):
        order = create_order("101")
        row = session.get(Order, order.id)
        row.shipper_price = Decimal("1")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_other_fields_writable(self, create_order, session):
        order = create_order("101")
        row = session.get(Order, order.id)
        row.status = OrderStatus.DELIVERED.value
        session.flush()


class TestQueries:
    def test_next_reference_number(self, create_order, order_service, seller_id):
        assert order_service.next_reference_number(seller_id) == 1
        create_order("7")
        create_order("12")
        create_order("X-1")
        assert order_service.next_reference_number(seller_id) == 13

    def test_list_by_status(self, create_order, order_service, seller_id):
        create_order("1", status="delivered")
        create_order("2")
        delivered = order_service.list_orders(seller_id, status="delivered")
        assert [o.seller_reference_number for o in delivered] == ["1"]

    def test_check_profit_drift(self, create_order, order_service, captured_logs):
        order = create_order("101")
        order_service.update_order(order.id, seller_price="1100")

        result = order_service.check_profit(order.id)

        assert result.drift == Decimal("100")
        assert any(r["message"] == "order_profit_drift" for r in captured_logs())

    def test_kpis(self, create_order, order_service, seller_id):
        create_order("1", status="delivered")
        create_order("2", status="returned")
        kpis = order_service.order_kpis(seller_id)
        assert kpis.delivery_ratio == Decimal("50.00")
