"""
Tests for the order profit engine.

Covers:
- Profit formula with known and unknown shipper price
- Display profit and amount formatting
- Product code parsing
- Profit drift checks
"""

from dataclasses import replace
from decimal import Decimal

from resale_engines.profit import (
    UNKNOWN_AMOUNT,
    calculate_order_profit,
    check_profit,
    display_profit,
    format_amount,
    parse_product_codes,
)


class TestCalculateOrderProfit:
    def test_profit_subtracts_shipper_and_delivery(self):
        assert calculate_order_profit(
            Decimal("1000"), Decimal("700"), Decimal("200")
        ) == Decimal("100")

    def test_unknown_shipper_price_counts_as_zero(self):
        assert calculate_order_profit(
            Decimal("1000"), None, Decimal("200")
        ) == Decimal("800")

    def test_profit_can_be_negative(self):
        assert calculate_order_profit(
            Decimal("500"), Decimal("450"), Decimal("200")
        ) == Decimal("-150")


class TestDisplayProfit:
    def test_display_profit_none_when_shipper_unknown(self, make_order_record):
        order = make_order_record(shipper_price=None)
        assert display_profit(order) is None

    def test_display_profit_from_components(self, make_order_record):
        order = make_order_record(seller_price="1500", shipper_price="900", delivery_charge="150")
        assert display_profit(order) == Decimal("450")

    def test_format_unknown_amount(self):
        assert format_amount(None) == UNKNOWN_AMOUNT == "-"

    def test_format_amount_with_grouping(self):
        assert format_amount(Decimal("1234.5")) == "Rs. 1,234.50"

    def test_format_amount_custom_symbol(self):
        assert format_amount(Decimal("-80"), "PKR") == "PKR -80.00"


class TestParseProductCodes:
    def test_trims_and_uppercases(self):
        assert parse_product_codes(" a1, b2 ,C3") == ["A1", "B2", "C3"]

    def test_blank_codes_dropped(self):
        assert parse_product_codes("A1,, ,B2,") == ["A1", "B2"]

    def test_duplicates_kept(self):
        assert parse_product_codes("A1,a1") == ["A1", "A1"]

    def test_list_input(self):
        assert parse_product_codes(["x", " y "]) == ["X", "Y"]

    def test_none_is_empty(self):
        assert parse_product_codes(None) == []


class TestProfitCheck:
    def test_consistent_order(self, make_order_record):
        result = check_profit(make_order_record())
        assert result.is_consistent
        assert result.drift == Decimal("0")

    def test_drift_after_component_change(self, make_order_record):
        order = replace(make_order_record(), seller_price=Decimal("1100"))
        result = check_profit(order)
        assert not result.is_consistent
        assert result.drift == Decimal("100")
        assert result.to_dict()["drift"] == "100.00"

    def test_unknown_shipper_is_not_drift(self, make_order_record):
        result = check_profit(make_order_record(shipper_price=None))
        assert result.drift is None
        assert result.is_consistent
        assert result.to_dict()["display_profit"] is None
