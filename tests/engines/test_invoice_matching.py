"""
Tests for the statement matching engine.

Covers:
- The five outcomes and their priority
- Tolerance boundary and difference sign (seller - system)
- Reference normalization and duplicate-candidate selection
- The named invoice must bill the order
- Loose row mappings
- Exactly one outcome per row
"""

from decimal import Decimal

import pytest

from resale_engines.invoice_matching import (
    PROFIT_TOLERANCE,
    MatchOutcome,
    StatementRow,
    SystemOrderView,
    classify_row,
    match_statement,
)


def _row(reference="101", invoice="INV-001", profit="100"):
    return StatementRow(
        seller_reference=reference, invoice_number=invoice, profit=Decimal(profit)
    )


def _billed(order, invoice_number="INV-001", invoice_paid=False):
    return SystemOrderView(
        order=order, invoice_number=invoice_number, invoice_paid=invoice_paid
    )


@pytest.fixture
def delivered_view(make_order_record):
    return SystemOrderView(
        order=make_order_record("101", "delivered", profit="100"),
        invoice_number="INV-001",
    )


class TestOutcomes:
    def test_matched(self, delivered_view):
        report = match_statement(rows=[_row()], candidates=[delivered_view])
        assert report.lines[0].outcome == MatchOutcome.MATCHED
        assert report.lines[0].difference is None

    def test_profit_mismatch_difference_sign(self, make_order_record):
        view = _billed(make_order_record("101", "delivered", profit="105"))
        line = match_statement(rows=[_row(profit="100")], candidates=[view]).lines[0]

        assert line.outcome == MatchOutcome.PROFIT_MISMATCH
        assert line.difference == Decimal("-5")
        assert line.to_dict()["difference"] == "-5.00"

    def test_seller_claims_more(self, make_order_record):
        view = _billed(make_order_record("101", "delivered", profit="95"))
        line = classify_row(_row(profit="100"), [view])
        assert line.difference == Decimal("5")

    def test_not_found(self, delivered_view):
        line = match_statement(rows=[_row("999")], candidates=[delivered_view]).lines[0]
        assert line.outcome == MatchOutcome.NOT_FOUND
        assert line.system_reference is None

    def test_pending_is_not_delivered(self, make_order_record):
        view = _billed(make_order_record("101", "pending", profit="100"))
        line = classify_row(_row(), [view])
        assert line.outcome == MatchOutcome.NOT_DELIVERED

    def test_returned_is_not_delivered(self, make_order_record):
        view = _billed(make_order_record("101", "returned"))
        assert classify_row(_row(), [view]).outcome == MatchOutcome.NOT_DELIVERED

    def test_paid_invoice_is_already_paid(self, make_order_record):
        view = SystemOrderView(
            order=make_order_record("101", "delivered", profit="100"),
            invoice_number="INV-001",
            invoice_paid=True,
        )
        assert classify_row(_row(), [view]).outcome == MatchOutcome.ALREADY_PAID

    def test_paid_order_is_already_paid(self, make_order_record):
        view = _billed(make_order_record("101", "delivered", is_paid=True))
        assert classify_row(_row(), [view]).outcome == MatchOutcome.ALREADY_PAID

    def test_already_paid_outranks_mismatch(self, make_order_record):
        view = SystemOrderView(
            order=make_order_record("101", "delivered", profit="500"),
            invoice_number="INV-001",
            invoice_paid=True,
        )
        assert classify_row(_row(profit="100"), [view]).outcome == MatchOutcome.ALREADY_PAID

    def test_not_delivered_outranks_already_paid(self, make_order_record):
        view = SystemOrderView(
            order=make_order_record("101", "pending", is_paid=True),
            invoice_number="INV-001",
        )
        assert classify_row(_row(), [view]).outcome == MatchOutcome.NOT_DELIVERED

    def test_blank_reference_not_found(self, delivered_view):
        assert classify_row(_row(reference="  "), [delivered_view]).outcome == MatchOutcome.NOT_FOUND


class TestTolerance:
    def test_within_tolerance_matches(self, make_order_record):
        view = _billed(make_order_record("101", "delivered", profit="100.01"))
        assert classify_row(_row(profit="100"), [view]).outcome == MatchOutcome.MATCHED

    def test_beyond_tolerance_mismatches(self, make_order_record):
        view = _billed(make_order_record("101", "delivered", profit="100.02"))
        assert classify_row(_row(profit="100"), [view]).outcome == MatchOutcome.PROFIT_MISMATCH

    def test_custom_tolerance(self, make_order_record):
        view = _billed(make_order_record("101", "delivered", profit="103"))
        line = classify_row(_row(profit="100"), [view], tolerance=Decimal("5"))
        assert line.outcome == MatchOutcome.MATCHED

    def test_default_tolerance_constant(self):
        assert PROFIT_TOLERANCE == Decimal("0.01")


class TestReferenceLookup:
    def test_reference_trimmed_and_case_insensitive(self, make_order_record):
        view = _billed(make_order_record("ab-7", "delivered", profit="100"))
        report = match_statement(rows=[_row(reference=" AB-7 ")], candidates=[view])
        assert report.lines[0].outcome == MatchOutcome.MATCHED

    def test_prefers_order_on_named_invoice(self, make_order_record):
        first = SystemOrderView(
            order=make_order_record("101", "delivered", profit="100"),
            invoice_number="INV-001",
            invoice_paid=True,
        )
        second = SystemOrderView(
            order=make_order_record("101", "delivered", profit="100"),
            invoice_number="INV-002",
        )
        line = classify_row(_row(invoice="inv-002"), [first, second])
        assert line.outcome == MatchOutcome.MATCHED
        assert line.system_invoice_number == "INV-002"

    def test_blank_invoice_falls_back_to_earliest(self, make_order_record):
        first = SystemOrderView(order=make_order_record("101", "pending"))
        second = SystemOrderView(order=make_order_record("101", "delivered", profit="100"))
        line = classify_row(_row(invoice=""), [first, second])
        assert line.outcome == MatchOutcome.NOT_DELIVERED

    def test_invoice_not_billing_the_order_not_found(self, delivered_view):
        line = classify_row(_row(invoice="INV-999", profit="100"), [delivered_view])

        assert line.outcome == MatchOutcome.NOT_FOUND
        assert line.system_reference == "101"
        assert line.system_profit is None

    def test_unbilled_order_not_found_under_named_invoice(self, make_order_record):
        view = SystemOrderView(order=make_order_record("101", "delivered", profit="100"))
        line = classify_row(_row(invoice="INV-001"), [view])
        assert line.outcome == MatchOutcome.NOT_FOUND

    def test_invoice_compared_trimmed_and_case_insensitive(self, delivered_view):
        line = classify_row(_row(invoice=" inv-001 "), [delivered_view])
        assert line.outcome == MatchOutcome.MATCHED


class TestStatementRowFromMapping:
    def test_canonical_keys(self):
        row = StatementRow.from_mapping(
            {"seller_reference": " 12 ", "invoice_number": "INV-3", "profit": "45.5"}
        )
        assert row.seller_reference == "12"
        assert row.invoice_number == "INV-3"
        assert row.profit == Decimal("45.5")

    def test_short_keys(self):
        row = StatementRow.from_mapping({"reference": 12, "invoice": "INV-3", "profit": 10})
        assert row.seller_reference == "12"
        assert row.profit == Decimal("10")

    def test_invalid_profit_reads_as_zero(self):
        row = StatementRow.from_mapping({"reference": "1", "profit": "n/a"})
        assert row.profit == Decimal("0")


class TestReport:
    def test_one_outcome_per_row(self, make_order_record):
        candidates = [
            _billed(make_order_record("1", "delivered", profit="100")),
            _billed(make_order_record("2", "delivered", profit="90")),
            _billed(make_order_record("3", "pending")),
            _billed(make_order_record("4", "delivered"), invoice_paid=True),
        ]
        rows = [_row("1"), _row("2"), _row("3"), _row("4"), _row("5"), _row("1")]

        report = match_statement(rows=rows, candidates=candidates)
        summary = report.summary

        assert len(report.lines) == len(rows)
        assert summary["total"] == 6
        assert sum(summary[o.value] for o in MatchOutcome) == 6
        assert summary["matched"] == 2
        assert summary["profit_mismatch"] == 1
        assert summary["not_delivered"] == 1
        assert summary["already_paid"] == 1
        assert summary["not_found"] == 1
        assert summary["issues"] == 4

    def test_to_dict_buckets(self, delivered_view):
        data = match_statement(rows=[_row(), _row("x")], candidates=[delivered_view]).to_dict()

        assert set(data) == {o.value for o in MatchOutcome} | {"summary"}
        assert len(data["matched"]) == 1
        assert len(data["not_found"]) == 1
        assert data["matched"][0]["seller_reference"] == "101"

    def test_empty_statement(self):
        report = match_statement(rows=[], candidates=[])
        assert report.summary["total"] == 0
        assert report.summary["issues"] == 0
