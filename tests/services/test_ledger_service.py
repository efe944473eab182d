"""
Tests for LedgerService (khata).

Covers:
- The worked ledger scenario and the payment cap
- Bills from product lines, numbering, upfront payments
- Bill and payment deletion rules (service and ORM guard)
- Customer CRUD and party normalization
- Filters, dashboard and party statistics
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from resale_kernel.exceptions import (
    BillReferencedError,
    CustomerReferencedError,
    DuplicateCustomerPhoneError,
    DuplicateLedgerBillError,
    InvalidFieldError,
    LedgerBillNotFoundError,
    LedgerCustomerNotFoundError,
    MissingFieldError,
    PaymentExceedsBalanceError,
    PaymentNotFoundError,
)
from resale_kernel.models.ledger import LedgerBill, LedgerPayment
from resale_kernel.store.base import BillLineInput, KhataFilter


def _cloth(meters="10", price="100"):
    return {"product_name": "Lawn", "meters": meters, "meter_price": price}


class TestLedgerScenario:
    def test_running_balance_and_cap(self, ledger_service, ledger_customer, day):
        ledger_service.create_bill(ledger_customer.id, [_cloth()], bill_date=day(1))
        ledger_service.record_payment(ledger_customer.id, "400", payment_date=day(2))

        statement = ledger_service.khata(KhataFilter(customer_id=ledger_customer.id))
        assert [ln.balance for ln in statement.lines] == [Decimal("1000"), Decimal("600")]
        assert statement.totals.remaining_balance == Decimal("600")

        with pytest.raises(PaymentExceedsBalanceError) as exc_info:
            ledger_service.record_payment(ledger_customer.id, "700", payment_date=day(3))
        assert exc_info.value.remaining_balance == Decimal("600")

        ledger_service.record_payment(ledger_customer.id, "600", payment_date=day(3))
        assert ledger_service.customer_balance(ledger_customer.id) == Decimal("0")

    def test_rejected_payment_not_recorded(self, ledger_service, ledger_customer, day):
        ledger_service.create_bill(ledger_customer.id, [_cloth()], bill_date=day(1))
        with pytest.raises(PaymentExceedsBalanceError):
            ledger_service.record_payment(ledger_customer.id, "1000.01")

        assert ledger_service.khata(KhataFilter(customer_id=ledger_customer.id)).totals.total_credit == 0


class TestRecordPayment:
    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_amount_must_be_positive(self, ledger_service, ledger_customer, amount):
        with pytest.raises(InvalidFieldError):
            ledger_service.record_payment(ledger_customer.id, amount)

    def test_amount_required(self, ledger_service, ledger_customer):
        with pytest.raises(MissingFieldError):
            ledger_service.record_payment(ledger_customer.id, "")

    def test_no_balance_no_payment(self, ledger_service, ledger_customer):
        with pytest.raises(PaymentExceedsBalanceError):
            ledger_service.record_payment(ledger_customer.id, "1")

    def test_unknown_customer(self, ledger_service):
        with pytest.raises(LedgerCustomerNotFoundError):
            ledger_service.record_payment(uuid4(), "10")

    def test_defaults(self, ledger_service, ledger_customer):
        ledger_service.create_bill(ledger_customer.id, [_cloth()])
        payment = ledger_service.record_payment(
            ledger_customer.id, "100", transaction_id=" TX-1 ", received_by="Ali"
        )

        assert payment.payment_method == "Cash"
        assert payment.entry_date.isoformat() == "2024-01-15"
        assert payment.transaction_id == "TX-1"
        assert payment.received_by == "Ali"

    def test_against_bill(self, ledger_service, ledger_customer):
        bill = ledger_service.create_bill(ledger_customer.id, [_cloth()]).bill
        payment = ledger_service.record_payment(
            ledger_customer.id, "100", bill_number=bill.bill_number, payment_method="Bank"
        )
        assert payment.bill_number == bill.bill_number
        assert payment.payment_method == "Bank"

    def test_unknown_bill(self, ledger_service, ledger_customer):
        ledger_service.create_bill(ledger_customer.id, [_cloth()])
        with pytest.raises(LedgerBillNotFoundError):
            ledger_service.record_payment(ledger_customer.id, "100", bill_number="BILL-NOPE")

    def test_other_customers_bill(self, ledger_service, ledger_customer):
        other = ledger_service.create_customer(name="Other", phone="0311")
        other_bill = ledger_service.create_bill(other.id, [_cloth()]).bill
        ledger_service.create_bill(ledger_customer.id, [_cloth()])

        with pytest.raises(InvalidFieldError) as exc_info:
            ledger_service.record_payment(
                ledger_customer.id, "100", bill_number=other_bill.bill_number
            )
        assert exc_info.value.field == "bill_number"

    def test_logged(self, ledger_service, ledger_customer, captured_logs):
        ledger_service.create_bill(ledger_customer.id, [_cloth()])
        ledger_service.record_payment(ledger_customer.id, "250")

        logs = [r for r in captured_logs() if r["message"] == "ledger_payment_recorded"]
        assert Decimal(logs[0]["remaining_balance"]) == Decimal("750")


class TestCreateBill:
    def test_lines_and_debit(self, ledger_service, ledger_customer):
        result = ledger_service.create_bill(
            ledger_customer.id,
            [_cloth("2.5", "400"), BillLineInput("Silk", Decimal("3"), Decimal("150"), Decimal("0"))],
            description="Eid order",
        )
        bill = result.bill

        assert bill.debit == Decimal("1450")
        assert [ln.amount for ln in bill.lines] == [Decimal("1000"), Decimal("450")]
        assert [ln.product_name for ln in bill.lines] == ["Lawn", "Silk"]
        assert bill.description == "Eid order"
        assert result.payment is None

    def test_numbering(self, ledger_service, ledger_customer, day):
        first = ledger_service.create_bill(ledger_customer.id, [_cloth()]).bill
        second = ledger_service.create_bill(ledger_customer.id, [_cloth()]).bill

        assert first.bill_number == "BILL-202401-001"
        assert second.bill_number == "BILL-202401-002"
        assert ledger_service.next_bill_number(day(20).replace(month=2)) == "BILL-202402-001"

    def test_numbering_follows_clock_month(self, ledger_service, ledger_customer, deterministic_clock):
        ledger_service.create_bill(ledger_customer.id, [_cloth()])
        deterministic_clock.advance_days(31)

        bill = ledger_service.create_bill(ledger_customer.id, [_cloth()]).bill

        assert bill.bill_number == "BILL-202402-001"
        assert bill.entry_date.month == 2

    def test_duplicate_number(self, ledger_service, ledger_customer):
        ledger_service.create_bill(ledger_customer.id, [_cloth()], bill_number="B-1")
        with pytest.raises(DuplicateLedgerBillError):
            ledger_service.create_bill(ledger_customer.id, [_cloth()], bill_number="B-1")

    def test_upfront_payment(self, ledger_service, ledger_customer):
        result = ledger_service.create_bill(
            ledger_customer.id, [_cloth()], upfront_payment="300", payment_method="Bank"
        )

        assert result.payment.credit == Decimal("300")
        assert result.payment.bill_number == result.bill.bill_number
        assert result.payment.payment_method == "Bank"
        assert ledger_service.customer_balance(ledger_customer.id) == Decimal("700")

    def test_upfront_payment_capped(self, ledger_service, ledger_customer):
        with pytest.raises(PaymentExceedsBalanceError):
            ledger_service.create_bill(ledger_customer.id, [_cloth()], upfront_payment="1001")

        assert ledger_service.khata(KhataFilter(customer_id=ledger_customer.id)).lines == ()

    def test_upfront_payment_covers_earlier_balance(self, ledger_service, ledger_customer, day):
        ledger_service.create_bill(ledger_customer.id, [_cloth()], bill_date=day(1))

        result = ledger_service.create_bill(
            ledger_customer.id, [_cloth("1")], bill_date=day(2), upfront_payment="1100"
        )

        assert result.payment.credit == Decimal("1100")
        assert ledger_service.customer_balance(ledger_customer.id) == Decimal("0")

    @pytest.mark.parametrize(
        "line",
        [
            {"product_name": "", "meters": "1", "meter_price": "1"},
            {"product_name": "Lawn", "meters": "0", "meter_price": "1"},
            {"product_name": "Lawn", "meters": "1", "meter_price": "-1"},
            {"product_name": "Lawn", "meters": "x", "meter_price": "1"},
        ],
    )
    def test_invalid_lines(self, ledger_service, ledger_customer, line):
        with pytest.raises((MissingFieldError, InvalidFieldError)) as exc_info:
            ledger_service.create_bill(ledger_customer.id, [line])
        assert exc_info.value.field.startswith("lines[0]")

    def test_no_lines(self, ledger_service, ledger_customer):
        with pytest.raises(InvalidFieldError):
            ledger_service.create_bill(ledger_customer.id, [])

    def test_unknown_customer(self, ledger_service):
        with pytest.raises(LedgerCustomerNotFoundError):
            ledger_service.create_bill(uuid4(), [_cloth()])


class TestDeletion:
    def test_bill_with_payment_cannot_be_deleted(self, ledger_service, ledger_customer):
        bill = ledger_service.create_bill(ledger_customer.id, [_cloth()], upfront_payment="100").bill

        with pytest.raises(BillReferencedError) as exc_info:
            ledger_service.delete_bill(bill.bill_number)
        assert exc_info.value.payment_count == 1

    def test_delete_payment_then_bill(self, ledger_service, ledger_customer):
        result = ledger_service.create_bill(ledger_customer.id, [_cloth()], upfront_payment="100")

        ledger_service.delete_payment(result.payment.id)
        ledger_service.delete_bill(result.bill.bill_number)

        assert ledger_service.khata(KhataFilter(customer_id=ledger_customer.id)).lines == ()

    def test_orm_guard_blocks_referenced_bill(self, ledger_service, ledger_customer, session):
        bill = ledger_service.create_bill(ledger_customer.id, [_cloth()], upfront_payment="100").bill
        row = session.scalars(
            select(LedgerBill).where(LedgerBill.bill_number == bill.bill_number)
        ).one()

        session.delete(row)
        with pytest.raises(BillReferencedError):
            session.flush()

    def test_orm_guard_allows_same_flush_payment_delete(self, ledger_service, ledger_customer, session):
        result = ledger_service.create_bill(ledger_customer.id, [_cloth()], upfront_payment="100")

        session.delete(session.get(LedgerPayment, result.payment.id))
        session.delete(
            session.scalars(
                select(LedgerBill).where(LedgerBill.bill_number == result.bill.bill_number)
            ).one()
        )
        session.flush()

    def test_missing_bill(self, ledger_service):
        with pytest.raises(LedgerBillNotFoundError):
            ledger_service.delete_bill("BILL-000000-000")

    def test_missing_payment(self, ledger_service):
        with pytest.raises(PaymentNotFoundError):
            ledger_service.delete_payment(uuid4())


class TestCustomers:
    def test_party_normalized(self, ledger_customer):
        assert ledger_customer.party == "Party 1"

    def test_required_fields(self, ledger_service):
        with pytest.raises(MissingFieldError):
            ledger_service.create_customer(name="X", phone=" ")

    def test_duplicate_phone(self, ledger_service, ledger_customer):
        with pytest.raises(DuplicateCustomerPhoneError):
            ledger_service.create_customer(name="Someone", phone=ledger_customer.phone)

    def test_update(self, ledger_service, ledger_customer):
        updated = ledger_service.update_customer(ledger_customer.id, party="PARTY2", city=" Quetta ")
        assert updated.party == "Party 2"
        assert updated.city == "Quetta"

    def test_update_phone_to_taken(self, ledger_service, ledger_customer):
        other = ledger_service.create_customer(name="Other", phone="0311")
        with pytest.raises(DuplicateCustomerPhoneError):
            ledger_service.update_customer(other.id, phone=ledger_customer.phone)

    def test_update_unknown_field(self, ledger_service, ledger_customer):
        with pytest.raises(InvalidFieldError):
            ledger_service.update_customer(ledger_customer.id, balance="0")

    def test_delete_with_entries_rejected(self, ledger_service, ledger_customer):
        ledger_service.create_bill(ledger_customer.id, [_cloth()])
        with pytest.raises(CustomerReferencedError) as exc_info:
            ledger_service.delete_customer(ledger_customer.id)
        assert exc_info.value.entry_count == 1

    def test_delete_empty_customer(self, ledger_service, ledger_customer):
        ledger_service.delete_customer(ledger_customer.id)
        with pytest.raises(LedgerCustomerNotFoundError):
            ledger_service.get_customer(ledger_customer.id)

    def test_list_and_search(self, ledger_service, ledger_customer):
        ledger_service.create_customer(name="Zara", phone="0322", party="Party 2")

        assert [c.name for c in ledger_service.list_customers(party="party 2")] == ["Zara"]
        assert [c.name for c in ledger_service.list_customers(search="customer")] == ["Customer C"]
        assert len(ledger_service.list_customers()) == 2


class TestKhataFilters:
    @pytest.fixture
    def two_customers(self, ledger_service, ledger_customer, day):
        other = ledger_service.create_customer(name="Other", phone="0311", party="Party 2")
        ledger_service.create_bill(ledger_customer.id, [_cloth()], bill_date=day(1), bill_number="B-1")
        ledger_service.create_bill(other.id, [_cloth("5")], bill_date=day(5), bill_number="B-2")
        ledger_service.record_payment(ledger_customer.id, "200", payment_date=day(10), bill_number="B-1")
        return ledger_customer, other

    def test_date_range(self, ledger_service, two_customers, day):
        statement = ledger_service.khata(KhataFilter(start_date=day(2), end_date=day(10)))
        assert [ln.line.bill_number for ln in statement.lines] == ["B-2", "B-1"]

    def test_by_bill_number(self, ledger_service, two_customers):
        statement = ledger_service.khata(KhataFilter(bill_number="B-1"))
        assert statement.totals.total_debit == Decimal("1000")
        assert statement.totals.total_credit == Decimal("200")

    def test_by_party(self, ledger_service, two_customers):
        statement = ledger_service.khata(KhataFilter(party="party2"))
        assert statement.totals.remaining_balance == Decimal("500")

    def test_dashboard(self, ledger_service, two_customers):
        dashboard = ledger_service.dashboard()

        assert dashboard.total_purchase == Decimal("1500")
        assert dashboard.total_received == Decimal("200")
        assert dashboard.total_pending == Decimal("1300")
        assert dashboard.most_received_customer.customer.name == "Customer C"

    def test_dashboard_for_party(self, ledger_service, two_customers):
        dashboard = ledger_service.dashboard(party="Party 2")
        assert [c.customer.name for c in dashboard.customers] == ["Other"]
        assert dashboard.most_received_customer is None

    def test_party_stats(self, ledger_service, two_customers):
        stats = {s.party: s for s in ledger_service.party_stats()}
        assert stats["Party 1"].total_balance == Decimal("800")
        assert stats["Party 2"].total_balance == Decimal("500")
