"""
LedgerService -- khata customers, bills and payments.

Responsibility:
    Maintain ledger customers, record bill entries (debits built from
    product lines) and payment entries (credits), and serve the running
    balance statement and the billing dashboard.

Invariants enforced:
    - A payment is > 0 and never exceeds the customer's remaining balance
      (total debits - total credits) at the time it is recorded.
    - A payment that names a bill must reference an existing bill of the
      same customer.
    - A bill with payments against it cannot be deleted.  A customer with
      any ledger entries cannot be deleted.
    - Balances are computed on every read, never stored.

Failure modes:
    - MissingFieldError / InvalidFieldError naming the offending field.
    - PaymentExceedsBalanceError (carries the remaining balance).
    - DuplicateCustomerPhoneError, DuplicateLedgerBillError.
    - BillReferencedError, CustomerReferencedError.
    - LedgerCustomerNotFoundError, LedgerBillNotFoundError,
      PaymentNotFoundError.

Concurrency:
    The customer row is locked (SELECT ... FOR UPDATE) before the balance
    check so two concurrent payments cannot both pass the cap.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from resale_config.schema import LedgerConfig
from resale_engines.ledger_balance import (
    BillingDashboard,
    LedgerStatement,
    PartyStats,
    build_ledger_statement,
    normalize_party,
    party_stats,
    summarize_customers,
)
from resale_engines.numbering import next_ledger_bill_number
from resale_kernel.db.types import ZERO, round_money
from resale_kernel.domain.clock import Clock
from resale_kernel.domain.dtos import (
    BillEntryRecord,
    LedgerCustomerRecord,
    PaymentEntryRecord,
)
from resale_kernel.exceptions import (
    BillReferencedError,
    CustomerReferencedError,
    DuplicateCustomerPhoneError,
    DuplicateLedgerBillError,
    InvalidFieldError,
    LedgerBillNotFoundError,
    LedgerCustomerNotFoundError,
    PaymentExceedsBalanceError,
    PaymentNotFoundError,
)
from resale_kernel.logging_config import get_logger
from resale_kernel.services.base import (
    BaseService,
    optional_text,
    parse_money,
    require_text,
)
from resale_kernel.store.base import BillLineInput, KhataFilter, ResaleStore

logger = get_logger("services.ledger")

CUSTOMER_FIELDS = frozenset({"name", "phone", "address", "city", "party"})


@dataclass(frozen=True)
class BillResult:
    """A created bill and the upfront payment recorded with it, if any."""

    bill: BillEntryRecord
    payment: PaymentEntryRecord | None = None


def _bill_line(index: int, raw: BillLineInput | Mapping) -> BillLineInput:
    if isinstance(raw, BillLineInput):
        raw = {
            "product_name": raw.product_name,
            "meters": raw.meters,
            "meter_price": raw.meter_price,
        }
    field_prefix = f"lines[{index}]"
    name = require_text(f"{field_prefix}.product_name", raw.get("product_name"))
    meters = parse_money(f"{field_prefix}.meters", raw.get("meters"))
    if meters <= ZERO:
        raise InvalidFieldError(f"{field_prefix}.meters", raw.get("meters"), "must be greater than zero")
    price = parse_money(f"{field_prefix}.meter_price", raw.get("meter_price"))
    if price < ZERO:
        raise InvalidFieldError(
            f"{field_prefix}.meter_price", raw.get("meter_price"), "must be zero or greater"
        )
    return BillLineInput(
        product_name=name,
        meters=meters,
        meter_price=price,
        amount=round_money(meters * price),
    )


class LedgerService(BaseService):
    """Khata operations over the storage port."""

    def __init__(
        self,
        store: ResaleStore,
        ledger: LedgerConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(store, clock)
        self.ledger = ledger or LedgerConfig()

    # -- customers ------------------------------------------------------------

    def create_customer(
        self,
        *,
        name: str,
        phone: str,
        address: str | None = None,
        city: str | None = None,
        party: str | None = None,
        actor_id: UUID | None = None,
    ) -> LedgerCustomerRecord:
        clean_name = require_text("name", name)
        clean_phone = require_text("phone", phone)
        if self.store.find_customer_by_phone(clean_phone) is not None:
            raise DuplicateCustomerPhoneError(clean_phone)

        customer = self.store.add_customer(
            name=clean_name,
            phone=clean_phone,
            address=optional_text(address),
            city=optional_text(city),
            party=normalize_party(party),
            created_by_id=actor_id,
        )
        logger.info(
            "ledger_customer_created",
            extra={"customer_id": str(customer.id), "party": customer.party},
        )
        return customer

    def get_customer(self, customer_id: UUID) -> LedgerCustomerRecord:
        customer = self.store.get_customer(customer_id)
        if customer is None:
            raise LedgerCustomerNotFoundError(str(customer_id))
        return customer

    def list_customers(
        self, party: str | None = None, search: str | None = None
    ) -> list[LedgerCustomerRecord]:
        return self.store.list_customers(
            party=normalize_party(party), search=optional_text(search)
        )

    def update_customer(
        self,
        customer_id: UUID,
        *,
        actor_id: UUID | None = None,
        **changes: Any,
    ) -> LedgerCustomerRecord:
        unknown = sorted(changes.keys() - CUSTOMER_FIELDS)
        if unknown:
            raise InvalidFieldError(unknown[0], changes[unknown[0]], "field cannot be updated")

        clean: dict[str, Any] = {}
        for key, value in changes.items():
            if key in ("name", "phone"):
                clean[key] = require_text(key, value)
            elif key == "party":
                clean[key] = normalize_party(value)
            else:
                clean[key] = optional_text(value)

        self.get_customer(customer_id)
        if "phone" in clean:
            other = self.store.find_customer_by_phone(clean["phone"])
            if other is not None and other.id != customer_id:
                raise DuplicateCustomerPhoneError(clean["phone"])
        if actor_id is not None:
            clean["updated_by_id"] = actor_id

        customer = self.store.update_customer(customer_id, clean)
        logger.info(
            "ledger_customer_updated",
            extra={"customer_id": str(customer_id), "fields": sorted(changes)},
        )
        return customer

    def delete_customer(self, customer_id: UUID) -> None:
        self.get_customer(customer_id)
        entries = self.store.count_customer_entries(customer_id)
        if entries:
            logger.warning(
                "ledger_customer_delete_rejected",
                extra={"customer_id": str(customer_id), "entry_count": entries},
            )
            raise CustomerReferencedError(str(customer_id), entries)
        self.store.delete_customer(customer_id)
        logger.info("ledger_customer_deleted", extra={"customer_id": str(customer_id)})

    # -- balances -------------------------------------------------------------

    def khata(self, khata_filter: KhataFilter | None = None) -> LedgerStatement:
        """Merged, running-balance statement for the filtered entries."""
        khata_filter = khata_filter or KhataFilter()
        if khata_filter.party is not None:
            khata_filter = replace(khata_filter, party=normalize_party(khata_filter.party))
        return build_ledger_statement(
            bills=self.store.list_bills(khata_filter),
            payments=self.store.list_payments(khata_filter),
        )

    def customer_balance(self, customer_id: UUID) -> Decimal:
        """Remaining balance over all of the customer's entries."""
        return self.khata(KhataFilter(customer_id=customer_id)).totals.remaining_balance

    # -- payments -------------------------------------------------------------

    def record_payment(
        self,
        customer_id: UUID,
        amount: Any,
        payment_date: date | None = None,
        payment_method: str | None = None,
        bill_number: str | None = None,
        transaction_id: str | None = None,
        received_by: str | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> PaymentEntryRecord:
        """
        Record a credit entry.

        Raises:
            InvalidFieldError: amount is not > 0, or the bill belongs to
                another customer.
            PaymentExceedsBalanceError: amount > remaining balance.
            LedgerBillNotFoundError: bill_number names no bill.
        """
        credit = parse_money("amount", amount)
        if credit <= ZERO:
            raise InvalidFieldError("amount", amount, "must be greater than zero")

        if self.store.get_customer(customer_id, lock=True) is None:
            raise LedgerCustomerNotFoundError(str(customer_id))

        bill_ref = optional_text(bill_number)
        if bill_ref is not None:
            bill = self.store.get_bill(bill_ref)
            if bill is None:
                raise LedgerBillNotFoundError(bill_ref)
            if bill.customer_id != customer_id:
                raise InvalidFieldError(
                    "bill_number", bill_ref, "bill belongs to a different customer"
                )

        remaining = self.customer_balance(customer_id)
        if credit > remaining:
            logger.warning(
                "ledger_payment_exceeds_balance",
                extra={
                    "customer_id": str(customer_id),
                    "amount": str(credit),
                    "remaining_balance": str(remaining),
                },
            )
            raise PaymentExceedsBalanceError(str(customer_id), credit, remaining)

        payment = self.store.add_payment(
            customer_id=customer_id,
            entry_date=payment_date or self.clock.today(),
            credit=credit,
            payment_method=optional_text(payment_method) or self.ledger.default_payment_method,
            bill_number=bill_ref,
            transaction_id=optional_text(transaction_id),
            received_by=optional_text(received_by),
            description=optional_text(description),
            created_by_id=actor_id,
        )
        logger.info(
            "ledger_payment_recorded",
            extra={
                "payment_id": str(payment.id),
                "customer_id": str(customer_id),
                "amount": str(credit),
                "remaining_balance": str(remaining - credit),
            },
        )
        return payment

    def delete_payment(self, payment_id: UUID) -> None:
        if self.store.get_payment(payment_id) is None:
            raise PaymentNotFoundError(str(payment_id))
        self.store.delete_payment(payment_id)
        logger.info("ledger_payment_deleted", extra={"payment_id": str(payment_id)})

    # -- bills ----------------------------------------------------------------

    def next_bill_number(self, on: date | None = None) -> str:
        """``BILL-YYYYMM-NNN`` for the month of ``on`` (today by default)."""
        on = on or self.clock.today()
        month_prefix = f"{self.ledger.bill_prefix}{on:%Y%m}-"
        return next_ledger_bill_number(
            self.store.list_ledger_bill_numbers(month_prefix),
            on,
            prefix=self.ledger.bill_prefix,
            width=self.ledger.number_width,
        )

    def create_bill(
        self,
        customer_id: UUID,
        lines: Iterable[BillLineInput | Mapping],
        bill_date: date | None = None,
        bill_number: str | None = None,
        description: str | None = None,
        upfront_payment: Any = None,
        payment_method: str | None = None,
        actor_id: UUID | None = None,
    ) -> BillResult:
        """
        Record a bill entry from product lines, optionally with a payment.

        Each line's amount is meters x meter_price; the bill's debit is the
        sum of the line amounts.  An upfront payment is recorded against
        the new bill on the same date.  It may not exceed the remaining
        balance including the new bill; when it does nothing is written.
        """
        clean_lines = [_bill_line(i, ln) for i, ln in enumerate(lines)]
        if not clean_lines:
            raise InvalidFieldError("lines", [], "at least one product line is required")
        paid_now = parse_money("upfront_payment", upfront_payment, required=False)
        if paid_now is not None and paid_now < ZERO:
            raise InvalidFieldError("upfront_payment", upfront_payment, "must be zero or greater")

        if self.store.get_customer(customer_id, lock=True) is None:
            raise LedgerCustomerNotFoundError(str(customer_id))
        entry_date = bill_date or self.clock.today()
        number = optional_text(bill_number) or self.next_bill_number(entry_date)
        if self.store.get_bill(number) is not None:
            raise DuplicateLedgerBillError(number)

        if paid_now:
            payable = self.customer_balance(customer_id) + sum(
                (ln.amount for ln in clean_lines), ZERO
            )
            if paid_now > payable:
                logger.warning(
                    "ledger_payment_exceeds_balance",
                    extra={
                        "customer_id": str(customer_id),
                        "amount": str(paid_now),
                        "remaining_balance": str(payable),
                        "bill_number": number,
                    },
                )
                raise PaymentExceedsBalanceError(str(customer_id), paid_now, payable)

        bill = self.store.add_bill(
            customer_id=customer_id,
            bill_number=number,
            entry_date=entry_date,
            description=optional_text(description),
            lines=clean_lines,
            actor_id=actor_id,
        )
        logger.info(
            "ledger_bill_created",
            extra={
                "bill_number": number,
                "customer_id": str(customer_id),
                "debit": str(bill.debit),
                "line_count": len(clean_lines),
            },
        )

        payment = None
        if paid_now:
            payment = self.record_payment(
                customer_id,
                paid_now,
                payment_date=entry_date,
                payment_method=payment_method,
                bill_number=number,
                description=f"Payment for {number}",
                actor_id=actor_id,
            )
        return BillResult(bill=bill, payment=payment)

    def get_bill(self, bill_number: str) -> BillEntryRecord:
        bill = self.store.get_bill(bill_number)
        if bill is None:
            raise LedgerBillNotFoundError(bill_number)
        return bill

    def delete_bill(self, bill_number: str) -> None:
        self.get_bill(bill_number)
        payments = self.store.count_bill_payments(bill_number)
        if payments:
            logger.warning(
                "ledger_bill_delete_rejected",
                extra={"bill_number": bill_number, "payment_count": payments},
            )
            raise BillReferencedError(bill_number, payments)
        self.store.delete_bill(bill_number)
        logger.info("ledger_bill_deleted", extra={"bill_number": bill_number})

    # -- dashboard ------------------------------------------------------------

    def dashboard(self, party: str | None = None) -> BillingDashboard:
        """Per-customer purchase/received/pending, optionally for one party."""
        tag = normalize_party(party)
        khata_filter = KhataFilter(party=tag)
        return summarize_customers(
            self.store.list_customers(party=tag),
            self.store.list_bills(khata_filter),
            self.store.list_payments(khata_filter),
        )

    def party_stats(self) -> list[PartyStats]:
        everything = KhataFilter()
        return party_stats(
            self.store.list_customers(),
            self.store.list_bills(everything),
            self.store.list_payments(everything),
        )
