"""
resale_engines.ledger_balance -- Khata running balance.

Responsibility:
    Merge bill entries (debits) and payment entries (credits) into one
    chronological sequence, attach the post-entry running balance to each
    line, and total the filtered set.  Also derives the per-customer and
    per-party summaries used by the billing dashboard.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Balances are computed on
    every read and never persisted, so a back-dated entry needs no rewrite.

Invariants enforced:
    - Merge order is (entry_date, sequence) ascending; sequence is the
      store-wide insertion number, so the order never depends on fetch order.
    - balance_n = balance_(n-1) + debit_n - credit_n, starting at 0.
    - remaining_balance == final_balance == total_debit - total_credit
      == balance of the last line (0 when there are no lines).

Usage:
    statement = build_ledger_statement(bills=bills, payments=payments)
    statement.totals.remaining_balance
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from resale_engines.tracer import traced_engine
from resale_kernel.db.types import ZERO, round_money
from resale_kernel.domain.dtos import (
    BillEntryRecord,
    LedgerCustomerRecord,
    PaymentEntryRecord,
)
from resale_kernel.logging_config import get_logger

logger = get_logger("engines.ledger_balance")


class LedgerLineKind(str, Enum):
    BILL = "bill"
    PAYMENT = "payment"


@dataclass(frozen=True)
class LedgerLine:
    """A bill or payment entry seen through the common ledger-line shape."""

    kind: LedgerLineKind
    entry_id: UUID
    customer_id: UUID
    entry_date: date
    sequence: int
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    bill_number: str | None = None
    description: str | None = None
    payment_method: str | None = None
    transaction_id: str | None = None
    received_by: str | None = None

    @classmethod
    def from_bill(cls, bill: BillEntryRecord) -> LedgerLine:
        return cls(
            kind=LedgerLineKind.BILL,
            entry_id=bill.id,
            customer_id=bill.customer_id,
            entry_date=bill.entry_date,
            sequence=bill.sequence,
            debit=bill.debit,
            bill_number=bill.bill_number,
            description=bill.description,
        )

    @classmethod
    def from_payment(cls, payment: PaymentEntryRecord) -> LedgerLine:
        return cls(
            kind=LedgerLineKind.PAYMENT,
            entry_id=payment.id,
            customer_id=payment.customer_id,
            entry_date=payment.entry_date,
            sequence=payment.sequence,
            credit=payment.credit,
            bill_number=payment.bill_number,
            description=payment.description,
            payment_method=payment.payment_method,
            transaction_id=payment.transaction_id,
            received_by=payment.received_by,
        )

    @property
    def sort_key(self) -> tuple[date, int]:
        return (self.entry_date, self.sequence)


@dataclass(frozen=True)
class BalancedLine:
    line: LedgerLine
    balance: Decimal

    def to_dict(self) -> dict:
        ln = self.line
        return {
            "id": str(ln.entry_id),
            "type": ln.kind.value,
            "customer_id": str(ln.customer_id),
            "date": ln.entry_date.isoformat(),
            "bill_number": ln.bill_number,
            "description": ln.description,
            "debit": str(round_money(ln.debit)),
            "credit": str(round_money(ln.credit)),
            "balance": str(round_money(self.balance)),
            "payment_method": ln.payment_method,
            "transaction_id": ln.transaction_id,
            "received_by": ln.received_by,
        }


@dataclass(frozen=True)
class LedgerTotals:
    total_debit: Decimal = ZERO
    total_credit: Decimal = ZERO

    @property
    def total_amount(self) -> Decimal:
        return self.total_debit

    @property
    def total_received(self) -> Decimal:
        return self.total_credit

    @property
    def final_balance(self) -> Decimal:
        return self.total_debit - self.total_credit

    @property
    def remaining_balance(self) -> Decimal:
        return self.final_balance

    def to_dict(self) -> dict:
        return {
            "total_amount": str(round_money(self.total_amount)),
            "total_received": str(round_money(self.total_received)),
            "total_debit": str(round_money(self.total_debit)),
            "total_credit": str(round_money(self.total_credit)),
            "final_balance": str(round_money(self.final_balance)),
            "remaining_balance": str(round_money(self.remaining_balance)),
        }


@dataclass(frozen=True)
class LedgerStatement:
    lines: tuple[BalancedLine, ...] = field(default_factory=tuple)
    totals: LedgerTotals = field(default_factory=LedgerTotals)

    @property
    def last_balance(self) -> Decimal:
        return self.lines[-1].balance if self.lines else ZERO

    def to_dict(self) -> dict:
        return {
            "entries": [ln.to_dict() for ln in self.lines],
            "totals": self.totals.to_dict(),
        }


def merge_ledger_lines(
    bills: Iterable[BillEntryRecord],
    payments: Iterable[PaymentEntryRecord],
) -> list[LedgerLine]:
    """Tagged-union merge ordered by (entry_date, sequence)."""
    lines = [LedgerLine.from_bill(b) for b in bills]
    lines.extend(LedgerLine.from_payment(p) for p in payments)
    return sorted(lines, key=lambda ln: ln.sort_key)


@traced_engine("ledger_balance", "1.0")
def build_ledger_statement(
    *,
    bills: Sequence[BillEntryRecord],
    payments: Sequence[PaymentEntryRecord],
) -> LedgerStatement:
    """Merge, walk once, attach running balances and total."""
    balance = ZERO
    total_debit = ZERO
    total_credit = ZERO
    balanced: list[BalancedLine] = []

    for line in merge_ledger_lines(bills, payments):
        balance += line.debit
        balance -= line.credit
        total_debit += line.debit
        total_credit += line.credit
        balanced.append(BalancedLine(line=line, balance=balance))

    statement = LedgerStatement(
        lines=tuple(balanced),
        totals=LedgerTotals(total_debit=total_debit, total_credit=total_credit),
    )
    assert statement.last_balance == statement.totals.remaining_balance, (
        "running balance diverged from totals"
    )

    logger.debug(
        "ledger_statement_built",
        extra={
            "entry_count": len(balanced),
            "remaining_balance": str(statement.totals.remaining_balance),
        },
    )
    return statement


# ---------------------------------------------------------------------------
# Party tags
# ---------------------------------------------------------------------------

_PARTY_PATTERN = re.compile(r"^party\s*(\d+)$", re.IGNORECASE)


def normalize_party(value: str | None) -> str | None:
    """
    ``party 1``, ``PARTY1`` and ``Party  1`` become ``Party 1``.

    Other text is kept, trimmed.  Blank becomes None.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    match = _PARTY_PATTERN.match(text)
    if match:
        return f"Party {int(match.group(1))}"
    return text


# ---------------------------------------------------------------------------
# Dashboard summaries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomerBalance:
    customer: LedgerCustomerRecord
    total_purchase: Decimal
    total_received: Decimal

    @property
    def balance(self) -> Decimal:
        return self.total_purchase - self.total_received

    @property
    def total_pending(self) -> Decimal:
        return max(ZERO, self.balance)

    def to_dict(self) -> dict:
        c = self.customer
        return {
            "id": str(c.id),
            "name": c.name,
            "phone": c.phone,
            "city": c.city,
            "party": c.party,
            "total_purchase": str(round_money(self.total_purchase)),
            "total_received": str(round_money(self.total_received)),
            "total_pending": str(round_money(self.total_pending)),
        }


@dataclass(frozen=True)
class BillingDashboard:
    customers: tuple[CustomerBalance, ...]

    @property
    def total_purchase(self) -> Decimal:
        return sum((c.total_purchase for c in self.customers), ZERO)

    @property
    def total_received(self) -> Decimal:
        return sum((c.total_received for c in self.customers), ZERO)

    @property
    def total_pending(self) -> Decimal:
        return sum((c.total_pending for c in self.customers), ZERO)

    @property
    def most_received_customer(self) -> CustomerBalance | None:
        """Customer who paid the most; None when nobody paid anything."""
        if not self.customers or self.customers[0].total_received <= ZERO:
            return None
        return self.customers[0]

    def to_dict(self) -> dict:
        top = self.most_received_customer
        return {
            "customers": [c.to_dict() for c in self.customers],
            "stats": {
                "total_customers": len(self.customers),
                "total_purchase": str(round_money(self.total_purchase)),
                "total_received": str(round_money(self.total_received)),
                "total_pending": str(round_money(self.total_pending)),
                "most_received_customer": None if top is None else top.to_dict(),
            },
        }


def _sum_by_customer(
    bills: Iterable[BillEntryRecord],
    payments: Iterable[PaymentEntryRecord],
) -> tuple[dict[UUID, Decimal], dict[UUID, Decimal]]:
    debits: dict[UUID, Decimal] = {}
    credits: dict[UUID, Decimal] = {}
    for b in bills:
        debits[b.customer_id] = debits.get(b.customer_id, ZERO) + b.debit
    for p in payments:
        credits[p.customer_id] = credits.get(p.customer_id, ZERO) + p.credit
    return debits, credits


def summarize_customers(
    customers: Sequence[LedgerCustomerRecord],
    bills: Iterable[BillEntryRecord],
    payments: Iterable[PaymentEntryRecord],
) -> BillingDashboard:
    """Per-customer purchase/received/pending, most received first."""
    debits, credits = _sum_by_customer(bills, payments)
    rows = [
        CustomerBalance(
            customer=c,
            total_purchase=debits.get(c.id, ZERO),
            total_received=credits.get(c.id, ZERO),
        )
        for c in customers
    ]
    rows.sort(key=lambda r: (-r.total_received, r.customer.name))
    return BillingDashboard(customers=tuple(rows))


@dataclass(frozen=True)
class PartyStats:
    party: str | None
    customer_count: int
    total_debit: Decimal
    total_credit: Decimal

    @property
    def total_balance(self) -> Decimal:
        return self.total_debit - self.total_credit

    def to_dict(self) -> dict:
        return {
            "party": self.party,
            "customer_count": self.customer_count,
            "total_debit": str(round_money(self.total_debit)),
            "total_credit": str(round_money(self.total_credit)),
            "total_balance": str(round_money(self.total_balance)),
        }


def _party_sort_key(party: str | None) -> tuple[int, int, str]:
    if party is None:
        return (2, 0, "")
    match = _PARTY_PATTERN.match(party)
    if match:
        return (0, int(match.group(1)), party)
    return (1, 0, party.lower())


def party_stats(
    customers: Sequence[LedgerCustomerRecord],
    bills: Iterable[BillEntryRecord],
    payments: Iterable[PaymentEntryRecord],
) -> list[PartyStats]:
    """Totals per party tag; customers without a tag are grouped under None."""
    debits, credits = _sum_by_customer(bills, payments)
    groups: dict[str | None, list[LedgerCustomerRecord]] = {}
    for c in customers:
        groups.setdefault(c.party, []).append(c)

    stats = [
        PartyStats(
            party=party,
            customer_count=len(members),
            total_debit=sum((debits.get(c.id, ZERO) for c in members), ZERO),
            total_credit=sum((credits.get(c.id, ZERO) for c in members), ZERO),
        )
        for party, members in groups.items()
    ]
    stats.sort(key=lambda s: _party_sort_key(s.party))
    return stats
