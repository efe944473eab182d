"""
Module: resale_kernel.models.ledger
Responsibility: ORM persistence for the khata (customer ledger): customers,
    bill entries with their line items, and payment entries.
Architecture position: Kernel > Models.

Invariants enforced:
    - phone is unique per ledger customer (uq_ledger_customer_phone).
    - bill_number is unique across bill entries (uq_ledger_bill_number).
    - sequence is a store-wide monotonic insertion number shared by bills and
      payments; it breaks ties between entries on the same entry_date.
    - Entries are append-only: created and deleted, never edited.
    - A bill with payments referencing its bill_number cannot be deleted
      (db/immutability.py).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from resale_kernel.db.base import TrackedBase, UUIDString

LEDGER_ENTRY_SEQUENCE = "ledger_entry"


class LedgerCustomer(TrackedBase):
    """Khata customer."""

    __tablename__ = "ledger_customers"

    __table_args__ = (
        UniqueConstraint("phone", name="uq_ledger_customer_phone"),
        Index("idx_ledger_customer_party", "party"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    address: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Normalized grouping tag ("Party 1") or free text
    party: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<LedgerCustomer {self.name} ({self.phone})>"


class LedgerBill(TrackedBase):
    """Bill entry: debits the customer by the sum of its lines."""

    __tablename__ = "ledger_bills"

    __table_args__ = (
        UniqueConstraint("bill_number", name="uq_ledger_bill_number"),
        UniqueConstraint("sequence", name="uq_ledger_bill_sequence"),
        Index("idx_ledger_bill_customer_date", "customer_id", "entry_date"),
    )

    bill_number: Mapped[str] = mapped_column(String(50), nullable=False)

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_customers.id"),
        nullable=False,
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    debit: Mapped[Decimal] = mapped_column(nullable=False)

    sequence: Mapped[int] = mapped_column(nullable=False)

    lines: Mapped[list["LedgerBillLine"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LedgerBillLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<LedgerBill {self.bill_number} debit={self.debit}>"


class LedgerBillLine(TrackedBase):
    """Product line on a bill entry: amount = meters x meter_price."""

    __tablename__ = "ledger_bill_lines"

    __table_args__ = (Index("idx_ledger_bill_line_bill", "bill_id"),)

    bill_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_bills.id"),
        nullable=False,
    )

    line_seq: Mapped[int] = mapped_column(nullable=False)

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    meters: Mapped[Decimal] = mapped_column(nullable=False)
    meter_price: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    bill: Mapped[LedgerBill] = relationship(back_populates="lines")


class LedgerPayment(TrackedBase):
    """Payment entry: credits the customer."""

    __tablename__ = "ledger_payments"

    __table_args__ = (
        UniqueConstraint("sequence", name="uq_ledger_payment_sequence"),
        Index("idx_ledger_payment_customer_date", "customer_id", "entry_date"),
        Index("idx_ledger_payment_bill", "bill_number"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_customers.id"),
        nullable=False,
    )

    # Optional reference to the bill being settled (by number, not FK)
    bill_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    credit: Mapped[Decimal] = mapped_column(nullable=False)

    payment_method: Mapped[str] = mapped_column(
        String(50), nullable=False, default="Cash"
    )

    transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    received_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    sequence: Mapped[int] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<LedgerPayment {self.id} credit={self.credit}>"
