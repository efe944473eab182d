"""
Module: resale_kernel.models.invoice
Responsibility: ORM persistence for seller invoices (bills).
Architecture position: Kernel > Models.

Invariants enforced:
    - bill_number is unique per seller (uq_invoice_seller_bill).  A second
      concurrent generation with the same number fails on INSERT.
    - Money aggregates are not stored; they are recomputed from the linked
      orders on every read.  Only counts and other_expenses are persisted.
    - A paid invoice cannot be deleted (db/immutability.py).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from resale_kernel.db.base import TrackedBase, UUIDString


class Invoice(TrackedBase):
    """Invoice header for a seller billing run."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("seller_id", "bill_number", name="uq_invoice_seller_bill"),
        Index("idx_invoice_seller", "seller_id"),
    )

    seller_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    bill_number: Mapped[str] = mapped_column(String(50), nullable=False)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)

    total_orders: Mapped[int] = mapped_column(nullable=False, default=0)
    delivered_orders: Mapped[int] = mapped_column(nullable=False, default=0)
    return_orders: Mapped[int] = mapped_column(nullable=False, default=0)

    other_expenses: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Invoice {self.bill_number} paid={self.is_paid}>"
