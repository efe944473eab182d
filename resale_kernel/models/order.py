"""
Module: resale_kernel.models.order
Responsibility: ORM persistence for seller orders.
Architecture position: Kernel > Models.  May import from db/ and domain/
    enums only.

Invariants enforced:
    - seller_reference_number is unique per seller (uq_order_seller_reference).
    - profit and shipper_price are sealed once the row is flushed
      (db/immutability.py).
    - invoice_id links the order to the invoice that billed it; NULL means
      not yet billed.  This linkage, not status, decides invoice eligibility.

Failure modes:
    - IntegrityError on duplicate (seller_id, seller_reference_number).
    - ImmutabilityViolationError on update of profit or shipper_price.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from resale_kernel.db.base import TrackedBase, UUIDString
from resale_kernel.domain.order_status import OrderStatus

# Fields frozen after the first flush
SEALED_ORDER_FIELDS = frozenset({"profit", "shipper_price"})


class Order(TrackedBase):
    """
    A seller's customer order.

    Guarantees:
        - profit = seller_price - (shipper_price or 0) - delivery_charge,
          computed once by the service at creation.
        - product_codes is stored comma-joined and upper-cased.
    """

    __tablename__ = "orders"

    __table_args__ = (
        UniqueConstraint(
            "seller_id", "seller_reference_number", name="uq_order_seller_reference"
        ),
        Index("idx_order_seller", "seller_id"),
        Index("idx_order_invoice", "invoice_id"),
        Index("idx_order_status", "status"),
    )

    seller_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    seller_reference_number: Mapped[str] = mapped_column(String(50), nullable=False)

    product_codes: Mapped[str] = mapped_column(String(500), nullable=False)

    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number_1: Mapped[str | None] = mapped_column(String(30), nullable=True)
    phone_number_2: Mapped[str | None] = mapped_column(String(30), nullable=True)
    customer_address: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    courier_service: Mapped[str | None] = mapped_column(String(100), nullable=True)

    qty: Mapped[int] = mapped_column(nullable=False, default=1)

    status: Mapped[OrderStatus] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.PENDING,
    )

    # Money
    seller_price: Mapped[Decimal] = mapped_column(nullable=False)

    # NULL means unknown, which is not the same as zero
    shipper_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    delivery_charge: Mapped[Decimal] = mapped_column(nullable=False)

    profit: Mapped[Decimal] = mapped_column(nullable=False)

    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    tracking_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Order {self.seller_reference_number} status={self.status}>"
