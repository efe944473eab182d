"""
DTOs -- Immutable records crossing the storage port.

Responsibility:
    Frozen dataclasses returned by ``ResaleStore`` implementations.  Services
    and engines work on these records, never on ORM instances.

Architecture position:
    Kernel > Domain -- pure, no ORM dependency.  ``SqlAlchemyStore`` owns the
    model -> record conversion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from resale_kernel.domain.order_status import OrderStatus


@dataclass(frozen=True)
class OrderRecord:
    """A seller order with its sealed profit."""

    id: UUID
    seller_id: UUID
    seller_reference_number: str
    product_codes: str
    status: OrderStatus
    seller_price: Decimal
    shipper_price: Decimal | None
    delivery_charge: Decimal
    profit: Decimal
    qty: int = 1
    customer_name: str | None = None
    phone_number_1: str | None = None
    phone_number_2: str | None = None
    customer_address: str | None = None
    city: str | None = None
    courier_service: str | None = None
    tracking_id: str | None = None
    is_paid: bool = False
    invoice_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def product_code_list(self) -> list[str]:
        return [c for c in self.product_codes.split(",") if c]


@dataclass(frozen=True)
class InvoiceRecord:
    """Invoice header.  Money aggregates are recomputed from linked orders."""

    id: UUID
    seller_id: UUID
    bill_number: str
    invoice_date: date
    total_orders: int
    delivered_orders: int
    return_orders: int
    other_expenses: Decimal
    is_paid: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class LedgerCustomerRecord:
    id: UUID
    name: str
    phone: str
    address: str | None = None
    city: str | None = None
    party: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class BillLineRecord:
    product_name: str
    meters: Decimal
    meter_price: Decimal
    amount: Decimal


@dataclass(frozen=True)
class BillEntryRecord:
    """Ledger bill entry (debit side)."""

    id: UUID
    bill_number: str
    customer_id: UUID
    entry_date: date
    debit: Decimal
    sequence: int
    description: str | None = None
    lines: tuple[BillLineRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PaymentEntryRecord:
    """Ledger payment entry (credit side)."""

    id: UUID
    customer_id: UUID
    entry_date: date
    credit: Decimal
    sequence: int
    payment_method: str = "Cash"
    bill_number: str | None = None
    description: str | None = None
    transaction_id: str | None = None
    received_by: str | None = None
