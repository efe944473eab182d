"""
ResaleStore -- the storage port.

Services talk to persistence only through this protocol.  Two
implementations exist:

    SqlAlchemyStore   the real backend (PostgreSQL in production, SQLite in
                      tests); flushes inside the caller's transaction.
    UnconfiguredStore used when no database URL is configured; every call
                      raises StoreNotConfiguredError.

Every method returns frozen records from ``resale_kernel.domain.dtos``,
never ORM instances.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from resale_kernel.domain.dtos import (
    BillEntryRecord,
    InvoiceRecord,
    LedgerCustomerRecord,
    OrderRecord,
    PaymentEntryRecord,
)
from resale_kernel.domain.order_status import OrderStatus


@dataclass(frozen=True)
class KhataFilter:
    """Ledger query filter.  All fields optional; date range is inclusive."""

    customer_id: UUID | None = None
    bill_number: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    party: str | None = None


@dataclass(frozen=True)
class BillLineInput:
    product_name: str
    meters: Decimal
    meter_price: Decimal
    amount: Decimal


@runtime_checkable
class ResaleStore(Protocol):
    """Storage operations needed by the order, invoice and ledger services."""

    # -- orders ---------------------------------------------------------------

    def add_order(self, **fields: Any) -> OrderRecord:
        """Insert an order.  Raises DuplicateOrderReferenceError on conflict."""
        ...

    def get_order(self, order_id: UUID) -> OrderRecord | None: ...

    def find_orders_by_reference(
        self, reference: str, seller_id: UUID | None = None
    ) -> list[OrderRecord]: ...

    def list_orders(
        self,
        seller_id: UUID | None = None,
        status: OrderStatus | None = None,
        invoice_id: UUID | None = None,
    ) -> list[OrderRecord]:
        """Orders, earliest first."""
        ...

    def list_order_references(self, seller_id: UUID) -> list[str]: ...

    def update_order(self, order_id: UUID, changes: dict[str, Any]) -> OrderRecord: ...

    def list_unbilled_orders(self, seller_id: UUID, lock: bool = False) -> list[OrderRecord]:
        """Orders of the seller with no invoice, earliest first."""
        ...

    def attach_orders(self, invoice_id: UUID, order_ids: Sequence[UUID]) -> int:
        """Link orders still unbilled to the invoice; returns rows linked."""
        ...

    def detach_orders(self, invoice_id: UUID) -> int: ...

    def set_orders_paid(self, invoice_id: UUID, is_paid: bool) -> int: ...

    def search_billed_orders(self, fragment: str) -> list[OrderRecord]:
        """Billed orders whose tracking id or reference contains ``fragment``."""
        ...

    # -- invoices -------------------------------------------------------------

    def add_invoice(self, **fields: Any) -> InvoiceRecord:
        """Insert an invoice header.  Raises InvoiceConflictError on conflict."""
        ...

    def get_invoice(self, invoice_id: UUID) -> InvoiceRecord | None: ...

    def get_invoices(self, invoice_ids: Sequence[UUID]) -> dict[UUID, InvoiceRecord]: ...

    def list_invoices(self, seller_id: UUID | None = None) -> list[InvoiceRecord]:
        """Invoices, newest first."""
        ...

    def list_invoice_numbers(self, seller_id: UUID) -> list[str]: ...

    def set_invoice_paid(self, invoice_id: UUID, is_paid: bool) -> InvoiceRecord: ...

    def delete_invoice(self, invoice_id: UUID) -> None: ...

    # -- ledger customers -----------------------------------------------------

    def add_customer(self, **fields: Any) -> LedgerCustomerRecord:
        """Insert a customer.  Raises DuplicateCustomerPhoneError on conflict."""
        ...

    def get_customer(self, customer_id: UUID, lock: bool = False) -> LedgerCustomerRecord | None: ...

    def find_customer_by_phone(self, phone: str) -> LedgerCustomerRecord | None: ...

    def list_customers(
        self, party: str | None = None, search: str | None = None
    ) -> list[LedgerCustomerRecord]: ...

    def update_customer(
        self, customer_id: UUID, changes: dict[str, Any]
    ) -> LedgerCustomerRecord: ...

    def delete_customer(self, customer_id: UUID) -> None: ...

    def count_customer_entries(self, customer_id: UUID) -> int: ...

    # -- ledger entries -------------------------------------------------------

    def add_bill(
        self,
        *,
        customer_id: UUID,
        bill_number: str,
        entry_date: date,
        description: str | None,
        lines: Sequence[BillLineInput],
        actor_id: UUID | None = None,
    ) -> BillEntryRecord:
        """Insert a bill entry; debit is the sum of line amounts."""
        ...

    def get_bill(self, bill_number: str) -> BillEntryRecord | None: ...

    def list_ledger_bill_numbers(self, prefix: str) -> list[str]: ...

    def delete_bill(self, bill_number: str) -> None: ...

    def add_payment(self, **fields: Any) -> PaymentEntryRecord: ...

    def get_payment(self, payment_id: UUID) -> PaymentEntryRecord | None: ...

    def delete_payment(self, payment_id: UUID) -> None: ...

    def count_bill_payments(self, bill_number: str) -> int: ...

    def list_bills(self, khata_filter: KhataFilter) -> list[BillEntryRecord]: ...

    def list_payments(self, khata_filter: KhataFilter) -> list[PaymentEntryRecord]: ...


STORE_OPERATIONS: frozenset[str] = frozenset(
    name
    for name, value in vars(ResaleStore).items()
    if callable(value) and not name.startswith("_")
)
