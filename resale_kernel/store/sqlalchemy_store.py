"""
SqlAlchemyStore -- ResaleStore backed by a SQLAlchemy session.

Responsibility:
    Translate port operations into ORM queries, convert models to frozen
    records, and translate storage conflicts into typed kernel errors.

Architecture position:
    Kernel > Store.  Imports models/ and domain/.  Services depend on the
    ResaleStore protocol, never on this class directly.

Invariants enforced:
    - Flush only.  The caller (session_scope or a test fixture) commits or
      rolls back.
    - attach_orders is conditional on ``invoice_id IS NULL`` so an order is
      never billed twice; the caller compares the row count.
    - Unique-constraint violations surface as DuplicateOrderReferenceError,
      InvoiceConflictError, DuplicateCustomerPhoneError or
      DuplicateLedgerBillError, never as raw IntegrityError.
    - Locks (SELECT ... FOR UPDATE) are taken on PostgreSQL; SQLite ignores
      them and serializes writers itself.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from resale_kernel.domain.dtos import (
    BillEntryRecord,
    BillLineRecord,
    InvoiceRecord,
    LedgerCustomerRecord,
    OrderRecord,
    PaymentEntryRecord,
)
from resale_kernel.domain.order_status import OrderStatus
from resale_kernel.exceptions import (
    DuplicateCustomerPhoneError,
    DuplicateLedgerBillError,
    DuplicateOrderReferenceError,
    InvoiceConflictError,
    InvoiceNotFoundError,
    LedgerBillNotFoundError,
    LedgerCustomerNotFoundError,
    OrderNotFoundError,
    PaymentNotFoundError,
)
from resale_kernel.logging_config import get_logger
from resale_kernel.models.invoice import Invoice
from resale_kernel.models.ledger import (
    LEDGER_ENTRY_SEQUENCE,
    LedgerBill,
    LedgerBillLine,
    LedgerCustomer,
    LedgerPayment,
)
from resale_kernel.models.order import Order
from resale_kernel.store.base import BillLineInput, KhataFilter
from resale_kernel.store.sequence import SequenceService

logger = get_logger("store.sqlalchemy")


# ---------------------------------------------------------------------------
# Model -> record
# ---------------------------------------------------------------------------


def _order_record(o: Order) -> OrderRecord:
    return OrderRecord(
        id=o.id,
        seller_id=o.seller_id,
        seller_reference_number=o.seller_reference_number,
        product_codes=o.product_codes,
        status=OrderStatus(o.status),
        seller_price=o.seller_price,
        shipper_price=o.shipper_price,
        delivery_charge=o.delivery_charge,
        profit=o.profit,
        qty=o.qty,
        customer_name=o.customer_name,
        phone_number_1=o.phone_number_1,
        phone_number_2=o.phone_number_2,
        customer_address=o.customer_address,
        city=o.city,
        courier_service=o.courier_service,
        tracking_id=o.tracking_id,
        is_paid=o.is_paid,
        invoice_id=o.invoice_id,
        created_at=o.created_at,
    )


def _invoice_record(i: Invoice) -> InvoiceRecord:
    return InvoiceRecord(
        id=i.id,
        seller_id=i.seller_id,
        bill_number=i.bill_number,
        invoice_date=i.invoice_date,
        total_orders=i.total_orders,
        delivered_orders=i.delivered_orders,
        return_orders=i.return_orders,
        other_expenses=i.other_expenses,
        is_paid=i.is_paid,
        created_at=i.created_at,
    )


def _customer_record(c: LedgerCustomer) -> LedgerCustomerRecord:
    return LedgerCustomerRecord(
        id=c.id,
        name=c.name,
        phone=c.phone,
        address=c.address,
        city=c.city,
        party=c.party,
        created_at=c.created_at,
    )


def _bill_record(b: LedgerBill) -> BillEntryRecord:
    return BillEntryRecord(
        id=b.id,
        bill_number=b.bill_number,
        customer_id=b.customer_id,
        entry_date=b.entry_date,
        debit=b.debit,
        sequence=b.sequence,
        description=b.description,
        lines=tuple(
            BillLineRecord(
                product_name=ln.product_name,
                meters=ln.meters,
                meter_price=ln.meter_price,
                amount=ln.amount,
            )
            for ln in b.lines
        ),
    )


def _payment_record(p: LedgerPayment) -> PaymentEntryRecord:
    return PaymentEntryRecord(
        id=p.id,
        customer_id=p.customer_id,
        entry_date=p.entry_date,
        credit=p.credit,
        sequence=p.sequence,
        payment_method=p.payment_method,
        bill_number=p.bill_number,
        description=p.description,
        transaction_id=p.transaction_id,
        received_by=p.received_by,
    )


class SqlAlchemyStore:
    """ResaleStore over a caller-owned SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def _flush_or_raise(self, error: Exception) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            logger.warning(
                "store_integrity_conflict",
                extra={"error_code": getattr(error, "code", None)},
            )
            raise error from exc

    def _bulk_update(self, stmt) -> int:
        """Run a conditional UPDATE and drop stale identity-map state."""
        self.session.flush()
        result = self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        return result.rowcount

    # -- orders ---------------------------------------------------------------

    def _load_order(self, order_id: UUID) -> Order:
        order = self.session.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def add_order(self, **fields: Any) -> OrderRecord:
        order = Order(**fields)
        self.session.add(order)
        self._flush_or_raise(
            DuplicateOrderReferenceError(
                str(fields.get("seller_id")), str(fields.get("seller_reference_number"))
            )
        )
        self.session.refresh(order)
        return _order_record(order)

    def get_order(self, order_id: UUID) -> OrderRecord | None:
        order = self.session.get(Order, order_id)
        return _order_record(order) if order is not None else None

    def find_orders_by_reference(
        self, reference: str, seller_id: UUID | None = None
    ) -> list[OrderRecord]:
        stmt = select(Order).where(Order.seller_reference_number == reference)
        if seller_id is not None:
            stmt = stmt.where(Order.seller_id == seller_id)
        stmt = stmt.order_by(Order.created_at, Order.id)
        return [_order_record(o) for o in self.session.scalars(stmt)]

    def list_orders(
        self,
        seller_id: UUID | None = None,
        status: OrderStatus | None = None,
        invoice_id: UUID | None = None,
    ) -> list[OrderRecord]:
        stmt = select(Order)
        if seller_id is not None:
            stmt = stmt.where(Order.seller_id == seller_id)
        if status is not None:
            stmt = stmt.where(Order.status == OrderStatus(status).value)
        if invoice_id is not None:
            stmt = stmt.where(Order.invoice_id == invoice_id)
        stmt = stmt.order_by(Order.created_at, Order.id)
        return [_order_record(o) for o in self.session.scalars(stmt)]

    def list_order_references(self, seller_id: UUID) -> list[str]:
        return list(
            self.session.scalars(
                select(Order.seller_reference_number).where(Order.seller_id == seller_id)
            )
        )

    def update_order(self, order_id: UUID, changes: dict[str, Any]) -> OrderRecord:
        order = self._load_order(order_id)
        for key, value in changes.items():
            setattr(order, key, value)
        self.session.flush()
        self.session.refresh(order)
        return _order_record(order)

    def list_unbilled_orders(self, seller_id: UUID, lock: bool = False) -> list[OrderRecord]:
        stmt = (
            select(Order)
            .where(Order.seller_id == seller_id, Order.invoice_id.is_(None))
            .order_by(Order.created_at, Order.id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        return [_order_record(o) for o in self.session.scalars(stmt)]

    def attach_orders(self, invoice_id: UUID, order_ids: Sequence[UUID]) -> int:
        if not order_ids:
            return 0
        return self._bulk_update(
            update(Order)
            .where(Order.id.in_(list(order_ids)), Order.invoice_id.is_(None))
            .values(invoice_id=invoice_id)
        )

    def detach_orders(self, invoice_id: UUID) -> int:
        return self._bulk_update(
            update(Order)
            .where(Order.invoice_id == invoice_id)
            .values(invoice_id=None, is_paid=False)
        )

    def set_orders_paid(self, invoice_id: UUID, is_paid: bool) -> int:
        return self._bulk_update(
            update(Order).where(Order.invoice_id == invoice_id).values(is_paid=is_paid)
        )

    def search_billed_orders(self, fragment: str) -> list[OrderRecord]:
        pattern = f"%{fragment.strip()}%"
        stmt = (
            select(Order)
            .where(
                Order.invoice_id.is_not(None),
                or_(
                    Order.tracking_id.ilike(pattern),
                    Order.seller_reference_number.ilike(pattern),
                ),
            )
            .order_by(Order.created_at, Order.id)
        )
        return [_order_record(o) for o in self.session.scalars(stmt)]

    # -- invoices -------------------------------------------------------------

    def _load_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def add_invoice(self, **fields: Any) -> InvoiceRecord:
        invoice = Invoice(**fields)
        self.session.add(invoice)
        self._flush_or_raise(
            InvoiceConflictError(str(fields.get("seller_id")), str(fields.get("bill_number")))
        )
        self.session.refresh(invoice)
        return _invoice_record(invoice)

    def get_invoice(self, invoice_id: UUID) -> InvoiceRecord | None:
        invoice = self.session.get(Invoice, invoice_id)
        return _invoice_record(invoice) if invoice is not None else None

    def get_invoices(self, invoice_ids: Sequence[UUID]) -> dict[UUID, InvoiceRecord]:
        ids = list({i for i in invoice_ids if i is not None})
        if not ids:
            return {}
        rows = self.session.scalars(select(Invoice).where(Invoice.id.in_(ids)))
        return {i.id: _invoice_record(i) for i in rows}

    def list_invoices(self, seller_id: UUID | None = None) -> list[InvoiceRecord]:
        stmt = select(Invoice)
        if seller_id is not None:
            stmt = stmt.where(Invoice.seller_id == seller_id)
        stmt = stmt.order_by(Invoice.invoice_date.desc(), Invoice.bill_number.desc())
        return [_invoice_record(i) for i in self.session.scalars(stmt)]

    def list_invoice_numbers(self, seller_id: UUID) -> list[str]:
        return list(
            self.session.scalars(
                select(Invoice.bill_number).where(Invoice.seller_id == seller_id)
            )
        )

    def set_invoice_paid(self, invoice_id: UUID, is_paid: bool) -> InvoiceRecord:
        invoice = self._load_invoice(invoice_id)
        invoice.is_paid = is_paid
        self.session.flush()
        return _invoice_record(invoice)

    def delete_invoice(self, invoice_id: UUID) -> None:
        self.session.delete(self._load_invoice(invoice_id))
        self.session.flush()

    # -- ledger customers -----------------------------------------------------

    def _load_customer(self, customer_id: UUID) -> LedgerCustomer:
        customer = self.session.get(LedgerCustomer, customer_id)
        if customer is None:
            raise LedgerCustomerNotFoundError(str(customer_id))
        return customer

    def add_customer(self, **fields: Any) -> LedgerCustomerRecord:
        customer = LedgerCustomer(**fields)
        self.session.add(customer)
        self._flush_or_raise(DuplicateCustomerPhoneError(str(fields.get("phone"))))
        self.session.refresh(customer)
        return _customer_record(customer)

    def get_customer(self, customer_id: UUID, lock: bool = False) -> LedgerCustomerRecord | None:
        stmt = select(LedgerCustomer).where(LedgerCustomer.id == customer_id)
        if lock:
            stmt = stmt.with_for_update()
        customer = self.session.scalars(stmt).one_or_none()
        return _customer_record(customer) if customer is not None else None

    def find_customer_by_phone(self, phone: str) -> LedgerCustomerRecord | None:
        customer = self.session.scalars(
            select(LedgerCustomer).where(LedgerCustomer.phone == phone)
        ).one_or_none()
        return _customer_record(customer) if customer is not None else None

    def list_customers(
        self, party: str | None = None, search: str | None = None
    ) -> list[LedgerCustomerRecord]:
        stmt = select(LedgerCustomer)
        if party is not None:
            stmt = stmt.where(LedgerCustomer.party == party)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    LedgerCustomer.name.ilike(pattern),
                    LedgerCustomer.phone.ilike(pattern),
                )
            )
        stmt = stmt.order_by(LedgerCustomer.name, LedgerCustomer.id)
        return [_customer_record(c) for c in self.session.scalars(stmt)]

    def update_customer(
        self, customer_id: UUID, changes: dict[str, Any]
    ) -> LedgerCustomerRecord:
        customer = self._load_customer(customer_id)
        for key, value in changes.items():
            setattr(customer, key, value)
        self._flush_or_raise(DuplicateCustomerPhoneError(str(changes.get("phone"))))
        self.session.refresh(customer)
        return _customer_record(customer)

    def delete_customer(self, customer_id: UUID) -> None:
        self.session.delete(self._load_customer(customer_id))
        self.session.flush()

    def count_customer_entries(self, customer_id: UUID) -> int:
        bills = self.session.execute(
            select(func.count(LedgerBill.id)).where(LedgerBill.customer_id == customer_id)
        ).scalar_one()
        payments = self.session.execute(
            select(func.count(LedgerPayment.id)).where(
                LedgerPayment.customer_id == customer_id
            )
        ).scalar_one()
        return bills + payments

    # -- ledger entries -------------------------------------------------------

    def add_bill(
        self,
        *,
        customer_id,
        bill_number,
        entry_date,
        description,
        lines: Sequence[BillLineInput],
        actor_id=None,
    ) -> BillEntryRecord:
        sequence = SequenceService(self.session).next_value(LEDGER_ENTRY_SEQUENCE)
        bill = LedgerBill(
            customer_id=customer_id,
            bill_number=bill_number,
            entry_date=entry_date,
            description=description,
            debit=sum((ln.amount for ln in lines), Decimal("0")),
            sequence=sequence,
            created_by_id=actor_id,
        )
        for index, ln in enumerate(lines, start=1):
            bill.lines.append(
                LedgerBillLine(
                    line_seq=index,
                    product_name=ln.product_name,
                    meters=ln.meters,
                    meter_price=ln.meter_price,
                    amount=ln.amount,
                    created_by_id=actor_id,
                )
            )
        self.session.add(bill)
        self._flush_or_raise(DuplicateLedgerBillError(bill_number))
        return _bill_record(bill)

    def get_bill(self, bill_number: str) -> BillEntryRecord | None:
        bill = self.session.scalars(
            select(LedgerBill).where(LedgerBill.bill_number == bill_number)
        ).one_or_none()
        return _bill_record(bill) if bill is not None else None

    def list_ledger_bill_numbers(self, prefix: str) -> list[str]:
        return list(
            self.session.scalars(
                select(LedgerBill.bill_number).where(
                    LedgerBill.bill_number.startswith(prefix, autoescape=True)
                )
            )
        )

    def delete_bill(self, bill_number: str) -> None:
        bill = self.session.scalars(
            select(LedgerBill).where(LedgerBill.bill_number == bill_number)
        ).one_or_none()
        if bill is None:
            raise LedgerBillNotFoundError(bill_number)
        self.session.delete(bill)
        self.session.flush()

    def add_payment(self, **fields: Any) -> PaymentEntryRecord:
        fields["sequence"] = SequenceService(self.session).next_value(
            LEDGER_ENTRY_SEQUENCE
        )
        payment = LedgerPayment(**fields)
        self.session.add(payment)
        self.session.flush()
        return _payment_record(payment)

    def get_payment(self, payment_id: UUID) -> PaymentEntryRecord | None:
        payment = self.session.get(LedgerPayment, payment_id)
        return _payment_record(payment) if payment is not None else None

    def delete_payment(self, payment_id: UUID) -> None:
        payment = self.session.get(LedgerPayment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        self.session.delete(payment)
        self.session.flush()

    def count_bill_payments(self, bill_number: str) -> int:
        return self.session.execute(
            select(func.count(LedgerPayment.id)).where(
                LedgerPayment.bill_number == bill_number
            )
        ).scalar_one()

    def _apply_filter(self, stmt, model, khata_filter: KhataFilter):
        if khata_filter.customer_id is not None:
            stmt = stmt.where(model.customer_id == khata_filter.customer_id)
        if khata_filter.bill_number:
            stmt = stmt.where(model.bill_number == khata_filter.bill_number)
        if khata_filter.start_date is not None:
            stmt = stmt.where(model.entry_date >= khata_filter.start_date)
        if khata_filter.end_date is not None:
            stmt = stmt.where(model.entry_date <= khata_filter.end_date)
        if khata_filter.party is not None:
            stmt = stmt.join(LedgerCustomer, LedgerCustomer.id == model.customer_id).where(
                LedgerCustomer.party == khata_filter.party
            )
        return stmt.order_by(model.entry_date, model.sequence)

    def list_bills(self, khata_filter: KhataFilter) -> list[BillEntryRecord]:
        stmt = self._apply_filter(select(LedgerBill), LedgerBill, khata_filter)
        return [_bill_record(b) for b in self.session.scalars(stmt)]

    def list_payments(self, khata_filter: KhataFilter) -> list[PaymentEntryRecord]:
        stmt = self._apply_filter(select(LedgerPayment), LedgerPayment, khata_filter)
        return [_payment_record(p) for p in self.session.scalars(stmt)]
