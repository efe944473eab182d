"""
InvoiceService -- seller invoice generation and lifecycle.

Responsibility:
    Roll a seller's unbilled delivered/returned orders into an invoice,
    recompute invoice statements from the linked orders, toggle payment
    (cascading to the orders), delete unpaid invoices and search invoices by
    order tracking id or reference.

Invariants enforced:
    - Eligibility is decided by linkage: ``invoice_id IS NULL``, not paid,
      status delivered or returned.  Status alone never decides it.
    - Money totals are computed by ``aggregate_invoice`` from live order
      state on every read; only counts and other_expenses are stored.
    - Generating an invoice does not mark orders paid.
    - A paid invoice cannot be deleted.

Failure modes:
    - NoEligibleOrdersError (with a status breakdown of unbilled orders).
    - InvalidFieldError for negative other_expenses.
    - InvoiceConflictError (retryable) when the bill number is taken.
    - OrderAlreadyInvoicedError (retryable) when another invoice attached
      one of the selected orders first.  The caller rolls back.
    - InvoicePaidError, InvoiceNotFoundError.

Concurrency:
    The seller's unbilled orders are read with SELECT ... FOR UPDATE, the
    attach is conditional on ``invoice_id IS NULL`` and bill numbers are
    unique per seller, so the loser of a race always gets a retryable error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from resale_config.schema import BillingConfig
from resale_engines.invoice_aggregation import (
    InvoiceTotals,
    aggregate_invoice,
    select_billable_orders,
    status_breakdown,
)
from resale_engines.numbering import next_invoice_number
from resale_kernel.db.types import ZERO
from resale_kernel.domain.clock import Clock
from resale_kernel.domain.dtos import InvoiceRecord, OrderRecord
from resale_kernel.exceptions import (
    InvalidFieldError,
    InvoiceConflictError,
    InvoiceNotFoundError,
    InvoicePaidError,
    MissingFieldError,
    NoEligibleOrdersError,
    OrderAlreadyInvoicedError,
)
from resale_kernel.logging_config import get_logger
from resale_kernel.services.base import BaseService, optional_text, parse_money
from resale_kernel.store.base import ResaleStore

logger = get_logger("services.invoice")


@dataclass(frozen=True)
class InvoiceStatement:
    """Invoice header, its orders and the totals recomputed from them."""

    invoice: InvoiceRecord
    totals: InvoiceTotals
    orders: tuple[OrderRecord, ...] = field(default_factory=tuple)

    @property
    def net_profit(self) -> Decimal:
        return self.totals.net_profit

    def to_dict(self) -> dict:
        inv = self.invoice
        return {
            "id": str(inv.id),
            "bill_number": inv.bill_number,
            "seller_id": str(inv.seller_id),
            "invoice_date": inv.invoice_date.isoformat(),
            "is_paid": inv.is_paid,
            **self.totals.to_dict(),
        }


class InvoiceService(BaseService):
    """Seller invoices over the storage port."""

    def __init__(
        self,
        store: ResaleStore,
        billing: BillingConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(store, clock)
        self.billing = billing or BillingConfig()

    # -- generation -----------------------------------------------------------

    def generate_invoice(
        self,
        seller_id: UUID,
        bill_number: str | None = None,
        other_expenses: Any = ZERO,
        include_return_profit: bool = True,
        actor_id: UUID | None = None,
    ) -> InvoiceStatement:
        """
        Bill every unbilled delivered/returned order of the seller.

        Args:
            seller_id: Seller being invoiced.
            bill_number: Explicit number; ``INV-NNN`` is generated when None.
            other_expenses: Deducted from net profit; default 0, >= 0.
            include_return_profit: Reserved.  Returned orders are always
                included with their delivery charge deducted.
            actor_id: Admin generating the invoice.
        """
        if seller_id is None:
            raise MissingFieldError("seller_id")
        expenses = parse_money("other_expenses", other_expenses, required=False) or ZERO
        if expenses < ZERO:
            raise InvalidFieldError(
                "other_expenses", other_expenses, "must be zero or greater"
            )

        unbilled = self.store.list_unbilled_orders(seller_id, lock=True)
        eligible = select_billable_orders(unbilled)
        if not eligible:
            breakdown = status_breakdown(unbilled)
            logger.warning(
                "invoice_no_eligible_orders",
                extra={
                    "seller_id": str(seller_id),
                    "unbilled_orders": len(unbilled),
                    "status_breakdown": breakdown,
                },
            )
            raise NoEligibleOrdersError(str(seller_id), breakdown)

        existing_numbers = self.store.list_invoice_numbers(seller_id)
        number = optional_text(bill_number)
        if number is None:
            number = next_invoice_number(
                existing_numbers,
                prefix=self.billing.bill_prefix,
                width=self.billing.number_width,
            )
        elif number in existing_numbers:
            raise InvoiceConflictError(str(seller_id), number)

        totals = aggregate_invoice(
            orders=eligible,
            tax_rate=self.billing.tax_rate,
            other_expenses=expenses,
        )

        invoice = self.store.add_invoice(
            seller_id=seller_id,
            bill_number=number,
            invoice_date=self.clock.today(),
            total_orders=totals.total_orders,
            delivered_orders=totals.delivered_orders,
            return_orders=totals.return_orders,
            other_expenses=expenses,
            is_paid=False,
            created_by_id=actor_id,
        )

        order_ids = [o.id for o in eligible]
        attached = self.store.attach_orders(invoice.id, order_ids)
        if attached != len(order_ids):
            logger.error(
                "invoice_attach_conflict",
                extra={
                    "invoice_id": str(invoice.id),
                    "expected": len(order_ids),
                    "attached": attached,
                },
            )
            raise OrderAlreadyInvoicedError([str(i) for i in order_ids])

        logger.info(
            "invoice_generated",
            extra={
                "invoice_id": str(invoice.id),
                "seller_id": str(seller_id),
                "bill_number": number,
                "order_count": len(order_ids),
                "include_return_profit": include_return_profit,
                "net_profit": str(totals.net_profit),
            },
        )
        return self.get_statement(invoice.id)

    # -- reads ----------------------------------------------------------------

    def _get_invoice(self, invoice_id: UUID) -> InvoiceRecord:
        invoice = self.store.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _statement(self, invoice: InvoiceRecord) -> InvoiceStatement:
        orders = self.store.list_orders(invoice_id=invoice.id)
        totals = aggregate_invoice(
            orders=orders,
            tax_rate=self.billing.tax_rate,
            other_expenses=invoice.other_expenses,
        )
        return InvoiceStatement(invoice=invoice, totals=totals, orders=tuple(orders))

    def get_statement(self, invoice_id: UUID) -> InvoiceStatement:
        """Invoice with totals recomputed from its orders' current state."""
        return self._statement(self._get_invoice(invoice_id))

    def list_invoices(self, seller_id: UUID | None = None) -> list[InvoiceStatement]:
        """Newest first."""
        return [self._statement(inv) for inv in self.store.list_invoices(seller_id)]

    def search(self, query: str | None) -> list[InvoiceStatement]:
        """Invoices billing an order whose tracking id or reference contains ``query``."""
        text = optional_text(query)
        if text is None:
            return []
        seen: list[UUID] = []
        for order in self.store.search_billed_orders(text):
            if order.invoice_id not in seen:
                seen.append(order.invoice_id)
        invoices = self.store.get_invoices(seen)
        return [self._statement(invoices[i]) for i in seen if i in invoices]

    # -- lifecycle ------------------------------------------------------------

    def set_paid(
        self,
        invoice_id: UUID,
        is_paid: bool = True,
        actor_id: UUID | None = None,
    ) -> InvoiceStatement:
        """Mark paid or unpaid; the flag cascades to every linked order."""
        self._get_invoice(invoice_id)
        self.store.set_invoice_paid(invoice_id, is_paid)
        updated = self.store.set_orders_paid(invoice_id, is_paid)
        logger.info(
            "invoice_paid_status_changed",
            extra={
                "invoice_id": str(invoice_id),
                "is_paid": is_paid,
                "orders_updated": updated,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        return self.get_statement(invoice_id)

    def delete_invoice(self, invoice_id: UUID) -> int:
        """
        Delete an unpaid invoice.

        Its orders are unlinked and marked unpaid so they can be billed again.

        Returns:
            Number of orders released.
        """
        invoice = self._get_invoice(invoice_id)
        if invoice.is_paid:
            logger.warning(
                "invoice_delete_rejected_paid",
                extra={"invoice_id": str(invoice_id), "bill_number": invoice.bill_number},
            )
            raise InvoicePaidError(str(invoice_id), invoice.bill_number)

        released = self.store.detach_orders(invoice_id)
        self.store.delete_invoice(invoice_id)
        logger.info(
            "invoice_deleted",
            extra={
                "invoice_id": str(invoice_id),
                "bill_number": invoice.bill_number,
                "orders_released": released,
            },
        )
        return released
