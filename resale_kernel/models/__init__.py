"""ORM models for the resale kernel."""

from resale_kernel.models.invoice import Invoice
from resale_kernel.models.ledger import (
    LEDGER_ENTRY_SEQUENCE,
    LedgerBill,
    LedgerBillLine,
    LedgerCustomer,
    LedgerPayment,
)
from resale_kernel.models.order import SEALED_ORDER_FIELDS, Order
from resale_kernel.models.sequence import SequenceCounter

__all__ = [
    "Order",
    "SEALED_ORDER_FIELDS",
    "Invoice",
    "LedgerCustomer",
    "LedgerBill",
    "LedgerBillLine",
    "LedgerPayment",
    "LEDGER_ENTRY_SEQUENCE",
    "SequenceCounter",
]
