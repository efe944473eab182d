"""
Resale kernel services.

Services validate input, call the pure engines and write through the
ResaleStore port.  None of them commits; the caller owns the transaction.
"""

from resale_kernel.services.base import BaseService
from resale_kernel.services.invoice_service import InvoiceService, InvoiceStatement
from resale_kernel.services.ledger_service import BillResult, LedgerService
from resale_kernel.services.order_service import OrderService
from resale_kernel.services.reconciliation_service import ReconciliationService

__all__ = [
    "BaseService",
    "BillResult",
    "InvoiceService",
    "InvoiceStatement",
    "LedgerService",
    "OrderService",
    "ReconciliationService",
]
