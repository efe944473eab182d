"""Domain layer - pure records, statuses and the clock abstraction."""

from resale_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from resale_kernel.domain.dtos import (
    BillEntryRecord,
    BillLineRecord,
    InvoiceRecord,
    LedgerCustomerRecord,
    OrderRecord,
    PaymentEntryRecord,
)
from resale_kernel.domain.order_status import (
    BILLABLE_STATUSES,
    OrderStatus,
    normalize_status,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "OrderRecord",
    "InvoiceRecord",
    "LedgerCustomerRecord",
    "BillEntryRecord",
    "BillLineRecord",
    "PaymentEntryRecord",
    "OrderStatus",
    "BILLABLE_STATUSES",
    "normalize_status",
]
