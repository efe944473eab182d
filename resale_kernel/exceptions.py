"""
Typed exception hierarchy for the resale kernel.

Every error a caller may need to branch on has its own class, a ``code``
class attribute (machine-readable, API-safe) and structured attributes
instead of a message to parse.

    try:
        ledger.record_payment(customer_id, amount=Decimal("700"), ...)
    except PaymentExceedsBalanceError as e:
        return {"error": e.code, "remaining_balance": e.remaining_balance}

Hierarchy::

    ResaleKernelError
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- InvalidFieldError
    |   +-- DuplicateOrderReferenceError
    |   +-- NoEligibleOrdersError
    |   +-- PaymentExceedsBalanceError
    |   +-- DuplicateCustomerPhoneError
    |   +-- DuplicateLedgerBillError
    |
    +-- NotFoundError
    |   +-- OrderNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- LedgerCustomerNotFoundError
    |   +-- LedgerBillNotFoundError
    |   +-- PaymentNotFoundError
    |
    +-- InvoiceStateError
    |   +-- InvoicePaidError
    |
    +-- LedgerIntegrityError
    |   +-- BillReferencedError
    |   +-- CustomerReferencedError
    |
    +-- ConcurrencyError                 (retryable)
    |   +-- InvoiceConflictError
    |   +-- OrderAlreadyInvoicedError
    |   +-- SequenceConflictError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- StoreError
        +-- StoreNotConfiguredError

Validation errors are raised before any write, so nothing is partially
applied.  Concurrency errors mean the caller's transaction must be rolled
back and the whole operation may be retried.
"""

from decimal import Decimal


class ResaleKernelError(Exception):
    """
    Base exception for all resale kernel errors.

    All subclasses carry a ``code`` class attribute.
    """

    code: str = "RESALE_KERNEL_ERROR"
    retryable: bool = False


# Validation


class ValidationError(ResaleKernelError):
    """A required field is missing or a value is not acceptable."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class MissingFieldError(ValidationError):
    """Required field was not supplied."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        super().__init__(field, "is required")


class InvalidFieldError(ValidationError):
    """Field was supplied with an unacceptable value."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, value: object, reason: str):
        self.value = value
        super().__init__(field, reason)


class DuplicateOrderReferenceError(ValidationError):
    """Seller already has an order with this reference number."""

    code: str = "DUPLICATE_ORDER_REFERENCE"

    def __init__(self, seller_id: str, reference: str):
        self.seller_id = seller_id
        self.reference = reference
        super().__init__(
            "seller_reference_number",
            f"order with reference number {reference} already exists for this seller",
        )


class NoEligibleOrdersError(ValidationError):
    """Invoice generation found no unbilled delivered/returned orders."""

    code: str = "NO_ELIGIBLE_ORDERS"

    def __init__(self, seller_id: str, status_breakdown: dict[str, int]):
        self.seller_id = seller_id
        self.status_breakdown = status_breakdown
        super().__init__("seller_id", "no unpaid orders found for this seller")


class PaymentExceedsBalanceError(ValidationError):
    """Payment amount is larger than the customer's remaining balance."""

    code: str = "PAYMENT_EXCEEDS_BALANCE"

    def __init__(self, customer_id: str, amount: Decimal, remaining_balance: Decimal):
        self.customer_id = customer_id
        self.amount = amount
        self.remaining_balance = remaining_balance
        super().__init__(
            "amount",
            f"payment amount cannot exceed remaining balance of {remaining_balance}",
        )


class DuplicateCustomerPhoneError(ValidationError):
    """A ledger customer with this phone number already exists."""

    code: str = "DUPLICATE_CUSTOMER_PHONE"

    def __init__(self, phone: str):
        self.phone = phone
        super().__init__("phone", "customer with this phone number already exists")


class DuplicateLedgerBillError(ValidationError):
    """A ledger bill with this number already exists."""

    code: str = "DUPLICATE_LEDGER_BILL"

    def __init__(self, bill_number: str):
        self.bill_number = bill_number
        super().__init__("bill_number", f"bill number {bill_number} already exists")


# Lookup


class NotFoundError(ResaleKernelError):
    """Base exception for missing rows."""

    code: str = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class LedgerCustomerNotFoundError(NotFoundError):
    code: str = "LEDGER_CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Ledger customer not found: {customer_id}")


class LedgerBillNotFoundError(NotFoundError):
    code: str = "LEDGER_BILL_NOT_FOUND"

    def __init__(self, bill_number: str):
        self.bill_number = bill_number
        super().__init__(f"Bill not found: {bill_number}")


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


# Invoice state


class InvoiceStateError(ResaleKernelError):
    """Base exception for invoice lifecycle violations."""

    code: str = "INVOICE_STATE_ERROR"


class InvoicePaidError(InvoiceStateError):
    """Paid invoices cannot be deleted."""

    code: str = "INVOICE_PAID"

    def __init__(self, invoice_id: str, bill_number: str):
        self.invoice_id = invoice_id
        self.bill_number = bill_number
        super().__init__(f"Invoice {bill_number} is paid and cannot be deleted")


# Ledger integrity


class LedgerIntegrityError(ResaleKernelError):
    """Base exception for ledger referential rules."""

    code: str = "LEDGER_INTEGRITY_ERROR"


class BillReferencedError(LedgerIntegrityError):
    """Bill entry has payments recorded against it."""

    code: str = "BILL_REFERENCED"

    def __init__(self, bill_number: str, payment_count: int):
        self.bill_number = bill_number
        self.payment_count = payment_count
        super().__init__(
            f"Bill {bill_number} has {payment_count} payment(s) and cannot be deleted"
        )


class CustomerReferencedError(LedgerIntegrityError):
    """Ledger customer still has bill or payment entries."""

    code: str = "CUSTOMER_REFERENCED"

    def __init__(self, customer_id: str, entry_count: int):
        self.customer_id = customer_id
        self.entry_count = entry_count
        super().__init__(
            f"Customer {customer_id} has {entry_count} ledger entries and cannot be deleted"
        )


# Concurrency


class ConcurrencyError(ResaleKernelError):
    """Base exception for write conflicts. The operation may be retried."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class InvoiceConflictError(ConcurrencyError):
    """Bill number already taken for this seller (unique constraint)."""

    code: str = "INVOICE_CONFLICT"

    def __init__(self, seller_id: str, bill_number: str):
        self.seller_id = seller_id
        self.bill_number = bill_number
        super().__init__(
            f"Invoice {bill_number} already exists for seller {seller_id}"
        )


class OrderAlreadyInvoicedError(ConcurrencyError):
    """One or more orders were attached to another invoice first."""

    code: str = "ORDER_ALREADY_INVOICED"

    def __init__(self, order_ids: list[str]):
        self.order_ids = order_ids
        super().__init__(
            f"{len(order_ids)} order(s) already attached to another invoice"
        )


class SequenceConflictError(ConcurrencyError):
    """Sequence counter row was created concurrently."""

    code: str = "SEQUENCE_CONFLICT"

    def __init__(self, sequence_name: str):
        self.sequence_name = sequence_name
        super().__init__(f"Concurrent creation of sequence {sequence_name}")


# Immutability


class ImmutabilityError(ResaleKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify a sealed field."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Store


class StoreError(ResaleKernelError):
    """Base exception for storage port failures."""

    code: str = "STORE_ERROR"


class StoreNotConfiguredError(StoreError):
    """No database is configured; every store call fails fast."""

    code: str = "STORE_NOT_CONFIGURED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Database not configured (operation: {operation})")
