"""
ORM-level immutability enforcement.

SQLAlchemy fires events before UPDATE/DELETE statements reach the database.
The listeners here intercept those events and refuse changes to sealed data:

    session.flush()
         |
         v
    [before_flush]  --> _check_ledger_bill_deletion_before_flush() --> BillReferencedError
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() -------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities
------------------

Entity          | Sealed                                  | Rule
----------------|-----------------------------------------|------------------------------
Order           | profit, shipper_price (after insert)    | Profit is computed once
Invoice         | whole row, for DELETE, once is_paid     | Paid invoices are kept
LedgerBill      | all fields (after insert)               | Ledger entries are never edited
LedgerBill      | DELETE while payments reference it      | Payments keep their bill
LedgerPayment   | all fields (after insert)               | Ledger entries are never edited

updated_at/updated_by_id are audit metadata and may always change.

Usage
-----

    from resale_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup, idempotent

    # TESTS ONLY
    unregister_immutability_listeners()
"""

from sqlalchemy import event, func, inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from resale_kernel.exceptions import BillReferencedError, ImmutabilityViolationError
from resale_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _blocked(entity_type: str, entity_id: object, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------


def _check_order_immutability(mapper, connection, target):
    """Block changes to profit and shipper_price once the order exists."""
    from resale_kernel.models.order import SEALED_ORDER_FIELDS

    for field in sorted(SEALED_ORDER_FIELDS):
        if get_history(target, field).has_changes():
            _blocked(
                "Order",
                target.id,
                "UPDATE",
                f"Cannot modify field '{field}' after the order is created",
                field=field,
            )


# ---------------------------------------------------------------------------
# Invoice
# ---------------------------------------------------------------------------


def _check_invoice_delete(mapper, connection, target):
    """Block deletion of an invoice that was paid before this flush."""
    hist = get_history(target, "is_paid")
    was_paid = hist.deleted[0] if hist.deleted else target.is_paid
    if was_paid:
        _blocked(
            "Invoice",
            target.id,
            "DELETE",
            f"Paid invoice {target.bill_number} cannot be deleted",
        )


# ---------------------------------------------------------------------------
# Ledger entries
# ---------------------------------------------------------------------------


def _check_ledger_entry_immutability(mapper, connection, target):
    """Ledger bills and payments are append-only."""
    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_METADATA_FIELDS or attr.key == "lines":
            continue
        if attr.history.has_changes():
            _blocked(
                type(target).__name__,
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a ledger entry",
                field=attr.key,
            )


def _check_ledger_bill_deletion_before_flush(session, flush_context, instances):
    """
    Refuse to delete a ledger bill that payments still reference.

    Runs in SessionEvents.before_flush so the deletion is stopped before the
    flush plan is built.  Payments deleted in the same flush do not count.
    """
    from resale_kernel.models.ledger import LedgerBill, LedgerPayment

    deleting_payments = {
        obj.id for obj in session.deleted if isinstance(obj, LedgerPayment)
    }

    for obj in list(session.deleted):
        if not isinstance(obj, LedgerBill):
            continue

        with session.no_autoflush:
            stmt = select(func.count(LedgerPayment.id)).where(
                LedgerPayment.bill_number == obj.bill_number
            )
            if deleting_payments:
                stmt = stmt.where(LedgerPayment.id.not_in(list(deleting_payments)))
            count = session.execute(stmt).scalar_one()

        if count:
            logger.error(
                "ledger_bill_delete_blocked",
                extra={"bill_number": obj.bill_number, "payment_count": count},
            )
            raise BillReferencedError(obj.bill_number, count)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _listeners():
    from resale_kernel.models.invoice import Invoice
    from resale_kernel.models.ledger import LedgerBill, LedgerPayment
    from resale_kernel.models.order import Order

    return [
        (Session, "before_flush", _check_ledger_bill_deletion_before_flush),
        (Order, "before_update", _check_order_immutability),
        (Invoice, "before_delete", _check_invoice_delete),
        (LedgerBill, "before_update", _check_ledger_entry_immutability),
        (LedgerPayment, "before_update", _check_ledger_entry_immutability),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement listeners.

    Safe to call more than once; already-registered listeners are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement listeners.

    WARNING: Only use this in tests that must write sealed data directly.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
