"""
resale_engines.invoice_matching -- Seller statement reconciliation.

Responsibility:
    Classify each row of a seller-supplied statement
    (reference, invoice number, profit) against the system's orders.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The reconciliation service
    fetches the candidate orders and their invoices; this module never
    touches the store and never mutates anything.

Classification, first rule that applies wins:
    1. no order with that reference (or blank reference),
       or the named invoice does not bill it            -> not_found
    2. order status is not delivered                    -> not_delivered
    3. billing invoice is paid, or the order is paid    -> already_paid
    4. |seller_profit - system_profit| > tolerance      -> profit_mismatch
    5. otherwise                                        -> matched

Invariants enforced:
    - Exactly one outcome per input row; rows are never dropped, so
      ``summary["total"] == len(rows)``.
    - difference = seller_profit - system_profit (signed), only set for
      profit_mismatch.
    - Lookup failures are outcomes, never exceptions.

Usage:
    report = match_statement(rows=rows, candidates=views)
    report.to_dict()["summary"]
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from resale_engines.tracer import traced_engine
from resale_kernel.db.types import ZERO, round_money, to_decimal
from resale_kernel.domain.dtos import OrderRecord
from resale_kernel.domain.order_status import OrderStatus
from resale_kernel.logging_config import get_logger

logger = get_logger("engines.invoice_matching")

PROFIT_TOLERANCE = Decimal("0.01")


class MatchOutcome(str, Enum):
    MATCHED = "matched"
    PROFIT_MISMATCH = "profit_mismatch"
    ALREADY_PAID = "already_paid"
    NOT_FOUND = "not_found"
    NOT_DELIVERED = "not_delivered"


@dataclass(frozen=True)
class StatementRow:
    """One row of a seller's statement upload."""

    seller_reference: str
    invoice_number: str = ""
    profit: Decimal = ZERO
    row_number: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping, row_number: int | None = None) -> StatementRow:
        """
        Build from a loosely typed mapping.

        Accepts ``seller_reference``/``reference`` and ``invoice_number``/
        ``invoice``.  A missing or unparseable profit is 0.
        """
        reference = data.get("seller_reference", data.get("reference"))
        invoice = data.get("invoice_number", data.get("invoice"))
        return cls(
            seller_reference="" if reference is None else str(reference).strip(),
            invoice_number="" if invoice is None else str(invoice).strip(),
            profit=to_decimal(data.get("profit"), ZERO),
            row_number=row_number,
        )


@dataclass(frozen=True)
class SystemOrderView:
    """An order with the state of the invoice that billed it."""

    order: OrderRecord
    invoice_number: str | None = None
    invoice_paid: bool = False


@dataclass(frozen=True)
class MatchLine:
    outcome: MatchOutcome
    seller_reference: str
    invoice_number: str
    seller_profit: Decimal
    system_reference: str | None = None
    system_profit: Decimal | None = None
    order_status: OrderStatus | None = None
    system_invoice_number: str | None = None
    difference: Decimal | None = None
    row_number: int | None = None

    def to_dict(self) -> dict:
        result = {
            "seller_reference": self.seller_reference,
            "invoice_number": self.invoice_number,
            "seller_profit": str(round_money(self.seller_profit)),
            "system_reference": self.system_reference,
            "system_profit": (
                None if self.system_profit is None
                else str(round_money(self.system_profit))
            ),
            "order_status": None if self.order_status is None else self.order_status.value,
            "system_invoice_number": self.system_invoice_number,
        }
        if self.row_number is not None:
            result["row_number"] = self.row_number
        if self.difference is not None:
            result["difference"] = str(round_money(self.difference))
        return result


@dataclass(frozen=True)
class MatchReport:
    lines: tuple[MatchLine, ...] = field(default_factory=tuple)

    def bucket(self, outcome: MatchOutcome) -> list[MatchLine]:
        return [ln for ln in self.lines if ln.outcome == outcome]

    @property
    def summary(self) -> dict[str, int]:
        counts = {o.value: len(self.bucket(o)) for o in MatchOutcome}
        counts["total"] = len(self.lines)
        counts["issues"] = counts["total"] - counts[MatchOutcome.MATCHED.value]
        return counts

    def to_dict(self) -> dict:
        result: dict = {
            o.value: [ln.to_dict() for ln in self.bucket(o)] for o in MatchOutcome
        }
        result["summary"] = self.summary
        return result


def _reference_key(value: str | None) -> str:
    return "" if value is None else str(value).strip().upper()


def _pick(views: Sequence[SystemOrderView], invoice_number: str) -> SystemOrderView | None:
    """
    The order billed on the named invoice; the earliest order when no invoice
    is named.  None when the named invoice bills none of the candidates.
    """
    wanted = _reference_key(invoice_number)
    if not wanted:
        return views[0]
    for view in views:
        if _reference_key(view.invoice_number) == wanted:
            return view
    return None


def classify_row(
    row: StatementRow,
    views: Sequence[SystemOrderView],
    tolerance: Decimal = PROFIT_TOLERANCE,
) -> MatchLine:
    """Classify one statement row against its candidate orders."""
    base = dict(
        seller_reference=row.seller_reference,
        invoice_number=row.invoice_number,
        seller_profit=row.profit,
        row_number=row.row_number,
    )
    if not _reference_key(row.seller_reference) or not views:
        return MatchLine(outcome=MatchOutcome.NOT_FOUND, **base)

    view = _pick(views, row.invoice_number)
    if view is None:
        return MatchLine(
            outcome=MatchOutcome.NOT_FOUND,
            system_reference=views[0].order.seller_reference_number,
            **base,
        )
    order = view.order
    base.update(
        system_reference=order.seller_reference_number,
        system_profit=order.profit,
        order_status=order.status,
        system_invoice_number=view.invoice_number,
    )

    if order.status != OrderStatus.DELIVERED:
        return MatchLine(outcome=MatchOutcome.NOT_DELIVERED, **base)
    if view.invoice_paid or order.is_paid:
        return MatchLine(outcome=MatchOutcome.ALREADY_PAID, **base)

    difference = row.profit - order.profit
    if abs(difference) > tolerance:
        return MatchLine(
            outcome=MatchOutcome.PROFIT_MISMATCH, difference=difference, **base
        )
    return MatchLine(outcome=MatchOutcome.MATCHED, **base)


@traced_engine("invoice_matching", "1.0", fingerprint_fields=("rows", "tolerance"))
def match_statement(
    *,
    rows: Sequence[StatementRow],
    candidates: Sequence[SystemOrderView],
    tolerance: Decimal = PROFIT_TOLERANCE,
) -> MatchReport:
    """
    Reconcile statement rows against system orders.

    Args:
        rows: Statement rows in upload order.
        candidates: Orders of the uploading seller (all sellers for an
            admin), earliest first.
        tolerance: Largest profit difference still considered equal.
    """
    index: dict[str, list[SystemOrderView]] = {}
    for view in candidates:
        index.setdefault(_reference_key(view.order.seller_reference_number), []).append(view)

    lines = tuple(
        classify_row(row, index.get(_reference_key(row.seller_reference), []), tolerance)
        for row in rows
    )
    report = MatchReport(lines=lines)

    logger.info("statement_matched", extra=report.summary)
    return report
