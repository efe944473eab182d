"""
ReconciliationService -- match a seller's statement against system orders.

Read-only: nothing is written, whatever the outcome.  Rows may be
StatementRow instances or loose mappings (API payloads, parsed uploads).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from uuid import UUID

from resale_config.schema import MatchingConfig
from resale_engines.invoice_matching import (
    MatchReport,
    StatementRow,
    SystemOrderView,
    match_statement,
)
from resale_kernel.logging_config import LogContext, get_logger
from resale_kernel.services.base import BaseService
from resale_kernel.store.base import ResaleStore

logger = get_logger("services.reconciliation")


class ReconciliationService(BaseService):
    def __init__(self, store: ResaleStore, matching: MatchingConfig | None = None):
        super().__init__(store)
        self.matching = matching or MatchingConfig()

    def _candidates(self, seller_id: UUID | None) -> list[SystemOrderView]:
        orders = self.store.list_orders(seller_id=seller_id)
        invoices = self.store.get_invoices([o.invoice_id for o in orders if o.invoice_id])
        views = []
        for order in orders:
            invoice = invoices.get(order.invoice_id) if order.invoice_id else None
            views.append(
                SystemOrderView(
                    order=order,
                    invoice_number=invoice.bill_number if invoice else None,
                    invoice_paid=invoice.is_paid if invoice else False,
                )
            )
        return views

    def match_statement(
        self,
        rows: Iterable[StatementRow | Mapping],
        seller_id: UUID | None = None,
    ) -> MatchReport:
        """
        Classify every row into exactly one outcome bucket.

        Args:
            rows: Statement rows in upload order.
            seller_id: Restrict candidates to this seller's orders; None
                matches against all orders (admin view).
        """
        statement = [
            row if isinstance(row, StatementRow)
            else StatementRow.from_mapping(row, row_number=index)
            for index, row in enumerate(rows, start=1)
        ]
        with LogContext.bind(seller_id=seller_id):
            report = match_statement(
                rows=statement,
                candidates=self._candidates(seller_id),
                tolerance=self.matching.profit_tolerance,
            )
        logger.info(
            "reconciliation_completed",
            extra={
                "seller_id": str(seller_id) if seller_id else None,
                "row_count": len(statement),
                "issues": report.summary["issues"],
            },
        )
        return report
