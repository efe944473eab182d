"""
Seller statement reader.

Turns an uploaded CSV or XLSX statement into ``StatementRow`` records for
the reconciliation service.

Header detection:
    The first rows are scanned for a row naming all three columns.  Each
    column takes the cell that best matches its synonyms (case-insensitive):
    earlier synonyms beat later ones and, for one synonym, a cell equal to
    it beats a cell containing it.  So ``Seller Reference #`` and
    ``Invoice No`` are recognised while ``Invoice Amount`` loses to
    ``Invoice Number``.  When no such row exists the file is read positionally:
    reference, invoice number, profit in columns 0, 1 and 2, starting at
    the first row.

Rows without a reference or an invoice number are skipped.  An unparseable
profit reads as 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from resale_engines.invoice_matching import StatementRow
from resale_ingestion.adapters import CsvStatementSource, XlsxStatementSource
from resale_ingestion.adapters.base import StatementSource
from resale_kernel.db.types import ZERO, to_decimal
from resale_kernel.exceptions import InvalidFieldError
from resale_kernel.logging_config import get_logger

logger = get_logger("ingestion.statement")

HEADER_SCAN_ROWS = 15

REFERENCE_HEADERS = (
    "seller_reference",
    "seller reference",
    "order reference",
    "order_reference",
    "reference number",
    "reference",
)
INVOICE_HEADERS = (
    "invoice_number",
    "invoice number",
    "invoice",
    "bill_number",
    "bill number",
)
PROFIT_HEADERS = (
    "seller_profit",
    "seller profit",
    "profit",
)

_SOURCES: dict[str, StatementSource] = {
    ".csv": CsvStatementSource(),
    ".xlsx": XlsxStatementSource(),
    ".xlsm": XlsxStatementSource(),
}


@dataclass(frozen=True)
class StatementColumns:
    """Where the three statement columns live; header_index None means no header."""

    reference: int = 0
    invoice: int = 1
    profit: int = 2
    header_index: int | None = None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value == int(value):
        return str(int(value))
    return str(value).strip()


def _find_column(cells: list[str], synonyms: tuple[str, ...], claimed: set[int]) -> int | None:
    open_cells = [(i, cell) for i, cell in enumerate(cells) if cell and i not in claimed]
    for synonym in synonyms:
        for index, cell in open_cells:
            if cell == synonym:
                return index
        for index, cell in open_cells:
            if synonym in cell:
                return index
    return None


def _header_columns(row: list[Any], header_index: int) -> StatementColumns | None:
    cells = [_text(v).lower() for v in row]
    claimed: set[int] = set()
    found = []
    for synonyms in (REFERENCE_HEADERS, INVOICE_HEADERS, PROFIT_HEADERS):
        column = _find_column(cells, synonyms, claimed)
        if column is None:
            return None
        claimed.add(column)
        found.append(column)
    return StatementColumns(*found, header_index=header_index)


def detect_columns(rows: list[list[Any]], scan_rows: int = HEADER_SCAN_ROWS) -> StatementColumns:
    """First row within ``scan_rows`` naming all three columns, else positional."""
    for index, row in enumerate(rows[:scan_rows]):
        columns = _header_columns(row, index)
        if columns is not None:
            return columns
    return StatementColumns()


def _cell(row: list[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def parse_statement_rows(rows: Iterable[list[Any]]) -> list[StatementRow]:
    """Statement rows from raw cell rows (header included or not)."""
    raw = [list(r) for r in rows]
    columns = detect_columns(raw)
    start = 0 if columns.header_index is None else columns.header_index + 1

    parsed: list[StatementRow] = []
    skipped = 0
    for index in range(start, len(raw)):
        row = raw[index]
        reference = _text(_cell(row, columns.reference))
        invoice = _text(_cell(row, columns.invoice))
        if not reference or not invoice:
            skipped += 1
            continue
        parsed.append(
            StatementRow(
                seller_reference=reference,
                invoice_number=invoice,
                profit=to_decimal(_cell(row, columns.profit), ZERO),
                row_number=index + 1,
            )
        )

    logger.info(
        "statement_parsed",
        extra={
            "header_row": None if columns.header_index is None else columns.header_index + 1,
            "row_count": len(parsed),
            "skipped_rows": skipped,
        },
    )
    return parsed


def source_for(path: Path) -> StatementSource:
    suffix = Path(path).suffix.lower()
    source = _SOURCES.get(suffix)
    if source is None:
        raise InvalidFieldError("file", str(path), f"unsupported statement format '{suffix}'")
    return source


def read_statement(path: str | Path, options: dict[str, Any] | None = None) -> list[StatementRow]:
    """
    Read a CSV or XLSX statement file.

    Args:
        path: Statement file; the format is chosen by suffix.
        options: Adapter options (``delimiter``, ``encoding``, ``sheet``,
            ``skip_rows``).

    Raises:
        InvalidFieldError: unsupported file suffix.
    """
    path = Path(path)
    source = source_for(path)
    logger.debug("statement_read_started", extra={"path": str(path)})
    return parse_statement_rows(source.read_rows(path, options or {}))
