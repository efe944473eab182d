"""
Seller statement ingestion.

Reads CSV and XLSX statements into rows for reconciliation:

    rows = read_statement("statement.xlsx")
    report = ReconciliationService(store).match_statement(rows, seller_id)
"""

from resale_ingestion.statement import (
    StatementColumns,
    detect_columns,
    parse_statement_rows,
    read_statement,
)

__all__ = [
    "StatementColumns",
    "detect_columns",
    "parse_statement_rows",
    "read_statement",
]
