"""Statement source adapters (file I/O only, no DB)."""

from resale_ingestion.adapters.base import SourcePreview, StatementSource
from resale_ingestion.adapters.csv_adapter import CsvStatementSource
from resale_ingestion.adapters.xlsx_adapter import XlsxStatementSource

__all__ = [
    "CsvStatementSource",
    "SourcePreview",
    "StatementSource",
    "XlsxStatementSource",
]
