"""
Statement source adapter protocol and preview DTO.

Contract:
    StatementSource.read_rows() yields one list of cell values per source
    row, header rows included; header detection belongs to
    ``resale_ingestion.statement``.
    StatementSource.preview() returns a quick snapshot of the first rows.

Architecture: resale_ingestion/adapters. File I/O only, no DB or kernel imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Protocol, runtime_checkable


@runtime_checkable
class StatementSource(Protocol):
    """Protocol for reading tabular statement files into raw rows."""

    def read_rows(self, source_path: Path, options: dict[str, Any]) -> Iterator[list[Any]]:
        """Yield one list of cell values per row. Streams where the format allows."""
        ...

    def preview(self, source_path: Path, options: dict[str, Any]) -> "SourcePreview":
        """Row count and the first few rows."""
        ...


@dataclass(frozen=True)
class SourcePreview:
    """Quick look at a statement file."""

    row_count: int
    sample_rows: tuple[tuple[Any, ...], ...]  # First 5 rows
    encoding: str | None = None
    detected_delimiter: str | None = None
