"""
XLSX statement adapter.

Reads the active sheet (or ``sheet`` by 0-based index or name) of a
read-only workbook with cached formula values.  Cell values are normalized:
None becomes "", integral floats become ints (Excel stores ``1042`` as
``1042.0``), text is stripped.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator

import openpyxl

from resale_ingestion.adapters.base import SourcePreview

_SAMPLE_SIZE = 5


def _cell_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, float):
        if value == int(value):
            return int(value)
        return value
    if isinstance(value, str):
        return value.strip()
    return value


class XlsxStatementSource:
    """
    Read .xlsx files as one list of cell values per row.

    source_options:
      sheet: 0-based sheet index (int) or sheet name (str). Default: active sheet.
      skip_rows: rows to skip at the top of the sheet. Default: 0.
    """

    def read_rows(self, source_path: Path, options: dict[str, Any]) -> Iterator[list[Any]]:
        wb = openpyxl.load_workbook(source_path, read_only=True, data_only=True)
        try:
            sheet = self._get_sheet(wb, options)
            skip_rows = int(options.get("skip_rows", 0))
            for row in sheet.iter_rows(min_row=1 + skip_rows, values_only=True):
                yield [_cell_value(v) for v in row]
        finally:
            wb.close()

    def _get_sheet(self, wb: Any, options: dict[str, Any]) -> Any:
        sheet_ref = options.get("sheet")
        if sheet_ref is None:
            return wb.active
        if isinstance(sheet_ref, int):
            return wb.worksheets[sheet_ref]
        return wb[sheet_ref]

    def preview(self, source_path: Path, options: dict[str, Any]) -> SourcePreview:
        sample: list[tuple[Any, ...]] = []
        count = 0
        for row in self.read_rows(source_path, options):
            if len(sample) < _SAMPLE_SIZE:
                sample.append(tuple(row))
            count += 1
        return SourcePreview(row_count=count, sample_rows=tuple(sample))
