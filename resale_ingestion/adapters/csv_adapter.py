"""
CSV statement adapter.

Seller statements arrive from spreadsheet exports in several dialects, so
the delimiter is sniffed from the head of the file unless the caller names
one.  A UTF-8 byte order mark is dropped.

Options: ``delimiter``, ``encoding`` (default utf-8), ``skip_rows``.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterator

from resale_ingestion.adapters.base import SourcePreview

_SAMPLE_SIZE = 5
_SNIFF_BYTES = 4096
_CANDIDATE_DELIMITERS = ",;\t|"


def _encoding(options: dict[str, Any]) -> str:
    encoding = options.get("encoding") or "utf-8"
    return "utf-8-sig" if encoding.lower() in ("utf-8", "utf8") else encoding


def sniff_delimiter(head: str) -> str:
    """Most plausible delimiter of a CSV head; comma when undecidable."""
    try:
        return csv.Sniffer().sniff(head, delimiters=_CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        return ","


class CsvStatementSource:
    """Rows of a CSV file as lists of strings."""

    def _delimiter(self, source_path: Path, options: dict[str, Any]) -> str:
        if options.get("delimiter"):
            return options["delimiter"]
        with Path(source_path).open("r", encoding=_encoding(options), newline="") as f:
            return sniff_delimiter(f.read(_SNIFF_BYTES))

    def read_rows(self, source_path: Path, options: dict[str, Any]) -> Iterator[list[Any]]:
        delimiter = self._delimiter(source_path, options)
        skip_rows = int(options.get("skip_rows", 0))
        with Path(source_path).open("r", encoding=_encoding(options), newline="") as f:
            for index, row in enumerate(csv.reader(f, delimiter=delimiter)):
                if index >= skip_rows:
                    yield row

    def preview(self, source_path: Path, options: dict[str, Any]) -> SourcePreview:
        sample: list[tuple[Any, ...]] = []
        count = 0
        for row in self.read_rows(source_path, options):
            if len(sample) < _SAMPLE_SIZE:
                sample.append(tuple(row))
            count += 1
        return SourcePreview(
            row_count=count,
            sample_rows=tuple(sample),
            encoding=_encoding(options),
            detected_delimiter=self._delimiter(source_path, options),
        )
