"""
resale_engines.numbering -- Human-facing document numbers.

Responsibility:
    Derive the next seller order reference, seller invoice number
    (``INV-NNN``) and khata bill number (``BILL-YYYYMM-NNN``) from the numbers
    already issued.

Architecture position:
    Engines -- pure, zero I/O.  Callers pass in the issued numbers and the
    current date.

Invariants enforced:
    - The next number is the highest parseable number + 1; numbers that do
      not parse are ignored, never treated as zero-width gaps.
    - Uniqueness is NOT guaranteed here.  The storage layer's unique
      constraints reject a concurrent duplicate.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date


def _highest(values: Iterable[str | None], pattern: re.Pattern[str]) -> int:
    highest = 0
    for value in values:
        if value is None:
            continue
        match = pattern.match(str(value).strip())
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def next_reference_number(existing: Iterable[str | None]) -> int:
    """Highest numeric seller reference + 1 (1 when the seller has none)."""
    return _highest(existing, re.compile(r"^(\d+)$")) + 1


def next_invoice_number(
    existing: Iterable[str | None],
    prefix: str = "INV-",
    width: int = 3,
) -> str:
    """
    Next seller invoice number.

        >>> next_invoice_number(["INV-001", "INV-009"])
        'INV-010'
    """
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$", re.IGNORECASE)
    return f"{prefix}{_highest(existing, pattern) + 1:0{width}d}"


def next_ledger_bill_number(
    existing: Iterable[str | None],
    on: date,
    prefix: str = "BILL-",
    width: int = 3,
) -> str:
    """
    Next khata bill number for the month of ``on``.

    Numbering restarts every month:

        >>> next_ledger_bill_number(["BILL-202401-004"], date(2024, 1, 9))
        'BILL-202401-005'
        >>> next_ledger_bill_number(["BILL-202401-004"], date(2024, 2, 1))
        'BILL-202402-001'
    """
    month_prefix = f"{prefix}{on:%Y%m}-"
    pattern = re.compile(rf"^{re.escape(month_prefix)}(\d+)$", re.IGNORECASE)
    return f"{month_prefix}{_highest(existing, pattern) + 1:0{width}d}"
