"""
Module: resale_kernel.db.types
Responsibility: Annotated column types and the money rounding helper shared
    by models, engines and services.
Architecture position: Kernel > DB.  MUST NOT import from models/, store/ or
    services/.

Invariants enforced:
    - No floats for money.  Every monetary column uses Money (Numeric(38, 9)).
    - round_money() is the only rounding function for presented amounts
      (two places, ROUND_HALF_UP).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Monotonic insertion number for ordering
Sequence = Annotated[int, BigInteger]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary value to ``decimal_places`` (default 2, half-up)."""
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_decimal(value: object, default: Decimal | None = None) -> Decimal | None:
    """
    Coerce user input (str, int, float, Decimal, None) to Decimal.

    Blank strings and None return ``default``.  Unparseable input also returns
    ``default``; callers that must reject bad input check for it.
    """
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    text = str(value).strip().replace(",", "")
    if not text:
        return default
    try:
        result = Decimal(text)
    except InvalidOperation:
        return default
    if not result.is_finite():
        return default
    return result
