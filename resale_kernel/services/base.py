"""
BaseService -- abstract base for all resale services.

Responsibility:
    Common constructor for every service: the injected storage port and the
    clock.  Services validate input, call pure engines and write through the
    store; they never commit.

Invariants enforced:
    - Transaction boundaries belong to the caller (``store_scope()`` or a
      test fixture).  A service raising an exception leaves the rollback to
      that caller.
    - Validation errors are raised before the first write.
"""

from abc import ABC
from typing import Any

from resale_kernel.db.types import to_decimal
from resale_kernel.domain.clock import Clock, SystemClock
from resale_kernel.exceptions import InvalidFieldError, MissingFieldError
from resale_kernel.store.base import ResaleStore


class BaseService(ABC):
    """
    Abstract base class for services.

    Args:
        store: Storage port (SqlAlchemyStore or UnconfiguredStore).
        clock: Time source; defaults to SystemClock.
    """

    def __init__(self, store: ResaleStore, clock: Clock | None = None):
        self.store = store
        self.clock = clock or SystemClock()


def require_text(field: str, value: Any) -> str:
    """Trimmed non-blank string or MissingFieldError."""
    text = "" if value is None else str(value).strip()
    if not text:
        raise MissingFieldError(field)
    return text


def optional_text(value: Any) -> str | None:
    text = "" if value is None else str(value).strip()
    return text or None


def parse_money(field: str, value: Any, *, required: bool = True):
    """
    Decimal from user input.

    Missing (None or blank) raises MissingFieldError when required, else
    returns None.  Unparseable input raises InvalidFieldError.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise MissingFieldError(field)
        return None
    amount = to_decimal(value)
    if amount is None:
        raise InvalidFieldError(field, value, "must be a number")
    return amount
