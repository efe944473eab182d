"""Fail-fast store used when no database is configured."""

from typing import Any, Callable, NoReturn

from resale_kernel.exceptions import StoreNotConfiguredError
from resale_kernel.logging_config import get_logger
from resale_kernel.store.base import STORE_OPERATIONS

logger = get_logger("store.unconfigured")


def _fail_fast(operation: str) -> Callable[..., NoReturn]:
    def method(self: Any, *args: Any, **kwargs: Any) -> NoReturn:
        logger.error("store_not_configured", extra={"operation": operation})
        raise StoreNotConfiguredError(operation)

    method.__name__ = operation
    method.__qualname__ = f"UnconfiguredStore.{operation}"
    return method


class UnconfiguredStore:
    """
    Satisfies ResaleStore; every operation raises StoreNotConfiguredError.

    Wiring and ``isinstance(store, ResaleStore)`` checks succeed, so a
    missing database surfaces as a typed error on first use.
    """

    def __repr__(self) -> str:
        return "<UnconfiguredStore>"


for _operation in sorted(STORE_OPERATIONS):
    setattr(UnconfiguredStore, _operation, _fail_fast(_operation))
