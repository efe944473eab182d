"""Order lifecycle statuses and input normalization."""

from enum import Enum

from resale_kernel.exceptions import InvalidFieldError


class OrderStatus(str, Enum):
    """Order lifecycle: pending -> confirmed -> delivered | returned."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"
    RETURNED = "returned"


# Legacy spellings accepted on input
_ALIASES: dict[str, OrderStatus] = {
    "return": OrderStatus.RETURNED,
}

BILLABLE_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.RETURNED}
)


def normalize_status(value: "str | OrderStatus | None") -> OrderStatus:
    """
    Normalize a raw status string.

    Case-insensitive and trimmed; ``return`` is stored as ``returned``;
    None or blank defaults to pending.

    Raises:
        InvalidFieldError: Unknown status.
    """
    if isinstance(value, OrderStatus):
        return value
    if value is None:
        return OrderStatus.PENDING
    text = str(value).strip().lower()
    if not text:
        return OrderStatus.PENDING
    if text in _ALIASES:
        return _ALIASES[text]
    try:
        return OrderStatus(text)
    except ValueError:
        raise InvalidFieldError(
            "status", value, f"unknown order status {value!r}"
        ) from None
