"""
Order status and order type enumerations.

Exchange adapters report statuses as free text in several spellings. They are
normalized into OrderStatus on ingestion and never carried further as strings.
"""

from enum import StrEnum

from loguru import logger


class OrderType(StrEnum):
    """Supported order types."""

    MARKET = "market"
    LIMIT = "limit"

    @property
    def requires_price(self) -> bool:
        """Check if the order type needs a limit price."""
        return self == self.LIMIT


class OrderStatus(StrEnum):
    """
    Lifecycle status of a tracked order.

    pending -> open -> {filled | partially_filled -> filled} | cancelled | rejected
    """

    PENDING = "pending"
    OPEN = "open"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        """Check if the order can no longer change."""
        return self in [self.FILLED, self.CANCELLED, self.REJECTED]

    @property
    def is_active(self) -> bool:
        """Check if the order still needs polling."""
        return not self.is_terminal

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check whether a reported status is a forward move from this one."""
        if target == self:
            return False
        return target in _ORDER_TRANSITIONS[self]

    @classmethod
    def normalize(cls, raw: "OrderStatus | str") -> "OrderStatus":
        """
        Normalize an exchange-reported status into an OrderStatus.

        Accepts enum members, lowercase values and exchange spellings such as
        "NEW", "PARTIALLY_FILLED" or "CANCELED". Unknown text maps to pending.
        """
        if isinstance(raw, OrderStatus):
            return raw

        key = str(raw).strip().upper()
        status = _EXCHANGE_STATUS_ALIASES.get(key)
        if status is None:
            logger.warning(f"Unknown order status '{raw}', treating as pending")
            return cls.PENDING
        return status


_EXCHANGE_STATUS_ALIASES: dict[str, OrderStatus] = {
    "PENDING": OrderStatus.PENDING,
    "PENDING_NEW": OrderStatus.PENDING,
    "NEW": OrderStatus.OPEN,
    "OPEN": OrderStatus.OPEN,
    "PARTIALLY_FILLED": OrderStatus.PARTIALLY_FILLED,
    "PARTIAL": OrderStatus.PARTIALLY_FILLED,
    "FILLED": OrderStatus.FILLED,
    "CLOSED": OrderStatus.FILLED,
    "CANCELED": OrderStatus.CANCELLED,
    "CANCELLED": OrderStatus.CANCELLED,
    "EXPIRED": OrderStatus.CANCELLED,
    "REJECTED": OrderStatus.REJECTED,
}

_ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {
            OrderStatus.OPEN,
            OrderStatus.PARTIALLY_FILLED,
            OrderStatus.FILLED,
            OrderStatus.CANCELLED,
            OrderStatus.REJECTED,
        }
    ),
    OrderStatus.OPEN: frozenset(
        {
            OrderStatus.PARTIALLY_FILLED,
            OrderStatus.FILLED,
            OrderStatus.CANCELLED,
            OrderStatus.REJECTED,
        }
    ),
    OrderStatus.PARTIALLY_FILLED: frozenset({OrderStatus.FILLED, OrderStatus.CANCELLED}),
    OrderStatus.FILLED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}
