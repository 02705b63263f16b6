"""
Position, trade side and signal type enumerations.

This module defines the allowed position directions and trade actions.
"""

from enum import StrEnum


class PositionSide(StrEnum):
    """
    Allowed position directions.

    Defines whether a position is long or short.
    """

    LONG = "long"
    SHORT = "short"

    @property
    def is_long(self) -> bool:
        """Check if position side is long."""
        return self == self.LONG

    @property
    def is_short(self) -> bool:
        """Check if position side is short."""
        return self == self.SHORT

    @property
    def direction(self) -> int:
        """Sign applied to quantity when valuing the position."""
        return 1 if self.is_long else -1

    def opening_trade_side(self) -> "TradeSide":
        """Trade side that opens a position of this direction."""
        return TradeSide.BUY if self.is_long else TradeSide.SELL

    def closing_trade_side(self) -> "TradeSide":
        """Trade side that closes a position of this direction."""
        return TradeSide.SELL if self.is_long else TradeSide.BUY


class TradeSide(StrEnum):
    """
    Allowed trade actions.

    Defines the direction of an executed order.
    """

    BUY = "buy"
    SELL = "sell"

    @property
    def is_buy(self) -> bool:
        """Check if trade side is a buy."""
        return self == self.BUY

    def opposite(self) -> "TradeSide":
        """Get the opposite trade side."""
        return self.SELL if self.is_buy else self.BUY  # type: ignore[return-value]

    @classmethod
    def from_string(cls, value: str) -> "TradeSide":
        """
        Convert string to TradeSide enum.

        Raises:
            ValueError: If side is not supported
        """
        value_lower = value.strip().lower()
        for side in cls:
            if side.value == value_lower:
                return side
        raise ValueError(
            f"Unsupported trade side: {value}. Supported sides: {', '.join(s.value for s in cls)}"
        )


class SignalType(StrEnum):
    """Signal that triggered an execution."""

    ENTRY = "entry"
    EXIT = "exit"
    STOP = "stop"

    @property
    def is_closing(self) -> bool:
        """Check if the signal closes a position."""
        return self in [self.EXIT, self.STOP]


class PositionStatus(StrEnum):
    """Lifecycle status of a position."""

    OPEN = "open"
    PARTIAL = "partial"
    CLOSED = "closed"

    @property
    def is_active(self) -> bool:
        """Check if the position still carries exposure."""
        return self != self.CLOSED
