"""
Trade domain model.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from src.core.enums import SignalType, TradeSide
from src.core.exceptions.backtest import ValidationError
from src.core.types.financial import ZERO


@dataclass(frozen=True)
class Trade:
    """Immutable record of one executed order.

    Opening trades carry zero pnl. Closing trades carry the realized PnL of
    the round trip net of fees, together with the entry/exit prices and the
    holding duration.
    """

    timestamp: datetime
    symbol: str
    side: TradeSide
    signal_type: SignalType
    quantity: Decimal
    price: Decimal
    fee: Decimal
    pnl: Decimal = ZERO
    requested_price: Decimal | None = None
    entry_price: Decimal | None = None
    exit_price: Decimal | None = None
    duration: timedelta | None = None

    def __post_init__(self) -> None:
        """Validate trade data after initialization."""
        if self.quantity <= 0:
            raise ValidationError(f"Quantity must be positive, got {self.quantity}")
        if self.price <= 0:
            raise ValidationError(f"Price must be positive, got {self.price}")
        if self.fee < 0:
            raise ValidationError(f"Fee must be non-negative, got {self.fee}")

    @property
    def is_closing(self) -> bool:
        """Check if this trade closed a position."""
        return self.signal_type.is_closing

    @property
    def slippage(self) -> Decimal:
        """Absolute price difference between requested and executed price."""
        if self.requested_price is None:
            return ZERO
        return abs(self.price - self.requested_price)

    def notional_value(self) -> Decimal:
        """Calculate the notional value of the trade."""
        return abs(self.quantity) * self.price

    def to_dict(self) -> dict[str, str | float | None]:
        """Convert trade to a JSON-friendly dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "symbol": self.symbol,
            "side": self.side.value,
            "signal_type": self.signal_type.value,
            "quantity": str(self.quantity),
            "price": str(self.price),
            "fee": str(self.fee),
            "pnl": str(self.pnl),
            "entry_price": str(self.entry_price) if self.entry_price is not None else None,
            "exit_price": str(self.exit_price) if self.exit_price is not None else None,
            "duration_seconds": self.duration.total_seconds() if self.duration else None,
        }
