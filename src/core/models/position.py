"""
Position domain model.

A position is created on a filled entry order, refreshed with the latest
mark price every bar, grown by partial fills and closed exactly once.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from src.core.enums import PositionSide, PositionStatus, TradeSide
from src.core.exceptions.backtest import PortfolioError, ValidationError
from src.core.types.financial import ZERO, calculate_pnl, safe_divide

if TYPE_CHECKING:
    from src.core.models.trade import Trade


@dataclass
class Position:
    """Represents an open or closed trading position."""

    symbol: str
    side: PositionSide
    quantity: Decimal
    entry_price: Decimal
    opened_at: datetime
    status: PositionStatus = PositionStatus.OPEN
    stop_loss: Decimal | None = None
    take_profit: Decimal | None = None
    exit_price: Decimal | None = None
    closed_at: datetime | None = None
    fees: Decimal = ZERO
    realized_pnl: Decimal = ZERO
    unrealized_pnl: Decimal = ZERO
    current_price: Decimal | None = None
    bars_held: int = 0

    def __post_init__(self) -> None:
        """Validate position data after initialization."""
        if self.quantity <= ZERO:
            raise ValidationError(f"Position quantity must be positive, got {self.quantity}")
        if self.entry_price <= ZERO:
            raise ValidationError(f"Entry price must be positive, got {self.entry_price}")
        if self.fees < ZERO:
            raise ValidationError(f"Fees must be non-negative, got {self.fees}")
        if self.current_price is None:
            self.current_price = self.entry_price

    @property
    def is_open(self) -> bool:
        """Check if the position still carries exposure."""
        return self.status.is_active

    def update_market_price(self, price: Decimal) -> Decimal:
        """
        Refresh unrealized PnL at a new mark price.

        Args:
            price: Latest mark (bar close) price

        Returns:
            Updated unrealized PnL (before fees)
        """
        if not self.is_open:
            return ZERO
        self.current_price = price
        self.unrealized_pnl = calculate_pnl(self.entry_price, price, self.quantity, self.side)
        return self.unrealized_pnl

    def market_value(self, price: Decimal | None = None) -> Decimal:
        """Signed value of the position: positive for longs, negative for shorts."""
        mark = price if price is not None else self.current_price
        if not self.is_open or mark is None:
            return ZERO
        return self.side.direction * self.quantity * mark

    def unrealized_pnl_pct(self) -> Decimal:
        """Unrealized PnL relative to the entry notional."""
        return safe_divide(self.unrealized_pnl, self.entry_price * self.quantity)

    def apply_fill(
        self,
        quantity: Decimal,
        price: Decimal,
        fee: Decimal = ZERO,
        target_quantity: Decimal | None = None,
    ) -> None:
        """
        Add a fill to the position, averaging the entry price.

        Args:
            quantity: Newly filled quantity
            price: Fill price
            fee: Fee charged on the fill
            target_quantity: Full order quantity; the position stays partial
                until this much has been filled
        """
        if not self.is_open:
            raise PortfolioError(f"Cannot add fills to closed position for {self.symbol}")
        if quantity <= ZERO or price <= ZERO:
            raise ValidationError(f"Fill quantity and price must be positive, got {quantity}@{price}")

        total_quantity = self.quantity + quantity
        self.entry_price = (self.entry_price * self.quantity + price * quantity) / total_quantity
        self.quantity = total_quantity
        self.fees += fee

        if target_quantity is not None and total_quantity < target_quantity:
            self.status = PositionStatus.PARTIAL
        else:
            self.status = PositionStatus.OPEN

    def close(self, exit_price: Decimal, fee: Decimal, closed_at: datetime) -> Decimal:
        """
        Close the position.

        Args:
            exit_price: Executed exit price
            fee: Fee charged on the closing fill
            closed_at: Close time

        Returns:
            Realized PnL net of entry and exit fees
        """
        if not self.is_open:
            raise PortfolioError(f"Position for {self.symbol} is already closed")

        gross = calculate_pnl(self.entry_price, exit_price, self.quantity, self.side)
        self.fees += fee
        self.realized_pnl = gross - self.fees
        self.unrealized_pnl = ZERO
        self.exit_price = exit_price
        self.current_price = exit_price
        self.closed_at = closed_at
        self.status = PositionStatus.CLOSED
        return self.realized_pnl

    def holding_duration(self, now: datetime | None = None) -> timedelta:
        """Time between opening and closing (or now, while open)."""
        end = self.closed_at or now or datetime.now(UTC)
        return end - self.opened_at

    @classmethod
    def create_long(
        cls,
        symbol: str,
        quantity: Decimal,
        entry_price: Decimal,
        opened_at: datetime,
        fee: Decimal = ZERO,
        stop_loss: Decimal | None = None,
        take_profit: Decimal | None = None,
    ) -> "Position":
        """Factory method to create a long position."""
        return cls(
            symbol=symbol,
            side=PositionSide.LONG,
            quantity=abs(quantity),
            entry_price=entry_price,
            opened_at=opened_at,
            fees=fee,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )

    @classmethod
    def create_short(
        cls,
        symbol: str,
        quantity: Decimal,
        entry_price: Decimal,
        opened_at: datetime,
        fee: Decimal = ZERO,
        stop_loss: Decimal | None = None,
        take_profit: Decimal | None = None,
    ) -> "Position":
        """Factory method to create a short position."""
        return cls(
            symbol=symbol,
            side=PositionSide.SHORT,
            quantity=abs(quantity),
            entry_price=entry_price,
            opened_at=opened_at,
            fees=fee,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )

    @classmethod
    def create_from_trade(cls, trade: "Trade") -> "Position":
        """
        Factory method to create a position from an opening trade.

        A buy opens a long position, a sell opens a short one.
        """
        factory = cls.create_long if trade.side == TradeSide.BUY else cls.create_short
        return factory(
            symbol=trade.symbol,
            quantity=trade.quantity,
            entry_price=trade.price,
            opened_at=trade.timestamp,
            fee=trade.fee,
        )
