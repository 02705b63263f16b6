"""
Portfolio state snapshots and risk limit models.

PortfolioState is the read-only view the risk manager evaluates. The
backtest simulator replaces it once per bar; nothing mutates it in place.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from src.core.constants import (
    DEFAULT_MAX_CONCURRENT_POSITIONS,
    DEFAULT_MAX_DAILY_LOSS_PCT,
    DEFAULT_MAX_DRAWDOWN_PCT,
    DEFAULT_MAX_POSITION_SIZE_PCT,
)
from src.core.enums import PositionSide, TradeSide
from src.core.exceptions.backtest import ValidationError
from src.core.types.financial import ZERO
from src.core.utils.validation import validate_fraction, validate_non_negative


@dataclass(frozen=True)
class RiskLimits:
    """Portfolio risk limits, fixed for the lifetime of a session."""

    max_position_size_pct: Decimal = DEFAULT_MAX_POSITION_SIZE_PCT
    max_daily_loss_pct: Decimal = DEFAULT_MAX_DAILY_LOSS_PCT
    max_drawdown_pct: Decimal = DEFAULT_MAX_DRAWDOWN_PCT
    max_concurrent_positions: int = DEFAULT_MAX_CONCURRENT_POSITIONS

    def __post_init__(self) -> None:
        """Validate limits after initialization."""
        validate_fraction(self.max_position_size_pct, "max_position_size_pct")
        validate_fraction(self.max_daily_loss_pct, "max_daily_loss_pct")
        validate_fraction(self.max_drawdown_pct, "max_drawdown_pct")
        if self.max_concurrent_positions < 1:
            raise ValidationError(
                f"max_concurrent_positions must be at least 1, got {self.max_concurrent_positions}"
            )

    def to_dict(self) -> dict[str, str | int]:
        """Convert limits to dictionary."""
        return {
            "max_position_size_pct": str(self.max_position_size_pct),
            "max_daily_loss_pct": str(self.max_daily_loss_pct),
            "max_drawdown_pct": str(self.max_drawdown_pct),
            "max_concurrent_positions": self.max_concurrent_positions,
        }


@dataclass(frozen=True)
class ProposedTrade:
    """A trade under consideration. Price is None for market orders."""

    symbol: str
    side: TradeSide
    quantity: Decimal
    price: Decimal | None = None

    def __post_init__(self) -> None:
        """Validate trade proposal after initialization."""
        validate_non_negative(self.quantity, "quantity")
        if self.price is not None:
            validate_non_negative(self.price, "price")

    @property
    def notional(self) -> Decimal | None:
        """Order value, unknown for market orders."""
        if self.price is None:
            return None
        return self.quantity * self.price


@dataclass(frozen=True)
class PositionExposure:
    """Snapshot of one open position as seen by the risk manager."""

    symbol: str
    side: PositionSide
    quantity: Decimal
    current_price: Decimal
    unrealized_pnl: Decimal = ZERO

    @property
    def market_value(self) -> Decimal:
        """Absolute value of the position at the current price."""
        return abs(self.quantity) * self.current_price


@dataclass(frozen=True)
class PortfolioState:
    """Portfolio snapshot evaluated by risk checks."""

    current_equity: Decimal
    peak_equity: Decimal
    daily_starting_equity: Decimal
    realized_pnl_today: Decimal = ZERO
    open_positions: tuple[PositionExposure, ...] = field(default_factory=tuple)
    trading_day: date | None = None

    def __post_init__(self) -> None:
        """Validate portfolio state after initialization."""
        validate_non_negative(self.peak_equity, "peak_equity")
        validate_non_negative(self.daily_starting_equity, "daily_starting_equity")
        if not isinstance(self.open_positions, tuple):
            object.__setattr__(self, "open_positions", tuple(self.open_positions))

    @classmethod
    def initial(cls, equity: Decimal, trading_day: date | None = None) -> "PortfolioState":
        """State of a fresh account holding only cash."""
        return cls(
            current_equity=equity,
            peak_equity=equity,
            daily_starting_equity=equity,
            trading_day=trading_day,
        )

    @property
    def unrealized_pnl(self) -> Decimal:
        """Total unrealized PnL of open positions."""
        return sum((p.unrealized_pnl for p in self.open_positions), ZERO)

    @property
    def exposure(self) -> Decimal:
        """Total market value of open positions."""
        return sum((p.market_value for p in self.open_positions), ZERO)

    def advance(
        self,
        equity: Decimal,
        open_positions: tuple[PositionExposure, ...],
        realized_pnl: Decimal,
        trading_day: date,
    ) -> "PortfolioState":
        """
        Produce the next bar's state.

        On a new trading day the daily baseline resets to the previous
        equity and realized PnL restarts from zero.

        Args:
            equity: Marked-to-market equity at this bar
            open_positions: Exposure snapshots at this bar
            realized_pnl: PnL realized since the previous state
            trading_day: Calendar day (UTC) of this bar
        """
        if self.trading_day is None or trading_day != self.trading_day:
            daily_start = self.current_equity
            realized_today = ZERO
        else:
            daily_start = self.daily_starting_equity
            realized_today = self.realized_pnl_today + realized_pnl

        return PortfolioState(
            current_equity=equity,
            peak_equity=max(self.peak_equity, equity),
            daily_starting_equity=daily_start,
            realized_pnl_today=realized_today,
            open_positions=open_positions,
            trading_day=trading_day,
        )
