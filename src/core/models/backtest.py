"""
Backtest configuration, session, progress and results models.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from src.core.constants import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_CONFLICT_WARNING_THRESHOLD,
    DEFAULT_INITIAL_CAPITAL,
    DEFAULT_SLIPPAGE_BPS,
)
from src.core.enums import SessionStatus
from src.core.exceptions.backtest import InvalidStateTransitionError, ValidationError
from src.core.models.bar import Bar
from src.core.models.strategy import StrategyDefinition
from src.core.models.trade import Trade


@dataclass(frozen=True)
class BacktestConfig:
    """Configuration for a backtest execution.

    When `bars` is given the session simulates exactly those bars; otherwise
    they are fetched from the market-data source for the date range.
    """

    strategy: StrategyDefinition
    start_date: datetime | None = None
    end_date: datetime | None = None
    initial_capital: Decimal = DEFAULT_INITIAL_CAPITAL
    commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    slippage_bps: Decimal = DEFAULT_SLIPPAGE_BPS
    treat_undefined_as_no_signal: bool = False
    conflict_warning_threshold: int | None = DEFAULT_CONFLICT_WARNING_THRESHOLD
    bars: tuple[Bar, ...] | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.is_valid_capital():
            raise ValidationError(
                f"Initial capital must be positive, got {self.initial_capital}"
            )
        if not self.is_valid_costs():
            raise ValidationError("Commission rate and slippage must be non-negative")
        if not self.is_valid_date_range():
            raise ValidationError("end_date must be after start_date")
        if self.bars is None and (self.start_date is None or self.end_date is None):
            raise ValidationError("Either bars or a start/end date range is required")
        if self.bars is not None and not isinstance(self.bars, tuple):
            object.__setattr__(self, "bars", tuple(self.bars))

    def is_valid_date_range(self) -> bool:
        """Validate that end_date is after start_date."""
        if self.start_date is None or self.end_date is None:
            return True
        return self.end_date > self.start_date

    def is_valid_capital(self) -> bool:
        """Validate initial capital is positive."""
        return self.initial_capital > 0

    def is_valid_costs(self) -> bool:
        """Validate commission and slippage are non-negative."""
        return self.commission_rate >= 0 and self.slippage_bps >= 0

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "strategy": self.strategy.name,
            "symbol": self.strategy.symbol,
            "timeframe": self.strategy.timeframe.value,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "initial_capital": str(self.initial_capital),
            "commission_rate": str(self.commission_rate),
            "slippage_bps": str(self.slippage_bps),
        }


@dataclass(frozen=True)
class EquitySnapshot:
    """Portfolio value at the close of one processed bar."""

    timestamp: datetime
    equity: Decimal
    cash: Decimal
    positions_value: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "equity": str(self.equity),
            "cash": str(self.cash),
            "positions_value": str(self.positions_value),
        }


@dataclass(frozen=True)
class Progress:
    """Point-in-time progress of a session."""

    session_id: str
    status: SessionStatus
    bars_processed: int
    total_bars: int
    percentage: float
    eta_seconds: float | None
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "bars_processed": self.bars_processed,
            "total_bars": self.total_bars,
            "percentage": self.percentage,
            "eta_seconds": self.eta_seconds,
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class PerformanceMetrics:
    """Summary statistics of a finished simulation.

    Fields typed `X | None` are None when they are not applicable, e.g. win
    rate without any closed trade.
    """

    initial_capital: Decimal
    final_equity: Decimal
    total_return: Decimal
    total_return_pct: Decimal
    max_drawdown: Decimal
    trade_count: int
    closed_trade_count: int
    winning_trades: int
    losing_trades: int
    total_fees: Decimal
    win_rate: Decimal | None = None
    sharpe_ratio: Decimal | None = None
    average_win: Decimal | None = None
    average_loss: Decimal | None = None
    profit_factor: Decimal | None = None
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    average_trade_duration: timedelta | None = None

    def to_dict(self) -> dict[str, Any]:
        def fmt(value: Decimal | None) -> str | None:
            return str(value) if value is not None else None

        return {
            "initial_capital": str(self.initial_capital),
            "final_equity": str(self.final_equity),
            "total_return": str(self.total_return),
            "total_return_pct": str(self.total_return_pct),
            "max_drawdown": str(self.max_drawdown),
            "trade_count": self.trade_count,
            "closed_trade_count": self.closed_trade_count,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "total_fees": str(self.total_fees),
            "win_rate": fmt(self.win_rate),
            "sharpe_ratio": fmt(self.sharpe_ratio),
            "average_win": fmt(self.average_win),
            "average_loss": fmt(self.average_loss),
            "profit_factor": fmt(self.profit_factor),
            "max_consecutive_wins": self.max_consecutive_wins,
            "max_consecutive_losses": self.max_consecutive_losses,
            "average_trade_duration_seconds": (
                self.average_trade_duration.total_seconds()
                if self.average_trade_duration is not None
                else None
            ),
        }


@dataclass
class BacktestSession:
    """Lifecycle record of one backtest run."""

    config: BacktestConfig
    id: str = field(default_factory=lambda: f"bt_{uuid.uuid4().hex[:12]}")
    status: SessionStatus = SessionStatus.PENDING
    bars_processed: int = 0
    total_bars: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    ended_at: datetime | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    error_message: str | None = None
    eta_seconds: float | None = None
    cancel_requested: bool = False

    @property
    def strategy(self) -> StrategyDefinition:
        return self.config.strategy

    def transition(self, target: SessionStatus) -> None:
        """
        Move the session to a new status.

        Raises:
            InvalidStateTransitionError: If the lifecycle forbids the move
        """
        if not self.status.can_transition_to(target):
            raise InvalidStateTransitionError(self.id, self.status.value, target.value)

        now = datetime.now(UTC)
        if target == SessionStatus.RUNNING:
            self.started_at = now
        if target.is_terminal:
            self.ended_at = now
        self.status = target
        self.updated_at = now

    def record_progress(self, bars_processed: int, eta_seconds: float | None) -> None:
        """Store the latest progress counters."""
        self.bars_processed = bars_processed
        self.eta_seconds = eta_seconds
        self.updated_at = datetime.now(UTC)

    def progress(self) -> Progress:
        """Snapshot of the session's progress."""
        percentage = (
            round(self.bars_processed / self.total_bars * 100, 2) if self.total_bars > 0 else 0.0
        )
        return Progress(
            session_id=self.id,
            status=self.status,
            bars_processed=self.bars_processed,
            total_bars=self.total_bars,
            percentage=percentage,
            eta_seconds=self.eta_seconds,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class BacktestResult:
    """Outcome of a session. Failed and stopped sessions keep their partial journal."""

    session_id: str
    status: SessionStatus
    config: BacktestConfig
    trades: tuple[Trade, ...]
    equity_curve: tuple[EquitySnapshot, ...]
    metrics: PerformanceMetrics | None
    bars_processed: int
    total_bars: int
    signal_conflicts: int = 0
    risk_denials: int = 0
    error_message: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def trade_count(self) -> int:
        return len(self.trades)

    def is_profitable(self) -> bool:
        """Check if the backtest was profitable."""
        return self.metrics is not None and self.metrics.total_return > 0

    def to_dict(self) -> dict[str, Any]:
        """Convert results to dictionary."""
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "config": self.config.to_dict(),
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "trades": [trade.to_dict() for trade in self.trades],
            "equity_curve": [point.to_dict() for point in self.equity_curve],
            "bars_processed": self.bars_processed,
            "total_bars": self.total_bars,
            "signal_conflicts": self.signal_conflicts,
            "risk_denials": self.risk_denials,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }
