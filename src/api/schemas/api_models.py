"""
Pydantic schemas for API request/response models.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from src.core.constants import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_CONFLICT_WARNING_THRESHOLD,
    DEFAULT_INITIAL_CAPITAL,
    DEFAULT_MAX_CONCURRENT_POSITIONS,
    DEFAULT_MAX_DAILY_LOSS_PCT,
    DEFAULT_MAX_DRAWDOWN_PCT,
    DEFAULT_MAX_POSITION_FRACTION,
    DEFAULT_MAX_POSITION_SIZE_PCT,
    DEFAULT_POSITION_PCT,
    DEFAULT_SLIPPAGE_BPS,
)
from src.core.enums import (
    PositionSide,
    RiskDenialReason,
    SessionStatus,
    SizingMethod,
    Timeframe,
    TradeSide,
)
from src.core.models.backtest import BacktestConfig, BacktestResult, BacktestSession, Progress
from src.core.models.bar import Bar
from src.core.models.indicator import IndicatorValue
from src.core.models.portfolio import (
    PortfolioState,
    PositionExposure,
    ProposedTrade,
    RiskLimits,
)
from src.core.models.strategy import (
    IndicatorSpec,
    PositionSizingConfig,
    RiskConfig,
    StrategyDefinition,
)
from src.core.models.signal import SignalResult
from src.risk.risk_manager import RiskDecision


class IndicatorSpecModel(BaseModel):
    """Declared indicator."""

    type: str = Field(..., description="Indicator type, e.g. sma, ema, rsi, macd")
    name: str = Field(..., description="Variable name used in conditions")
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_domain(self) -> IndicatorSpec:
        return IndicatorSpec(type=self.type, name=self.name, parameters=self.parameters)


class PositionSizingModel(BaseModel):
    """Position sizing configuration."""

    method: SizingMethod = SizingMethod.PERCENTAGE
    fixed_quantity: Decimal | None = Field(default=None, gt=0)
    position_pct: Decimal | None = Field(default=DEFAULT_POSITION_PCT, gt=0, le=1)
    risk_pct: Decimal | None = Field(default=None, gt=0, le=1)
    stop_loss_pct: Decimal | None = Field(default=None, gt=0, lt=1)
    win_rate: Decimal | None = Field(default=None, ge=0, le=1)
    win_loss_ratio: Decimal | None = Field(default=None, gt=0)
    max_position_fraction: Decimal | None = Field(default=DEFAULT_MAX_POSITION_FRACTION, gt=0)
    min_quantity: Decimal | None = Field(default=None, ge=0)
    lot_step_size: Decimal | None = Field(default=None, gt=0)

    def to_domain(self) -> PositionSizingConfig:
        return PositionSizingConfig(**self.model_dump())


class RiskLimitsModel(BaseModel):
    """Portfolio risk limits."""

    max_position_size_pct: Decimal = Field(default=DEFAULT_MAX_POSITION_SIZE_PCT, ge=0, le=1)
    max_daily_loss_pct: Decimal = Field(default=DEFAULT_MAX_DAILY_LOSS_PCT, ge=0, le=1)
    max_drawdown_pct: Decimal = Field(default=DEFAULT_MAX_DRAWDOWN_PCT, ge=0, le=1)
    max_concurrent_positions: int = Field(default=DEFAULT_MAX_CONCURRENT_POSITIONS, ge=1)

    def to_domain(self) -> RiskLimits:
        return RiskLimits(**self.model_dump())


class RiskConfigModel(BaseModel):
    """Risk limits plus protective stop and target distances."""

    limits: RiskLimitsModel = Field(default_factory=RiskLimitsModel)
    stop_loss_pct: Decimal | None = Field(default=None, gt=0, lt=1)
    take_profit_pct: Decimal | None = Field(default=None, gt=0)

    def to_domain(self) -> RiskConfig:
        return RiskConfig(
            limits=self.limits.to_domain(),
            stop_loss_pct=self.stop_loss_pct,
            take_profit_pct=self.take_profit_pct,
        )


class StrategyModel(BaseModel):
    """Structured strategy definition."""

    name: str = Field(..., min_length=1)
    symbol: str = Field(..., description="Trading pair, e.g. BTC/USDT")
    timeframe: Timeframe = Field(..., description="Candlestick timeframe")
    indicators: list[IndicatorSpecModel] = Field(default_factory=list)
    entry_condition: str | None = None
    exit_condition: str | None = None
    stop_condition: str | None = None
    position_sizing: PositionSizingModel = Field(default_factory=PositionSizingModel)
    risk: RiskConfigModel = Field(default_factory=RiskConfigModel)
    side: PositionSide = PositionSide.LONG

    def to_domain(self) -> StrategyDefinition:
        return StrategyDefinition(
            name=self.name,
            symbol=self.symbol,
            timeframe=self.timeframe,
            indicators=tuple(spec.to_domain() for spec in self.indicators),
            entry_condition=self.entry_condition,
            exit_condition=self.exit_condition,
            stop_condition=self.stop_condition,
            position_sizing=self.position_sizing.to_domain(),
            risk=self.risk.to_domain(),
            side=self.side,
        )


class BarModel(BaseModel):
    """One OHLCV bar."""

    timestamp: datetime
    open: Decimal = Field(..., gt=0)
    high: Decimal = Field(..., gt=0)
    low: Decimal = Field(..., gt=0)
    close: Decimal = Field(..., gt=0)
    volume: Decimal = Field(default=Decimal("0"), ge=0)

    def to_domain(self, symbol: str = "") -> Bar:
        return Bar(
            timestamp=self.timestamp,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
            symbol=symbol,
        )


class BacktestRequest(BaseModel):
    """Request model for backtest submission."""

    strategy: StrategyModel
    start_date: datetime | None = Field(default=None, description="Backtest start date")
    end_date: datetime | None = Field(default=None, description="Backtest end date")
    initial_capital: Decimal = Field(default=DEFAULT_INITIAL_CAPITAL, gt=0)
    commission_rate: Decimal = Field(default=DEFAULT_COMMISSION_RATE, ge=0, le=Decimal("0.1"))
    slippage_bps: Decimal = Field(default=DEFAULT_SLIPPAGE_BPS, ge=0)
    treat_undefined_as_no_signal: bool = False
    conflict_warning_threshold: int | None = Field(
        default=DEFAULT_CONFLICT_WARNING_THRESHOLD, ge=1
    )
    bars: list[BarModel] | None = Field(
        default=None, description="Inline bars; fetched from the data source when omitted"
    )

    @field_validator("end_date")
    @classmethod
    def validate_date_range(cls, v: datetime | None, info: ValidationInfo) -> datetime | None:
        """Validate that end_date is after start_date."""
        start = info.data.get("start_date")
        if v is not None and start is not None and v <= start:
            raise ValueError("end_date must be after start_date")
        return v

    def to_config(self) -> BacktestConfig:
        strategy = self.strategy.to_domain()
        bars = (
            tuple(bar.to_domain(strategy.symbol) for bar in self.bars)
            if self.bars is not None
            else None
        )
        return BacktestConfig(
            strategy=strategy,
            start_date=self.start_date,
            end_date=self.end_date,
            initial_capital=self.initial_capital,
            commission_rate=self.commission_rate,
            slippage_bps=self.slippage_bps,
            treat_undefined_as_no_signal=self.treat_undefined_as_no_signal,
            conflict_warning_threshold=self.conflict_warning_threshold,
            bars=bars,
        )


class BacktestResponse(BaseModel):
    """Response model for backtest submission."""

    backtest_id: str
    status: SessionStatus
    message: str


class ProgressResponse(BaseModel):
    """Progress of a session."""

    backtest_id: str
    status: SessionStatus
    bars_processed: int
    total_bars: int
    percentage: float
    eta_seconds: float | None = None
    updated_at: datetime

    @classmethod
    def from_progress(cls, progress: Progress) -> "ProgressResponse":
        return cls(
            backtest_id=progress.session_id,
            status=progress.status,
            bars_processed=progress.bars_processed,
            total_bars=progress.total_bars,
            percentage=progress.percentage,
            eta_seconds=progress.eta_seconds,
            updated_at=progress.updated_at,
        )


class BacktestResults(BaseModel):
    """Response model for backtest results."""

    backtest_id: str
    status: SessionStatus
    config: dict[str, Any]
    metrics: dict[str, Any] | None = None
    trades: list[dict[str, Any]] = Field(default_factory=list)
    equity_curve: list[dict[str, Any]] = Field(default_factory=list)
    bars_processed: int = 0
    total_bars: int = 0
    signal_conflicts: int = 0
    risk_denials: int = 0
    error_message: str | None = None

    @classmethod
    def from_result(cls, result: BacktestResult) -> "BacktestResults":
        data = result.to_dict()
        return cls(
            backtest_id=result.session_id,
            status=result.status,
            config=data["config"],
            metrics=data["metrics"],
            trades=data["trades"],
            equity_curve=data["equity_curve"],
            bars_processed=result.bars_processed,
            total_bars=result.total_bars,
            signal_conflicts=result.signal_conflicts,
            risk_denials=result.risk_denials,
            error_message=result.error_message,
        )


class SessionSummary(BaseModel):
    """Listing entry for a session."""

    backtest_id: str
    strategy: str
    symbol: str
    status: SessionStatus
    bars_processed: int
    total_bars: int
    created_at: datetime

    @classmethod
    def from_session(cls, session: BacktestSession) -> "SessionSummary":
        return cls(
            backtest_id=session.id,
            strategy=session.strategy.name,
            symbol=session.strategy.symbol,
            status=session.status,
            bars_processed=session.bars_processed,
            total_bars=session.total_bars,
            created_at=session.created_at,
        )


class CancelResponse(BaseModel):
    backtest_id: str
    cancelled: bool
    status: SessionStatus


class SignalEvaluationRequest(BaseModel):
    """Evaluate a strategy's conditions on one bar."""

    strategy: StrategyModel
    bar: BarModel
    indicator_values: dict[str, Decimal | dict[str, Decimal] | None] = Field(default_factory=dict)

    def domain_indicator_values(self) -> dict[str, IndicatorValue]:
        return dict(self.indicator_values)


class SignalEvaluationResponse(BaseModel):
    entry: bool
    exit: bool
    stop: bool
    conflict: str | None = Field(default=None, description="Set when signals contradict")
    timestamp: datetime | None = None

    @classmethod
    def from_result(
        cls, result: SignalResult, conflict: str | None = None
    ) -> "SignalEvaluationResponse":
        return cls(
            entry=result.entry,
            exit=result.exit,
            stop=result.stop,
            conflict=conflict,
            timestamp=result.timestamp,
        )


class ProposedTradeModel(BaseModel):
    symbol: str
    side: TradeSide
    quantity: Decimal = Field(..., ge=0)
    price: Decimal | None = Field(default=None, ge=0)

    def to_domain(self) -> ProposedTrade:
        return ProposedTrade(self.symbol, self.side, self.quantity, self.price)


class PositionExposureModel(BaseModel):
    symbol: str
    side: PositionSide
    quantity: Decimal
    current_price: Decimal
    unrealized_pnl: Decimal = Decimal("0")

    def to_domain(self) -> PositionExposure:
        return PositionExposure(**self.model_dump())


class PortfolioStateModel(BaseModel):
    """Portfolio snapshot to check a trade against."""

    current_equity: Decimal
    peak_equity: Decimal = Field(..., ge=0)
    daily_starting_equity: Decimal = Field(..., ge=0)
    realized_pnl_today: Decimal = Decimal("0")
    open_positions: list[PositionExposureModel] = Field(default_factory=list)

    def to_domain(self) -> PortfolioState:
        return PortfolioState(
            current_equity=self.current_equity,
            peak_equity=self.peak_equity,
            daily_starting_equity=self.daily_starting_equity,
            realized_pnl_today=self.realized_pnl_today,
            open_positions=tuple(p.to_domain() for p in self.open_positions),
        )


class RiskCheckRequest(BaseModel):
    trade: ProposedTradeModel
    portfolio: PortfolioStateModel
    limits: RiskLimitsModel = Field(default_factory=RiskLimitsModel)


class RiskCheckResponse(BaseModel):
    allowed: bool
    reason: RiskDenialReason | None = None
    message: str | None = None

    @classmethod
    def from_decision(cls, decision: RiskDecision) -> "RiskCheckResponse":
        return cls(allowed=decision.allowed, reason=decision.reason, message=decision.message)


class ErrorResponse(BaseModel):
    """Response model for errors."""

    error: str
    message: str
    details: dict[str, Any] | None = None
    backtest_id: str | None = None
