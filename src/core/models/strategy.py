"""
Strategy definition models.

A StrategyDefinition is built by the host application (text parsing of
strategy documents lives outside this package) and stays immutable for the
duration of a backtest or live session.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from src.core.constants import DEFAULT_MAX_POSITION_FRACTION, DEFAULT_POSITION_PCT
from src.core.enums import PositionSide, SizingMethod, Timeframe
from src.core.exceptions.backtest import ValidationError
from src.core.exceptions.risk import PositionSizingError
from src.core.models.portfolio import RiskLimits
from src.core.utils.validation import validate_fraction, validate_positive, validate_symbol


@dataclass(frozen=True)
class IndicatorSpec:
    """Declares one indicator series a strategy needs.

    `type` selects the calculation (sma, ema, rsi, macd, ...), `name` is the
    variable the conditions refer to.
    """

    type: str
    name: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.type or not self.type.strip():
            raise ValidationError("Indicator type must not be empty")
        if not self.name or not self.name.strip():
            raise ValidationError("Indicator name must not be empty")
        object.__setattr__(self, "type", self.type.strip().lower())
        object.__setattr__(self, "name", self.name.strip())
        object.__setattr__(self, "parameters", dict(self.parameters))

    @property
    def period(self) -> int | None:
        """Explicit period parameter, if configured."""
        value = self.parameters.get("period")
        return int(value) if value is not None else None


@dataclass(frozen=True)
class PositionSizingConfig:
    """How entry quantities are derived."""

    method: SizingMethod = SizingMethod.PERCENTAGE
    fixed_quantity: Decimal | None = None
    position_pct: Decimal | None = DEFAULT_POSITION_PCT
    risk_pct: Decimal | None = None
    stop_loss_pct: Decimal | None = None
    win_rate: Decimal | None = None
    win_loss_ratio: Decimal | None = None
    max_position_fraction: Decimal | None = DEFAULT_MAX_POSITION_FRACTION
    min_quantity: Decimal | None = None
    lot_step_size: Decimal | None = None

    def __post_init__(self) -> None:
        """Validate that the chosen method has what it needs."""
        required: dict[SizingMethod, tuple[str, ...]] = {
            SizingMethod.FIXED: ("fixed_quantity",),
            SizingMethod.PERCENTAGE: ("position_pct",),
            SizingMethod.RISK_BASED: ("risk_pct",),
            SizingMethod.KELLY: ("win_rate", "win_loss_ratio"),
        }
        for name in required[self.method]:
            if getattr(self, name) is None:
                raise PositionSizingError(f"missing_{name}")
        if self.max_position_fraction is not None:
            validate_positive(self.max_position_fraction, "max_position_fraction")
        if self.lot_step_size is not None:
            validate_positive(self.lot_step_size, "lot_step_size")


@dataclass(frozen=True)
class RiskConfig:
    """Portfolio limits plus optional protective levels for new positions."""

    limits: RiskLimits = field(default_factory=RiskLimits)
    stop_loss_pct: Decimal | None = None
    take_profit_pct: Decimal | None = None

    def __post_init__(self) -> None:
        if self.stop_loss_pct is not None:
            validate_fraction(self.stop_loss_pct, "stop_loss_pct")
        if self.take_profit_pct is not None:
            validate_positive(self.take_profit_pct, "take_profit_pct")


@dataclass(frozen=True)
class StrategyDefinition:
    """A complete, immutable trading strategy."""

    name: str
    symbol: str
    timeframe: Timeframe
    indicators: tuple[IndicatorSpec, ...] = ()
    entry_condition: str | None = None
    exit_condition: str | None = None
    stop_condition: str | None = None
    position_sizing: PositionSizingConfig = field(default_factory=PositionSizingConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    side: PositionSide = PositionSide.LONG

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Strategy name must not be empty")
        object.__setattr__(self, "symbol", validate_symbol(self.symbol))
        if not isinstance(self.timeframe, Timeframe):
            object.__setattr__(self, "timeframe", Timeframe.from_string(str(self.timeframe)))
        object.__setattr__(self, "indicators", tuple(self.indicators))
        if (
            self.position_sizing.method == SizingMethod.RISK_BASED
            and self.effective_stop_loss_pct() is None
        ):
            raise PositionSizingError("missing_stop_loss_pct")

    @property
    def indicator_names(self) -> list[str]:
        """Names of the declared indicators, in declaration order."""
        return [spec.name for spec in self.indicators]

    def conditions(self) -> dict[str, str | None]:
        """Condition texts keyed by signal name."""
        return {
            "entry": self.entry_condition,
            "exit": self.exit_condition,
            "stop": self.stop_condition,
        }

    def effective_stop_loss_pct(self) -> Decimal | None:
        """Stop distance used for risk-based sizing."""
        if self.position_sizing.stop_loss_pct is not None:
            return self.position_sizing.stop_loss_pct
        return self.risk.stop_loss_pct
