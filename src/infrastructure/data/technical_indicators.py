"""
Technical Indicators Calculator.

Default pandas implementation of the indicator calculation capability.
Implements the Strategy Pattern: each indicator type is a strategy that maps
an OHLCV frame plus parameters to a Series (single value) or a DataFrame
(one column per component).
"""

from collections.abc import Mapping
from typing import Any, Protocol

import numpy as np
import pandas as pd
from loguru import logger

from src.core.exceptions.backtest import DataError
from src.core.interfaces.indicators import IIndicatorCalculator


def _int_param(parameters: Mapping[str, Any], name: str, default: int) -> int:
    value = int(parameters.get(name, default))
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}")
    return value


class IndicatorStrategy(Protocol):
    """Protocol for technical indicator calculation strategies."""

    default_period: int | None
    components: tuple[str, ...]

    def calculate(
        self, data: pd.DataFrame, parameters: Mapping[str, Any]
    ) -> pd.Series | pd.DataFrame:
        """Calculate the indicator for the given data."""
        ...

    def required_periods(self, parameters: Mapping[str, Any]) -> int:
        """Bars needed before the first non-NaN output."""
        ...


class SimpleMovingAverageStrategy:
    """Strategy for calculating simple moving averages."""

    default_period = 20
    components: tuple[str, ...] = ()

    def required_periods(self, parameters: Mapping[str, Any]) -> int:
        return _int_param(parameters, "period", self.default_period)

    def calculate(self, data: pd.DataFrame, parameters: Mapping[str, Any]) -> pd.Series:
        period = _int_param(parameters, "period", self.default_period)
        return data["close"].rolling(window=period).mean()


class ExponentialMovingAverageStrategy:
    """Strategy for calculating exponential moving averages."""

    default_period = 20
    components: tuple[str, ...] = ()

    def required_periods(self, parameters: Mapping[str, Any]) -> int:
        return _int_param(parameters, "period", self.default_period)

    def calculate(self, data: pd.DataFrame, parameters: Mapping[str, Any]) -> pd.Series:
        period = _int_param(parameters, "period", self.default_period)
        return data["close"].ewm(span=period, adjust=False, min_periods=period).mean()


class RSIStrategy:
    """Strategy for calculating RSI (Relative Strength Index) indicator."""

    default_period = 14
    components: tuple[str, ...] = ()

    def required_periods(self, parameters: Mapping[str, Any]) -> int:
        return _int_param(parameters, "period", self.default_period) + 1

    def calculate(self, data: pd.DataFrame, parameters: Mapping[str, Any]) -> pd.Series:
        period = _int_param(parameters, "period", self.default_period)

        delta = data["close"].diff()
        gain = delta.where(delta > 0, 0.0).rolling(window=period).mean()
        loss = (-delta).where(delta < 0, 0.0).rolling(window=period).mean()

        with np.errstate(divide="ignore", invalid="ignore"):
            rs = gain / loss
            rsi = 100 - (100 / (1 + rs))

        # No losses: 100 when there were gains, neutral 50 on a flat window
        rsi = rsi.where(loss != 0, np.where(gain > 0, 100.0, 50.0))
        return rsi.where(gain.notna())


class MACDStrategy:
    """Strategy for calculating MACD (Moving Average Convergence Divergence) indicators."""

    default_period = None
    components = ("macd", "signal", "histogram")

    def required_periods(self, parameters: Mapping[str, Any]) -> int:
        # Signal line starts with the first MACD value
        return _int_param(parameters, "slow_period", 26)

    def calculate(self, data: pd.DataFrame, parameters: Mapping[str, Any]) -> pd.DataFrame:
        fast = _int_param(parameters, "fast_period", 12)
        slow = _int_param(parameters, "slow_period", 26)
        signal_period = _int_param(parameters, "signal_period", 9)
        if fast >= slow:
            raise ValueError(f"fast_period ({fast}) must be below slow_period ({slow})")

        close = data["close"]
        macd = close.ewm(span=fast, adjust=False).mean() - close.ewm(span=slow, adjust=False).mean()
        macd = macd.where(close.expanding().count() >= slow)
        signal = macd.ewm(span=signal_period, adjust=False, min_periods=1).mean()
        signal = signal.where(macd.notna())

        return pd.DataFrame(
            {"macd": macd, "signal": signal, "histogram": macd - signal}, index=data.index
        )


class BollingerBandsStrategy:
    """Strategy for calculating Bollinger Bands indicators."""

    default_period = 20
    components = ("upper", "middle", "lower")

    def required_periods(self, parameters: Mapping[str, Any]) -> int:
        return _int_param(parameters, "period", self.default_period)

    def calculate(self, data: pd.DataFrame, parameters: Mapping[str, Any]) -> pd.DataFrame:
        period = _int_param(parameters, "period", self.default_period)
        std_multiplier = float(parameters.get("std_dev", parameters.get("std_multiplier", 2.0)))

        middle = data["close"].rolling(window=period).mean()
        std = data["close"].rolling(window=period).std()

        return pd.DataFrame(
            {
                "upper": middle + (std_multiplier * std),
                "middle": middle,
                "lower": middle - (std_multiplier * std),
            },
            index=data.index,
        )


class ATRStrategy:
    """Strategy for calculating ATR (Average True Range)."""

    default_period = 14
    components: tuple[str, ...] = ()

    def required_periods(self, parameters: Mapping[str, Any]) -> int:
        return _int_param(parameters, "period", self.default_period) + 1

    def calculate(self, data: pd.DataFrame, parameters: Mapping[str, Any]) -> pd.Series:
        period = _int_param(parameters, "period", self.default_period)
        previous_close = data["close"].shift(1)
        true_range = pd.concat(
            [
                data["high"] - data["low"],
                (data["high"] - previous_close).abs(),
                (data["low"] - previous_close).abs(),
            ],
            axis=1,
        ).max(axis=1, skipna=False)
        return true_range.rolling(window=period).mean()


class VWAPStrategy:
    """Strategy for calculating VWAP (Volume Weighted Average Price) indicator."""

    default_period = None
    components: tuple[str, ...] = ()

    def required_periods(self, parameters: Mapping[str, Any]) -> int:
        return 1

    def calculate(self, data: pd.DataFrame, parameters: Mapping[str, Any]) -> pd.Series:
        typical_price = (data["high"] + data["low"] + data["close"]) / 3
        cumulative_volume = data["volume"].cumsum()
        return (typical_price * data["volume"]).cumsum() / cumulative_volume.replace(0, np.nan)


class TechnicalIndicatorsCalculator(IIndicatorCalculator):
    """
    Technical indicators calculator using Strategy Pattern.

    Looks indicator types up case-insensitively and wraps calculation
    failures in DataError.
    """

    def __init__(self) -> None:
        """Initialize calculator with default strategies."""
        self._strategies: dict[str, IndicatorStrategy] = {
            "sma": SimpleMovingAverageStrategy(),
            "ema": ExponentialMovingAverageStrategy(),
            "rsi": RSIStrategy(),
            "macd": MACDStrategy(),
            "bollinger_bands": BollingerBandsStrategy(),
            "bb": BollingerBandsStrategy(),
            "atr": ATRStrategy(),
            "vwap": VWAPStrategy(),
        }
        self._failure_counts: dict[str, int] = {}

    def add_strategy(self, name: str, strategy: IndicatorStrategy) -> None:
        """Add a new indicator calculation strategy."""
        self._strategies[name.lower()] = strategy

    def remove_strategy(self, name: str) -> None:
        """Remove an indicator calculation strategy."""
        self._strategies.pop(name.lower(), None)

    def _get_strategy(self, indicator_type: str) -> IndicatorStrategy:
        strategy = self._strategies.get(indicator_type.lower())
        if strategy is None:
            raise DataError(
                f"Unknown indicator type '{indicator_type}'. "
                f"Available indicators: {', '.join(self.available_indicators())}"
            )
        return strategy

    def calculate(
        self, indicator_type: str, parameters: Mapping[str, Any], data: pd.DataFrame
    ) -> pd.Series | pd.DataFrame:
        """
        Calculate one indicator.

        Args:
            indicator_type: Indicator type, case-insensitive
            parameters: Indicator parameters (period, fast_period, ...)
            data: OHLCV DataFrame

        Returns:
            Series or component DataFrame aligned to data

        Raises:
            DataError: For unknown types or failed calculations
        """
        strategy = self._get_strategy(indicator_type)
        name = indicator_type.lower()
        logger.debug(f"Calculating {name} indicator over {len(data)} rows")

        try:
            return strategy.calculate(data, parameters)
        except (ValueError, TypeError, KeyError) as strategy_error:
            self._failure_counts[name] = self._failure_counts.get(name, 0) + 1
            logger.warning(f"Failed {name} (failure #{self._failure_counts[name]}): {strategy_error}")
            raise DataError(
                f"Technical indicator calculation failed for {name}: {strategy_error}"
            ) from strategy_error

    def default_period(self, indicator_type: str) -> int | None:
        """Default period of an indicator type."""
        return self._get_strategy(indicator_type).default_period

    def required_periods(self, indicator_type: str, parameters: Mapping[str, Any]) -> int:
        """
        Bars an indicator needs for its first value under the given parameters.

        Raises:
            DataError: For unknown types or invalid parameters
        """
        strategy = self._get_strategy(indicator_type)
        try:
            return strategy.required_periods(parameters)
        except (ValueError, TypeError) as parameter_error:
            raise DataError(
                f"Invalid parameters for {indicator_type.lower()}: {parameter_error}"
            ) from parameter_error

    def components(self, indicator_type: str) -> tuple[str, ...]:
        """Component names of a multi-value indicator, empty for single values."""
        return self._get_strategy(indicator_type).components

    def available_indicators(self) -> list[str]:
        """Get list of available indicator strategies."""
        return sorted(self._strategies.keys())

    def get_failure_statistics(self) -> dict[str, int]:
        """Get failure counts for each indicator strategy."""
        return self._failure_counts.copy()

    def reset_failure_statistics(self) -> None:
        """Reset failure counts for monitoring purposes."""
        self._failure_counts.clear()


# Factory function for easy instantiation
def create_technical_indicators_calculator() -> TechnicalIndicatorsCalculator:
    """Factory function to create a technical indicators calculator with default strategies."""
    return TechnicalIndicatorsCalculator()
