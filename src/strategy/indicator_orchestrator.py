"""
Indicator orchestration.

Decides how much history each indicator needs, computes every declared
indicator through the pluggable calculator, and serves point-in-time values
to the signal evaluator.
"""

import asyncio
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from decimal import Decimal

import pandas as pd
from loguru import logger

from src.core.constants import INDICATOR_WARMUP_BARS
from src.core.exceptions.backtest import DataError, InsufficientDataError, ValidationError
from src.core.interfaces.indicators import IIndicatorCalculator
from src.core.models.bar import Bar, bars_to_frame
from src.core.models.indicator import IndicatorSeries, IndicatorValue
from src.core.models.strategy import IndicatorSpec
from src.core.types.financial import to_decimal
from src.infrastructure.data.technical_indicators import create_technical_indicators_calculator


def _to_decimal_or_none(value: float | None) -> Decimal | None:
    if value is None or not math.isfinite(value):
        return None
    return to_decimal(float(value))


def _series_from_result(
    name: str, timestamps: tuple[datetime, ...], result: pd.Series | pd.DataFrame
) -> IndicatorSeries:
    if isinstance(result, pd.DataFrame):
        components = tuple(str(column) for column in result.columns)
        values: list[IndicatorValue] = []
        for row in result.itertuples(index=False, name=None):
            point = {
                component: converted
                for component, raw in zip(components, row, strict=True)
                if (converted := _to_decimal_or_none(raw)) is not None
            }
            values.append(point or None)
        return IndicatorSeries(name, timestamps, tuple(values), components)

    return IndicatorSeries(
        name, timestamps, tuple(_to_decimal_or_none(raw) for raw in result.tolist())
    )


def flatten_indicator_values(values: Mapping[str, IndicatorValue]) -> dict[str, Decimal]:
    """
    Flatten indicator values into condition variables.

    Multi-component values become `name.component` entries; warm-up values
    (None) are left out so conditions referencing them fail loudly.
    """
    flat: dict[str, Decimal] = {}
    for name, value in values.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            for component, component_value in value.items():
                flat[f"{name}.{component}"] = component_value
        else:
            flat[name] = value
    return flat


class IndicatorOrchestrator:
    """Computes strategy indicators and checks data sufficiency."""

    def __init__(self, calculator: IIndicatorCalculator | None = None) -> None:
        self._calculator = calculator or create_technical_indicators_calculator()

    @property
    def calculator(self) -> IIndicatorCalculator:
        return self._calculator

    @staticmethod
    def warmup_bars(indicator_type: str) -> int:
        """Extra bars an indicator type needs beyond its period."""
        return INDICATOR_WARMUP_BARS.get(indicator_type.lower(), 0)

    def required_bars(self, spec: IndicatorSpec) -> int:
        """
        Bars needed before an indicator is meaningful.

        Period plus warm-up, raised to the calculator's parameter-aware
        requirement when that is larger (e.g. MACD with a long slow_period).
        """
        period = spec.period
        if period is None:
            period = self._calculator.default_period(spec.type) or 1
        required = period + self.warmup_bars(spec.type)
        intrinsic = self._calculator.required_periods(spec.type, spec.parameters)
        return max(required, intrinsic or 0)

    def minimum_bars_required(self, specs: Iterable[IndicatorSpec]) -> int:
        """Largest requirement over all indicators, zero without indicators."""
        return max((self.required_bars(spec) for spec in specs), default=0)

    @staticmethod
    def validate_unique_names(specs: Iterable[IndicatorSpec]) -> None:
        """
        Raises:
            ValidationError: If two indicators share a name
        """
        seen: set[str] = set()
        for spec in specs:
            if spec.name in seen:
                raise ValidationError(f"Duplicate indicator name: {spec.name}")
            seen.add(spec.name)

    def validate_data_sufficiency(self, specs: Iterable[IndicatorSpec], bars_available: int) -> None:
        """
        Raises:
            InsufficientDataError: Naming every indicator short of history
        """
        shortfalls = {
            spec.name: required
            for spec in specs
            if (required := self.required_bars(spec)) > bars_available
        }
        if shortfalls:
            raise InsufficientDataError(shortfalls, bars_available)

    def calculate_all(
        self, specs: Sequence[IndicatorSpec], bars: Sequence[Bar]
    ) -> dict[str, IndicatorSeries]:
        """
        Compute every indicator over the bar series.

        Args:
            specs: Declared indicators
            bars: Bars ordered by timestamp

        Returns:
            Mapping of indicator name to its series

        Raises:
            ValidationError: On duplicate names
            InsufficientDataError: When history is too short
            DataError: When a calculation fails
        """
        self.validate_unique_names(specs)
        self.validate_data_sufficiency(specs, len(bars))
        if not specs:
            return {}

        frame = bars_to_frame(bars)
        timestamps = tuple(bar.timestamp for bar in bars)
        series_map: dict[str, IndicatorSeries] = {}

        for spec in specs:
            try:
                result = self._calculator.calculate(spec.type, spec.parameters, frame)
            except DataError:
                raise
            except Exception as e:
                logger.error(f"Unexpected error calculating {spec.name} ({spec.type}): {e}")
                raise DataError(f"Indicator calculation failed for {spec.name}: {e}") from e
            if len(result) != len(bars):
                raise DataError(
                    f"Indicator {spec.name} returned {len(result)} values for {len(bars)} bars"
                )
            series_map[spec.name] = _series_from_result(spec.name, timestamps, result)

        logger.info(f"Calculated {len(series_map)} indicators over {len(bars)} bars")
        return series_map

    async def calculate_all_async(
        self, specs: Sequence[IndicatorSpec], bars: Sequence[Bar]
    ) -> dict[str, IndicatorSeries]:
        """Run calculate_all in the default executor, off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.calculate_all, specs, bars)

    @staticmethod
    def value_at(
        series_map: Mapping[str, IndicatorSeries],
        timestamp: datetime,
        include_current: bool = True,
    ) -> dict[str, IndicatorValue]:
        """Latest value of every precomputed series at a cutoff."""
        return {
            name: series.value_at(timestamp, include_current)
            for name, series in series_map.items()
        }

    def calculate_at_timestamp(
        self,
        specs: Sequence[IndicatorSpec],
        bars: Sequence[Bar],
        timestamp: datetime,
        include_current: bool = True,
    ) -> dict[str, IndicatorValue]:
        """
        Recompute indicators over the bars up to a cutoff and return the latest values.

        Args:
            specs: Declared indicators
            bars: Full bar series
            timestamp: Cutoff time
            include_current: Include the bar stamped exactly at the cutoff
        """
        if include_current:
            visible = [bar for bar in bars if bar.timestamp <= timestamp]
        else:
            visible = [bar for bar in bars if bar.timestamp < timestamp]
        if not visible:
            return {spec.name: None for spec in specs}
        series_map = self.calculate_all(specs, visible)
        return {name: series.latest() for name, series in series_map.items()}
