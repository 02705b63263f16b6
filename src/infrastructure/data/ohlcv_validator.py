"""
OHLCV bar series validation.

Checks a bar series before it is simulated: positive prices, consistent
OHLC relationships, non-negative volume and strictly increasing timestamps.
Interval gaps are reported as warnings, not errors.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

import pandas as pd
from loguru import logger

from src.core.constants import DATA_GAP_TOLERANCE
from src.core.enums import Timeframe
from src.core.exceptions.backtest import ValidationError
from src.core.models.bar import Bar, bars_to_frame


@dataclass(frozen=True)
class DataGap:
    """An interval between consecutive bars that deviates from the timeframe."""

    previous: datetime
    current: datetime
    expected_seconds: int
    actual_seconds: float


class OHLCVValidator:
    """
    OHLCV bar validator.

    Features:
    - Ordering validation (strictly increasing, no duplicate timestamps)
    - Value range validation (positive prices, non-negative volume)
    - OHLC relationship validation
    - Gap detection against the strategy timeframe, logged as warnings
    """

    def validate_bars(self, bars: Sequence[Bar], timeframe: Timeframe | None = None) -> list[DataGap]:
        """
        Validate a bar series.

        Args:
            bars: Bars ordered by timestamp
            timeframe: Expected bar interval, enables gap detection

        Returns:
            Detected gaps (empty when none or no timeframe given)

        Raises:
            ValidationError: If the series has integrity issues
        """
        if not bars:
            return []

        data = bars_to_frame(bars)
        self._validate_ordering(data)
        self._validate_data_values(data)
        self._validate_ohlc_relationships(data)
        self._validate_data_quality(data)

        if timeframe is None:
            return []
        return self.detect_gaps(data, timeframe)

    def _validate_ordering(self, data: pd.DataFrame) -> None:
        """Validate timestamps are unique and ascending."""
        if data.index.duplicated().any():
            raise ValidationError("Duplicate timestamps found in data")
        if not data.index.is_monotonic_increasing:
            raise ValidationError("Bar timestamps must be in ascending order")

    def _validate_data_values(self, data: pd.DataFrame) -> None:
        """Validate value ranges for prices and volume."""
        price_columns = ["open", "high", "low", "close"]
        for col in price_columns:
            if (data[col] <= 0).any():
                raise ValidationError(f"Column {col} contains non-positive values")

        if (data["volume"] < 0).any():
            raise ValidationError("Volume column contains negative values")

    def _validate_ohlc_relationships(self, data: pd.DataFrame) -> None:
        """Validate OHLC price relationships."""
        invalid_ohlc = (
            (data["high"] < data["low"])
            | (data["high"] < data["open"])
            | (data["high"] < data["close"])
            | (data["low"] > data["open"])
            | (data["low"] > data["close"])
        )

        if invalid_ohlc.any():
            invalid_count = invalid_ohlc.sum()
            raise ValidationError(f"Invalid OHLC relationships found in {invalid_count} rows")

    def _validate_data_quality(self, data: pd.DataFrame) -> None:
        """Provide warnings for anomalous price ranges."""
        bar_range = (data["high"] - data["low"]) / data["low"]
        extreme_moves = bar_range > 0.5

        if extreme_moves.any():
            extreme_count = extreme_moves.sum()
            logger.warning(f"Found {extreme_count} periods with extreme price movements (>50%)")

    def detect_gaps(self, data: pd.DataFrame, timeframe: Timeframe) -> list[DataGap]:
        """Find intervals deviating from the timeframe by more than the tolerance."""
        expected = timeframe.seconds
        tolerance = expected * float(DATA_GAP_TOLERANCE)
        intervals = data.index.to_series().diff().dt.total_seconds()

        gaps: list[DataGap] = []
        for position, seconds in enumerate(intervals.tolist()):
            if position == 0 or abs(seconds - expected) <= tolerance:
                continue
            gaps.append(
                DataGap(
                    previous=data.index[position - 1].to_pydatetime(),
                    current=data.index[position].to_pydatetime(),
                    expected_seconds=expected,
                    actual_seconds=seconds,
                )
            )

        if gaps:
            logger.warning(
                f"Detected {len(gaps)} data gaps for {timeframe.value} bars; "
                f"first at {gaps[0].current.isoformat()}"
            )
        return gaps
