"""
OHLCV bar domain model.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

import pandas as pd

from src.core.types.financial import Numeric, to_decimal

_PRICE_FIELDS = ("open", "high", "low", "close", "volume")


@dataclass(frozen=True)
class Bar:
    """One OHLCV observation for a fixed time interval.

    Numeric fields are normalized to Decimal and naive timestamps are
    interpreted as UTC.
    """

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    symbol: str = ""

    def __post_init__(self) -> None:
        """Normalize numeric fields and timestamp."""
        for field_name in _PRICE_FIELDS:
            value = getattr(self, field_name)
            if not isinstance(value, Decimal):
                object.__setattr__(self, field_name, to_decimal(value))
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=UTC))

    @classmethod
    def create(
        cls,
        timestamp: datetime,
        open: Numeric,
        high: Numeric,
        low: Numeric,
        close: Numeric,
        volume: Numeric = 0,
        symbol: str = "",
    ) -> "Bar":
        """Factory accepting any numeric representation."""
        return cls(
            timestamp=timestamp,
            open=to_decimal(open),
            high=to_decimal(high),
            low=to_decimal(low),
            close=to_decimal(close),
            volume=to_decimal(volume),
            symbol=symbol,
        )

    @property
    def epoch_seconds(self) -> int:
        """Bar open time as Unix seconds."""
        return int(self.timestamp.timestamp())


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """Convert bars into a float OHLCV DataFrame indexed by timestamp.

    Indicator libraries work on float columns; results are converted back to
    Decimal by the caller.
    """
    frame = pd.DataFrame(
        {
            "open": [float(bar.open) for bar in bars],
            "high": [float(bar.high) for bar in bars],
            "low": [float(bar.low) for bar in bars],
            "close": [float(bar.close) for bar in bars],
            "volume": [float(bar.volume) for bar in bars],
        },
        index=pd.DatetimeIndex([bar.timestamp for bar in bars], name="timestamp"),
    )
    return frame
