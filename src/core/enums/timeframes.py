"""
Bar interval enumeration.

A strategy declares the interval its conditions are evaluated on. The OHLCV
validator uses the interval length to find gaps between consecutive bars.
"""

from enum import StrEnum

_SECONDS_PER_UNIT = {"m": 60, "h": 3600, "d": 86400, "w": 604800}


class Timeframe(StrEnum):
    """Bar intervals a strategy can run on."""

    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H2 = "2h"
    H4 = "4h"
    D1 = "1d"
    W1 = "1w"

    @classmethod
    def to_seconds(cls, timeframe: "Timeframe") -> int:
        """Length of one bar in seconds, derived from the "<count><unit>" value."""
        return int(timeframe.value[:-1]) * _SECONDS_PER_UNIT[timeframe.value[-1]]

    @classmethod
    def from_string(cls, value: str) -> "Timeframe":
        """
        Parse a timeframe, ignoring case and surrounding whitespace ("1H" -> H1).

        Raises:
            ValueError: If the timeframe is not supported
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"Unsupported timeframe: {value!r}. Supported timeframes: {', '.join(cls)}"
            ) from None

    @property
    def seconds(self) -> int:
        return Timeframe.to_seconds(self)
