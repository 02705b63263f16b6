"""
Indicator series model.
"""

import bisect
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

type IndicatorValue = Decimal | Mapping[str, Decimal] | None


@dataclass(frozen=True)
class IndicatorSeries:
    """Computed indicator values aligned to bar timestamps.

    Single-value indicators hold Decimals. Multi-component indicators hold a
    mapping per bar (e.g. MACD: macd/signal/histogram). Warm-up bars hold None.
    """

    name: str
    timestamps: tuple[datetime, ...]
    values: tuple[IndicatorValue, ...]
    components: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if len(self.timestamps) != len(self.values):
            raise ValueError(
                f"Series {self.name} has {len(self.timestamps)} timestamps "
                f"but {len(self.values)} values"
            )

    def __len__(self) -> int:
        return len(self.values)

    @property
    def is_multi_component(self) -> bool:
        return bool(self.components)

    def latest(self) -> IndicatorValue:
        """Most recent value, or None for an empty series."""
        return self.values[-1] if self.values else None

    def value_at(self, timestamp: datetime, include_current: bool = True) -> IndicatorValue:
        """
        Latest value at or before a cutoff.

        Args:
            timestamp: Cutoff time
            include_current: Include a value stamped exactly at the cutoff

        Returns:
            The value, or None when no bar precedes the cutoff
        """
        if include_current:
            index = bisect.bisect_right(self.timestamps, timestamp)
        else:
            index = bisect.bisect_left(self.timestamps, timestamp)
        if index == 0:
            return None
        return self.values[index - 1]
