"""
Signal evaluation results.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from src.core.enums import SignalType

type ContextValue = Decimal | bool | str


@dataclass(frozen=True)
class SignalResult:
    """Entry/exit/stop outcome for one bar."""

    entry: bool
    exit: bool
    stop: bool
    timestamp: datetime | None = None
    context: Mapping[str, ContextValue] = field(default_factory=dict)

    @property
    def any_triggered(self) -> bool:
        return self.entry or self.exit or self.stop

    def as_dict(self) -> dict[str, bool]:
        return {"entry": self.entry, "exit": self.exit, "stop": self.stop}


@dataclass(frozen=True)
class Signal:
    """A fired signal with the values that triggered it."""

    signal_type: SignalType
    symbol: str
    timestamp: datetime | None
    trigger_condition: str | None
    price_at_signal: Decimal | None
    indicator_values: Mapping[str, ContextValue] = field(default_factory=dict)
