"""
Exceptions raised by position sizing and risk limit checks.
"""

from src.core.enums import RiskDenialReason
from src.core.exceptions.backtest import TradingEngineException, ValidationError


class PositionSizingError(ValidationError):
    """Raised when sizing parameters are missing or invalid."""

    def __init__(self, code: str, detail: str | None = None):
        self.code = code
        suffix = f": {detail}" if detail else ""
        super().__init__(f"Position sizing failed ({code}){suffix}")


class InvalidStopLossError(PositionSizingError):
    """Raised when the stop price sits exactly at the entry price."""

    def __init__(self, entry_price: object, stop_price: object):
        self.entry_price = entry_price
        self.stop_price = stop_price
        super().__init__(
            "invalid_stop_loss", f"stop {stop_price} equals entry {entry_price}"
        )


class RiskLimitExceededError(TradingEngineException):
    """Raised when a proposed trade breaches a portfolio risk limit."""

    def __init__(self, reason: RiskDenialReason, message: str | None = None):
        self.reason = reason
        super().__init__(message or f"Risk limit exceeded: {reason.value}")
