"""
Custom exception hierarchy for the strategy engine.

This module defines the base exception and the domain-specific errors
raised by data validation and backtest sessions.
"""

from decimal import Decimal


class TradingEngineException(Exception):
    """Base exception for all strategy engine errors."""

    pass


class ValidationError(TradingEngineException):
    """Raised when input validation fails."""

    pass


class DataError(TradingEngineException):
    """Raised when data access or processing fails."""

    pass


class CalculationError(TradingEngineException):
    """Raised when mathematical calculations fail."""

    pass


class ConfigurationError(TradingEngineException):
    """Raised when configuration is invalid."""

    pass


class InsufficientDataError(DataError):
    """Raised when there are not enough bars to warm up the indicators."""

    def __init__(self, shortfalls: dict[str, int], available: int):
        self.shortfalls = dict(shortfalls)
        self.available = available
        self.required = max(shortfalls.values()) if shortfalls else 0
        details = ", ".join(f"{name} needs {bars}" for name, bars in self.shortfalls.items())
        super().__init__(
            f"Insufficient data for indicators: {', '.join(self.shortfalls)}. "
            f"Have {available} bars, {details}"
        )


class PortfolioError(TradingEngineException):
    """Raised when simulated portfolio operations fail."""

    pass


class InsufficientFundsError(PortfolioError):
    """Raised when there are insufficient funds for an operation."""

    def __init__(self, required: Decimal, available: Decimal, operation: str = "operation"):
        self.required = required
        self.available = available
        self.operation = operation
        super().__init__(
            f"Insufficient funds for {operation}: required={required:.2f}, available={available:.2f}"
        )


class PositionNotFoundError(PortfolioError):
    """Raised when trying to operate on a non-existent position."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Position not found for symbol: {symbol}")


class SessionError(TradingEngineException):
    """Raised for backtest session lifecycle problems."""

    pass


class SessionNotFoundError(SessionError):
    """Raised when a session id is unknown."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Backtest session not found: {session_id}")


class BacktestStillRunningError(SessionError):
    """Raised when a result is requested before the session has finished."""

    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(f"Backtest {session_id} is still {status}")


class InvalidStateTransitionError(SessionError):
    """Raised when a session is moved to a status its lifecycle does not allow."""

    def __init__(self, session_id: str, current: str, target: str):
        self.session_id = session_id
        self.current = current
        self.target = target
        super().__init__(f"Backtest {session_id} cannot move from {current} to {target}")


class SessionCancelledError(SessionError):
    """Raised inside a session when a stop was requested."""

    def __init__(self, session_id: str, bars_processed: int):
        self.session_id = session_id
        self.bars_processed = bars_processed
        super().__init__(f"Backtest {session_id} stopped after {bars_processed} bars")
