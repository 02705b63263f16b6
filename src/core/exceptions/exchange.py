"""
Exceptions raised on the live order path.
"""

from src.core.exceptions.backtest import TradingEngineException


class ExchangeError(TradingEngineException):
    """Raised when the exchange adapter fails.

    `retryable` marks transient failures (timeouts, unavailable service)
    that the retry handler may attempt again.
    """

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class RateLimitedError(ExchangeError):
    """Raised when the exchange throttles requests."""

    def __init__(self, message: str = "Rate limited by exchange", retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(message, retryable=True)


class OrderRejectedError(ExchangeError):
    """Raised when the exchange permanently refuses an order."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Order rejected: {reason}", retryable=False)


class MaxRetriesExceededError(ExchangeError):
    """Raised when a transient failure persists through every retry attempt."""

    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Operation failed after {attempts} attempts: {last_error}")


class OrderNotFoundError(TradingEngineException):
    """Raised when an order id is not tracked."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not tracked: {order_id}")
