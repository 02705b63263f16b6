"""
Order placement, retry and lifecycle tracking for live and paper sessions.
"""

from .live_executor import LiveOrderExecutor, position_from_order
from .order_tracker import OrderTracker
from .paper_exchange import PaperExchange
from .retry import RetryPolicy, calculate_delay, is_retryable, with_retry

__all__ = [
    "LiveOrderExecutor",
    "OrderTracker",
    "PaperExchange",
    "RetryPolicy",
    "calculate_delay",
    "is_retryable",
    "position_from_order",
    "with_retry",
]
