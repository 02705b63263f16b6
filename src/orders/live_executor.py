"""
Order placement for live and paper sessions.

Orders pass the risk gate, are placed through bounded retry, and are handed
to the order tracker for status follow-up.
"""

import asyncio
from collections.abc import Sequence
from datetime import datetime

from loguru import logger

from src.core.enums import PositionStatus, SignalType
from src.core.exceptions.backtest import PortfolioError
from src.core.interfaces.exchange import IExchangeAdapter
from src.core.models.order import OrderRequest, TrackedOrder
from src.core.models.portfolio import PortfolioState, ProposedTrade, RiskLimits
from src.core.models.position import Position
from src.core.models.trade import Trade
from src.core.types.financial import ZERO
from src.core.utils.decorators import log_operation
from src.orders.order_tracker import OrderTracker, Subscriber
from src.orders.retry import RetryPolicy, SleepFunction, with_retry
from src.risk.risk_manager import RiskManager


class LiveOrderExecutor:
    """
    Places orders on an exchange adapter.

    Args:
        exchange: Exchange adapter
        tracker: Order tracker to register placed orders with
        risk_manager: Risk gate applied when a portfolio state is given
        retry_policy: Backoff parameters for placement and cancellation
        sleep: Awaitable sleep used between retries
    """

    def __init__(
        self,
        exchange: IExchangeAdapter,
        tracker: OrderTracker | None = None,
        risk_manager: RiskManager | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: SleepFunction = asyncio.sleep,
    ) -> None:
        self._exchange = exchange
        self._tracker = tracker
        self._risk_manager = risk_manager or RiskManager()
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    @log_operation
    async def execute_order(
        self,
        request: OrderRequest,
        portfolio: PortfolioState | None = None,
        limits: RiskLimits | None = None,
        subscriber: Subscriber | None = None,
    ) -> TrackedOrder:
        """
        Place one order.

        Args:
            request: Order to place
            portfolio: Current portfolio; enables the risk check
            limits: Limits overriding the risk manager's own
            subscriber: Queue notified of the order's status changes

        Raises:
            RiskLimitExceededError: When the risk gate denies the order
            OrderRejectedError: When the exchange refuses the order
            MaxRetriesExceededError: When transient failures persist
        """
        if portfolio is not None:
            proposed = ProposedTrade(request.symbol, request.side, request.quantity, request.price)
            self._risk_manager.check_trade(proposed, portfolio, limits).raise_if_denied()

        ack = await with_retry(
            lambda: self._exchange.place_order(request),
            self._retry_policy,
            operation_name=f"place_order {request.symbol}",
            sleep=self._sleep,
        )
        order = TrackedOrder.from_ack(request, ack)
        if self._tracker is not None:
            await self._tracker.track_order(order, subscriber)
        return order

    async def execute_batch(
        self,
        requests: Sequence[OrderRequest],
        portfolio: PortfolioState | None = None,
        limits: RiskLimits | None = None,
    ) -> list[TrackedOrder | Exception]:
        """Place several orders concurrently. Failures are returned in place of orders."""
        results = await asyncio.gather(
            *(self.execute_order(request, portfolio, limits) for request in requests),
            return_exceptions=True,
        )
        failed = sum(1 for r in results if isinstance(r, Exception))
        if failed:
            logger.warning(f"{failed} of {len(requests)} batch orders failed")
        return list(results)

    async def cancel_order(self, order: TrackedOrder) -> None:
        await with_retry(
            lambda: self._exchange.cancel_order(order.symbol, order.exchange_order_id),
            self._retry_policy,
            operation_name=f"cancel_order {order.exchange_order_id}",
            sleep=self._sleep,
        )
        logger.info(f"Cancellation sent for order {order.internal_id}")


def position_from_order(order: TrackedOrder, opened_at: datetime | None = None) -> Position:
    """
    Open a position from a (partially) filled order.

    A buy opens a long, a sell a short. A partially filled order yields a
    partial position sized to the filled quantity.

    Raises:
        PortfolioError: If nothing has been filled yet
    """
    if order.filled_quantity <= ZERO or order.average_fill_price is None:
        raise PortfolioError(f"Order {order.internal_id} has no fills")

    fill = Trade(
        timestamp=opened_at or order.updated_at,
        symbol=order.symbol,
        side=order.side,
        signal_type=SignalType.ENTRY,
        quantity=order.filled_quantity,
        price=order.average_fill_price,
        fee=ZERO,
        requested_price=order.price,
    )
    position = Position.create_from_trade(fill)
    if order.filled_quantity < order.quantity:
        position.status = PositionStatus.PARTIAL
    return position
