"""
In-memory exchange for paper trading.

Market orders fill immediately at the last known price plus slippage.
Limit orders rest until a price update crosses them. Fees use the same
cost model as the backtest executor.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal

from loguru import logger

from src.backtest.executor import SimulatedExecutor
from src.core.enums import OrderStatus, OrderType, TradeSide
from src.core.exceptions.exchange import OrderNotFoundError, OrderRejectedError
from src.core.interfaces.exchange import IExchangeAdapter
from src.core.models.order import OrderAck, OrderRequest, OrderStatusReport
from src.core.types.financial import ZERO
from src.core.utils.validation import validate_positive, validate_symbol


@dataclass
class PaperOrder:
    """Exchange-side record of a paper order."""

    exchange_order_id: str
    request: OrderRequest
    status: OrderStatus = OrderStatus.OPEN
    filled_quantity: Decimal = ZERO
    average_price: Decimal | None = None
    fee: Decimal = ZERO

    def report(self) -> OrderStatusReport:
        return OrderStatusReport(
            exchange_order_id=self.exchange_order_id,
            status=self.status,
            filled_quantity=self.filled_quantity,
            average_price=self.average_price,
        )


class PaperExchange(IExchangeAdapter):
    """IExchangeAdapter backed by in-memory prices and orders."""

    def __init__(
        self,
        prices: dict[str, Decimal] | None = None,
        executor: SimulatedExecutor | None = None,
    ) -> None:
        self._prices = {validate_symbol(s): p for s, p in (prices or {}).items()}
        self._executor = executor or SimulatedExecutor()
        self._orders: dict[str, PaperOrder] = {}

    @property
    def total_fees(self) -> Decimal:
        return sum((order.fee for order in self._orders.values()), ZERO)

    def set_price(self, symbol: str, price: Decimal) -> None:
        """Update the last price and fill any crossed limit orders."""
        symbol = validate_symbol(symbol)
        self._prices[symbol] = validate_positive(price, "price")
        for order in self._orders.values():
            if order.status.is_active and order.request.symbol == symbol:
                self._try_fill_limit(order, price)

    async def place_order(self, request: OrderRequest) -> OrderAck:
        last_price = self._prices.get(request.symbol)
        if request.order_type == OrderType.MARKET and last_price is None:
            raise OrderRejectedError(f"No market price for {request.symbol}")

        order = PaperOrder(exchange_order_id=f"paper_{uuid.uuid4().hex[:12]}", request=request)
        self._orders[order.exchange_order_id] = order
        if request.order_type == OrderType.MARKET and last_price is not None:
            self._fill(order, last_price)
        elif last_price is not None:
            self._try_fill_limit(order, last_price)

        logger.info(
            f"Paper order {order.exchange_order_id}: {request.side} {request.quantity} "
            f"{request.symbol} {request.order_type} -> {order.status}"
        )
        return OrderAck(
            exchange_order_id=order.exchange_order_id,
            status=order.status,
            filled_quantity=order.filled_quantity,
            average_price=order.average_price,
        )

    async def get_order_status(self, symbol: str, exchange_order_id: str) -> OrderStatusReport:
        return self._get(exchange_order_id).report()

    async def cancel_order(self, symbol: str, exchange_order_id: str) -> None:
        order = self._get(exchange_order_id)
        if order.status.is_terminal:
            raise OrderRejectedError(f"Order {exchange_order_id} is already {order.status}")
        order.status = OrderStatus.CANCELLED

    def _get(self, exchange_order_id: str) -> PaperOrder:
        order = self._orders.get(exchange_order_id)
        if order is None:
            raise OrderNotFoundError(exchange_order_id)
        return order

    def _try_fill_limit(self, order: PaperOrder, market_price: Decimal) -> None:
        limit = order.request.price
        if limit is None:
            return
        crossed = market_price <= limit if order.request.side == TradeSide.BUY else market_price >= limit
        if crossed:
            self._fill(order, limit, apply_slippage=False)

    def _fill(self, order: PaperOrder, price: Decimal, apply_slippage: bool = True) -> None:
        side = order.request.side
        fill_price = self._executor.calculate_fill_price(price, side) if apply_slippage else price
        order.filled_quantity = order.request.quantity
        order.average_price = fill_price
        order.fee = self._executor.calculate_fee(order.filled_quantity, fill_price)
        order.status = OrderStatus.FILLED
