"""
Order lifecycle tracker.

A single task owns every tracked order. Callers talk to it through a
command mailbox; a timer tick re-fetches the status of non-terminal orders
and notifies subscriber queues of transitions. Notification never blocks:
a subscriber whose queue is full misses the event.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from src.core.constants import DEFAULT_ORDER_POLL_INTERVAL
from src.core.enums import OrderStatus
from src.core.exceptions.backtest import ConfigurationError
from src.core.exceptions.exchange import ExchangeError, OrderNotFoundError
from src.core.interfaces.exchange import IExchangeAdapter
from src.core.models.order import OrderStatusChange, OrderStatusReport, TrackedOrder

type Subscriber = asyncio.Queue[OrderStatusChange]


@dataclass
class _Command:
    reply: asyncio.Future[Any] = field(init=False)


@dataclass
class _Track(_Command):
    order: TrackedOrder
    subscriber: Subscriber | None


@dataclass
class _Untrack(_Command):
    order_id: str


@dataclass
class _GetStatus(_Command):
    order_id: str


@dataclass
class _Subscribe(_Command):
    order_id: str
    subscriber: Subscriber


@dataclass
class _Unsubscribe(_Command):
    order_id: str
    subscriber: Subscriber


@dataclass
class _PollNow(_Command):
    order_id: str


@dataclass
class _ListActive(_Command):
    pass


@dataclass
class _Stop(_Command):
    pass


class OrderTracker:
    """
    Tracks orders until they reach a terminal status.

    Usage:
        async with OrderTracker(exchange) as tracker:
            order_id = await tracker.track_order(order, queue)
    """

    def __init__(
        self, exchange: IExchangeAdapter, poll_interval: float = DEFAULT_ORDER_POLL_INTERVAL
    ) -> None:
        if poll_interval <= 0:
            raise ConfigurationError(f"poll_interval must be positive, got {poll_interval}")
        self._exchange = exchange
        self.poll_interval = poll_interval
        self._orders: dict[str, TrackedOrder] = {}
        self._mailbox: asyncio.Queue[_Command] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="order-tracker")
        logger.info(f"Order tracker started (poll interval {self.poll_interval}s)")

    async def stop(self) -> None:
        if not self.is_running or self._task is None:
            return
        await self._send(_Stop())
        await self._task
        self._task = None
        logger.info("Order tracker stopped")

    async def __aenter__(self) -> "OrderTracker":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def track_order(self, order: TrackedOrder, subscriber: Subscriber | None = None) -> str:
        """Start tracking an order. Returns its internal id."""
        return await self._send(_Track(order, subscriber))

    async def untrack_order(self, order_id: str) -> None:
        await self._send(_Untrack(order_id))

    async def get_status(self, order_id: str) -> TrackedOrder:
        """Snapshot of a tracked order."""
        return await self._send(_GetStatus(order_id))

    async def subscribe(self, order_id: str, subscriber: Subscriber) -> None:
        """Add a subscriber queue. Subscribing the same queue twice has no effect."""
        await self._send(_Subscribe(order_id, subscriber))

    async def unsubscribe(self, order_id: str, subscriber: Subscriber) -> None:
        await self._send(_Unsubscribe(order_id, subscriber))

    async def poll_now(self, order_id: str) -> TrackedOrder:
        """Fetch one order's status immediately, outside the poll schedule."""
        return await self._send(_PollNow(order_id))

    async def active_orders(self) -> list[TrackedOrder]:
        return await self._send(_ListActive())

    async def _send(self, command: _Command) -> Any:
        if not self.is_running:
            raise RuntimeError("Order tracker is not running")
        command.reply = asyncio.get_running_loop().create_future()
        await self._mailbox.put(command)
        return await command.reply

    async def _run(self) -> None:
        try:
            await self._process_commands()
        finally:
            self._fail_pending_commands()

    def _fail_pending_commands(self) -> None:
        """Answer commands left in the mailbox once the tracker task has ended."""
        while not self._mailbox.empty():
            command = self._mailbox.get_nowait()
            if not command.reply.done():
                command.reply.set_exception(RuntimeError("Order tracker stopped"))

    async def _process_commands(self) -> None:
        loop = asyncio.get_running_loop()
        next_poll = loop.time() + self.poll_interval
        while True:
            timeout = max(0.0, next_poll - loop.time())
            try:
                command = await asyncio.wait_for(self._mailbox.get(), timeout)
            except TimeoutError:
                try:
                    await self._poll_all()
                except Exception as e:
                    logger.error(f"Unexpected error polling order statuses: {e}")
                next_poll = loop.time() + self.poll_interval
                continue

            if isinstance(command, _Stop):
                command.reply.set_result(None)
                return
            try:
                command.reply.set_result(await self._handle(command))
            except Exception as e:
                command.reply.set_exception(e)

    async def _handle(self, command: _Command) -> Any:
        match command:
            case _Track(order=order, subscriber=subscriber):
                if subscriber is not None and subscriber not in order.subscribers:
                    order.subscribers.append(subscriber)
                self._orders[order.internal_id] = order
                logger.info(
                    f"Tracking order {order.internal_id} ({order.exchange_order_id}) "
                    f"{order.side} {order.quantity} {order.symbol}: {order.status}"
                )
                return order.internal_id
            case _Untrack(order_id=order_id):
                self._require(order_id)
                del self._orders[order_id]
                return None
            case _GetStatus(order_id=order_id):
                return self._require(order_id).snapshot()
            case _Subscribe(order_id=order_id, subscriber=subscriber):
                order = self._require(order_id)
                if subscriber not in order.subscribers:
                    order.subscribers.append(subscriber)
                return None
            case _Unsubscribe(order_id=order_id, subscriber=subscriber):
                order = self._require(order_id)
                if subscriber in order.subscribers:
                    order.subscribers.remove(subscriber)
                return None
            case _PollNow(order_id=order_id):
                order = self._require(order_id)
                report = await self._exchange.get_order_status(
                    order.symbol, order.exchange_order_id
                )
                self._apply_report(order, report)
                return order.snapshot()
            case _ListActive():
                return [o.snapshot() for o in self._orders.values() if not o.status.is_terminal]
            case _:
                raise TypeError(f"Unknown tracker command: {command!r}")

    def _require(self, order_id: str) -> TrackedOrder:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _poll_all(self) -> None:
        active = [o for o in self._orders.values() if not o.status.is_terminal]
        if active:
            await asyncio.gather(*(self._poll_order(order) for order in active))

    async def _poll_order(self, order: TrackedOrder) -> None:
        try:
            report = await self._exchange.get_order_status(order.symbol, order.exchange_order_id)
        except (ExchangeError, TimeoutError, ConnectionError) as e:
            logger.warning(f"Status poll failed for order {order.internal_id}: {e}")
            return
        self._apply_report(order, report)

    def _apply_report(self, order: TrackedOrder, report: OrderStatusReport) -> None:
        old_status = order.status
        new_status = report.status
        if new_status != old_status and not old_status.can_transition_to(new_status):
            logger.warning(
                f"Ignoring status {new_status} for order {order.internal_id} in {old_status}"
            )
            return

        order.filled_quantity = report.filled_quantity
        if report.average_price is not None:
            order.average_fill_price = report.average_price
        if new_status == old_status:
            return

        order.status = new_status
        order.updated_at = datetime.now(UTC)
        logger.info(f"Order {order.internal_id}: {old_status} -> {new_status}")
        self._notify(order, old_status, new_status)

    @staticmethod
    def _notify(order: TrackedOrder, old_status: OrderStatus, new_status: OrderStatus) -> None:
        change = OrderStatusChange(order.internal_id, old_status, new_status, order.snapshot())
        for subscriber in order.subscribers:
            try:
                subscriber.put_nowait(change)
            except asyncio.QueueFull:
                logger.warning(f"Subscriber queue full, dropped update for {order.internal_id}")
