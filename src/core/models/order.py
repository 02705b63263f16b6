"""
Order models for the live and paper execution paths.
"""

import asyncio
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal

from src.core.enums import OrderStatus, OrderType, TradeSide
from src.core.exceptions.backtest import ValidationError
from src.core.types.financial import ZERO
from src.core.utils.validation import validate_positive, validate_symbol


@dataclass(frozen=True)
class OrderRequest:
    """Parameters of an order to place on an exchange."""

    symbol: str
    side: TradeSide
    quantity: Decimal
    order_type: OrderType = OrderType.MARKET
    price: Decimal | None = None
    client_order_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])

    def __post_init__(self) -> None:
        """Validate order parameters after initialization."""
        object.__setattr__(self, "symbol", validate_symbol(self.symbol))
        validate_positive(self.quantity, "quantity")
        if self.order_type.requires_price and self.price is None:
            raise ValidationError("Limit orders require a price")
        if self.price is not None:
            validate_positive(self.price, "price")


@dataclass(frozen=True)
class OrderStatusReport:
    """Order state as reported by the exchange, normalized on construction."""

    exchange_order_id: str
    status: OrderStatus
    filled_quantity: Decimal = ZERO
    average_price: Decimal | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", OrderStatus.normalize(self.status))


@dataclass(frozen=True)
class OrderAck:
    """Acknowledgement returned when an order is accepted."""

    exchange_order_id: str
    status: OrderStatus = OrderStatus.OPEN
    filled_quantity: Decimal = ZERO
    average_price: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", OrderStatus.normalize(self.status))


@dataclass
class TrackedOrder:
    """An order whose status is followed by the order tracker."""

    internal_id: str
    exchange_order_id: str
    symbol: str
    side: TradeSide
    order_type: OrderType
    quantity: Decimal
    price: Decimal | None = None
    status: OrderStatus = OrderStatus.PENDING
    filled_quantity: Decimal = ZERO
    average_fill_price: Decimal | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    subscribers: list["asyncio.Queue[OrderStatusChange]"] = field(default_factory=list)

    @classmethod
    def from_ack(cls, request: OrderRequest, ack: OrderAck) -> "TrackedOrder":
        """Create a tracked order from a placement acknowledgement."""
        return cls(
            internal_id=f"order_{uuid.uuid4().hex[:16]}",
            exchange_order_id=ack.exchange_order_id,
            symbol=request.symbol,
            side=request.side,
            order_type=request.order_type,
            quantity=request.quantity,
            price=request.price,
            status=ack.status,
            filled_quantity=ack.filled_quantity,
            average_fill_price=ack.average_price,
        )

    @property
    def remaining_quantity(self) -> Decimal:
        return self.quantity - self.filled_quantity

    def snapshot(self) -> "TrackedOrder":
        """Copy of the order without subscriber queues, safe to hand out."""
        return replace(self, subscribers=[])


@dataclass(frozen=True)
class OrderStatusChange:
    """Notification delivered to subscribers on a status transition."""

    order_id: str
    old_status: OrderStatus
    new_status: OrderStatus
    order: TrackedOrder
