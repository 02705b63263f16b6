"""
Exchange adapter interface.

Only the abstract order placement and status capability is consumed; the
wire protocol of any particular exchange lives outside this package.
"""

from abc import ABC, abstractmethod

from src.core.models.order import OrderAck, OrderRequest, OrderStatusReport


class IExchangeAdapter(ABC):
    """Abstract interface for an exchange connection."""

    @abstractmethod
    async def place_order(self, request: OrderRequest) -> OrderAck:
        """Submit an order. Raises ExchangeError subclasses on failure."""
        pass

    @abstractmethod
    async def get_order_status(self, symbol: str, exchange_order_id: str) -> OrderStatusReport:
        """Fetch the current status of an order."""
        pass

    @abstractmethod
    async def cancel_order(self, symbol: str, exchange_order_id: str) -> None:
        """Cancel an open order."""
        pass
