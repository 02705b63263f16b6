"""
Market data interfaces.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from src.core.enums import Timeframe
from src.core.models.bar import Bar


class IMarketDataSource(ABC):
    """Abstract interface for historical bar retrieval."""

    @abstractmethod
    async def fetch_historical_bars(
        self, symbol: str, timeframe: Timeframe, start_date: datetime, end_date: datetime
    ) -> list[Bar]:
        """Load bars for the symbol in [start_date, end_date], oldest first."""
        pass
