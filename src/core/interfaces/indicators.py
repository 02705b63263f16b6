"""
Indicator calculation interface.

The numeric indicator library is a pluggable collaborator. The default
pandas implementation lives in src.infrastructure.data.technical_indicators.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import pandas as pd


class IIndicatorCalculator(ABC):
    """Abstract interface for indicator calculation."""

    @abstractmethod
    def calculate(
        self, indicator_type: str, parameters: Mapping[str, Any], data: pd.DataFrame
    ) -> pd.Series | pd.DataFrame:
        """
        Calculate one indicator over an OHLCV frame.

        Returns a Series for single-value indicators or a DataFrame whose
        columns are the component names, indexed like `data`.
        """
        pass

    @abstractmethod
    def default_period(self, indicator_type: str) -> int | None:
        """Period used when a spec does not configure one, if the type has one."""
        pass

    def required_periods(self, indicator_type: str, parameters: Mapping[str, Any]) -> int | None:
        """
        Bars needed for the first value under these parameters.

        None when the calculator cannot tell; the orchestrator then relies on
        the period plus the warm-up table alone.
        """
        return None

    @abstractmethod
    def available_indicators(self) -> list[str]:
        """Indicator types this calculator supports."""
        pass
