"""
Market data infrastructure.

This module provides bar series validation and the default pandas
indicator calculator.
"""

from .ohlcv_validator import DataGap, OHLCVValidator
from .technical_indicators import (
    TechnicalIndicatorsCalculator,
    create_technical_indicators_calculator,
)

__all__ = [
    "DataGap",
    "OHLCVValidator",
    "TechnicalIndicatorsCalculator",
    "create_technical_indicators_calculator",
]
