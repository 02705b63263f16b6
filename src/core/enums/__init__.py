"""
Core enumerations for the trading platform.

This module provides centralized enumerations for domain concepts
like positions, timeframes, sessions, orders and risk decisions.
"""

from .order_types import OrderStatus, OrderType
from .position_types import PositionSide, PositionStatus, SignalType, TradeSide
from .risk_types import RiskDenialReason, SizingMethod
from .session_status import SessionStatus
from .timeframes import Timeframe

__all__ = [
    "OrderStatus",
    "OrderType",
    "PositionSide",
    "PositionStatus",
    "RiskDenialReason",
    "SessionStatus",
    "SignalType",
    "SizingMethod",
    "Timeframe",
    "TradeSide",
]
