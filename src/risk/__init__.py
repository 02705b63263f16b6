"""
Position sizing and portfolio risk limits.
"""

from .position_sizer import (
    adjust_for_lot_size,
    calculate_size,
    kelly_fraction,
    size_position,
    stop_price_for,
)
from .risk_manager import RiskDecision, RiskManager, RiskMetrics, check_trade

__all__ = [
    "RiskDecision",
    "RiskManager",
    "RiskMetrics",
    "adjust_for_lot_size",
    "calculate_size",
    "check_trade",
    "kelly_fraction",
    "size_position",
    "stop_price_for",
]
