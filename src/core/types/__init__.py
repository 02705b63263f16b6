"""
Core type definitions and utilities.
"""

# Re-export financial utilities for easy access
from .financial import (
    FINANCIAL_DECIMALS,
    HUNDRED,
    ONE,
    PERCENTAGE_DECIMALS,
    PRICE_DECIMALS,
    ZERO,
    Numeric,
    apply_slippage,
    calculate_commission,
    calculate_notional_value,
    calculate_pnl,
    floor_to_step,
    round_amount,
    round_percentage,
    round_price,
    safe_divide,
    to_decimal,
)

__all__ = [
    # Utility functions
    "to_decimal",
    "round_price",
    "round_amount",
    "round_percentage",
    "floor_to_step",
    "calculate_notional_value",
    "calculate_pnl",
    "apply_slippage",
    "calculate_commission",
    "safe_divide",
    # Types
    "Numeric",
    # Constants
    "FINANCIAL_DECIMALS",
    "PERCENTAGE_DECIMALS",
    "PRICE_DECIMALS",
    "ZERO",
    "ONE",
    "HUNDRED",
]
