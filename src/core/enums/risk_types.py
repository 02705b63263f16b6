"""
Position sizing and risk enumerations.
"""

from enum import StrEnum


class SizingMethod(StrEnum):
    """
    Supported position sizing methods.

    FIXED uses a configured quantity, PERCENTAGE a share of equity,
    RISK_BASED the distance to the stop, KELLY the capped Kelly fraction.
    """

    FIXED = "fixed"
    PERCENTAGE = "percentage"
    RISK_BASED = "risk_based"
    KELLY = "kelly"

    @classmethod
    def from_string(cls, value: str) -> "SizingMethod":
        """
        Convert string to SizingMethod enum.

        Raises:
            ValueError: If method is not supported
        """
        value_lower = value.strip().lower()
        for method in cls:
            if method.value == value_lower:
                return method
        raise ValueError(
            f"Unsupported sizing method: {value}. "
            f"Supported methods: {', '.join(m.value for m in cls)}"
        )


class RiskDenialReason(StrEnum):
    """Reason a proposed trade was refused by the risk manager."""

    MAX_POSITION_SIZE_EXCEEDED = "max_position_size_exceeded"
    DAILY_LOSS_LIMIT_HIT = "daily_loss_limit_hit"
    MAX_DRAWDOWN_EXCEEDED = "max_drawdown_exceeded"
    MAX_CONCURRENT_POSITIONS = "max_concurrent_positions"
