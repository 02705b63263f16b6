"""
Validation utilities for core domain models.

Provides consistent validation across the application.
"""

from decimal import Decimal
from typing import Any

from src.core.exceptions.backtest import ValidationError


def validate_symbol(symbol: Any, param_name: str = "symbol") -> str:
    """Validate that a value is a non-empty trading pair string.

    Args:
        symbol: Value to validate
        param_name: Parameter name for error messages

    Returns:
        The validated symbol, stripped and upper-cased

    Raises:
        TypeError: If symbol is not a string
        ValidationError: If symbol is blank
    """
    if not isinstance(symbol, str):
        raise TypeError(f"{param_name} must be a string, got {type(symbol).__name__}")
    normalized = symbol.strip().upper()
    if not normalized:
        raise ValidationError(f"{param_name} must not be empty")
    return normalized


def validate_positive(value: Decimal, param_name: str) -> Decimal:
    """Validate that a numeric value is positive.

    Args:
        value: Value to validate
        param_name: Parameter name for error messages

    Returns:
        The validated value

    Raises:
        ValidationError: If value is not positive
    """
    if value <= 0:
        raise ValidationError(f"{param_name} must be positive, got {value}")
    return value


def validate_non_negative(value: Decimal, param_name: str) -> Decimal:
    """Validate that a numeric value is zero or positive."""
    if value < 0:
        raise ValidationError(f"{param_name} must be non-negative, got {value}")
    return value


def validate_fraction(value: Decimal, param_name: str = "fraction") -> Decimal:
    """Validate that a ratio lies in [0, 1].

    Args:
        value: Ratio to validate (0.25 means 25%)
        param_name: Parameter name for error messages

    Returns:
        The validated ratio

    Raises:
        ValidationError: If value is outside [0, 1]
    """
    if value < 0 or value > 1:
        raise ValidationError(f"{param_name} must be between 0 and 1, got {value}")
    return value
