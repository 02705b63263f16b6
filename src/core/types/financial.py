"""
Financial data types for exact money arithmetic.

Prices, quantities, cash and ratios are carried as Decimal so that
comparisons at realistic price magnitudes (e.g. 42100.00 vs 42100.01) never
suffer binary-float cancellation. Floats coming from numeric libraries are
converted through their shortest string representation, so 0.1 becomes
Decimal("0.1") rather than its binary expansion.

Rounding is applied only at presentation or exchange boundaries; internal
arithmetic keeps full Decimal precision.
"""

from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal, InvalidOperation

from src.core.enums import PositionSide, TradeSide

# Financial calculation precision (number of decimal places)
FINANCIAL_DECIMALS = 8  # 8 decimal places (crypto standard)
PERCENTAGE_DECIMALS = 4  # 4 decimal places for percentages
PRICE_DECIMALS = 8  # crypto pairs quote well below one cent

# Common financial values as Decimal constants
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

type Numeric = Decimal | int | float | str


def to_decimal(value: Numeric) -> Decimal:
    """Convert various numeric types to Decimal.

    Args:
        value: Numeric value to convert

    Returns:
        Decimal representation of the value

    Raises:
        ValueError: If the value is not a finite number

    Examples:
        >>> to_decimal(50000)
        Decimal('50000')
        >>> to_decimal(0.1)
        Decimal('0.1')
    """
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a numeric amount: {value}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Cannot convert {value!r} to Decimal") from e

    if not result.is_finite():
        raise ValueError(f"Value must be finite, got {value!r}")
    return result


def _quantize(value: Decimal, places: int, rounding: str = ROUND_HALF_EVEN) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=rounding)


def round_price(price: Decimal) -> Decimal:
    """Round price to appropriate precision for trading."""
    return _quantize(price, PRICE_DECIMALS)


def round_amount(amount: Decimal) -> Decimal:
    """Round amount to appropriate precision for trading."""
    return _quantize(amount, FINANCIAL_DECIMALS)


def round_percentage(percentage: Decimal) -> Decimal:
    """Round percentage to appropriate precision."""
    return _quantize(percentage, PERCENTAGE_DECIMALS)


def floor_to_step(quantity: Decimal, step: Decimal) -> Decimal:
    """Round a quantity down to a whole number of exchange steps.

    Args:
        quantity: Raw quantity
        step: Exchange lot step size (must be positive)

    Returns:
        Largest multiple of step not greater than quantity
    """
    if step <= ZERO:
        raise ValueError(f"Step size must be positive, got {step}")
    steps = (quantity / step).to_integral_value(rounding=ROUND_DOWN)
    return steps * step


def calculate_notional_value(quantity: Decimal, price: Decimal) -> Decimal:
    """Calculate notional value of a quantity at a price."""
    return abs(quantity) * price


def calculate_pnl(
    entry_price: Decimal,
    exit_price: Decimal,
    quantity: Decimal,
    side: PositionSide,
) -> Decimal:
    """Calculate gross PnL of a position moving from entry to exit.

    Args:
        entry_price: Entry price of position
        exit_price: Exit or mark price
        quantity: Position quantity (absolute value)
        side: Position direction

    Returns:
        PnL before fees
    """
    qty = abs(quantity)
    if side.is_long:
        return (exit_price - entry_price) * qty
    return (entry_price - exit_price) * qty


def apply_slippage(price: Decimal, slippage_bps: Decimal, side: TradeSide) -> Decimal:
    """Move a reference price against the trader by a basis-point amount.

    Buys execute above the reference price, sells below it.
    """
    from src.core.constants import BASIS_POINTS_DIVISOR

    adjustment = slippage_bps / BASIS_POINTS_DIVISOR
    if side.is_buy:
        return price * (ONE + adjustment)
    return price * (ONE - adjustment)


def calculate_commission(notional: Decimal, commission_rate: Decimal) -> Decimal:
    """Calculate a percentage-of-notional commission."""
    return abs(notional) * commission_rate


def safe_divide(numerator: Decimal, denominator: Decimal, default: Decimal = ZERO) -> Decimal:
    """Divide, returning a default when the denominator is zero."""
    if denominator == ZERO:
        return default
    return numerator / denominator
