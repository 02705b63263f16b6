"""
Position sizing.

Pure functions computing an entry quantity from account equity and the
sizing method of a strategy. Safe to call from any number of sessions.

Examples:
    >>> calculate_size(SizingMethod.RISK_BASED, equity=Decimal("10000"),
    ...     risk_pct=Decimal("0.02"), entry_price=Decimal("50000"),
    ...     stop_price=Decimal("48000")) == Decimal("0.1")
    True
    >>> calculate_size(SizingMethod.PERCENTAGE, equity=Decimal("10000"),
    ...     position_pct=Decimal("0.25"), entry_price=Decimal("50000"))
    Decimal('0.05')
"""

from decimal import Decimal

from src.core.constants import KELLY_FRACTION_CAP
from src.core.enums import PositionSide, SizingMethod
from src.core.exceptions.risk import InvalidStopLossError, PositionSizingError
from src.core.models.strategy import PositionSizingConfig
from src.core.types.financial import ONE, ZERO, floor_to_step


def _require(name: str, value: Decimal | None) -> Decimal:
    if value is None:
        raise PositionSizingError(f"missing_{name}")
    if value < ZERO:
        raise PositionSizingError(f"invalid_{name}", f"{name} must be non-negative, got {value}")
    return value


def _require_price(name: str, value: Decimal | None) -> Decimal:
    price = _require(name, value)
    if price == ZERO:
        raise PositionSizingError(f"invalid_{name}", f"{name} must be positive")
    return price


def kelly_fraction(win_rate: Decimal, win_loss_ratio: Decimal) -> Decimal:
    """
    Kelly fraction W - (1 - W) / R, clamped to [0, quarter-Kelly cap].

    Args:
        win_rate: Probability of a winning trade (0-1)
        win_loss_ratio: Average win divided by average loss

    Raises:
        PositionSizingError: If inputs are out of range
    """
    if win_rate < ZERO or win_rate > ONE:
        raise PositionSizingError("invalid_win_rate", f"win_rate must be in [0, 1], got {win_rate}")
    if win_loss_ratio <= ZERO:
        raise PositionSizingError(
            "invalid_win_loss_ratio", f"win_loss_ratio must be positive, got {win_loss_ratio}"
        )
    raw = win_rate - (ONE - win_rate) / win_loss_ratio
    return max(ZERO, min(raw, KELLY_FRACTION_CAP))


def calculate_size(
    method: SizingMethod,
    *,
    equity: Decimal | None = None,
    entry_price: Decimal | None = None,
    stop_price: Decimal | None = None,
    quantity: Decimal | None = None,
    position_pct: Decimal | None = None,
    risk_pct: Decimal | None = None,
    win_rate: Decimal | None = None,
    win_loss_ratio: Decimal | None = None,
    max_position_fraction: Decimal | None = None,
) -> Decimal:
    """
    Calculate an entry quantity.

    Args:
        method: Sizing method
        equity: Account equity
        entry_price: Expected entry price
        stop_price: Stop price (risk_based)
        quantity: Configured quantity (fixed)
        position_pct: Share of equity to allocate (percentage)
        risk_pct: Share of equity to risk (risk_based)
        win_rate: Historical win rate (kelly)
        win_loss_ratio: Average win / average loss (kelly)
        max_position_fraction: Optional cap on notional as a share of equity
            (risk_based); tight stops otherwise produce unbounded quantities

    Returns:
        Quantity in base-asset units

    Raises:
        PositionSizingError: For missing or invalid parameters
        InvalidStopLossError: When the stop equals the entry price
    """
    match method:
        case SizingMethod.FIXED:
            if quantity is None:
                raise PositionSizingError("missing_fixed_quantity")
            if quantity <= ZERO:
                raise PositionSizingError("invalid_quantity", f"quantity must be positive, got {quantity}")
            return quantity

        case SizingMethod.PERCENTAGE:
            account = _require("equity", equity)
            pct = _require("position_pct", position_pct)
            price = _require_price("entry_price", entry_price)
            return account * pct / price

        case SizingMethod.RISK_BASED:
            account = _require("equity", equity)
            pct = _require("risk_pct", risk_pct)
            price = _require_price("entry_price", entry_price)
            stop = _require("stop_price", stop_price)
            distance = abs(price - stop)
            if distance == ZERO:
                raise InvalidStopLossError(price, stop)
            size = account * pct / distance
            if max_position_fraction is not None:
                size = min(size, account * max_position_fraction / price)
            return size

        case SizingMethod.KELLY:
            account = _require("equity", equity)
            rate = _require("win_rate", win_rate)
            ratio = _require("win_loss_ratio", win_loss_ratio)
            price = _require_price("entry_price", entry_price)
            return account * kelly_fraction(rate, ratio) / price

    raise PositionSizingError("invalid_method", str(method))


def adjust_for_lot_size(quantity: Decimal, min_quantity: Decimal, step_size: Decimal) -> Decimal:
    """
    Round a quantity down to the exchange step, never below the minimum.

    Args:
        quantity: Raw quantity
        min_quantity: Smallest tradeable quantity
        step_size: Exchange lot step
    """
    adjusted = floor_to_step(max(quantity, min_quantity), step_size)
    return max(adjusted, min_quantity)


def stop_price_for(entry_price: Decimal, stop_loss_pct: Decimal, side: PositionSide) -> Decimal:
    """Stop level a fixed fraction away from the entry, on the losing side."""
    if side.is_long:
        return entry_price * (ONE - stop_loss_pct)
    return entry_price * (ONE + stop_loss_pct)


def size_position(
    config: PositionSizingConfig,
    equity: Decimal,
    entry_price: Decimal,
    stop_price: Decimal | None = None,
) -> Decimal:
    """
    Size an entry from a strategy's sizing configuration.

    Applies the configured lot-size adjustment when a step size is set.
    """
    size = calculate_size(
        config.method,
        equity=equity,
        entry_price=entry_price,
        stop_price=stop_price,
        quantity=config.fixed_quantity,
        position_pct=config.position_pct,
        risk_pct=config.risk_pct,
        win_rate=config.win_rate,
        win_loss_ratio=config.win_loss_ratio,
        max_position_fraction=config.max_position_fraction,
    )
    if config.lot_step_size is not None:
        size = adjust_for_lot_size(size, config.min_quantity or ZERO, config.lot_step_size)
    return size
