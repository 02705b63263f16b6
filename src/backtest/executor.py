"""
Simulated order execution.

Fills market orders at the reference price moved against the trader by a
basis-point slippage, charging a percentage-of-notional commission. This is
a cost approximation, not a matching engine.
"""

from dataclasses import dataclass
from decimal import Decimal

from src.core.constants import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_SLIPPAGE_BPS,
    MARKET_IMPACT_COEFFICIENT,
)
from src.core.enums import TradeSide
from src.core.exceptions.backtest import InsufficientFundsError, ValidationError
from src.core.settings import EngineSettings
from src.core.types.financial import (
    FINANCIAL_DECIMALS,
    ZERO,
    apply_slippage,
    calculate_commission,
    floor_to_step,
)
from src.core.utils.decorators import validate_inputs
from src.core.utils.validation import validate_non_negative

QUANTITY_STEP = Decimal(1).scaleb(-FINANCIAL_DECIMALS)


@dataclass(frozen=True)
class Fill:
    """Result of a simulated execution."""

    side: TradeSide
    quantity: Decimal
    requested_price: Decimal
    price: Decimal
    fee: Decimal

    @property
    def notional(self) -> Decimal:
        return self.quantity * self.price

    @property
    def slippage_cost(self) -> Decimal:
        return abs(self.price - self.requested_price) * self.quantity


class SimulatedExecutor:
    """Executes backtest orders with slippage and commission."""

    def __init__(
        self,
        commission_rate: Decimal = DEFAULT_COMMISSION_RATE,
        slippage_bps: Decimal = DEFAULT_SLIPPAGE_BPS,
    ) -> None:
        self.commission_rate = validate_non_negative(commission_rate, "commission_rate")
        self.slippage_bps = validate_non_negative(slippage_bps, "slippage_bps")

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "SimulatedExecutor":
        """Executor using the configured default cost model."""
        return cls(settings.default_commission_rate, settings.default_slippage_bps)

    def calculate_fill_price(self, price: Decimal, side: TradeSide) -> Decimal:
        """Reference price adjusted for slippage: buys higher, sells lower."""
        return apply_slippage(price, self.slippage_bps, side)

    def calculate_fee(self, quantity: Decimal, fill_price: Decimal) -> Decimal:
        """Commission on the executed notional."""
        return calculate_commission(quantity * fill_price, self.commission_rate)

    def max_affordable_quantity(self, cash: Decimal, price: Decimal, side: TradeSide) -> Decimal:
        """
        Largest quantity whose cost including commission fits in cash.

        Floored to FINANCIAL_DECIMALS places so the division never rounds up
        past the available cash.
        """
        fill_price = self.calculate_fill_price(price, side)
        unit_cost = fill_price * (1 + self.commission_rate)
        if unit_cost <= ZERO or cash <= ZERO:
            return ZERO
        return floor_to_step(cash / unit_cost, QUANTITY_STEP)

    @staticmethod
    def validate_order(
        side: TradeSide,
        quantity: Decimal,
        price: Decimal,
        available_cash: Decimal | None = None,
    ) -> None:
        """
        Validate a simulated order before execution.

        Raises:
            ValidationError: For non-positive quantity or price
            InsufficientFundsError: When a buy costs more than the available cash
        """
        if quantity <= ZERO:
            raise ValidationError(f"Order quantity must be positive, got {quantity}")
        if price <= ZERO:
            raise ValidationError(f"Order price must be positive, got {price}")
        if available_cash is not None and side.is_buy and quantity * price > available_cash:
            raise InsufficientFundsError(quantity * price, available_cash, f"{side} order")

    @validate_inputs
    def execute(self, side: TradeSide, quantity: Decimal, price: Decimal) -> Fill:
        """
        Fill a market order.

        Args:
            side: Buy or sell
            quantity: Order quantity
            price: Reference (bar close) price

        Returns:
            The fill, with executed price and fee
        """
        fill_price = self.calculate_fill_price(price, side)
        return Fill(
            side=side,
            quantity=quantity,
            requested_price=price,
            price=fill_price,
            fee=self.calculate_fee(quantity, fill_price),
        )

    @staticmethod
    def calculate_market_impact(quantity: Decimal, liquidity: Decimal) -> Decimal:
        """
        Estimate price impact with a square-root model.

        impact = sqrt(quantity / liquidity) * 0.01, as a fraction of price.
        """
        if liquidity <= ZERO:
            raise ValidationError(f"Liquidity must be positive, got {liquidity}")
        if quantity <= ZERO:
            return ZERO
        return (quantity / liquidity).sqrt() * MARKET_IMPACT_COEFFICIENT
