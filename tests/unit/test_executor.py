"""
Unit tests for simulated order execution.
"""

from decimal import Decimal

import pytest

from src.backtest.executor import SimulatedExecutor
from src.core.enums import TradeSide
from src.core.exceptions.backtest import InsufficientFundsError, ValidationError
from src.core.settings import EngineSettings


class TestSimulatedExecutor:
    """Tests for SimulatedExecutor."""

    @pytest.fixture
    def executor(self) -> SimulatedExecutor:
        """Create executor with 0.1% commission and 5 bps slippage."""
        return SimulatedExecutor(Decimal("0.001"), Decimal("5"))

    def test_should_fill_buys_above_reference_price(self, executor: SimulatedExecutor) -> None:
        """Test buy slippage and commission."""
        # Act
        fill = executor.execute(TradeSide.BUY, Decimal("2"), Decimal("100"))

        # Assert
        assert fill.price == Decimal("100.05")
        assert fill.requested_price == Decimal("100")
        assert fill.fee == Decimal("0.2001")
        assert fill.notional == Decimal("200.10")
        assert fill.slippage_cost == Decimal("0.10")

    def test_should_fill_sells_below_reference_price(self, executor: SimulatedExecutor) -> None:
        """Test sell slippage."""
        fill = executor.execute(TradeSide.SELL, Decimal("1"), Decimal("100"))

        assert fill.price == Decimal("99.95")
        assert fill.fee == Decimal("0.09995")

    def test_should_fill_at_reference_without_costs(self) -> None:
        """Test a frictionless executor."""
        executor = SimulatedExecutor(Decimal("0"), Decimal("0"))

        fill = executor.execute(TradeSide.BUY, Decimal("1"), Decimal("100"))

        assert fill.price == Decimal("100")
        assert fill.fee == Decimal("0")

    def test_should_reject_non_positive_quantity(self, executor: SimulatedExecutor) -> None:
        """Test input validation on execute."""
        with pytest.raises(ValidationError, match="quantity"):
            executor.execute(TradeSide.BUY, Decimal("0"), Decimal("100"))

    def test_should_reject_negative_costs(self) -> None:
        """Test constructor validation."""
        with pytest.raises(ValidationError):
            SimulatedExecutor(Decimal("-0.001"), Decimal("5"))

    def test_should_cap_quantity_by_cash_including_costs(self) -> None:
        """Test max_affordable_quantity."""
        executor = SimulatedExecutor(Decimal("0"), Decimal("0"))

        assert executor.max_affordable_quantity(
            Decimal("1000"), Decimal("100"), TradeSide.BUY
        ) == Decimal("10")
        assert executor.max_affordable_quantity(
            Decimal("0"), Decimal("100"), TradeSide.BUY
        ) == Decimal("0")

    def test_affordable_quantity_should_cover_commission(
        self, executor: SimulatedExecutor
    ) -> None:
        """Test that buying the affordable quantity never exceeds cash."""
        cash = Decimal("1000")

        quantity = executor.max_affordable_quantity(cash, Decimal("100"), TradeSide.BUY)
        fill = executor.execute(TradeSide.BUY, quantity, Decimal("100"))

        assert float(fill.notional + fill.fee) == pytest.approx(1000.0)
        assert fill.notional + fill.fee <= cash

    @pytest.mark.parametrize("price", ["42117", "27013.37", "99991"])
    def test_affordable_quantity_should_round_down(
        self, executor: SimulatedExecutor, price: str
    ) -> None:
        """Test the capped quantity is floored and its fill passes the cash check."""
        cash = Decimal("9990.01")

        quantity = executor.max_affordable_quantity(cash, Decimal(price), TradeSide.BUY)
        fill = executor.execute(TradeSide.BUY, quantity, Decimal(price))

        assert quantity.as_tuple().exponent >= -8
        SimulatedExecutor.validate_order(TradeSide.BUY, quantity, fill.price, cash - fill.fee)

    def test_should_use_configured_defaults(self) -> None:
        """Test from_settings."""
        settings = EngineSettings(
            default_commission_rate=Decimal("0.002"), default_slippage_bps=Decimal("10")
        )

        executor = SimulatedExecutor.from_settings(settings)

        assert executor.commission_rate == Decimal("0.002")
        assert executor.slippage_bps == Decimal("10")


class TestOrderValidation:
    """Tests for validate_order and market impact."""

    def test_should_reject_buy_beyond_cash(self) -> None:
        """Test insufficient funds."""
        with pytest.raises(InsufficientFundsError) as exc_info:
            SimulatedExecutor.validate_order(
                TradeSide.BUY, Decimal("2"), Decimal("100"), Decimal("150")
            )

        assert exc_info.value.required == Decimal("200")
        assert exc_info.value.available == Decimal("150")

    def test_should_not_check_cash_for_sells(self) -> None:
        """Test that sells are not limited by cash."""
        SimulatedExecutor.validate_order(TradeSide.SELL, Decimal("2"), Decimal("100"), Decimal("0"))

    @pytest.mark.parametrize("quantity, price", [("0", "100"), ("1", "0"), ("-1", "100")])
    def test_should_reject_non_positive_values(self, quantity: str, price: str) -> None:
        """Test quantity and price validation."""
        with pytest.raises(ValidationError):
            SimulatedExecutor.validate_order(TradeSide.BUY, Decimal(quantity), Decimal(price))

    def test_should_estimate_square_root_market_impact(self) -> None:
        """Test impact = sqrt(quantity / liquidity) * 0.01."""
        impact = SimulatedExecutor.calculate_market_impact(Decimal("1"), Decimal("100"))

        assert impact == Decimal("0.001")
        assert SimulatedExecutor.calculate_market_impact(Decimal("0"), Decimal("100")) == 0

    def test_should_reject_non_positive_liquidity(self) -> None:
        """Test impact validation."""
        with pytest.raises(ValidationError, match="Liquidity"):
            SimulatedExecutor.calculate_market_impact(Decimal("1"), Decimal("0"))
